"""Recognising YouTube URLs and pulling the video id out of them."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

WATCH_MARKER = "youtube.com/watch"
SHORT_MARKER = "youtu.be/"
UNKNOWN_VIDEO_ID = "unknown"

# Video ids end up in file names, so only YouTube's id alphabet is accepted.
_VIDEO_ID_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")


class InvalidVideoUrl(ValueError):
    """The submitted string is not a YouTube video URL."""


def validate_video_url(url: object) -> str:
    if not isinstance(url, str) or not url.strip():
        raise InvalidVideoUrl("A YouTube URL is required.")
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidVideoUrl("Invalid URL.")
    if WATCH_MARKER not in url and SHORT_MARKER not in url:
        raise InvalidVideoUrl("Please enter a valid YouTube URL.")
    return url


def _clean_video_id(candidate: str) -> str:
    return candidate if _VIDEO_ID_RE.fullmatch(candidate) else UNKNOWN_VIDEO_ID


def extract_video_id(url: str) -> str:
    parsed = urlparse(url)
    if WATCH_MARKER in url:
        values = parse_qs(parsed.query).get("v") or []
        return _clean_video_id(values[0]) if values else UNKNOWN_VIDEO_ID
    if SHORT_MARKER in url:
        segments = [part for part in parsed.path.split("/") if part]
        return _clean_video_id(segments[-1]) if segments else UNKNOWN_VIDEO_ID
    return UNKNOWN_VIDEO_ID


def thumbnail_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
