"""Video metadata lookup: oEmbed first, yt-dlp as a fallback."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from config import OEMBED_ENDPOINT, Settings
from downloader import DownloadError, dump_metadata
from urls import extract_video_id, thumbnail_url, validate_video_url

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Title"
UNKNOWN_AUTHOR = "Unknown Author"
PLACEHOLDER_TITLE = "Video Title (metadata unavailable)"
ZERO_DURATION = "0:00"


def format_duration(seconds: Any) -> str:
    try:
        total = max(0, int(float(seconds or 0)))
    except (TypeError, ValueError):
        total = 0
    minutes, remainder = divmod(total, 60)
    return f"{minutes}:{remainder:02d}"


def _from_oembed(
    url: str, video_id: str, settings: Settings, session: requests.Session
) -> Optional[Dict[str, str]]:
    try:
        response = session.get(
            OEMBED_ENDPOINT,
            params={"url": url, "format": "json"},
            timeout=settings.oembed_timeout,
        )
    except requests.RequestException as exc:
        logger.warning("oEmbed lookup failed for %s: %s", url, exc)
        return None
    if not response.ok:
        logger.info("oEmbed lookup for %s returned HTTP %s", url, response.status_code)
        return None
    try:
        data = response.json()
    except ValueError:
        logger.warning("oEmbed lookup for %s returned invalid JSON", url)
        return None
    return {
        "id": video_id,
        "title": data.get("title") or UNKNOWN_TITLE,
        "thumbnail": thumbnail_url(video_id),
        "author": data.get("author_name") or UNKNOWN_AUTHOR,
        # oEmbed carries no duration.
        "duration": ZERO_DURATION,
    }


def _from_yt_dlp(url: str, video_id: str, settings: Settings) -> Optional[Dict[str, str]]:
    try:
        info = dump_metadata(url, user_agent=settings.user_agent)
    except DownloadError as exc:
        logger.warning("yt-dlp metadata dump failed for %s: %s", url, exc)
        return None
    return {
        "id": video_id,
        "title": info.get("title") or UNKNOWN_TITLE,
        "thumbnail": info.get("thumbnail") or thumbnail_url(video_id),
        "author": info.get("uploader") or UNKNOWN_AUTHOR,
        "duration": format_duration(info.get("duration")),
    }


def placeholder_info(video_id: str) -> Dict[str, str]:
    return {
        "id": video_id,
        "title": PLACEHOLDER_TITLE,
        "thumbnail": thumbnail_url(video_id),
        "author": "Unknown",
        "duration": ZERO_DURATION,
    }


def fetch_video_info(
    url: str,
    settings: Settings,
    session: Optional[requests.Session] = None,
) -> Dict[str, str]:
    """
    Return ``{id, title, thumbnail, author, duration}`` for a YouTube URL.

    Raises ``InvalidVideoUrl`` for anything that is not a YouTube video URL.
    Once the URL is accepted this never fails: lookup errors degrade to a
    placeholder record carrying the extracted video id.
    """
    url = validate_video_url(url)
    video_id = extract_video_id(url)
    http = session or requests.Session()
    try:
        info = _from_oembed(url, video_id, settings, http)
    finally:
        if session is None:
            http.close()
    if info is None:
        info = _from_yt_dlp(url, video_id, settings)
    if info is None:
        logger.error("All metadata lookups failed for %s", url)
        info = placeholder_info(video_id)
    return info
