#!/usr/bin/env python3
"""
YouTube downloader built on top of yt-dlp.

Used by the web app to fetch the source media for a conversion job, and
usable on its own:
    python downloader.py <url1> <url2> ... [-o OUTPUT] [--format mp3|mp4]
"""

from __future__ import annotations

import argparse
import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

import yt_dlp

from config import DEFAULT_USER_AGENT, Settings
from transcoder import transcode_to_mp3
from urls import extract_video_id, validate_video_url

logger = logging.getLogger(__name__)
logging.getLogger("yt_dlp").setLevel(logging.WARNING)

# Raw downloads are written as "<work_dir>/source.<ext>".
SOURCE_STEM = "source"
_PARTIAL_SUFFIXES = {".part", ".ytdl", ".temp"}

AUDIO_FORMAT = "bestaudio/best"
VIDEO_FORMAT = (
    "best[ext=mp4][vcodec!=none][acodec!=none]/"
    "best[ext=mp4]/"
    "best"
)


class DownloadError(RuntimeError):
    """yt-dlp could not fetch the requested media."""


def resolve_output_dir(output: Optional[str]) -> Path:
    path = Path(output) if output else Path("downloads")
    path.mkdir(parents=True, exist_ok=True)
    return path


def build_yt_dlp_opts(
    output_dir: Path,
    fmt: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    quiet: bool = True,
) -> Dict[str, Any]:
    return {
        "format": AUDIO_FORMAT if fmt == "mp3" else VIDEO_FORMAT,
        "outtmpl": {"default": str(output_dir / f"{SOURCE_STEM}.%(ext)s")},
        "quiet": quiet,
        "no_warnings": quiet,
        "noplaylist": True,
        "ignoreerrors": False,
        "geo_bypass": True,
        "nocheckcertificate": True,
        "http_headers": {"User-Agent": user_agent},
    }


def find_downloaded_file(output_dir: Path) -> Optional[Path]:
    candidates = sorted(
        path
        for path in output_dir.glob(f"{SOURCE_STEM}.*")
        if path.is_file() and path.suffix.lower() not in _PARTIAL_SUFFIXES
    )
    return candidates[0] if candidates else None


def download_media(
    url: str,
    output_dir: Path,
    fmt: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    quiet: bool = True,
) -> Path:
    """Download ``url`` into ``output_dir`` and return the raw media file."""
    output_dir.mkdir(parents=True, exist_ok=True)
    options = build_yt_dlp_opts(output_dir, fmt, user_agent=user_agent, quiet=quiet)
    try:
        with yt_dlp.YoutubeDL(options) as ydl:
            retcode = ydl.download([url])
    except yt_dlp.utils.DownloadError as exc:
        raise DownloadError(str(exc)) from exc
    if retcode:
        raise DownloadError(f"yt-dlp exited with code {retcode} for {url}")
    downloaded = find_downloaded_file(output_dir)
    if downloaded is None:
        raise DownloadError(f"Downloaded file not found in {output_dir}")
    logger.info("Downloaded %s -> %s", url, downloaded)
    return downloaded


def dump_metadata(url: str, *, user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, Any]:
    """Return yt-dlp's JSON metadata for ``url`` without downloading it."""
    options = {
        "quiet": True,
        "no_warnings": True,
        "noplaylist": True,
        "skip_download": True,
        "nocheckcertificate": True,
        "http_headers": {"User-Agent": user_agent},
    }
    try:
        with yt_dlp.YoutubeDL(options) as ydl:
            info = ydl.extract_info(url, download=False)
            return ydl.sanitize_info(info) or {}
    except yt_dlp.utils.DownloadError as exc:
        raise DownloadError(str(exc)) from exc


def convert_url(url: str, output_dir: Path, fmt: str, settings: Settings) -> Path:
    """Download ``url`` and leave a finished ``.mp3``/``.mp4`` in ``output_dir``."""
    validate_video_url(url)
    video_id = extract_video_id(url)
    work_dir = output_dir / ".work" / video_id
    try:
        source = download_media(url, work_dir, fmt, user_agent=settings.user_agent, quiet=False)
        target = output_dir / f"{video_id}.{fmt}"
        if fmt == "mp3":
            transcode_to_mp3(source, target, quality=settings.mp3_quality, ffmpeg_bin=settings.ffmpeg_bin)
        else:
            shutil.move(str(source), str(target))
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)
    return target


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert YouTube videos to MP3 or MP4 via yt-dlp and ffmpeg.",
    )
    parser.add_argument(
        "urls",
        nargs="+",
        help="YouTube watch-page or youtu.be URLs.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output directory. Defaults to ./downloads",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=("mp3", "mp4"),
        default="mp3",
        help="Output format (default: %(default)s).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    output_dir = resolve_output_dir(args.output)
    failed: List[str] = []
    for url in args.urls:
        try:
            target = convert_url(url, output_dir, args.format, settings)
        except (RuntimeError, ValueError) as exc:
            logger.error("Failed to convert %s: %s", url, exc)
            failed.append(url)
            continue
        print(f"[OK] {url} -> {target}")
    if failed:
        raise SystemExit(
            f"Failed to convert {len(failed)} item(s):\n" + "\n".join(failed)
        )


if __name__ == "__main__":
    main()
