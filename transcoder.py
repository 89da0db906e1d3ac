#!/usr/bin/env python3
"""ffmpeg helpers: MP3 re-encoding and silent placeholder tracks."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)

_STDERR_TAIL = 800


class TranscodeError(RuntimeError):
    """ffmpeg exited with an error or produced no output."""


def _run_ffmpeg(cmd: List[str], target: Path) -> Path:
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.run(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
        )
    except FileNotFoundError as exc:
        raise TranscodeError(f"ffmpeg not found: {cmd[0]}") from exc
    if proc.returncode != 0:
        stderr = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
        raise TranscodeError(
            f"ffmpeg exited with code {proc.returncode}: {stderr[-_STDERR_TAIL:]}"
        )
    if not target.exists():
        raise TranscodeError(f"ffmpeg produced no output at {target}")
    return target


def transcode_to_mp3(
    source: Path,
    target: Path,
    *,
    quality: str = "2",
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    """Re-encode ``source`` to an MP3 at VBR ``quality`` (ffmpeg ``-q:a``)."""
    if not source.exists():
        raise TranscodeError(f"Source file not found: {source}")
    cmd = [
        ffmpeg_bin,
        "-y",
        "-i",
        str(source),
        "-vn",
        "-codec:a",
        "libmp3lame",
        "-q:a",
        str(quality),
        str(target),
    ]
    return _run_ffmpeg(cmd, target)


def generate_silent_mp3(
    target: Path,
    *,
    seconds: int = 30,
    ffmpeg_bin: str = "ffmpeg",
) -> Path:
    cmd = [
        ffmpeg_bin,
        "-y",
        "-f",
        "lavfi",
        "-i",
        "anullsrc=r=44100:cl=stereo",
        "-t",
        str(seconds),
        "-codec:a",
        "libmp3lame",
        "-q:a",
        "9",
        str(target),
    ]
    return _run_ffmpeg(cmd, target)
