"""Runtime settings for the converter, read from the environment."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Coarse progress markers around the external tool calls.
PROGRESS_STARTED = 10
PROGRESS_DOWNLOADED = 50
PROGRESS_TRANSCODED = 90
PROGRESS_DONE = 100

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
OEMBED_ENDPOINT = "https://www.youtube.com/oembed"


def _default_temp_root() -> Path:
    return Path(tempfile.gettempdir()) / "youtube-converter"


@dataclass(frozen=True)
class Settings:
    temp_root: Path = field(default_factory=_default_temp_root)
    max_workers: int = 4
    retention_hours: float = 24.0
    reap_interval_hours: float = 24.0
    mp3_quality: str = "2"
    placeholder_seconds: int = 30
    oembed_timeout: float = 10.0
    ffmpeg_bin: str = "ffmpeg"
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8080

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        env = os.environ
        temp_root = env.get("CONVERTER_TEMP_ROOT")
        return cls(
            temp_root=Path(temp_root) if temp_root else _default_temp_root(),
            max_workers=max(1, int(env.get("CONVERTER_MAX_WORKERS", "4"))),
            retention_hours=float(env.get("JOB_RETENTION_HOURS", "24")),
            reap_interval_hours=float(env.get("REAP_INTERVAL_HOURS", "24")),
            mp3_quality=env.get("MP3_QUALITY", "2"),
            placeholder_seconds=int(env.get("PLACEHOLDER_SECONDS", "30")),
            oembed_timeout=float(env.get("OEMBED_TIMEOUT", "10")),
            ffmpeg_bin=env.get("FFMPEG_BIN", "ffmpeg"),
            user_agent=env.get("DOWNLOADER_USER_AGENT", DEFAULT_USER_AGENT),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            host=env.get("HOST", "127.0.0.1"),
            port=int(env.get("PORT", "8080")),
        )

    def job_dir(self, job_id: str) -> Path:
        return self.temp_root / job_id


def is_within(path: Path, root: Path) -> bool:
    """True when ``path`` resolves to ``root`` or somewhere beneath it."""
    resolved_root = root.resolve()
    resolved = path.resolve()
    return resolved == resolved_root or resolved_root in resolved.parents
