import sys
from pathlib import Path

import pytest


# Ensure tests can import project modules regardless of how pytest is invoked.
ROOT = Path(__file__).resolve().parents[1]
ROOT_STR = str(ROOT)
if ROOT_STR not in sys.path:
    sys.path.insert(0, ROOT_STR)

from config import Settings  # noqa: E402
from converter import Converter  # noqa: E402
from jobs import JobStore  # noqa: E402

WATCH_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
SHORT_URL = "https://youtu.be/dQw4w9WgXcQ"


@pytest.fixture
def settings(tmp_path):
    return Settings(temp_root=tmp_path / "jobs", max_workers=1, placeholder_seconds=5)


@pytest.fixture
def store():
    return JobStore()


@pytest.fixture
def converter(store, settings, monkeypatch):
    """Converter whose jobs only run when a test calls ``run`` itself."""
    conv = Converter(store, settings)
    monkeypatch.setattr(conv, "_schedule", lambda job_id: None)
    yield conv
    conv.shutdown()


@pytest.fixture
def fake_tools(monkeypatch):
    """Replace yt-dlp and ffmpeg calls inside the converter with file writers."""
    import converter as converter_module

    calls = {"download": [], "transcode": [], "silence": []}

    def _download(url, work_dir, fmt, *, user_agent=None, quiet=True):
        calls["download"].append((url, fmt))
        work_dir.mkdir(parents=True, exist_ok=True)
        source = work_dir / ("source.webm" if fmt == "mp3" else "source.mp4")
        source.write_bytes(b"raw-media")
        return source

    def _transcode(source, target, *, quality="2", ffmpeg_bin="ffmpeg"):
        calls["transcode"].append((source, target, quality))
        target.write_bytes(b"ID3-mp3")
        return target

    def _silence(target, *, seconds=30, ffmpeg_bin="ffmpeg"):
        calls["silence"].append((target, seconds))
        target.write_bytes(b"ID3-silence")
        return target

    monkeypatch.setattr(converter_module, "download_media", _download)
    monkeypatch.setattr(converter_module, "transcode_to_mp3", _transcode)
    monkeypatch.setattr(converter_module, "generate_silent_mp3", _silence)
    return calls
