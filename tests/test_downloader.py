import pytest

import downloader
from downloader import (
    AUDIO_FORMAT,
    VIDEO_FORMAT,
    DownloadError,
    build_yt_dlp_opts,
    download_media,
    dump_metadata,
    find_downloaded_file,
)


class _FakeYoutubeDL:
    instances = []

    def __init__(self, params) -> None:
        self.params = params
        self.error = None
        _FakeYoutubeDL.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def download(self, urls):
        if self.error:
            raise self.error
        template = self.params["outtmpl"]["default"]
        with open(template.replace("%(ext)s", "m4a"), "wb") as handle:
            handle.write(b"audio")
        return 0

    def extract_info(self, url, download=True):
        if self.error:
            raise self.error
        return {"title": "Never Gonna Give You Up", "uploader": "Rick Astley", "duration": 213}

    def sanitize_info(self, info):
        return dict(info)


@pytest.fixture
def fake_ydl(monkeypatch):
    _FakeYoutubeDL.instances = []
    monkeypatch.setattr(downloader.yt_dlp, "YoutubeDL", _FakeYoutubeDL)
    return _FakeYoutubeDL


def test_audio_options_carry_resilience_flags(tmp_path) -> None:
    opts = build_yt_dlp_opts(tmp_path, "mp3", user_agent="UA/1.0")
    assert opts["format"] == AUDIO_FORMAT
    assert opts["geo_bypass"] is True
    assert opts["nocheckcertificate"] is True
    assert opts["http_headers"] == {"User-Agent": "UA/1.0"}
    assert opts["noplaylist"] is True
    assert opts["outtmpl"]["default"] == str(tmp_path / "source.%(ext)s")


def test_video_options_select_muxed_mp4(tmp_path) -> None:
    assert build_yt_dlp_opts(tmp_path, "mp4")["format"] == VIDEO_FORMAT


def test_find_downloaded_file_ignores_partials(tmp_path) -> None:
    (tmp_path / "source.webm.part").write_bytes(b"")
    (tmp_path / "source.part").write_bytes(b"")
    assert find_downloaded_file(tmp_path) is None
    (tmp_path / "source.webm").write_bytes(b"x")
    assert find_downloaded_file(tmp_path) == tmp_path / "source.webm"


def test_download_media_returns_downloaded_file(tmp_path, fake_ydl) -> None:
    result = download_media("https://youtu.be/abc", tmp_path / "job", "mp3")
    assert result == tmp_path / "job" / "source.m4a"
    assert result.read_bytes() == b"audio"


def test_download_media_wraps_yt_dlp_errors(tmp_path, monkeypatch) -> None:
    class _Failing(_FakeYoutubeDL):
        def download(self, urls):
            raise downloader.yt_dlp.utils.DownloadError("ERROR: Video unavailable")

    monkeypatch.setattr(downloader.yt_dlp, "YoutubeDL", _Failing)
    with pytest.raises(DownloadError, match="Video unavailable"):
        download_media("https://youtu.be/abc", tmp_path, "mp4")


def test_download_media_without_output_file(tmp_path, monkeypatch) -> None:
    class _Silent(_FakeYoutubeDL):
        def download(self, urls):
            return 0

    monkeypatch.setattr(downloader.yt_dlp, "YoutubeDL", _Silent)
    with pytest.raises(DownloadError, match="not found"):
        download_media("https://youtu.be/abc", tmp_path, "mp3")


def test_dump_metadata(fake_ydl) -> None:
    info = dump_metadata("https://youtu.be/abc", user_agent="UA/1.0")
    assert info["uploader"] == "Rick Astley"
    params = fake_ydl.instances[-1].params
    assert params["skip_download"] is True
    assert params["http_headers"]["User-Agent"] == "UA/1.0"


def test_parse_args_defaults_to_mp3() -> None:
    args = downloader.parse_args(["https://youtu.be/abc"])
    assert args.format == "mp3"
    assert args.output is None
