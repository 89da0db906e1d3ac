import pytest

import web_app
from conftest import SHORT_URL, WATCH_URL
from jobs import ConversionResult
from web_app import create_app

UNKNOWN_ID = "12345678-1234-1234-1234-123456789abc"


@pytest.fixture
def app(settings, store, converter):
    return create_app(settings, store, converter)


@pytest.fixture
def client(app):
    return app.test_client()


def _completed_job(store, converter, settings, file_name="dQw4w9WgXcQ.mp3", content=b"ID3-data"):
    job_id = converter.submit(WATCH_URL)
    work_dir = settings.job_dir(job_id)
    work_dir.mkdir(parents=True)
    path = work_dir / file_name
    path.write_bytes(content)
    store.update(job_id, lambda j: j.start(10))
    store.update(
        job_id,
        lambda j: j.complete(ConversionResult(f"/api/download/{job_id}", file_name, str(path))),
    )
    return job_id, path


def test_index_serves_page(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert b"YouTube Converter" in response.data


def test_health(client) -> None:
    assert client.get("/api/health").get_json() == {"ok": True}


def test_video_info(client, monkeypatch) -> None:
    captured = {}

    def _fetch(url, settings):
        captured["url"] = url
        return {"id": "dQw4w9WgXcQ", "title": "t", "thumbnail": "th", "author": "a", "duration": "3:33"}

    monkeypatch.setattr(web_app, "fetch_video_info", _fetch)
    response = client.post("/api/video-info", json={"url": WATCH_URL})
    assert response.status_code == 200
    assert response.get_json()["id"] == "dQw4w9WgXcQ"
    assert captured["url"] == WATCH_URL


@pytest.mark.parametrize("body", [{}, {"url": "https://example.com/watch?v=1"}, {"url": 42}])
def test_video_info_rejects_bad_urls(client, body) -> None:
    response = client.post("/api/video-info", json=body)
    assert response.status_code == 400
    assert response.get_json()["error"]


def test_convert_defaults_to_mp3(client, store) -> None:
    response = client.post("/api/convert", json={"url": WATCH_URL})
    assert response.status_code == 200
    job_id = response.get_json()["jobId"]
    job = store.get(job_id)
    assert job.format == "mp3"
    assert job.status == "pending"


def test_convert_accepts_mp4(client, store) -> None:
    job_id = client.post("/api/convert", json={"url": SHORT_URL, "format": "mp4"}).get_json()["jobId"]
    assert store.get(job_id).format == "mp4"


@pytest.mark.parametrize(
    "body",
    [{}, {"url": "https://vimeo.com/1"}, {"url": WATCH_URL, "format": "flac"}],
)
def test_convert_rejects_bad_requests(client, store, body) -> None:
    response = client.post("/api/convert", json=body)
    assert response.status_code == 400
    assert response.get_json()["error"]
    assert len(store) == 0


def test_convert_lookup(client) -> None:
    job_id = client.post("/api/convert", json={"url": WATCH_URL}).get_json()["jobId"]
    job = client.get(f"/api/convert?jobId={job_id}").get_json()["job"]
    assert job["id"] == job_id
    assert job["url"] == WATCH_URL
    assert job["status"] == "pending"
    assert client.get(f"/api/convert?jobId={UNKNOWN_ID}").status_code == 404


def test_status_requires_job_id(client) -> None:
    response = client.get("/api/conversion-status")
    assert response.status_code == 400
    assert "jobId" in response.get_json()["error"]


def test_status_rejects_malformed_job_id(client) -> None:
    assert client.get("/api/conversion-status?jobId=invalid-uuid").status_code == 400


def test_status_unknown_job(client) -> None:
    assert client.get(f"/api/conversion-status?jobId={UNKNOWN_ID}").status_code == 404


def test_status_of_pending_job(client) -> None:
    job_id = client.post("/api/convert", json={"url": WATCH_URL}).get_json()["jobId"]
    data = client.get(f"/api/conversion-status?jobId={job_id}").get_json()
    assert data == {"status": "pending", "progress": 0}


def test_end_to_end_conversion(client, converter, fake_tools) -> None:
    job_id = client.post("/api/convert", json={"url": WATCH_URL}).get_json()["jobId"]
    converter.run(job_id)

    data = client.get(f"/api/conversion-status?jobId={job_id}").get_json()
    assert data["status"] == "completed"
    assert data["progress"] == 100
    assert data["result"]["fileName"] == "dQw4w9WgXcQ.mp3"
    assert data["result"]["downloadUrl"] == f"/api/download/{job_id}"

    response = client.get(data["result"]["downloadUrl"])
    assert response.status_code == 200
    assert response.data == b"ID3-mp3"
    response.close()


def test_download_as_attachment(client, store, converter, settings) -> None:
    job_id, _ = _completed_job(store, converter, settings)
    response = client.get(f"/api/download/{job_id}")
    assert response.status_code == 200
    assert response.mimetype == "audio/mpeg"
    assert response.headers["Content-Disposition"].startswith("attachment")
    assert "dQw4w9WgXcQ.mp3" in response.headers["Content-Disposition"]
    assert response.headers["Content-Length"] == str(len(b"ID3-data"))
    assert response.headers["Cache-Control"] == "public, max-age=3600"
    response.close()


def test_download_inline_via_header(client, store, converter, settings) -> None:
    job_id, _ = _completed_job(store, converter, settings, file_name="dQw4w9WgXcQ.mp4")
    response = client.get(f"/api/download/{job_id}", headers={"X-Content-Disposition": "inline"})
    assert response.mimetype == "video/mp4"
    assert response.headers["Content-Disposition"].startswith("inline")
    response.close()


def test_download_inline_via_query(client, store, converter, settings) -> None:
    job_id, _ = _completed_job(store, converter, settings)
    response = client.get(f"/api/download/{job_id}?x-content-disposition=inline")
    assert response.headers["Content-Disposition"].startswith("inline")
    response.close()


def test_download_requires_completed_job(client, converter, settings) -> None:
    job_id = converter.submit(WATCH_URL)
    # a file on disk does not make an unfinished job downloadable
    work_dir = settings.job_dir(job_id)
    work_dir.mkdir(parents=True)
    (work_dir / "dQw4w9WgXcQ.mp3").write_bytes(b"early")
    response = client.get(f"/api/download/{job_id}")
    assert response.status_code == 400


def test_download_missing_file(client, store, converter, settings) -> None:
    job_id, path = _completed_job(store, converter, settings)
    path.unlink()
    assert client.get(f"/api/download/{job_id}").status_code == 404


def test_download_unknown_or_malformed_job(client) -> None:
    assert client.get(f"/api/download/{UNKNOWN_ID}").status_code == 404
    assert client.get("/api/download/not-a-uuid").status_code == 400


def test_failed_job_reports_error(client, converter, monkeypatch) -> None:
    import converter as converter_module
    from downloader import DownloadError

    def _broken(*args, **kwargs):
        raise DownloadError("Video unavailable")

    monkeypatch.setattr(converter_module, "download_media", _broken)
    job_id = client.post("/api/convert", json={"url": SHORT_URL, "format": "mp4"}).get_json()["jobId"]
    converter.run(job_id)
    data = client.get(f"/api/conversion-status?jobId={job_id}").get_json()
    assert data["status"] == "failed"
    assert data["error"] == "Video unavailable"
    assert "result" not in data
    assert client.get(f"/api/download/{job_id}").status_code == 400
