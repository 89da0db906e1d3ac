#!/usr/bin/env python3
"""Web UI and JSON API for the YouTube MP3/MP4 converter, built with Flask."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from flask import Flask, jsonify, request, send_file

from config import Settings
from converter import Converter, UnsupportedFormat
from jobs import JobStore, is_job_id
from reaper import Reaper
from urls import InvalidVideoUrl
from video_info import fetch_video_info

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
}
DISPOSITION_FLAG = "X-Content-Disposition"


HTML_PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>YouTube Converter</title>
  <style>
    :root {
      color-scheme: dark;
      --bg: #0b0d17;
      --panel: #1b1f2f;
      --panel-border: #2d334a;
      --text: #e3e5ec;
      --muted: #b3b8d4;
      --accent: #5a8dee;
      --accent-strong: #7fa6ff;
      --error: #ff6b6b;
    }
    body { font-family: system-ui, sans-serif; min-height: 100vh; margin: 0; line-height: 1.5; background: var(--bg); color: var(--text); padding: 2rem; box-sizing: border-box; }
    .container { max-width: 760px; margin: 0 auto; }
    input { width: 100%; padding: 0.75rem; border: 1px solid var(--panel-border); border-radius: 8px; background: var(--panel); color: var(--text); box-sizing: border-box; }
    button { padding: 0.6rem 1.4rem; font-size: 1rem; border-radius: 999px; border: none; background: var(--accent); color: #fff; cursor: pointer; transition: background 0.2s ease; }
    button:hover { background: var(--accent-strong); }
    button:disabled { opacity: 0.5; cursor: default; }
    label { display: block; font-weight: 600; margin-bottom: 0.35rem; color: var(--muted); }
    form, .panel { background: var(--panel); padding: 1.75rem; border-radius: 16px; border: 1px solid var(--panel-border); box-shadow: 0 10px 30px rgba(0, 0, 0, 0.45); display: flex; flex-direction: column; gap: 1.25rem; margin-top: 1rem; }
    .options { display: flex; flex-wrap: wrap; gap: 1rem; }
    .checkbox-pill { display: flex; align-items: center; gap: 0.5rem; padding: 0.55rem 0.9rem; border-radius: 999px; border: 1px solid var(--panel-border); background: rgba(255,255,255,0.02); font-weight: 500; color: var(--text); }
    .checkbox-pill input { width: auto; margin: 0; }
    .form-actions { display: flex; justify-content: flex-end; gap: 0.75rem; }
    .video { display: flex; gap: 1rem; align-items: flex-start; }
    .video img { width: 160px; border-radius: 8px; border: 1px solid var(--panel-border); object-fit: cover; }
    .progress { width: 100%; height: 16px; background: #0f111c; border-radius: 999px; overflow: hidden; border: 1px solid var(--panel-border); }
    .progress-bar { height: 100%; width: 0%; background: linear-gradient(90deg, var(--accent), var(--accent-strong)); transition: width 0.3s ease; }
    #status { white-space: pre-wrap; background: var(--panel); padding: 1rem; margin-top: 1rem; border-radius: 12px; border: 1px solid var(--panel-border); min-height: 3rem; }
    #status.error { color: var(--error); }
    #preview audio, #preview video { width: 100%; }
    a.download { color: var(--accent-strong); }
    .hidden { display: none !important; }
  </style>
</head>
<body>
  <div class="container">
    <h1>YouTube Converter</h1>
    <p>Paste a YouTube link, check the video, then convert it to MP3 or MP4.</p>
    <form id="info-form">
      <div>
        <label for="url">YouTube URL</label>
        <input id="url" type="url" placeholder="https://www.youtube.com/watch?v=..." required />
      </div>
      <div class="form-actions">
        <button type="submit">Fetch info</button>
      </div>
    </form>
    <div id="video-panel" class="panel hidden">
      <div class="video">
        <img id="video-thumb" alt="thumbnail" />
        <div>
          <strong id="video-title"></strong>
          <div id="video-author"></div>
          <div id="video-duration"></div>
        </div>
      </div>
      <div class="options">
        <label class="checkbox-pill"><input type="radio" name="format" value="mp3" checked /> MP3</label>
        <label class="checkbox-pill"><input type="radio" name="format" value="mp4" /> MP4</label>
      </div>
      <div class="form-actions">
        <button id="convert-btn" type="button">Convert</button>
      </div>
    </div>
    <div id="progress-panel" class="panel hidden">
      <div class="progress"><div class="progress-bar" id="progress-bar"></div></div>
      <div id="progress-text"></div>
      <div id="preview"></div>
    </div>
    <div id="status"></div>
  </div>
  <script>
    const infoForm = document.getElementById("info-form");
    const urlField = document.getElementById("url");
    const statusBox = document.getElementById("status");
    const videoPanel = document.getElementById("video-panel");
    const convertBtn = document.getElementById("convert-btn");
    const progressPanel = document.getElementById("progress-panel");
    const progressBar = document.getElementById("progress-bar");
    const progressText = document.getElementById("progress-text");
    const preview = document.getElementById("preview");
    let pollTimer = null;
    let currentUrl = "";

    const setStatus = (text, isError = false) => {
      statusBox.textContent = text;
      statusBox.classList.toggle("error", isError);
    };

    const stopPolling = () => {
      if (pollTimer) {
        clearInterval(pollTimer);
        pollTimer = null;
      }
    };

    const showResult = (result) => {
      const inlineUrl = `${result.downloadUrl}?x-content-disposition=inline`;
      const isVideo = result.fileName.endsWith(".mp4");
      const player = document.createElement(isVideo ? "video" : "audio");
      player.controls = true;
      player.src = inlineUrl;
      const link = document.createElement("a");
      link.className = "download";
      link.href = result.downloadUrl;
      link.textContent = `Download ${result.fileName}`;
      preview.innerHTML = "";
      preview.appendChild(player);
      preview.appendChild(link);
    };

    const pollStatus = (jobId) => {
      stopPolling();
      pollTimer = setInterval(async () => {
        try {
          const response = await fetch(`/api/conversion-status?jobId=${encodeURIComponent(jobId)}`);
          const data = await response.json();
          if (!response.ok) {
            throw new Error(data.error || "Status polling failed");
          }
          progressBar.style.width = `${data.progress}%`;
          progressText.textContent = `${data.progress}% (${data.status})`;
          if (data.status === "completed") {
            stopPolling();
            convertBtn.disabled = false;
            setStatus("Conversion complete!");
            showResult(data.result);
          } else if (data.status === "failed") {
            stopPolling();
            convertBtn.disabled = false;
            setStatus(data.error || "Conversion failed.", true);
          }
        } catch (error) {
          stopPolling();
          convertBtn.disabled = false;
          setStatus(error.message, true);
        }
      }, 1000);
    };

    infoForm.addEventListener("submit", async (event) => {
      event.preventDefault();
      stopPolling();
      videoPanel.classList.add("hidden");
      progressPanel.classList.add("hidden");
      setStatus("Fetching video info...");
      try {
        const response = await fetch("/api/video-info", {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({ url: urlField.value }),
        });
        const data = await response.json();
        if (!response.ok) {
          throw new Error(data.error || "Could not fetch video info");
        }
        currentUrl = urlField.value;
        document.getElementById("video-thumb").src = data.thumbnail;
        document.getElementById("video-title").textContent = data.title;
        document.getElementById("video-author").textContent = data.author;
        document.getElementById("video-duration").textContent = data.duration;
        videoPanel.classList.remove("hidden");
        setStatus("");
      } catch (error) {
        setStatus(error.message, true);
      }
    });

    convertBtn.addEventListener("click", async () => {
      const format = document.querySelector('input[name="format"]:checked').value;
      convertBtn.disabled = true;
      preview.innerHTML = "";
      progressBar.style.width = "0%";
      progressText.textContent = "0% (pending)";
      progressPanel.classList.remove("hidden");
      setStatus("Starting conversion...");
      try {
        const response = await fetch("/api/convert", {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({ url: currentUrl, format }),
        });
        const data = await response.json();
        if (!response.ok) {
          throw new Error(data.error || "Conversion request failed");
        }
        pollStatus(data.jobId);
      } catch (error) {
        convertBtn.disabled = false;
        setStatus(error.message, true);
      }
    });
  </script>
</body>
</html>
"""


def _content_type(file_name: str) -> str:
    return CONTENT_TYPES.get(Path(file_name).suffix.lower(), "application/octet-stream")


def _wants_inline() -> bool:
    flag = request.headers.get(DISPOSITION_FLAG) or request.args.get(DISPOSITION_FLAG.lower())
    return (flag or "").strip().lower() == "inline"


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[JobStore] = None,
    converter: Optional[Converter] = None,
    *,
    start_reaper: bool = False,
) -> Flask:
    if settings is None:
        settings = Settings.from_env()
    if store is None:
        store = JobStore()
    if converter is None:
        converter = Converter(store, settings)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.extensions["job_store"] = store
    app.extensions["converter"] = converter

    if start_reaper:
        reaper = Reaper(store, settings, on_reap=converter.cancel)
        reaper.start()
        app.extensions["reaper"] = reaper

    def _lookup_job(job_id: Optional[str]):
        if not job_id:
            return None, (jsonify({"error": "jobId is required."}), 400)
        if not is_job_id(job_id):
            return None, (jsonify({"error": "jobId must be a valid UUID."}), 400)
        job = store.get(job_id)
        if job is None:
            return None, (jsonify({"error": "Job not found."}), 404)
        return job, None

    @app.get("/")
    def index() -> str:
        return HTML_PAGE

    @app.get("/api/health")
    def health():
        return jsonify({"ok": True})

    @app.post("/api/video-info")
    def video_info():
        payload = request.get_json(silent=True) or {}
        try:
            info = fetch_video_info(payload.get("url"), settings)
        except InvalidVideoUrl as exc:
            app.logger.info("Rejected video-info request: %s", exc)
            return jsonify({"error": str(exc)}), 400
        return jsonify(info)

    @app.post("/api/convert")
    def create_conversion():
        payload = request.get_json(silent=True) or {}
        try:
            job_id = converter.submit(payload.get("url"), payload.get("format"))
        except (InvalidVideoUrl, UnsupportedFormat) as exc:
            app.logger.info("Rejected convert request: %s", exc)
            return jsonify({"error": str(exc)}), 400
        return jsonify({"jobId": job_id})

    @app.get("/api/convert")
    def get_conversion():
        job, error = _lookup_job(request.args.get("jobId"))
        if error:
            return error
        return jsonify({"job": job.to_dict()})

    @app.get("/api/conversion-status")
    def conversion_status():
        job, error = _lookup_job(request.args.get("jobId"))
        if error:
            return error
        return jsonify(job.status_payload())

    @app.get("/api/download/<job_id>")
    def download(job_id: str):
        job, error = _lookup_job(job_id)
        if error:
            return error
        if job.status != "completed" or job.result is None or not job.result.file_name:
            return jsonify({"error": "Conversion is not complete or the file is unavailable."}), 400
        file_path = Path(job.result.file_path)
        if not file_path.is_file():
            return jsonify({"error": "File not found."}), 404
        response = send_file(
            file_path,
            mimetype=_content_type(job.result.file_name),
            as_attachment=not _wants_inline(),
            download_name=job.result.file_name,
        )
        response.headers["Accept-Ranges"] = "bytes"
        response.headers["Cache-Control"] = "public, max-age=3600"
        return response

    @app.errorhandler(500)
    def internal_error(exc):
        original = getattr(exc, "original_exception", None) or exc
        app.logger.error("Unhandled error: %s", original, exc_info=original)
        return jsonify({"error": "Internal server error."}), 500

    return app


def main() -> None:
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings, start_reaper=True)
    app.run(host=settings.host, port=settings.port, debug=False)


if __name__ == "__main__":
    main()
