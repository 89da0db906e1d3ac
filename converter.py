"""Runs conversion jobs: yt-dlp download followed by an ffmpeg transcode."""

from __future__ import annotations

import logging
import shutil
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, Optional

from config import (
    PROGRESS_DOWNLOADED,
    PROGRESS_STARTED,
    PROGRESS_TRANSCODED,
    Settings,
)
from downloader import DownloadError, download_media
from jobs import OUTPUT_FORMATS, ConversionJob, ConversionResult, JobStore, new_job_id
from transcoder import generate_silent_mp3, transcode_to_mp3
from urls import extract_video_id, validate_video_url

logger = logging.getLogger(__name__)

DOWNLOAD_URL_TEMPLATE = "/api/download/{job_id}"


class UnsupportedFormat(ValueError):
    pass


class ConversionCancelled(RuntimeError):
    pass


class _JobGone(Exception):
    """The job record was removed while the worker still held it."""


def normalize_format(fmt: Optional[str]) -> str:
    value = (fmt or "mp3").strip().lower()
    if value not in OUTPUT_FORMATS:
        raise UnsupportedFormat(
            f"Unsupported format: {fmt!r}. Choose one of {', '.join(OUTPUT_FORMATS)}."
        )
    return value


def output_path(work_dir: Path, video_id: str, fmt: str) -> Path:
    target = work_dir / f"{video_id}.{fmt}"
    if target.resolve().parent != work_dir.resolve():
        raise ValueError(f"Output name {video_id!r} escapes the job directory")
    return target


class Converter:
    """
    Schedules conversion jobs on a bounded thread pool.

    ``submit`` returns as soon as the job record exists; the work itself
    runs on one of ``settings.max_workers`` threads. Each job carries a
    cancellation event that is checked between the download and transcode
    steps.
    """

    def __init__(self, store: JobStore, settings: Settings) -> None:
        self.store = store
        self.settings = settings
        self._executor = ThreadPoolExecutor(
            max_workers=settings.max_workers, thread_name_prefix="converter"
        )
        self._tokens: Dict[str, threading.Event] = {}
        self._tokens_lock = threading.Lock()

    def submit(self, url: str, fmt: Optional[str] = None) -> str:
        url = validate_video_url(url)
        output_format = normalize_format(fmt)
        job = ConversionJob(id=new_job_id(), url=url, format=output_format)
        self.store.create(job)
        with self._tokens_lock:
            self._tokens[job.id] = threading.Event()
        self._schedule(job.id)
        logger.info("Queued job %s (%s) for %s", job.id, output_format, url)
        return job.id

    def _schedule(self, job_id: str) -> Future:
        return self._executor.submit(self.run, job_id)

    def cancel(self, job_id: str) -> bool:
        with self._tokens_lock:
            token = self._tokens.get(job_id)
        if token is None:
            return False
        token.set()
        return True

    def shutdown(self, wait: bool = False) -> None:
        with self._tokens_lock:
            for token in self._tokens.values():
                token.set()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _token(self, job_id: str) -> threading.Event:
        with self._tokens_lock:
            return self._tokens.setdefault(job_id, threading.Event())

    def _update(self, job_id: str, mutator: Callable[[ConversionJob], None]) -> ConversionJob:
        job = self.store.update(job_id, mutator)
        if job is None:
            raise _JobGone(job_id)
        return job

    def _check_cancelled(self, job_id: str) -> None:
        if self._token(job_id).is_set():
            raise ConversionCancelled("Conversion cancelled")

    def _discard_if_cancelled(self, job_id: str, work_dir: Path) -> None:
        if self._token(job_id).is_set():
            shutil.rmtree(work_dir, ignore_errors=True)
            raise ConversionCancelled("Conversion cancelled")

    def run(self, job_id: str) -> None:
        """Convert one job; never raises."""
        try:
            self._convert(job_id)
        except _JobGone:
            logger.info("Job %s disappeared before it finished", job_id)
        except ConversionCancelled as exc:
            logger.info("Job %s cancelled", job_id)
            self._mark_failed(job_id, str(exc))
        except Exception as exc:
            logger.exception("Job %s failed", job_id)
            self._mark_failed(job_id, str(exc) or type(exc).__name__)
        finally:
            with self._tokens_lock:
                self._tokens.pop(job_id, None)

    def _mark_failed(self, job_id: str, message: str) -> None:
        def _fail(job: ConversionJob) -> None:
            if job.status == "pending":
                job.start(0)
            if not job.finished:
                job.fail(message)

        self.store.update(job_id, _fail)

    def _convert(self, job_id: str) -> None:
        job = self._update(job_id, lambda j: j.start(PROGRESS_STARTED))

        work_dir = self.settings.job_dir(job_id)
        target = output_path(work_dir, extract_video_id(job.url), job.format)
        self._check_cancelled(job_id)
        work_dir.mkdir(parents=True, exist_ok=True)

        try:
            source: Optional[Path] = download_media(
                job.url,
                work_dir,
                job.format,
                user_agent=self.settings.user_agent,
            )
        except DownloadError as exc:
            if job.format != "mp3":
                raise
            # Placeholder audio so the job still completes.
            logger.warning(
                "Download failed for job %s, writing a %ss silent placeholder: %s",
                job_id,
                self.settings.placeholder_seconds,
                exc,
            )
            source = None
            self._discard_if_cancelled(job_id, work_dir)
            generate_silent_mp3(
                target,
                seconds=self.settings.placeholder_seconds,
                ffmpeg_bin=self.settings.ffmpeg_bin,
            )

        if source is not None:
            self._discard_if_cancelled(job_id, work_dir)
            self._update(job_id, lambda j: j.advance(PROGRESS_DOWNLOADED))
            if job.format == "mp3":
                transcode_to_mp3(
                    source,
                    target,
                    quality=self.settings.mp3_quality,
                    ffmpeg_bin=self.settings.ffmpeg_bin,
                )
                source.unlink(missing_ok=True)
            else:
                source.replace(target)

        self._update(job_id, lambda j: j.advance(PROGRESS_TRANSCODED))
        result = ConversionResult(
            download_url=DOWNLOAD_URL_TEMPLATE.format(job_id=job_id),
            file_name=target.name,
            file_path=str(target),
        )
        self._update(job_id, lambda j: j.complete(result))
        logger.info("Job %s completed: %s", job_id, target)
