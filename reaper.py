"""Periodic removal of expired jobs and their files."""

from __future__ import annotations

import logging
import shutil
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from config import Settings, is_within
from jobs import ConversionJob, JobStore

logger = logging.getLogger(__name__)


def _remove_artifacts(job: ConversionJob, settings: Settings) -> None:
    work_dir = settings.job_dir(job.id)
    if job.result and job.result.file_path:
        result_path = Path(job.result.file_path)
        if is_within(result_path, work_dir):
            result_path.unlink(missing_ok=True)
        else:
            logger.warning("Not deleting %s: outside job directory %s", result_path, work_dir)
    if work_dir.exists():
        shutil.rmtree(work_dir)


def sweep(
    store: JobStore,
    settings: Settings,
    now: Optional[datetime] = None,
    on_reap: Optional[Callable[[str], None]] = None,
) -> List[str]:
    """Delete every job older than the retention window; return their ids."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=settings.retention_hours)
    reaped: List[str] = []
    for job in store.snapshot():
        if job.created_at > cutoff:
            continue
        if not job.finished:
            logger.warning("Reaping job %s while it is still %s", job.id, job.status)
        try:
            if on_reap is not None:
                on_reap(job.id)
            _remove_artifacts(job, settings)
        except Exception:
            logger.exception("Failed to remove files for job %s", job.id)
        store.delete(job.id)
        reaped.append(job.id)
    if reaped:
        logger.info("Reaped %d expired job(s)", len(reaped))
    return reaped


class Reaper(threading.Thread):
    """Daemon thread that sweeps once on start and then every interval."""

    def __init__(
        self,
        store: JobStore,
        settings: Settings,
        on_reap: Optional[Callable[[str], None]] = None,
    ) -> None:
        super().__init__(name="job-reaper", daemon=True)
        self.store = store
        self.settings = settings
        self.on_reap = on_reap
        self._stop_event = threading.Event()

    def run(self) -> None:
        interval = self.settings.reap_interval_hours * 3600
        while True:
            try:
                sweep(self.store, self.settings, on_reap=self.on_reap)
            except Exception:
                logger.exception("Reaper sweep failed")
            if self._stop_event.wait(interval):
                return

    def stop(self) -> None:
        self._stop_event.set()
