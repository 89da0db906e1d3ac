"""In-memory conversion job records and the store that owns them."""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Literal, Optional

JobStatus = Literal["pending", "processing", "completed", "failed"]
OutputFormat = Literal["mp3", "mp4"]

OUTPUT_FORMATS = ("mp3", "mp4")
TERMINAL_STATUSES = ("completed", "failed")

_NEXT_STATUSES: Dict[str, tuple] = {
    "pending": ("processing",),
    "processing": ("completed", "failed"),
    "completed": (),
    "failed": (),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return str(uuid.uuid4())


def is_job_id(value: str) -> bool:
    try:
        uuid.UUID(value)
    except (TypeError, ValueError):
        return False
    return True


@dataclass
class ConversionResult:
    download_url: str
    file_name: str
    file_path: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "downloadUrl": self.download_url,
            "fileName": self.file_name,
            "filePath": self.file_path,
        }


@dataclass
class ConversionJob:
    id: str
    url: str
    format: OutputFormat = "mp3"
    status: JobStatus = "pending"
    progress: int = 0
    error: Optional[str] = None
    result: Optional[ConversionResult] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def _move_to(self, status: JobStatus) -> None:
        if status not in _NEXT_STATUSES[self.status]:
            raise ValueError(f"Illegal job transition {self.status} -> {status}")
        self.status = status

    def start(self, progress: int) -> None:
        self._move_to("processing")
        self.advance(progress)

    def advance(self, progress: int) -> None:
        """Raise progress, never lowering it and never exceeding 100."""
        if self.status != "processing":
            raise ValueError(f"Cannot report progress on a {self.status} job")
        self.progress = max(self.progress, min(100, int(progress)))

    def complete(self, result: ConversionResult) -> None:
        if not result.file_name:
            raise ValueError("A completed job needs a file name")
        self._move_to("completed")
        self.progress = 100
        self.result = result
        self.error = None

    def fail(self, message: str) -> None:
        self._move_to("failed")
        self.error = message or "Conversion failed"
        self.result = None

    def status_payload(self) -> Dict[str, Any]:
        """Status fields for the API; unset error/result keys are left out."""
        payload: Dict[str, Any] = {"status": self.status, "progress": self.progress}
        if self.error is not None:
            payload["error"] = self.error
        if self.result is not None:
            payload["result"] = self.result.to_dict()
        return payload

    def to_dict(self) -> Dict[str, Any]:
        payload = self.status_payload()
        payload.update(
            {
                "id": self.id,
                "url": self.url,
                "format": self.format,
                "createdAt": self.created_at.isoformat(),
            }
        )
        return payload


class JobStore:
    """Thread-safe map of job id to ConversionJob.

    Callers only ever see copies; every change goes through ``update`` so
    the read-modify-write happens under the store lock.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, ConversionJob] = {}
        self._lock = threading.Lock()

    def create(self, job: ConversionJob) -> ConversionJob:
        with self._lock:
            if job.id in self._jobs:
                raise KeyError(f"Job {job.id} already exists")
            self._jobs[job.id] = copy.deepcopy(job)
        return job

    def get(self, job_id: str) -> Optional[ConversionJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job is not None else None

    def update(
        self, job_id: str, mutator: Callable[[ConversionJob], None]
    ) -> Optional[ConversionJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            working = copy.deepcopy(job)
            mutator(working)
            self._jobs[job_id] = working
            return copy.deepcopy(working)

    def delete(self, job_id: str) -> bool:
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def snapshot(self) -> List[ConversionJob]:
        with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
