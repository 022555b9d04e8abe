"""Data models for download jobs."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple, TypedDict

from ..config import ApiRoute, JobStatus, MediaType
from ..events import EventChannel
from ..models.shared import JsonDict
from .progress_parser import ProgressUpdate
from .worker import WorkerHandle


class JobEventPayload(TypedDict, total=False):
    status: str
    percent: float
    total: str
    speed: str
    eta: str
    downloadUrl: str
    error: str
    code: int


@dataclass(frozen=True)
class JobParameters:
    url: str
    format_id: Optional[str]
    media_type: MediaType

    @property
    def is_audio(self) -> bool:
        return self.media_type is MediaType.AUDIO


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _empty_metadata() -> JsonDict:
    return {}


def _empty_handles() -> List[WorkerHandle]:
    return []


@dataclass
class DownloadJob:
    job_id: str
    parameters: JobParameters
    channel: EventChannel
    title: str = ""
    metadata: JsonDict = field(default_factory=_empty_metadata, repr=False)
    status: str = JobStatus.CREATED.value
    output_path: Optional[Path] = None
    final_name: Optional[str] = None
    worker_arguments: Tuple[str, ...] = ()
    worker: Optional[WorkerHandle] = field(default=None, repr=False)
    # Handles that were signalled to exit but have not been reaped yet.
    retiring: List[WorkerHandle] = field(default_factory=_empty_handles, repr=False)
    created_at: datetime = field(default_factory=_utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    last_progress: Optional[ProgressUpdate] = None
    error: Optional[str] = None
    exit_code: Optional[int] = None
    spawn_count: int = 0
    launch_token: int = 0
    launch_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    expiry: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    @property
    def download_url(self) -> str:
        return ApiRoute.FILE.path(job_id=self.job_id)

    def status_event(self) -> JobEventPayload:
        payload: JobEventPayload = {"status": self.status}
        if self.status == JobStatus.FINISHED.value:
            payload["downloadUrl"] = self.download_url
        elif self.status == JobStatus.FAILED.value:
            if self.error:
                payload["error"] = self.error
            elif self.exit_code is not None:
                payload["code"] = self.exit_code
        return payload

    def snapshot(self) -> JobEventPayload:
        """Current state for observers that attach mid-flight."""
        payload: JobEventPayload = {}
        if self.last_progress is not None:
            payload.update(self.last_progress.to_payload())  # type: ignore[typeddict-item]
        payload.update(self.status_event())
        return payload

    def progress_event(self, update: ProgressUpdate) -> JobEventPayload:
        payload: JobEventPayload = update.to_payload()  # type: ignore[assignment]
        payload["status"] = JobStatus.DOWNLOADING.value
        return payload


__all__ = ["DownloadJob", "JobEventPayload", "JobParameters"]
