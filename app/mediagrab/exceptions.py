"""Custom exceptions raised by the job lifecycle layer."""

from __future__ import annotations


class MetadataFetchError(RuntimeError):
    """Raised when the metadata facility fails or returns unusable output."""


class WorkerSpawnError(RuntimeError):
    """Raised when the worker executable cannot be started."""


class JobNotFound(LookupError):
    """Raised when a job id is unknown to the registry."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Unknown job: {job_id}")
        self.job_id = job_id


class JobStateConflict(RuntimeError):
    """Raised when an operation is not valid for the job's current status."""

    def __init__(self, job_id: str, status: str, message: str | None = None) -> None:
        super().__init__(message or f"Job {job_id} is {status}")
        self.job_id = job_id
        self.status = status
