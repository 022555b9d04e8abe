from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Canonical error identifiers returned in ``{"error": ...}`` bodies."""

    URL_REQUIRED = "url_required"
    JOB_NOT_FOUND = "job_not_found"
    JOB_STATUS_CONFLICT = "job_status_conflict"
    WORKER_ACTIVE = "worker_active"
    NOT_PAUSED = "not_paused"
    UNKNOWN_ACTION = "unknown_action"
    PREVIEW_FAILED = "preview_failed"
    METADATA_FAILED = "metadata_failed"
    SPAWN_FAILED = "spawn_failed"
    FILE_NOT_FOUND = "file_not_found"
    INVALID_JSON_PAYLOAD = "invalid_json_payload"

    def __str__(self) -> str:  # pragma: no cover - trivial
        return str(self.value)


__all__ = ["ErrorCode"]
