from __future__ import annotations

from enum import Enum
from typing import Final, FrozenSet

# ---------------------------------------------------------------------------
# API routing conventions
# ---------------------------------------------------------------------------
API_PREFIX: Final[str] = "/api"
HEALTH_CHECK_PATH: Final[str] = f"{API_PREFIX}/health"


class ApiRoute(str, Enum):
    PREVIEW = f"{API_PREFIX}/preview"
    START_DOWNLOAD = f"{API_PREFIX}/start-download"
    STREAM = f"{API_PREFIX}/stream/{{job_id}}"
    EVENTS = f"{API_PREFIX}/events/{{job_id}}"
    FILE = f"{API_PREFIX}/file/{{job_id}}"
    CONTROL = f"{API_PREFIX}/control/{{job_id}}"
    LEGACY_DOWNLOAD = f"{API_PREFIX}/download"

    def path(self, **params: str) -> str:
        return self.value.format(**params)


# ---------------------------------------------------------------------------
# Job lifecycle constants
# ---------------------------------------------------------------------------
class JobStatus(str, Enum):
    CREATED = "created"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    FINISHED = "finished"
    FAILED = "failed"
    STOPPED = "stopped"


class ControlAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"

    @classmethod
    def from_value(cls, value: object) -> "ControlAction | None":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for action in cls:
                if action.value == normalized:
                    return action
        return None


class MediaType(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"

    @classmethod
    def from_value(cls, value: object) -> "MediaType":
        if isinstance(value, str) and value.strip().lower() == cls.AUDIO.value:
            return cls.AUDIO
        return cls.VIDEO

    @property
    def extension(self) -> str:
        return "mp3" if self is MediaType.AUDIO else "mp4"

    @property
    def mime_type(self) -> str:
        return "audio/mpeg" if self is MediaType.AUDIO else "video/mp4"


TERMINAL_STATUSES: Final[FrozenSet[str]] = frozenset(
    {
        JobStatus.FINISHED.value,
        JobStatus.FAILED.value,
        JobStatus.STOPPED.value,
    }
)
STOPPABLE_STATUSES: Final[FrozenSet[str]] = frozenset(
    {
        JobStatus.CREATED.value,
        JobStatus.DOWNLOADING.value,
        JobStatus.PAUSED.value,
    }
)

# ---------------------------------------------------------------------------
# Worker (yt-dlp command line) conventions
# ---------------------------------------------------------------------------
AUDIO_FORMAT_SELECTOR: Final[str] = "bestaudio"
DEFAULT_FORMAT_SELECTOR: Final[str] = "bestvideo+bestaudio/best"
PAIRED_AUDIO_SUFFIX: Final[str] = "+bestaudio"

# ---------------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------------
EVENT_STREAM_MEDIA_TYPE: Final[str] = "text/event-stream"
MAX_SUBSCRIBERS_PER_JOB: Final[int] = 50


__all__ = [
    "API_PREFIX",
    "AUDIO_FORMAT_SELECTOR",
    "ApiRoute",
    "ControlAction",
    "DEFAULT_FORMAT_SELECTOR",
    "EVENT_STREAM_MEDIA_TYPE",
    "HEALTH_CHECK_PATH",
    "JobStatus",
    "MAX_SUBSCRIBERS_PER_JOB",
    "MediaType",
    "PAIRED_AUDIO_SUFFIX",
    "STOPPABLE_STATUSES",
    "TERMINAL_STATUSES",
]
