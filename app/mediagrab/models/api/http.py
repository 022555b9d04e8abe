from __future__ import annotations

from typing import Literal, NotRequired, TypedDict


class JobCountsSummary(TypedDict, total=False):
    total: int
    created: int
    downloading: int
    paused: int
    finished: int
    failed: int
    stopped: int


class HealthCheckResponse(TypedDict):
    service: str
    time: str
    jobs: JobCountsSummary


class StartDownloadEndpointResponse(TypedDict):
    id: str
    filename: str
    title: str


class StreamEndpointResponse(TypedDict):
    ok: Literal[True]
    message: str


class ControlEndpointResponse(TypedDict):
    ok: bool
    status: str
    action: NotRequired[str]


__all__ = [
    "ControlEndpointResponse",
    "HealthCheckResponse",
    "JobCountsSummary",
    "StartDownloadEndpointResponse",
    "StreamEndpointResponse",
]
