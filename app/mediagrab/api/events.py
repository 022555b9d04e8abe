"""Server-sent event stream of one job's status and progress."""

from __future__ import annotations

import json
from typing import AsyncIterator

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse

from ..common.starlette_helpers import error_response
from ..config import ApiRoute, EVENT_STREAM_MEDIA_TYPE, TERMINAL_STATUSES
from ..download import DownloadManager
from ..events import Subscription
from ..exceptions import JobNotFound
from ..log_config import verbose_log
from ..models.api.errors import ErrorCode
from ..models.shared import JsonDict

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: JsonDict) -> str:
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


async def iter_job_events(subscription: Subscription) -> AsyncIterator[str]:
    """Yield encoded events until the job settles or the channel closes."""
    try:
        async for event in subscription:
            yield format_sse(event)
            if event.get("status") in TERMINAL_STATUSES:
                return
    finally:
        subscription.close()


def register_event_routes(app: Starlette, manager: DownloadManager) -> None:
    async def events_endpoint(request: Request) -> Response:
        job_id = request.path_params.get("job_id", "")
        try:
            subscription = manager.subscribe(job_id)
        except JobNotFound:
            return error_response(ErrorCode.JOB_NOT_FOUND, status_code=404)
        verbose_log("events_subscribed", {"job_id": job_id})
        return StreamingResponse(
            iter_job_events(subscription),
            media_type=EVENT_STREAM_MEDIA_TYPE,
            headers=SSE_HEADERS,
        )

    app.router.add_route(ApiRoute.EVENTS.value, events_endpoint, methods=["GET"])


__all__ = ["format_sse", "iter_job_events", "register_event_routes"]
