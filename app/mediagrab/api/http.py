from __future__ import annotations

from typing import Awaitable, Callable, cast

from starlette.applications import Starlette
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response, StreamingResponse

from ..common.starlette_helpers import (
    RequestValidationError,
    error_response,
    json_response,
    load_body,
    load_query,
)
from ..config import (
    ApiRoute,
    ControlAction,
    HEALTH_CHECK_PATH,
    JobStatus,
)
from ..download import DownloadManager
from ..exceptions import JobNotFound, JobStateConflict, MetadataFetchError, WorkerSpawnError
from ..log_config import verbose_log
from ..models.api.errors import ErrorCode
from ..models.api.http import (
    HealthCheckResponse,
    JobCountsSummary,
    StartDownloadEndpointResponse,
    StreamEndpointResponse,
)
from ..models.api.requests import (
    ControlRequestBody,
    ControlRequestSchema,
    LegacyDownloadQuerySchema,
    PreviewRequestBody,
    PreviewRequestSchema,
    StartDownloadRequestBody,
    StartDownloadRequestSchema,
)
from ..utils import now_iso

Endpoint = Callable[..., Awaitable[Response]]


def register_http_routes(app: Starlette, manager: DownloadManager) -> None:
    """Attach REST endpoints and middleware to the Starlette application."""

    def job_not_found_response() -> JSONResponse:
        return error_response(ErrorCode.JOB_NOT_FOUND, status_code=404)

    async def _handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(
            ErrorCode.INVALID_JSON_PAYLOAD, status_code=400, detail=exc.detail
        )

    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]

    def _route(path: str, *, methods: list[str]) -> Callable[[Endpoint], Endpoint]:
        def decorator(func: Endpoint) -> Endpoint:
            app.router.add_route(path, func, methods=methods)
            return func

        return decorator

    def get(path: str) -> Callable[[Endpoint], Endpoint]:
        return _route(path, methods=["GET"])

    def post(path: str) -> Callable[[Endpoint], Endpoint]:
        return _route(path, methods=["POST"])

    async def log_request(
        request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        verbose_log(
            "http_request",
            {
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params.multi_items()),
            },
        )
        return await call_next(request)

    app.add_middleware(BaseHTTPMiddleware, dispatch=log_request)

    @get(HEALTH_CHECK_PATH)
    async def health_check(request: Request) -> JSONResponse:  # noqa: ARG001 - Starlette route signature
        payload: HealthCheckResponse = {
            "service": manager.settings.name,
            "time": now_iso(),
            "jobs": cast(JobCountsSummary, manager.registry.status_counts()),
        }
        return json_response(payload)

    @post(ApiRoute.PREVIEW.value)
    async def preview_endpoint(request: Request) -> JSONResponse:
        payload: PreviewRequestBody = await load_body(request, PreviewRequestSchema())
        if not payload.url:
            return error_response(ErrorCode.URL_REQUIRED, status_code=400)
        try:
            preview = await manager.preview(payload.url)
        except MetadataFetchError as exc:
            return error_response(
                ErrorCode.PREVIEW_FAILED, status_code=500, detail=str(exc)
            )
        return json_response(preview)

    @post(ApiRoute.START_DOWNLOAD.value)
    async def start_download_endpoint(request: Request) -> JSONResponse:
        """Register a job; the worker starts when the client hits the stream route."""

        payload: StartDownloadRequestBody = await load_body(
            request, StartDownloadRequestSchema()
        )
        if not payload.url:
            return error_response(ErrorCode.URL_REQUIRED, status_code=400)
        try:
            job = await manager.create_job(
                payload.url,
                format_id=payload.format_id,
                media_type=payload.media_type,
                info=payload.cached_info(),
            )
        except MetadataFetchError as exc:
            return error_response(
                ErrorCode.METADATA_FAILED, status_code=500, detail=str(exc)
            )
        response: StartDownloadEndpointResponse = {
            "id": job.job_id,
            "filename": job.final_name or "",
            "title": job.title,
        }
        return json_response(response)

    @get(ApiRoute.STREAM.value)
    async def stream_endpoint(request: Request) -> JSONResponse:
        job_id = request.path_params.get("job_id", "")
        job = manager.get_job(job_id)
        if job is None:
            return job_not_found_response()
        try:
            await manager.start_transfer(job_id)
        except JobNotFound:
            return job_not_found_response()
        except JobStateConflict as exc:
            code = (
                ErrorCode.WORKER_ACTIVE
                if exc.status in {JobStatus.DOWNLOADING.value, JobStatus.PAUSED.value}
                else ErrorCode.JOB_STATUS_CONFLICT
            )
            return error_response(code, status_code=409, detail=exc.status)
        except WorkerSpawnError as exc:
            return error_response(
                ErrorCode.SPAWN_FAILED, status_code=500, detail=str(exc)
            )
        response: StreamEndpointResponse = {
            "ok": True,
            "message": "Download started on server",
        }
        return json_response(response)

    @get(ApiRoute.FILE.value)
    async def file_endpoint(request: Request) -> Response:
        job_id = request.path_params.get("job_id", "")
        try:
            path, filename = manager.resolve_artifact(job_id)
        except (JobNotFound, FileNotFoundError):
            return error_response(
                ErrorCode.FILE_NOT_FOUND,
                status_code=404,
                detail="File not found or expired",
            )
        verbose_log("file_served", {"job_id": job_id, "path": str(path)})
        return FileResponse(path, filename=filename)

    @post(ApiRoute.CONTROL.value)
    async def control_endpoint(request: Request) -> JSONResponse:
        job_id = request.path_params.get("job_id", "")
        if manager.get_job(job_id) is None:
            return job_not_found_response()
        payload: ControlRequestBody = await load_body(request, ControlRequestSchema())
        action = payload.action
        if action is None:
            return error_response(
                ErrorCode.UNKNOWN_ACTION, status_code=400, detail=payload.raw_action
            )
        try:
            result = await manager.control(job_id, action)
        except JobNotFound:
            return job_not_found_response()
        except JobStateConflict as exc:
            if action is ControlAction.RESUME:
                return error_response(
                    ErrorCode.NOT_PAUSED, status_code=400, detail=exc.status
                )
            return error_response(
                ErrorCode.JOB_STATUS_CONFLICT, status_code=409, detail=exc.status
            )
        except WorkerSpawnError as exc:
            return error_response(
                ErrorCode.SPAWN_FAILED, status_code=500, detail=str(exc)
            )
        return json_response(result)

    @get(ApiRoute.LEGACY_DOWNLOAD.value)
    async def legacy_download_endpoint(request: Request) -> Response:
        """Pipe the worker's stdout to the client with no job tracking."""

        query: StartDownloadRequestBody = load_query(request, LegacyDownloadQuerySchema())
        if not query.url:
            return error_response(ErrorCode.URL_REQUIRED, status_code=400)
        try:
            transfer = await manager.open_passthrough(
                query.url, format_id=query.format_id, media_type=query.media_type
            )
        except MetadataFetchError as exc:
            return error_response(
                ErrorCode.METADATA_FAILED, status_code=500, detail=str(exc)
            )
        except WorkerSpawnError as exc:
            return error_response(
                ErrorCode.SPAWN_FAILED, status_code=500, detail=str(exc)
            )
        return StreamingResponse(
            transfer.iter_bytes(),
            media_type=transfer.media_type.mime_type,
            headers=transfer.headers,
        )


__all__ = ["register_http_routes"]
