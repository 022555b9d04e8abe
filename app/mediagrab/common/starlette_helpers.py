"""Request decoding and JSON responses shared by the Mediagrab routes."""

from __future__ import annotations

import json
from typing import Any, Dict

from marshmallow import Schema, ValidationError  # type: ignore[import-not-found]
from starlette.requests import Request
from starlette.responses import JSONResponse

from ..log_config import verbose_log
from ..models.api.errors import ErrorCode
from ..models.shared import JSONValue


class RequestValidationError(ValueError):
    """A request body or query string could not be turned into a request object."""

    def __init__(
        self,
        errors: Dict[str, Any] | None = None,
        *,
        message: str = "Invalid request payload",
    ) -> None:
        super().__init__(message)
        self.errors: Dict[str, Any] = dict(errors or {})

    @property
    def detail(self) -> JSONValue:
        if self.errors:
            return self.errors
        return str(self)


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Decode the body as a JSON object. A blank body reads as ``{}``."""

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise RequestValidationError({"json": "Invalid JSON payload"}) from exc
    if not isinstance(payload, dict):
        raise RequestValidationError({"json": "JSON object required"})
    return payload


def load_with_schema(schema: Schema, payload: Dict[str, Any]) -> Any:
    try:
        return schema.load(payload)
    except ValidationError as exc:
        raise RequestValidationError(exc.normalized_messages()) from exc


async def load_body(request: Request, schema: Schema) -> Any:
    return load_with_schema(schema, await read_json_object(request))


def load_query(request: Request, schema: Schema) -> Any:
    return load_with_schema(schema, dict(request.query_params))


def json_response(payload: Any, status: int = 200) -> JSONResponse:
    verbose_log("http_response", {"status": status, "payload": payload})
    return JSONResponse(content=payload, status_code=status)


def error_response(
    code: ErrorCode, *, status_code: int, detail: JSONValue | None = None
) -> JSONResponse:
    """``{"error": code}`` plus an optional ``detail`` for diagnostics."""

    payload: Dict[str, JSONValue] = {"error": code.value}
    if detail is not None:
        payload["detail"] = detail
    return json_response(payload, status=status_code)


__all__ = [
    "RequestValidationError",
    "error_response",
    "json_response",
    "load_body",
    "load_query",
    "load_with_schema",
    "read_json_object",
]
