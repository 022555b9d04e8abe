"""Request payload helpers validated via Marshmallow schemas."""

from __future__ import annotations

from typing import Any, Mapping

from marshmallow import fields, post_load

from ...config import ControlAction, MediaType
from ...models.shared import JsonDict, clone_json_dict
from ...schemas.base import MediagrabSchema


def _clean_str(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


class UrlRequestBase:
    def __init__(self, url: str | None = None, **_: Any) -> None:
        self.url = _clean_str(url)


class PreviewRequestBody(UrlRequestBase):
    pass


class StartDownloadRequestBody(UrlRequestBase):
    def __init__(
        self,
        url: str | None = None,
        format_id: object = None,
        media_type: str | None = None,
        info: Mapping[str, Any] | None = None,
        **_: Any,
    ) -> None:
        super().__init__(url=url)
        self.format_id = None if format_id is None else _clean_str(str(format_id))
        self.media_type = MediaType.from_value(media_type)
        self._info = info

    def cached_info(self) -> JsonDict | None:
        """Preview result the client already holds, if it sent a usable one."""
        if not isinstance(self._info, Mapping) or not self._info:
            return None
        return clone_json_dict(self._info)


class ControlRequestBody:
    def __init__(self, action: str | None = None, **_: Any) -> None:
        self.raw_action = _clean_str(action)
        self.action = ControlAction.from_value(self.raw_action)


class PreviewRequestSchema(MediagrabSchema):
    url = fields.String(load_default=None, allow_none=True)

    @post_load
    def make(self, data: dict[str, Any], **_: Any) -> PreviewRequestBody:
        return PreviewRequestBody(**data)


class StartDownloadRequestSchema(MediagrabSchema):
    url = fields.String(load_default=None, allow_none=True)
    format_id = fields.Raw(data_key="format", load_default=None, allow_none=True)
    media_type = fields.String(data_key="type", load_default=None, allow_none=True)
    info = fields.Dict(load_default=None, allow_none=True)

    @post_load
    def make(self, data: dict[str, Any], **_: Any) -> StartDownloadRequestBody:
        return StartDownloadRequestBody(**data)


class ControlRequestSchema(MediagrabSchema):
    action = fields.String(load_default=None, allow_none=True)

    @post_load
    def make(self, data: dict[str, Any], **_: Any) -> ControlRequestBody:
        return ControlRequestBody(**data)


class LegacyDownloadQuerySchema(MediagrabSchema):
    """Query string of the single-shot pass-through download."""

    url = fields.String(load_default=None, allow_none=True)
    format_id = fields.Raw(data_key="format", load_default=None, allow_none=True)
    media_type = fields.String(data_key="type", load_default=None, allow_none=True)

    @post_load
    def make(self, data: dict[str, Any], **_: Any) -> StartDownloadRequestBody:
        return StartDownloadRequestBody(**data)


__all__ = [
    "ControlRequestBody",
    "ControlRequestSchema",
    "LegacyDownloadQuerySchema",
    "PreviewRequestBody",
    "PreviewRequestSchema",
    "StartDownloadRequestBody",
    "StartDownloadRequestSchema",
]
