"""Metadata lookups through the yt-dlp Python API."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Dict, Optional, Protocol, cast

from yt_dlp import YoutubeDL

from ..exceptions import MetadataFetchError
from ..log_config import verbose_log
from ..models.shared import JsonDict
from ..utils import strip_ansi, truncate_string


class MetadataFetcher(Protocol):
    def __call__(
        self, url: str, *, cookies_file: Optional[Path] = None
    ) -> Awaitable[JsonDict]: ...


class LoggerLike(Protocol):
    def debug(self, msg: str) -> None: ...

    def warning(self, msg: str) -> None: ...

    def error(self, msg: str) -> None: ...


class _BufferedLogger(LoggerLike):
    """Keeps yt-dlp warnings and errors so failures carry a readable reason."""

    def __init__(self) -> None:
        self._warnings: list[str] = []
        self._errors: list[str] = []

    @staticmethod
    def _normalize(message: object) -> Optional[str]:
        text = strip_ansi(str(message)) or ""
        if text.upper().startswith("ERROR:"):
            text = text[6:]
        normalized = " ".join(part for part in text.split() if part)
        return normalized or None

    def debug(self, msg: str) -> None:  # noqa: D401 - interface contract
        return None

    def warning(self, msg: str) -> None:
        normalized = self._normalize(msg)
        if normalized:
            self._warnings.append(normalized)

    def error(self, msg: str) -> None:
        normalized = self._normalize(msg)
        if normalized:
            self._errors.append(normalized)

    def last_message(self) -> Optional[str]:
        for bucket in (self._errors, self._warnings):
            for message in reversed(bucket):
                if message:
                    return message
        return None


def build_extract_options(
    *, cookies_file: Optional[Path] = None, logger: Optional[LoggerLike] = None
) -> Dict[str, Any]:
    options: Dict[str, Any] = {
        "quiet": True,
        "no_warnings": False,
        "noplaylist": True,
        "skip_download": True,
        "source_address": "0.0.0.0",
    }
    if cookies_file is not None:
        options["cookiefile"] = str(cookies_file)
    if logger is not None:
        options["logger"] = logger
    return options


def extract_media_info(url: str, *, cookies_file: Optional[Path] = None) -> JsonDict:
    """Blocking metadata extraction for one URL."""
    logger = _BufferedLogger()
    options = build_extract_options(cookies_file=cookies_file, logger=logger)
    try:
        with YoutubeDL(cast(Any, options)) as ydl:
            info = ydl.extract_info(url, download=False)
            sanitized = ydl.sanitize_info(info)
    except Exception as exc:  # noqa: BLE001 - wrap third-party exceptions
        message = logger.last_message() or strip_ansi(str(exc)) or repr(exc)
        raise MetadataFetchError(truncate_string(message, 300) or message) from exc
    if not isinstance(sanitized, dict):
        raise MetadataFetchError("yt-dlp returned an unexpected result")
    return cast(JsonDict, sanitized)


async def fetch_media_info(
    url: str, *, cookies_file: Optional[Path] = None
) -> JsonDict:
    """Run :func:`extract_media_info` off the event loop."""
    try:
        return await asyncio.to_thread(
            extract_media_info, url, cookies_file=cookies_file
        )
    except MetadataFetchError as exc:
        verbose_log("metadata_failed", {"url": url, "error": str(exc)})
        raise


__all__ = [
    "MetadataFetcher",
    "build_extract_options",
    "extract_media_info",
    "fetch_media_info",
]
