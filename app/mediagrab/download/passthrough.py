"""Single-shot download piped straight from the worker's stdout."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional, Protocol
from urllib.parse import quote

from ..config import MediaType
from ..log_config import debug_verbose, verbose_log
from .worker import READ_CHUNK_SIZE, WorkerHandle


class PassthroughHandle(WorkerHandle, Protocol):
    async def read_stderr(self, size: int = READ_CHUNK_SIZE) -> bytes: ...


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", errors="replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    encoded = quote(filename, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


class PassthroughTransfer:
    def __init__(
        self, handle: PassthroughHandle, filename: str, media_type: MediaType
    ) -> None:
        self._handle = handle
        self.filename = filename
        self.media_type = media_type
        self._stderr_task: Optional[asyncio.Task[None]] = None

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Disposition": content_disposition(self.filename)}

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        self._stderr_task = asyncio.create_task(self._drain_stderr())
        sent = 0
        try:
            while True:
                chunk = await self._handle.read()
                if not chunk:
                    break
                sent += len(chunk)
                yield chunk
            await self._handle.wait()
        finally:
            # Runs on normal completion and when the client goes away.
            self.close()
            verbose_log(
                "passthrough_closed",
                {"pid": self._handle.pid, "bytes": sent, "code": self._handle.returncode},
            )

    def close(self) -> None:
        if self._handle.returncode is None:
            self._handle.kill()
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

    async def _drain_stderr(self) -> None:
        while True:
            chunk = await self._handle.read_stderr()
            if not chunk:
                return
            debug_verbose(
                "passthrough_stderr",
                {"pid": self._handle.pid, "text": chunk.decode("utf-8", "replace")},
            )


__all__ = ["PassthroughHandle", "PassthroughTransfer", "content_disposition"]
