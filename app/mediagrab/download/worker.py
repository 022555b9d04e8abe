"""Owned handle around one yt-dlp worker subprocess."""

from __future__ import annotations

import asyncio
import os
import signal
import subprocess
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence

from ..exceptions import WorkerSpawnError
from ..log_config import verbose_log

READ_CHUNK_SIZE = 64 * 1024


class WorkerHandle(Protocol):
    """What the supervisor needs from a running worker."""

    @property
    def pid(self) -> Optional[int]: ...

    @property
    def returncode(self) -> Optional[int]: ...

    async def read(self, size: int = READ_CHUNK_SIZE) -> bytes: ...

    async def wait(self) -> int: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...


Spawner = Callable[[Sequence[str]], Awaitable[WorkerHandle]]


class WorkerProcess:
    """Wraps :class:`asyncio.subprocess.Process` started in its own process group.

    Signals go to the whole group so ffmpeg children spawned by yt-dlp for
    merging or audio extraction die with their parent.
    """

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    @property
    def alive(self) -> bool:
        return self._process.returncode is None

    async def read(self, size: int = READ_CHUNK_SIZE) -> bytes:
        stream = self._process.stdout
        if stream is None:
            return b""
        return await stream.read(size)

    async def read_stderr(self, size: int = READ_CHUNK_SIZE) -> bytes:
        stream = self._process.stderr
        if stream is None:
            return b""
        return await stream.read(size)

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> None:
        self._signal(signal.SIGTERM)

    def kill(self) -> None:
        self._signal(getattr(signal, "SIGKILL", signal.SIGTERM))

    def _signal(self, signum: int) -> None:
        if not self.alive:
            return
        try:
            if sys.platform != "win32":
                os.killpg(os.getpgid(self._process.pid), signum)
            elif signum == signal.SIGTERM:
                self._process.terminate()
            else:
                self._process.kill()
        except ProcessLookupError:
            return
        except OSError as exc:
            verbose_log(
                "worker_signal_failed",
                {"pid": self._process.pid, "signal": int(signum), "error": repr(exc)},
            )
            try:
                self._process.send_signal(signum)
            except ProcessLookupError:
                return


async def spawn_worker(
    command: Sequence[str], *, merge_stderr: bool = True
) -> WorkerProcess:
    """Start ``command`` with piped output.

    With ``merge_stderr`` the diagnostic stream is folded into stdout so one
    reader sees both progress lines and error reports.
    """

    kwargs: Dict[str, Any] = {}
    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs["start_new_session"] = True
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=(
                asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE
            ),
            **kwargs,
        )
    except FileNotFoundError as exc:
        raise WorkerSpawnError(f"Worker executable not found: {command[0]}") from exc
    except OSError as exc:
        raise WorkerSpawnError(f"Could not start worker: {exc}") from exc
    return WorkerProcess(process)


__all__ = [
    "READ_CHUNK_SIZE",
    "Spawner",
    "WorkerHandle",
    "WorkerProcess",
    "spawn_worker",
]
