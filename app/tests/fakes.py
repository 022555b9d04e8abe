"""Test doubles for worker processes and the metadata facility."""

from __future__ import annotations

import asyncio
import itertools
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from mediagrab.config import ServerEnvironmentConfig, load_server_environment
from mediagrab.exceptions import MetadataFetchError, WorkerSpawnError

_pids = itertools.count(4000)


def make_settings(root: Path, **overrides: str) -> ServerEnvironmentConfig:
    env: Dict[str, str] = {
        "MEDIAGRAB_TEMP_DIR": str(root / "downloads"),
        "MEDIAGRAB_CACHE_DIR": str(root / "cache"),
        "MEDIAGRAB_WORKER_COMMAND": "yt-dlp",
        "MEDIAGRAB_WORKER_EXTRA_ARGS": "--force-ipv4",
        "MEDIAGRAB_COOKIES_FILE": str(root / "cookies.txt"),
        "MEDIAGRAB_STATIC_DIR": str(root / "dist"),
        "MEDIAGRAB_KILL_GRACE_SECONDS": "0.05",
    }
    env.update(overrides)
    return load_server_environment(env)


class FakeWorker:
    """In-memory stand-in for a yt-dlp subprocess.

    ``stubborn`` workers ignore SIGTERM and only exit on kill.
    """

    def __init__(self, command: Sequence[str], *, stubborn: bool = False) -> None:
        self.command = list(command)
        self.pid: Optional[int] = next(_pids)
        self.returncode: Optional[int] = None
        self.stubborn = stubborn
        self.signals: List[str] = []
        self.on_terminate: Optional[Callable[["FakeWorker"], None]] = None
        self._loop = asyncio.get_running_loop()
        self._chunks: "asyncio.Queue[bytes]" = asyncio.Queue()
        self._exited = asyncio.Event()

    @property
    def alive(self) -> bool:
        return self.returncode is None

    def emit(self, text: str) -> None:
        self._chunks.put_nowait(text.encode("utf-8"))

    def exit(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self._chunks.put_nowait(b"")
        self._exited.set()

    def emit_threadsafe(self, text: str) -> None:
        self._loop.call_soon_threadsafe(self.emit, text)

    def exit_threadsafe(self, code: int) -> None:
        self._loop.call_soon_threadsafe(self.exit, code)

    async def read(self, size: int = 65536) -> bytes:
        if self.returncode is not None and self._chunks.empty():
            return b""
        return await self._chunks.get()

    async def read_stderr(self, size: int = 65536) -> bytes:
        return b""

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode

    def terminate(self) -> None:
        self.signals.append("terminate")
        if self.on_terminate is not None:
            self.on_terminate(self)
        if not self.stubborn:
            self.exit(-15)

    def kill(self) -> None:
        self.signals.append("kill")
        self.exit(-9)


class FakeSpawner:
    def __init__(
        self,
        *,
        stubborn: bool = False,
        error: Optional[Exception] = None,
        prime: Optional[Callable[[FakeWorker], None]] = None,
    ) -> None:
        self.stubborn = stubborn
        self.error = error
        self.prime = prime
        self.workers: List[FakeWorker] = []
        self.max_alive = 0

    @property
    def latest(self) -> FakeWorker:
        return self.workers[-1]

    def alive_count(self) -> int:
        return sum(1 for worker in self.workers if worker.alive)

    async def __call__(self, command: Sequence[str]) -> FakeWorker:
        if self.error is not None:
            raise self.error
        worker = FakeWorker(command, stubborn=self.stubborn)
        self.workers.append(worker)
        self.max_alive = max(self.max_alive, self.alive_count())
        if self.prime is not None:
            self.prime(worker)
        return worker


SAMPLE_INFO: Dict[str, Any] = {
    "id": "abc123",
    "title": "Sample: Clip?",
    "thumbnail": "https://img.example/abc123.jpg",
    "duration": 212,
    "view_count": 1500,
    "formats": [
        {
            "format_id": "sb0",
            "ext": "mhtml",
            "protocol": "mhtml",
            "vcodec": "none",
            "acodec": "none",
            "format_note": "storyboard",
        },
        {
            "format_id": "140",
            "ext": "m4a",
            "vcodec": "none",
            "acodec": "mp4a.40.2",
            "filesize": 3_000_000,
            "url": "https://media.example/140",
        },
        {
            "format_id": "18",
            "ext": "mp4",
            "height": 360,
            "vcodec": "avc1.42001E",
            "acodec": "mp4a.40.2",
            "filesize": 9_000_000,
            "url": "https://media.example/18",
            "format_note": "360p",
        },
        {
            "format_id": "248",
            "ext": "webm",
            "height": 1080,
            "vcodec": "vp9",
            "acodec": "none",
            "filesize": 40_000_000,
            "url": "https://media.example/248",
            "format_note": "1080p",
        },
        {
            "format_id": "137",
            "ext": "mp4",
            "height": 1080,
            "vcodec": "avc1.640028",
            "acodec": "none",
            "filesize": 40_000_000,
            "url": "https://media.example/137",
            "format_note": "1080p",
        },
    ],
}


class FakeFetcher:
    def __init__(self, info: Optional[Dict[str, Any]] = None, *, error: Optional[str] = None) -> None:
        self.info = info if info is not None else SAMPLE_INFO
        self.error = error
        self.calls: List[str] = []
        self.cookies: List[Optional[Path]] = []

    async def __call__(self, url: str, *, cookies_file: Optional[Path] = None) -> Dict[str, Any]:
        self.calls.append(url)
        self.cookies.append(cookies_file)
        if self.error is not None:
            raise MetadataFetchError(self.error)
        return dict(self.info)


def failing_spawner(message: str = "yt-dlp not found") -> FakeSpawner:
    return FakeSpawner(error=WorkerSpawnError(message))


async def settle(rounds: int = 10) -> None:
    """Let pending callbacks and watcher tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def drain(subscription: Any) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    while True:
        event = subscription.get_nowait()
        if event is None:
            return events
        events.append(event)
