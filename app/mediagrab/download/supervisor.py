"""Owns the worker subprocess of every job and drives the job state machine.

Everything here runs on the event loop thread. Job records are only mutated
between awaits, so handlers never observe a half-applied transition.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional, Set

from ..config import (
    JobStatus,
    STOPPABLE_STATUSES,
    ServerEnvironmentConfig,
    TERMINAL_STATUSES,
)
from ..exceptions import JobStateConflict, WorkerSpawnError
from ..log_config import debug_verbose, verbose_log
from ..utils import truncate_string
from .models import DownloadJob
from .progress_parser import FatalSignal, LineBuffer, parse_line
from .registry import JobRegistry
from .worker import Spawner, WorkerHandle, spawn_worker


class ProcessSupervisor:
    def __init__(
        self,
        registry: JobRegistry,
        settings: ServerEnvironmentConfig,
        *,
        spawner: Optional[Spawner] = None,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._spawner: Spawner = spawner or spawn_worker
        self._watchers: Dict[WorkerHandle, asyncio.Task[None]] = {}
        self._background: Set[asyncio.Task[None]] = set()
        self._closed = False

    def live_worker_count(self) -> int:
        return len(self._watchers)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def start(self, job: DownloadJob) -> None:
        """``created -> downloading``: spawn the first worker for ``job``."""
        if job.status != JobStatus.CREATED.value or job.worker is not None:
            raise JobStateConflict(
                job.job_id, job.status, "Download already in progress"
            )
        if not job.worker_arguments:
            raise ValueError(f"Job {job.job_id} has no worker arguments")
        await self._launch(job)

    async def resume(self, job: DownloadJob) -> None:
        """``paused -> downloading`` with the stored argument list."""
        if job.status != JobStatus.PAUSED.value:
            raise JobStateConflict(job.job_id, job.status, "Not paused")
        await self._launch(job)

    def pause(self, job: DownloadJob) -> bool:
        if job.status != JobStatus.DOWNLOADING.value:
            return False
        # The exit watcher must already see "paused" when the signal lands.
        job.status = JobStatus.PAUSED.value
        job.launch_token += 1
        job.channel.publish(job.status_event())
        handle, job.worker = job.worker, None
        if handle is not None:
            self._retire(job, handle)
        verbose_log("job_paused", {"job_id": job.job_id})
        return True

    def stop(self, job: DownloadJob) -> bool:
        if job.status == JobStatus.STOPPED.value:
            return False
        if job.status not in STOPPABLE_STATUSES:
            raise JobStateConflict(job.job_id, job.status)
        job.status = JobStatus.STOPPED.value
        job.launch_token += 1
        job.finished_at = datetime.now(timezone.utc)
        job.channel.publish(job.status_event())
        handle, job.worker = job.worker, None
        if handle is not None:
            self._retire(job, handle)
        self.delete_artifacts(job)
        self._schedule_expiry(job, self._settings.retention_seconds)
        verbose_log("job_stopped", {"job_id": job.job_id})
        return True

    def schedule_unstarted_expiry(self, job: DownloadJob) -> None:
        ttl = self._settings.unstarted_ttl_seconds
        if ttl > 0:
            self._schedule_expiry(job, ttl)

    async def shutdown(self) -> None:
        """Terminate every worker and cancel pending timers."""
        self._closed = True
        for job in self._registry:
            self._cancel_expiry(job)
            handle, job.worker = job.worker, None
            if handle is not None:
                job.retiring.append(handle)
                handle.terminate()
        watchers = list(self._watchers.items())
        verbose_log("supervisor_shutdown", {"workers": len(watchers)})
        if watchers:
            await asyncio.gather(
                *(self._await_exit(handle, watcher) for handle, watcher in watchers),
                return_exceptions=True,
            )
        leftovers: List[asyncio.Task[None]] = [
            *self._watchers.values(),
            *self._background,
        ]
        for task in leftovers:
            task.cancel()
        if leftovers:
            await asyncio.gather(*leftovers, return_exceptions=True)

    def delete_artifacts(self, job: DownloadJob) -> None:
        """Best-effort removal of every file written for ``job``."""
        targets: Set[Path] = set(self._settings.temp_dir.glob(f"{job.job_id}_*"))
        if job.output_path is not None:
            targets.add(job.output_path)
        for path in sorted(targets):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                verbose_log(
                    "artifact_delete_failed",
                    {"job_id": job.job_id, "path": str(path), "error": repr(exc)},
                )
            else:
                verbose_log(
                    "artifact_deleted", {"job_id": job.job_id, "path": str(path)}
                )

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------
    async def _launch(self, job: DownloadJob) -> None:
        # Claim the transition before the first await so a concurrent
        # command sees "downloading" immediately.
        self._cancel_expiry(job)
        job.launch_token += 1
        token = job.launch_token
        job.status = JobStatus.DOWNLOADING.value
        job.error = None
        job.exit_code = None
        if job.started_at is None:
            job.started_at = datetime.now(timezone.utc)
        job.channel.publish(job.status_event())

        async with job.launch_lock:
            if not self._is_current(job, token):
                return
            await self._reap_retiring(job)
            if not self._is_current(job, token):
                return

            command = [*self._settings.worker_command, *job.worker_arguments]
            verbose_log(
                "worker_spawn",
                {"job_id": job.job_id, "attempt": job.spawn_count + 1, "command": command},
            )
            try:
                handle = await self._spawner(command)
            except (WorkerSpawnError, OSError) as exc:
                verbose_log(
                    "worker_spawn_failed", {"job_id": job.job_id, "error": repr(exc)}
                )
                if self._is_current(job, token):
                    self._fail(job, error=str(exc))
                if isinstance(exc, WorkerSpawnError):
                    raise
                raise WorkerSpawnError(str(exc)) from exc

            self._watch(job, handle)
            if not self._is_current(job, token):
                # Paused or stopped while the process was starting.
                verbose_log(
                    "worker_spawn_superseded",
                    {"job_id": job.job_id, "pid": handle.pid, "status": job.status},
                )
                self._retire(job, handle)
                return
            job.worker = handle
            job.spawn_count += 1

    def _is_current(self, job: DownloadJob, token: int) -> bool:
        return (
            not self._closed
            and job.launch_token == token
            and job.status == JobStatus.DOWNLOADING.value
            and job.worker is None
        )

    async def _reap_retiring(self, job: DownloadJob) -> None:
        for handle in list(job.retiring):
            watcher = self._watchers.get(handle)
            if watcher is not None:
                await self._await_exit(handle, watcher)

    async def _await_exit(
        self, handle: WorkerHandle, watcher: "asyncio.Task[None]"
    ) -> None:
        try:
            await asyncio.wait_for(
                asyncio.shield(watcher), timeout=self._settings.kill_grace_seconds
            )
        except asyncio.TimeoutError:
            verbose_log("worker_kill_escalated", {"pid": handle.pid})
            handle.kill()
            await asyncio.shield(watcher)

    def _retire(self, job: DownloadJob, handle: WorkerHandle) -> None:
        if handle not in job.retiring:
            job.retiring.append(handle)
        handle.terminate()
        watcher = self._watchers.get(handle)
        if watcher is not None:
            self._spawn_background(self._await_exit(handle, watcher))

    def _spawn_background(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Output and exit handling
    # ------------------------------------------------------------------
    def _watch(self, job: DownloadJob, handle: WorkerHandle) -> None:
        self._watchers[handle] = asyncio.create_task(self._run_watcher(job, handle))

    async def _run_watcher(self, job: DownloadJob, handle: WorkerHandle) -> None:
        buffer = LineBuffer()
        code: Optional[int] = None
        error: Optional[str] = None
        try:
            while True:
                chunk = await handle.read()
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    self._handle_line(job, handle, line)
            for line in buffer.flush():
                self._handle_line(job, handle, line)
            code = await handle.wait()
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - reported as a failed job
            verbose_log(
                "worker_watch_failed", {"job_id": job.job_id, "error": repr(exc)}
            )
            error = f"Lost contact with worker: {exc}"
            handle.kill()
            code = handle.returncode
        finally:
            self._watchers.pop(handle, None)
            if handle in job.retiring:
                job.retiring.remove(handle)
        self._on_exit(job, handle, code, error=error)

    def _handle_line(self, job: DownloadJob, handle: WorkerHandle, line: str) -> None:
        if handle is not job.worker or job.status != JobStatus.DOWNLOADING.value:
            return
        debug_verbose("worker_output", {"job_id": job.job_id, "line": line})
        for item in parse_line(line):
            if isinstance(item, FatalSignal):
                self._on_fatal(job, handle, item)
                return
            job.last_progress = item
            job.channel.publish(job.progress_event(item))

    def _on_fatal(
        self, job: DownloadJob, handle: WorkerHandle, signal: FatalSignal
    ) -> None:
        verbose_log(
            "worker_fatal_output",
            {"job_id": job.job_id, "line": truncate_string(signal.line, 300)},
        )
        job.worker = None
        self._fail(job, error=signal.line)
        self._retire(job, handle)

    def _on_exit(
        self,
        job: DownloadJob,
        handle: WorkerHandle,
        code: Optional[int],
        *,
        error: Optional[str] = None,
    ) -> None:
        verbose_log(
            "worker_exit",
            {"job_id": job.job_id, "pid": handle.pid, "code": code, "status": job.status},
        )
        if job.status == JobStatus.STOPPED.value:
            # The worker may have written more data after the stop request.
            self.delete_artifacts(job)
        if handle is not job.worker:
            return
        job.worker = None
        job.exit_code = code
        if job.status != JobStatus.DOWNLOADING.value:
            return
        if code == 0 and error is None:
            job.status = JobStatus.FINISHED.value
            job.finished_at = datetime.now(timezone.utc)
            job.channel.publish(job.status_event())
            self._schedule_expiry(job, self._settings.retention_seconds)
            verbose_log("job_finished", {"job_id": job.job_id})
            return
        self._fail(job, error=error)

    def _fail(self, job: DownloadJob, *, error: Optional[str] = None) -> None:
        job.status = JobStatus.FAILED.value
        job.error = truncate_string(error) if error else None
        job.finished_at = datetime.now(timezone.utc)
        job.channel.publish(job.status_event())
        self._schedule_expiry(job, self._settings.retention_seconds)
        verbose_log(
            "job_failed",
            {"job_id": job.job_id, "error": job.error, "code": job.exit_code},
        )

    # ------------------------------------------------------------------
    # Retention
    # ------------------------------------------------------------------
    def _schedule_expiry(self, job: DownloadJob, delay: float) -> None:
        self._cancel_expiry(job)
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        job.expiry = loop.call_later(delay, self._expire, job.job_id)

    @staticmethod
    def _cancel_expiry(job: DownloadJob) -> None:
        if job.expiry is not None:
            job.expiry.cancel()
            job.expiry = None

    def _expire(self, job_id: str) -> None:
        job = self._registry.get(job_id)
        if job is None:
            return
        job.expiry = None
        if job.status not in TERMINAL_STATUSES and job.status != JobStatus.CREATED.value:
            return
        verbose_log("job_expired", {"job_id": job_id, "status": job.status})
        self.delete_artifacts(job)
        self._registry.remove(job_id)


__all__ = ["ProcessSupervisor"]
