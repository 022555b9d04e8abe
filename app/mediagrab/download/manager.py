from __future__ import annotations

import functools
import re
from pathlib import Path
from typing import Optional, Tuple

from ..config import ControlAction, JobStatus, MediaType, ServerEnvironmentConfig
from ..core.formats import PreviewPayload, build_preview
from ..core.metadata import MetadataFetcher, fetch_media_info
from ..events import Subscription
from ..exceptions import MetadataFetchError
from ..log_config import configure_log_folder, verbose_log
from ..models.api.http import ControlEndpointResponse
from ..models.shared import JsonDict, get_str
from ..utils import safe_filename
from .models import DownloadJob, JobParameters
from .passthrough import PassthroughTransfer
from .registry import JobRegistry
from .supervisor import ProcessSupervisor
from .worker import Spawner, spawn_worker
from .worker_args import build_final_name, build_output_path, build_worker_arguments

_ARTIFACT_NAME_RE = re.compile(r"^[0-9a-f]{16}_")


class DownloadManager:
    """Job API used by the HTTP layer.

    Thin orchestration over :class:`JobRegistry` and
    :class:`ProcessSupervisor`; it resolves metadata, lays out file names and
    turns job ids into records.
    """

    def __init__(
        self,
        settings: ServerEnvironmentConfig,
        *,
        registry: Optional[JobRegistry] = None,
        spawner: Optional[Spawner] = None,
        passthrough_spawner: Optional[Spawner] = None,
        fetcher: Optional[MetadataFetcher] = None,
    ) -> None:
        self.settings = settings
        configure_log_folder(settings.cache_dir)
        self.registry = registry or JobRegistry()
        self.supervisor = ProcessSupervisor(self.registry, settings, spawner=spawner)
        self._passthrough_spawner: Spawner = passthrough_spawner or functools.partial(
            spawn_worker, merge_stderr=False
        )
        self._fetch: MetadataFetcher = fetcher or fetch_media_info

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def purge_stale_artifacts(self) -> int:
        """Remove job files left behind by a previous process."""
        temp_dir = self.settings.temp_dir
        temp_dir.mkdir(parents=True, exist_ok=True)
        removed = 0
        for path in temp_dir.iterdir():
            if not path.is_file() or not _ARTIFACT_NAME_RE.match(path.name):
                continue
            try:
                path.unlink()
            except OSError as exc:
                verbose_log(
                    "stale_artifact_delete_failed",
                    {"path": str(path), "error": repr(exc)},
                )
                continue
            removed += 1
        if removed:
            verbose_log("stale_artifacts_removed", {"count": removed})
        return removed

    async def shutdown(self) -> None:
        await self.supervisor.shutdown()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    async def fetch_info(self, url: str) -> JsonDict:
        info = await self._fetch(url, cookies_file=self.settings.cookies_path())
        if not isinstance(info, dict):
            raise MetadataFetchError("yt-dlp returned an unexpected result")
        return info

    async def preview(self, url: str) -> PreviewPayload:
        info = await self.fetch_info(url)
        return build_preview(info)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def get_job(self, job_id: str) -> Optional[DownloadJob]:
        return self.registry.get(job_id)

    async def create_job(
        self,
        url: str,
        *,
        format_id: Optional[str] = None,
        media_type: MediaType = MediaType.VIDEO,
        info: Optional[JsonDict] = None,
    ) -> DownloadJob:
        """Register a job in ``created`` state without starting a worker."""
        if info is None:
            info = await self.fetch_info(url)
        title = get_str(info, "title") or "video"
        parameters = JobParameters(url=url, format_id=format_id, media_type=media_type)
        job = self.registry.create(parameters, title=title, metadata=info)
        job.output_path = build_output_path(
            self.settings.temp_dir, job.job_id, title, media_type
        )
        job.final_name = build_final_name(title, parameters, info)
        self.supervisor.schedule_unstarted_expiry(job)
        return job

    async def start_transfer(self, job_id: str) -> DownloadJob:
        job = self.registry.require(job_id)
        if job.status == JobStatus.CREATED.value and job.worker is None:
            if job.output_path is None:
                job.output_path = build_output_path(
                    self.settings.temp_dir,
                    job.job_id,
                    job.title,
                    job.parameters.media_type,
                )
            job.worker_arguments = build_worker_arguments(
                job.parameters,
                job.metadata,
                str(job.output_path),
                cookies_file=self.settings.cookies_path(),
                extra_args=self.settings.worker_extra_args,
            )
        await self.supervisor.start(job)
        return job

    def subscribe(self, job_id: str) -> Subscription:
        job = self.registry.require(job_id)
        return job.channel.subscribe(dict(job.snapshot()))

    async def control(
        self, job_id: str, action: ControlAction
    ) -> ControlEndpointResponse:
        job = self.registry.require(job_id)
        verbose_log(
            "job_control", {"job_id": job_id, "action": action.value, "status": job.status}
        )
        if action is ControlAction.PAUSE:
            self.supervisor.pause(job)
        elif action is ControlAction.RESUME:
            await self.supervisor.resume(job)
        else:
            self.supervisor.stop(job)
        return {"ok": True, "status": job.status, "action": action.value}

    def resolve_artifact(self, job_id: str) -> Tuple[Path, str]:
        """Return the finished file and the name to present it under."""
        job = self.registry.require(job_id)
        path = job.output_path
        if (
            job.status != JobStatus.FINISHED.value
            or path is None
            or not path.is_file()
        ):
            raise FileNotFoundError(job_id)
        return path, job.final_name or path.name

    # ------------------------------------------------------------------
    # Pass-through download
    # ------------------------------------------------------------------
    async def open_passthrough(
        self,
        url: str,
        *,
        format_id: Optional[str] = None,
        media_type: MediaType = MediaType.VIDEO,
    ) -> PassthroughTransfer:
        info = await self.fetch_info(url)
        parameters = JobParameters(url=url, format_id=format_id, media_type=media_type)
        arguments = build_worker_arguments(
            parameters,
            info,
            cookies_file=self.settings.cookies_path(),
            extra_args=self.settings.worker_extra_args,
            to_stdout=True,
        )
        command = [*self.settings.worker_command, *arguments]
        verbose_log("passthrough_spawn", {"command": command})
        handle = await self._passthrough_spawner(command)
        filename = f"{safe_filename(get_str(info, 'title'))}.{media_type.extension}"
        return PassthroughTransfer(handle, filename, media_type)  # type: ignore[arg-type]


__all__ = ["DownloadManager"]
