from __future__ import annotations

from collections import Counter
from typing import Dict, Iterator, Optional

from ..config import JobStatus
from ..events import EventChannel
from ..exceptions import JobNotFound
from ..log_config import verbose_log
from ..models.shared import JsonDict
from ..utils import generate_job_id
from .models import DownloadJob, JobParameters


class JobRegistry:
    """In-memory table of download jobs owned by one application instance.

    All access happens on the event loop thread, so no locking is needed.
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, DownloadJob] = {}

    def create(
        self,
        parameters: JobParameters,
        *,
        title: str = "",
        metadata: Optional[JsonDict] = None,
    ) -> DownloadJob:
        job_id = generate_job_id()
        while job_id in self._jobs:
            job_id = generate_job_id()
        job = DownloadJob(
            job_id=job_id,
            parameters=parameters,
            channel=EventChannel(job_id),
            title=title,
            metadata=metadata or {},
        )
        self._jobs[job_id] = job
        verbose_log(
            "job_created",
            {
                "job_id": job_id,
                "url": parameters.url,
                "format": parameters.format_id,
                "type": parameters.media_type.value,
            },
        )
        return job

    def get(self, job_id: str) -> Optional[DownloadJob]:
        return self._jobs.get(job_id)

    def require(self, job_id: str) -> DownloadJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def remove(self, job_id: str) -> Optional[DownloadJob]:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return None
        if job.expiry is not None:
            job.expiry.cancel()
            job.expiry = None
        job.channel.close()
        verbose_log("job_removed", {"job_id": job_id, "status": job.status})
        return job

    def status_counts(self) -> Dict[str, int]:
        counts = Counter(job.status for job in self._jobs.values())
        summary: Dict[str, int] = {"total": len(self._jobs)}
        for status in JobStatus:
            summary[status.value] = counts.get(status.value, 0)
        return summary

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __iter__(self) -> Iterator[DownloadJob]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)


__all__ = ["JobRegistry"]
