from __future__ import annotations

import asyncio

import pytest

from mediagrab.config import JobStatus, MediaType
from mediagrab.download import JobParameters, JobRegistry
from mediagrab.exceptions import JobNotFound

from fakes import drain


def _parameters(media_type: MediaType = MediaType.VIDEO) -> JobParameters:
    return JobParameters(
        url="https://www.youtube.com/watch?v=abc123",
        format_id="137",
        media_type=media_type,
    )


def test_create_assigns_unique_ids_in_created_state() -> None:
    registry = JobRegistry()

    first = registry.create(_parameters(), title="First")
    second = registry.create(_parameters(MediaType.AUDIO), title="Second")

    assert first.job_id != second.job_id
    assert len(first.job_id) == 16
    assert first.status == JobStatus.CREATED.value
    assert first.worker is None
    assert registry.get(first.job_id) is first
    assert second.job_id in registry
    assert len(registry) == 2
    assert [job.job_id for job in registry] == [first.job_id, second.job_id]


def test_require_raises_for_unknown_ids() -> None:
    registry = JobRegistry()

    with pytest.raises(JobNotFound) as excinfo:
        registry.require("missing")

    assert excinfo.value.job_id == "missing"
    assert registry.get("missing") is None


def test_remove_closes_the_event_channel() -> None:
    async def scenario() -> None:
        registry = JobRegistry()
        job = registry.create(_parameters(), title="Clip")
        subscription = job.channel.subscribe(dict(job.snapshot()))

        removed = registry.remove(job.job_id)

        assert removed is job
        assert job.channel.closed
        assert drain(subscription) == [{"status": "created"}]
        assert subscription.closed
        assert registry.remove(job.job_id) is None
        assert job.job_id not in registry

    asyncio.run(scenario())


def test_status_counts_cover_every_status() -> None:
    registry = JobRegistry()
    registry.create(_parameters())
    paused = registry.create(_parameters())
    paused.status = JobStatus.PAUSED.value

    counts = registry.status_counts()

    assert counts["total"] == 2
    assert counts["created"] == 1
    assert counts["paused"] == 1
    assert counts["finished"] == 0
    assert set(counts) == {"total", *(status.value for status in JobStatus)}
