from __future__ import annotations

import asyncio
from typing import List

from mediagrab.events import EventChannel


def test_snapshot_is_delivered_first() -> None:
    async def scenario() -> None:
        channel = EventChannel("job1")
        channel.publish({"status": "downloading"})
        subscription = channel.subscribe({"status": "created"})
        channel.publish({"percent": 5.0, "status": "downloading"})

        assert await subscription.get() == {"status": "created"}
        assert await subscription.get() == {"percent": 5.0, "status": "downloading"}
        assert subscription.pending() == 0

    asyncio.run(scenario())


def test_publish_reaches_every_subscriber_in_order() -> None:
    async def scenario() -> None:
        channel = EventChannel("job1")
        first = channel.subscribe()
        second = channel.subscribe()

        delivered = channel.publish({"status": "downloading"})
        channel.publish({"status": "paused"})
        channel.close()

        assert delivered == 2
        for subscription in (first, second):
            received: List[dict] = [event async for event in subscription]
            assert received == [{"status": "downloading"}, {"status": "paused"}]

    asyncio.run(scenario())


def test_unsubscribe_is_idempotent() -> None:
    async def scenario() -> None:
        channel = EventChannel("job1")
        subscription = channel.subscribe()

        subscription.close()
        subscription.close()
        channel.unsubscribe(subscription)

        assert channel.subscriber_count() == 0
        assert channel.publish({"status": "paused"}) == 0
        assert await subscription.get() is None

    asyncio.run(scenario())


def test_subscribing_to_closed_channel_ends_after_snapshot() -> None:
    async def scenario() -> None:
        channel = EventChannel("job1")
        channel.close()
        channel.close()

        subscription = channel.subscribe({"status": "stopped"})

        assert [event async for event in subscription] == [{"status": "stopped"}]
        assert channel.subscriber_count() == 0
        assert channel.publish({"status": "failed"}) == 0

    asyncio.run(scenario())


def test_delivered_events_are_copies() -> None:
    async def scenario() -> None:
        channel = EventChannel("job1")
        subscription = channel.subscribe()
        event = {"status": "downloading"}
        channel.publish(event)
        event["status"] = "mutated"

        assert await subscription.get() == {"status": "downloading"}

    asyncio.run(scenario())
