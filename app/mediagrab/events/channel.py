from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from ..config import MAX_SUBSCRIBERS_PER_JOB
from ..log_config import verbose_log
from ..models.shared import JsonDict


class Subscription:
    """Handle for one observer attached to an :class:`EventChannel`."""

    def __init__(self, channel: "EventChannel") -> None:
        self._channel = channel
        self._queue: "asyncio.Queue[Optional[JsonDict]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def deliver(self, event: JsonDict) -> None:
        if self._closed:
            return
        self._queue.put_nowait(dict(event))

    def end(self) -> None:
        """Mark the stream finished; queued events remain readable."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def close(self) -> None:
        """Detach from the channel. Safe to call more than once."""
        self._channel.unsubscribe(self)
        self.end()

    async def get(self) -> Optional[JsonDict]:
        """Return the next event, or ``None`` once the stream has ended."""
        return await self._queue.get()

    def get_nowait(self) -> Optional[JsonDict]:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def __aiter__(self) -> AsyncIterator[JsonDict]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[JsonDict]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class EventChannel:
    """Per-job fan-out of status and progress events.

    Observers only see events published while they are attached, preceded
    by the snapshot they were given on :meth:`subscribe`.
    """

    def __init__(
        self, job_id: str, *, max_subscribers: int = MAX_SUBSCRIBERS_PER_JOB
    ) -> None:
        self.job_id = job_id
        self._max_subscribers = max_subscribers
        self._subscribers: List[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, snapshot: Optional[JsonDict] = None) -> Subscription:
        subscription = Subscription(self)
        if snapshot is not None:
            subscription.deliver(snapshot)
        if self._closed:
            subscription.end()
            return subscription
        if len(self._subscribers) >= self._max_subscribers:
            verbose_log(
                "event_channel_subscriber_limit",
                {"job_id": self.job_id, "subscribers": len(self._subscribers) + 1},
            )
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        try:
            self._subscribers.remove(subscription)
        except ValueError:
            return

    def publish(self, event: JsonDict) -> int:
        """Deliver ``event`` to every attached observer, in attach order."""
        if self._closed:
            return 0
        targets = list(self._subscribers)
        for subscription in targets:
            subscription.deliver(event)
        return len(targets)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription.end()


__all__ = ["EventChannel", "Subscription"]
