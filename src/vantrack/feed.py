"""In-process publish/subscribe of committed changes."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable

from vantrack.state.events import ChangeEvent, ChangeKind
from vantrack.state.store import TransitStore

_logger = logging.getLogger(__name__)

ChangeFilter = Callable[[ChangeEvent], bool]


class Subscription:
    """A bounded queue of change events for one consumer.

    When the consumer falls behind, the oldest queued event is dropped;
    live position consumers only care about the latest state.
    """

    def __init__(self, feed: LiveFeed, predicate: ChangeFilter | None, maxsize: int) -> None:
        self._feed = feed
        self._predicate = predicate
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    def offer(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        if self._predicate is not None and not self._predicate(event):
            return
        if self._queue.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._queue.get_nowait()
                self.dropped += 1
        self._queue.put_nowait(event)

    async def get(self) -> ChangeEvent | None:
        """Next event, or ``None`` once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._unsubscribe(self)  # noqa: SLF001
        if self._queue.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._queue.get_nowait()
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


class LiveFeed:
    """Fan committed store changes out to any number of subscribers."""

    def __init__(self, store: TransitStore) -> None:
        self._store = store
        self._subscriptions: list[Subscription] = []
        self._attached = False

    def attach(self) -> None:
        if not self._attached:
            self._store.add_listener(self.publish)
            self._attached = True

    def detach(self) -> None:
        if self._attached:
            self._store.remove_listener(self.publish)
            self._attached = False
        for sub in list(self._subscriptions):
            sub.close()

    def publish(self, event: ChangeEvent) -> None:
        for sub in list(self._subscriptions):
            sub.offer(event)

    def subscribe(self, predicate: ChangeFilter | None = None, *, maxsize: int = 256) -> Subscription:
        sub = Subscription(self, predicate, maxsize)
        self._subscriptions.append(sub)
        return sub

    def subscribe_student(self, student_id: str, vehicle_id: str | None, *, maxsize: int = 256) -> Subscription:
        """Events a guardian watching one student cares about."""

        def _relevant(event: ChangeEvent) -> bool:
            if event.kind == ChangeKind.STUDENT_STATUS:
                return event.entity_id == student_id
            return vehicle_id is not None and event.vehicle_id == vehicle_id

        return self.subscribe(_relevant, maxsize=maxsize)

    def _unsubscribe(self, sub: Subscription) -> None:
        with contextlib.suppress(ValueError):
            self._subscriptions.remove(sub)
        _logger.debug("Subscription closed dropped=%d", sub.dropped)
