"""
Live views over document store collections.

A LiveView subscribes to one collection, runs a pure transform over every
snapshot it receives, keeps the latest result, and notifies listeners.
Each consuming view (an SSE connection, a CLI session) owns its LiveView;
stopping it cancels the underlying subscription.

Invariants:
    - Every snapshot is transformed from scratch; no state carries over
    - Listeners see results in snapshot order
    - A failing listener never prevents delivery to the others
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

from .store import Document, DocumentStore, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


def latest_only(queue: asyncio.Queue[T]) -> Listener[T]:
    """Listener feeding a ``maxsize=1`` queue, replacing any unread value.

    Each snapshot supersedes the previous one, so a slow consumer only ever
    has the newest value waiting.
    """

    def put(value: T) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(value)

    return put


class LiveView(Generic[T]):
    """Latest transformed snapshot of a collection.

    Example:
        >>> view = LiveView(store, "movies", lambda docs: len(docs))
        >>> await view.start()
        >>> view.value
        6
        >>> view.stop()
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        transform: Callable[[list[Document]], T],
    ) -> None:
        self.store = store
        self.collection = collection
        self.transform = transform
        self._value: T | None = None
        self._version = 0
        self._listeners: list[Listener[T]] = []
        self._subscription: Subscription | None = None

    @property
    def running(self) -> bool:
        return self._subscription is not None and self._subscription.active

    @property
    def value(self) -> T | None:
        """Result for the most recent snapshot (None before the first)."""
        return self._value

    @property
    def version(self) -> int:
        """Number of snapshots processed."""
        return self._version

    async def start(self) -> None:
        """Subscribe. The first snapshot is processed before this returns."""
        if self.running:
            return
        self._subscription = await self.store.subscribe(self.collection, self._on_snapshot)

    def stop(self) -> None:
        """Cancel the subscription. Safe to call more than once."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> LiveView[T]:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.stop()

    def add_listener(self, listener: Listener[T]) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _on_snapshot(self, documents: list[Document]) -> None:
        value = self.transform(documents)
        self._value = value
        self._version += 1
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error(
                    f"Live view listener failed: {e}",
                    exc_info=True,
                    extra={"collection": self.collection},
                )

    async def updates(self) -> AsyncIterator[T]:
        """Yield the current value, then every new one until cancelled."""
        queue: asyncio.Queue[T] = asyncio.Queue(maxsize=1)
        remove = self.add_listener(latest_only(queue))
        try:
            if self._value is not None:
                yield self._value
            while True:
                yield await queue.get()
        finally:
            remove()
