"""
Base protocol and types for the document store abstraction.

This module defines the DocumentStore protocol that all backends must
implement, along with common types for documents, subscriptions, and errors.

Invariants:
    - Document ids are opaque strings assigned by the store
    - Subscribers always receive the complete current collection
    - Snapshots are delivered in commit order
    - A failing subscriber never affects writers or other subscribers

How to change safely:
    - Protocol changes require updating all implementations
    - Keep snapshot delivery synchronous with the commit that caused it
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import AppConfig

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for document store operations."""

    pass


class StoreConnectionError(StoreError):
    """Store is not connected or the backend is unavailable."""

    pass


class DocumentNotFoundError(StoreError):
    """Document does not exist in the collection."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"Document not found: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


class BatchWriteError(StoreError):
    """A batched write failed.

    Stores with atomic batches always raise this with an empty
    ``applied_ids``. Non-atomic stores report the documents that were
    written before the failure so callers can compensate.

    Attributes:
        applied_ids: Ids changed before the failure, in batch order
        failed_id: Id whose write failed, if known
    """

    def __init__(
        self,
        message: str,
        applied_ids: Sequence[str] = (),
        failed_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.applied_ids = list(applied_ids)
        self.failed_id = failed_id

    @property
    def partial(self) -> bool:
        return bool(self.applied_ids)


@dataclass(frozen=True)
class Document:
    """A document in a collection.

    Attributes:
        id: Store-assigned document id
        data: Field values
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    id: str
    data: dict[str, Any] = field(default_factory=dict)
    created_at: int = 0
    updated_at: int = 0

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Flatten into ``{"id": ..., **data}``."""
        return {"id": self.id, **self.data}


SnapshotCallback = Callable[[list[Document]], None]


class Subscription:
    """Handle for a live collection subscription.

    Cancellation is all-or-nothing: once ``unsubscribe()`` returns, the
    callback will not be invoked again.

    Example:
        >>> sub = await store.subscribe("movies", on_snapshot)
        >>> sub.unsubscribe()
    """

    def __init__(
        self,
        collection: str,
        callback: SnapshotCallback,
        on_cancel: Callable[[Subscription], None],
    ) -> None:
        self.collection = collection
        self.callback = callback
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop receiving snapshots. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._on_cancel(self)

    def deliver(self, snapshot: list[Document]) -> None:
        """Invoke the callback, logging instead of raising on failure."""
        if not self._active:
            return
        try:
            self.callback(snapshot)
        except Exception as e:
            logger.error(
                f"Snapshot subscriber failed: {e}",
                exc_info=True,
                extra={"collection": self.collection},
            )

    def __repr__(self) -> str:
        state = "active" if self._active else "cancelled"
        return f"Subscription(collection={self.collection!r}, {state})"


class SubscriberRegistry:
    """Per-collection subscriber bookkeeping shared by store backends."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

    def add(self, collection: str, callback: SnapshotCallback) -> Subscription:
        subscription = Subscription(collection, callback, self._remove)
        self._subscribers[collection].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subs = self._subscribers.get(subscription.collection, [])
        if subscription in subs:
            subs.remove(subscription)
        if not subs:
            self._subscribers.pop(subscription.collection, None)

    def has_subscribers(self, collection: str) -> bool:
        return bool(self._subscribers.get(collection))

    def notify(self, collection: str, snapshot: list[Document]) -> None:
        # Copy: a callback may unsubscribe itself or others
        for subscription in list(self._subscribers.get(collection, [])):
            subscription.deliver(list(snapshot))

    def count(self, collection: str | None = None) -> int:
        if collection is not None:
            return len(self._subscribers.get(collection, []))
        return sum(len(subs) for subs in self._subscribers.values())

    def clear(self) -> None:
        for subs in list(self._subscribers.values()):
            for subscription in list(subs):
                subscription.unsubscribe()
        self._subscribers.clear()


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Write contract:
        - insert/update/delete affect exactly one document
        - batched_update/batched_delete apply to every listed document;
          when ``atomic_batches`` is True they apply all-or-nothing

    Subscription contract:
        - subscribe() delivers the current snapshot before returning
        - every committed write delivers a fresh snapshot to each
          subscriber of the affected collection, in commit order

    Example:
        >>> store = SqliteDocumentStore("/var/lib/cinetrack", app_id="demo")
        >>> await store.connect()
        >>> doc_id = await store.insert("movies", {"title": "Dune"})
    """

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend. Must be called before other operations.

        Raises:
            StoreConnectionError: If the backend is unavailable
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store and cancel all subscriptions."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the store is connected."""
        ...

    @property
    @abstractmethod
    def atomic_batches(self) -> bool:
        """Whether batched writes are applied all-or-nothing."""
        ...

    @abstractmethod
    async def insert(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> str:
        """Insert a document.

        Args:
            collection: Collection path
            data: Field values
            doc_id: Optional explicit id (generated if not provided)

        Returns:
            The document id
        """
        ...

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Get a document by id, or None if it does not exist."""
        ...

    @abstractmethod
    async def query_once(self, collection: str) -> list[Document]:
        """Read the current snapshot of a collection."""
        ...

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        patch: dict[str, Any],
    ) -> Document:
        """Merge ``patch`` into a document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        ...

    @abstractmethod
    async def batched_update(
        self,
        collection: str,
        patches: Sequence[tuple[str, dict[str, Any]]],
    ) -> None:
        """Merge each patch into its document as one batch.

        Raises:
            BatchWriteError: If any write fails
        """
        ...

    @abstractmethod
    async def batched_delete(self, collection: str, doc_ids: Sequence[str]) -> int:
        """Delete every listed document as one batch.

        Returns:
            Number of documents that existed and were deleted

        Raises:
            BatchWriteError: If any delete fails
        """
        ...

    @abstractmethod
    async def subscribe(self, collection: str, callback: SnapshotCallback) -> Subscription:
        """Subscribe to full snapshots of a collection.

        Args:
            collection: Collection path
            callback: Invoked with the complete list of documents

        Returns:
            Subscription handle used to cancel
        """
        ...


def create_document_store(config: AppConfig) -> DocumentStore:
    """Factory function to create a document store from configuration.

    Args:
        config: Application configuration

    Returns:
        Appropriate DocumentStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StoreBackend
    from .memory import InMemoryDocumentStore
    from .sqlite import SqliteDocumentStore

    if config.store_backend == StoreBackend.SQLITE:
        return SqliteDocumentStore(
            data_dir=config.storage.data_dir,
            app_id=config.app_id,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        )
    elif config.store_backend == StoreBackend.MEMORY:
        return InMemoryDocumentStore()
    else:
        raise ValueError(f"Unsupported store backend: {config.store_backend}")
