"""
In-memory document store implementation.

This module provides a document store kept entirely in memory for:
- Unit tests
- Integration tests
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Iteration order of a collection is insertion order
    - Snapshot delivery happens under the store lock, in commit order
    - With atomic=False, batches are applied document by document and a
      failure leaves earlier documents written (used to test compensation)

How to change safely:
    - Keep interface compatible with the DocumentStore protocol
    - Keep failure injection deterministic so tests stay reproducible
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .base import (
    BatchWriteError,
    Document,
    DocumentNotFoundError,
    SnapshotCallback,
    StoreConnectionError,
    StoreError,
    SubscriberRegistry,
    Subscription,
)

logger = logging.getLogger(__name__)


@dataclass
class _InjectedFailure:
    """A scheduled failure for the next matching operation."""

    operation: Optional[str]
    after: int
    message: str
    times: int

    def matches(self, operation: str) -> bool:
        return self.times > 0 and (self.operation is None or self.operation == operation)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore.

    Attributes:
        atomic: Whether batched writes are all-or-nothing

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> doc_id = await store.insert("requests", {"movie_title": "Dune"})
        >>> sub = await store.subscribe("requests", print)
    """

    def __init__(self, atomic: bool = True) -> None:
        """Initialize in-memory store.

        Args:
            atomic: Apply batches all-or-nothing (False simulates a backend
                without cross-document transactions)
        """
        self.atomic = atomic
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._subscribers = SubscriberRegistry()
        self._failures: List[_InjectedFailure] = []
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def atomic_batches(self) -> bool:
        return self.atomic

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryDocumentStore connected")

    async def close(self) -> None:
        """Close, cancel subscriptions, and clear all data."""
        self._connected = False
        self._subscribers.clear()
        self._collections.clear()
        self._failures.clear()
        logger.debug("InMemoryDocumentStore closed")

    def _require_connection(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")

    def _collection(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def _snapshot(self, collection: str) -> List[Document]:
        return list(self._collections.get(collection, {}).values())

    def _publish(self, collection: str) -> None:
        if self._subscribers.has_subscribers(collection):
            self._subscribers.notify(collection, self._snapshot(collection))

    def _take_failure(self, operation: str) -> Optional[_InjectedFailure]:
        for failure in self._failures:
            if failure.matches(operation):
                failure.times -= 1
                if failure.times == 0:
                    self._failures.remove(failure)
                return failure
        return None

    @staticmethod
    def _now() -> int:
        return int(time.time() * 1000)

    async def insert(
        self,
        collection: str,
        data: Dict[str, Any],
        doc_id: Optional[str] = None,
    ) -> str:
        self._require_connection()
        async with self._lock:
            failure = self._take_failure("insert")
            if failure:
                raise StoreError(failure.message)

            docs = self._collection(collection)
            doc_id = doc_id or uuid.uuid4().hex
            if doc_id in docs:
                raise StoreError(f"Document already exists: {collection}/{doc_id}")

            now = self._now()
            docs[doc_id] = Document(id=doc_id, data=dict(data), created_at=now, updated_at=now)
            self._publish(collection)

        logger.debug("Inserted document", extra={"collection": collection, "doc_id": doc_id})
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._require_connection()
        return self._collections.get(collection, {}).get(doc_id)

    async def query_once(self, collection: str) -> List[Document]:
        self._require_connection()
        async with self._lock:
            return self._snapshot(collection)

    async def update(
        self,
        collection: str,
        doc_id: str,
        patch: Dict[str, Any],
    ) -> Document:
        self._require_connection()
        async with self._lock:
            failure = self._take_failure("update")
            if failure:
                raise StoreError(failure.message)

            docs = self._collection(collection)
            existing = docs.get(doc_id)
            if existing is None:
                raise DocumentNotFoundError(collection, doc_id)

            updated = replace(
                existing,
                data={**existing.data, **patch},
                updated_at=self._now(),
            )
            docs[doc_id] = updated
            self._publish(collection)
            return updated

    async def delete(self, collection: str, doc_id: str) -> bool:
        self._require_connection()
        async with self._lock:
            failure = self._take_failure("delete")
            if failure:
                raise StoreError(failure.message)

            docs = self._collection(collection)
            if docs.pop(doc_id, None) is None:
                return False
            self._publish(collection)
            return True

    async def batched_update(
        self,
        collection: str,
        patches: Sequence[Tuple[str, Dict[str, Any]]],
    ) -> None:
        self._require_connection()
        async with self._lock:
            docs = self._collection(collection)
            failure = self._take_failure("batched_update")
            now = self._now()

            if self.atomic:
                missing = [doc_id for doc_id, _ in patches if doc_id not in docs]
                if missing:
                    raise BatchWriteError(
                        f"Batch update references missing documents: {missing}",
                        failed_id=missing[0],
                    )
                if failure:
                    raise BatchWriteError(failure.message)
                for doc_id, patch in patches:
                    existing = docs[doc_id]
                    docs[doc_id] = replace(
                        existing, data={**existing.data, **patch}, updated_at=now
                    )
                self._publish(collection)
                return

            applied: List[str] = []
            try:
                for index, (doc_id, patch) in enumerate(patches):
                    if failure and index == failure.after:
                        raise BatchWriteError(failure.message, applied, failed_id=doc_id)
                    existing = docs.get(doc_id)
                    if existing is None:
                        raise BatchWriteError(
                            f"Document not found: {collection}/{doc_id}",
                            applied,
                            failed_id=doc_id,
                        )
                    docs[doc_id] = replace(
                        existing, data={**existing.data, **patch}, updated_at=now
                    )
                    applied.append(doc_id)
            finally:
                if applied:
                    self._publish(collection)

    async def batched_delete(self, collection: str, doc_ids: Sequence[str]) -> int:
        self._require_connection()
        async with self._lock:
            docs = self._collection(collection)
            failure = self._take_failure("batched_delete")

            if self.atomic:
                if failure:
                    raise BatchWriteError(failure.message)
                deleted = sum(1 for doc_id in doc_ids if docs.pop(doc_id, None) is not None)
                if deleted:
                    self._publish(collection)
                return deleted

            applied: List[str] = []
            try:
                for index, doc_id in enumerate(doc_ids):
                    if failure and index == failure.after:
                        raise BatchWriteError(failure.message, applied, failed_id=doc_id)
                    if docs.pop(doc_id, None) is not None:
                        applied.append(doc_id)
            finally:
                if applied:
                    self._publish(collection)
            return len(applied)

    async def subscribe(self, collection: str, callback: SnapshotCallback) -> Subscription:
        self._require_connection()
        async with self._lock:
            subscription = self._subscribers.add(collection, callback)
            subscription.deliver(self._snapshot(collection))
        logger.debug("Subscribed", extra={"collection": collection})
        return subscription

    # Testing helpers

    def inject_failure(
        self,
        operation: Optional[str] = None,
        *,
        after: int = 0,
        message: str = "Injected failure",
        times: int = 1,
    ) -> None:
        """Make the next matching operation fail (testing helper).

        Args:
            operation: Method name to fail (None matches any write)
            after: For non-atomic batches, number of documents written
                before the failure
            message: Error message of the raised exception
            times: Number of consecutive matching operations to fail
        """
        self._failures.append(_InjectedFailure(operation, after, message, times))

    def clear_failures(self) -> None:
        self._failures.clear()

    def get_document_count(self, collection: str) -> int:
        """Number of documents in a collection (testing helper)."""
        return len(self._collections.get(collection, {}))

    def subscriber_count(self, collection: Optional[str] = None) -> int:
        """Number of active subscriptions (testing helper)."""
        return self._subscribers.count(collection)

    def clear_collection(self, collection: str) -> None:
        """Remove every document of a collection (testing helper)."""
        if collection in self._collections:
            self._collections[collection].clear()
            self._publish(collection)
