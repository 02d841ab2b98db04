"""
Unit tests for the in-memory document store.

Tests cover:
- Connection lifecycle
- Single-document CRUD
- Atomic and non-atomic batches
- Subscriptions and snapshot delivery
- Failure injection helpers
"""

import pytest

from cinetrack.store import (
    BatchWriteError,
    DocumentNotFoundError,
    DocumentStore,
    InMemoryDocumentStore,
    StoreConnectionError,
    StoreError,
)

COLLECTION = "artifacts/test/public/data/requests"


class TestInMemoryDocumentStore:
    """Tests for InMemoryDocumentStore."""

    @pytest.fixture
    def store(self):
        """Create a fresh store."""
        return InMemoryDocumentStore()

    def test_implements_protocol(self, store):
        """Store satisfies the DocumentStore protocol."""
        assert isinstance(store, DocumentStore)
        assert store.atomic_batches is True

    @pytest.mark.asyncio
    async def test_connect_close(self, store):
        """Test connection lifecycle."""
        assert not store.is_connected

        await store.connect()
        assert store.is_connected

        await store.close()
        assert not store.is_connected

    @pytest.mark.asyncio
    async def test_requires_connection(self, store):
        """Operations fail if not connected."""
        with pytest.raises(StoreConnectionError):
            await store.insert(COLLECTION, {"movie_title": "Dune"})

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        """Inserted documents can be read back."""
        await store.connect()

        doc_id = await store.insert(COLLECTION, {"movie_title": "Dune"})
        document = await store.get(COLLECTION, doc_id)

        assert document is not None
        assert document.id == doc_id
        assert document.get("movie_title") == "Dune"
        assert document.created_at > 0

    @pytest.mark.asyncio
    async def test_insert_explicit_id(self, store):
        """Explicit ids are kept and may not be reused."""
        await store.connect()

        doc_id = await store.insert(COLLECTION, {"movie_title": "Dune"}, doc_id="fixed")
        assert doc_id == "fixed"

        with pytest.raises(StoreError):
            await store.insert(COLLECTION, {"movie_title": "Heat"}, doc_id="fixed")

    @pytest.mark.asyncio
    async def test_query_once_insertion_order(self, store):
        """Snapshots list documents in insertion order."""
        await store.connect()
        ids = [await store.insert(COLLECTION, {"n": i}) for i in range(5)]

        snapshot = await store.query_once(COLLECTION)

        assert [d.id for d in snapshot] == ids

    @pytest.mark.asyncio
    async def test_update_merges(self, store):
        """Update merges fields into the document."""
        await store.connect()
        doc_id = await store.insert(COLLECTION, {"movie_title": "Dune", "action_taken": False})

        updated = await store.update(COLLECTION, doc_id, {"action_taken": True})

        assert updated.data == {"movie_title": "Dune", "action_taken": True}

    @pytest.mark.asyncio
    async def test_update_missing(self, store):
        """Updating a missing document raises DocumentNotFoundError."""
        await store.connect()

        with pytest.raises(DocumentNotFoundError):
            await store.update(COLLECTION, "missing", {"x": 1})

    @pytest.mark.asyncio
    async def test_delete(self, store):
        """Delete reports whether a document existed."""
        await store.connect()
        doc_id = await store.insert(COLLECTION, {"movie_title": "Dune"})

        assert await store.delete(COLLECTION, doc_id) is True
        assert await store.delete(COLLECTION, doc_id) is False
        assert await store.get(COLLECTION, doc_id) is None

    @pytest.mark.asyncio
    async def test_atomic_batch_update(self, store):
        """Batch update applies every patch."""
        await store.connect()
        ids = [await store.insert(COLLECTION, {"action_taken": False}) for _ in range(3)]

        await store.batched_update(COLLECTION, [(i, {"action_taken": True}) for i in ids])

        snapshot = await store.query_once(COLLECTION)
        assert all(d.get("action_taken") is True for d in snapshot)

    @pytest.mark.asyncio
    async def test_atomic_batch_update_missing_doc_applies_nothing(self, store):
        """An atomic batch referencing a missing document changes nothing."""
        await store.connect()
        doc_id = await store.insert(COLLECTION, {"action_taken": False})

        with pytest.raises(BatchWriteError) as exc_info:
            await store.batched_update(
                COLLECTION,
                [(doc_id, {"action_taken": True}), ("missing", {"action_taken": True})],
            )

        assert exc_info.value.partial is False
        assert exc_info.value.failed_id == "missing"
        assert (await store.get(COLLECTION, doc_id)).get("action_taken") is False

    @pytest.mark.asyncio
    async def test_atomic_batch_injected_failure(self, store):
        """Injected failures on atomic batches apply nothing."""
        await store.connect()
        ids = [await store.insert(COLLECTION, {"action_taken": False}) for _ in range(3)]
        store.inject_failure("batched_update", after=2)

        with pytest.raises(BatchWriteError) as exc_info:
            await store.batched_update(COLLECTION, [(i, {"action_taken": True}) for i in ids])

        assert exc_info.value.applied_ids == []
        snapshot = await store.query_once(COLLECTION)
        assert all(d.get("action_taken") is False for d in snapshot)

    @pytest.mark.asyncio
    async def test_non_atomic_batch_partial(self):
        """Non-atomic batches report what was written before the failure."""
        store = InMemoryDocumentStore(atomic=False)
        await store.connect()
        ids = [await store.insert(COLLECTION, {"action_taken": False}) for _ in range(3)]
        store.inject_failure("batched_update", after=2)

        with pytest.raises(BatchWriteError) as exc_info:
            await store.batched_update(COLLECTION, [(i, {"action_taken": True}) for i in ids])

        assert exc_info.value.partial is True
        assert exc_info.value.applied_ids == ids[:2]
        assert exc_info.value.failed_id == ids[2]
        states = [d.get("action_taken") for d in await store.query_once(COLLECTION)]
        assert states == [True, True, False]

    @pytest.mark.asyncio
    async def test_batched_delete(self, store):
        """Batch delete removes listed documents and counts them."""
        await store.connect()
        ids = [await store.insert(COLLECTION, {"n": i}) for i in range(4)]

        deleted = await store.batched_delete(COLLECTION, ids[:3] + ["missing"])

        assert deleted == 3
        assert [d.id for d in await store.query_once(COLLECTION)] == [ids[3]]

    @pytest.mark.asyncio
    async def test_non_atomic_batched_delete_partial(self):
        """Non-atomic batch delete reports deleted ids on failure."""
        store = InMemoryDocumentStore(atomic=False)
        await store.connect()
        ids = [await store.insert(COLLECTION, {"n": i}) for i in range(3)]
        store.inject_failure("batched_delete", after=1)

        with pytest.raises(BatchWriteError) as exc_info:
            await store.batched_delete(COLLECTION, ids)

        assert exc_info.value.applied_ids == ids[:1]
        assert store.get_document_count(COLLECTION) == 2


class TestInMemorySubscriptions:
    """Tests for snapshot subscriptions."""

    @pytest.fixture
    def store(self):
        return InMemoryDocumentStore()

    @pytest.mark.asyncio
    async def test_initial_snapshot_delivered(self, store):
        """subscribe() delivers the current snapshot before returning."""
        await store.connect()
        await store.insert(COLLECTION, {"movie_title": "Dune"})
        received = []

        await store.subscribe(COLLECTION, received.append)

        assert len(received) == 1
        assert received[0][0].get("movie_title") == "Dune"

    @pytest.mark.asyncio
    async def test_snapshot_per_write(self, store):
        """Every committed write delivers a full snapshot."""
        await store.connect()
        received = []
        await store.subscribe(COLLECTION, received.append)

        doc_id = await store.insert(COLLECTION, {"action_taken": False})
        await store.update(COLLECTION, doc_id, {"action_taken": True})
        await store.batched_delete(COLLECTION, [doc_id])

        assert [len(s) for s in received] == [0, 1, 1, 0]
        assert received[2][0].get("action_taken") is True

    @pytest.mark.asyncio
    async def test_batch_delivers_one_snapshot(self, store):
        """A batch produces a single snapshot with every change applied."""
        await store.connect()
        ids = [await store.insert(COLLECTION, {"action_taken": False}) for _ in range(3)]
        received = []
        await store.subscribe(COLLECTION, received.append)

        await store.batched_update(COLLECTION, [(i, {"action_taken": True}) for i in ids])

        assert len(received) == 2
        assert all(d.get("action_taken") for d in received[1])

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, store):
        """Writes to another collection are not delivered."""
        await store.connect()
        received = []
        await store.subscribe(COLLECTION, received.append)

        await store.insert("artifacts/test/public/data/movies", {"title": "Dune"})

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, store):
        """No snapshots arrive after unsubscribe."""
        await store.connect()
        received = []
        subscription = await store.subscribe(COLLECTION, received.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        await store.insert(COLLECTION, {"movie_title": "Dune"})

        assert len(received) == 1
        assert subscription.active is False
        assert store.subscriber_count(COLLECTION) == 0

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self, store):
        """A raising callback does not affect writers or other subscribers."""
        await store.connect()
        received = []

        def broken(snapshot):
            raise RuntimeError("boom")

        await store.subscribe(COLLECTION, broken)
        await store.subscribe(COLLECTION, received.append)

        await store.insert(COLLECTION, {"movie_title": "Dune"})

        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_close_cancels_subscriptions(self, store):
        """close() cancels every subscription."""
        await store.connect()
        subscription = await store.subscribe(COLLECTION, lambda s: None)

        await store.close()

        assert subscription.active is False
        assert store.subscriber_count() == 0
