"""
SQLite document store for CineTrack.

This module manages the per-application SQLite database that stores every
collection's documents as JSON rows.

Invariants:
    - One SQLite file per app id
    - Every write runs in a single transaction
    - Batched writes are atomic: all listed documents change or none do
    - Collection iteration order is insertion order (seq column)
    - Subscribers are notified after COMMIT, under the store lock

How to change safely:
    - Schema migrations must be backward compatible
    - Use transactions for all write operations
    - Keep notification after commit so snapshots never show rolled-back data

Table schema:
    documents:
        - collection TEXT
        - doc_id TEXT
        - data_json TEXT
        - seq INTEGER (insertion order within collection)
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (collection, doc_id)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

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


class SqliteDocumentStore:
    """SQLite-backed document store with live subscriptions.

    Thread safety:
        Each database connection is created per-operation.
        Writes and snapshot delivery are serialized by an asyncio lock.

    Example:
        >>> store = SqliteDocumentStore("/var/lib/cinetrack", app_id="demo")
        >>> await store.connect()
        >>> doc_id = await store.insert("movies", {"title": "Dune"})
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        app_id: str = "default-movie-app",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for the SQLite database file
            app_id: Application identifier (selects the database file)
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.app_id = app_id
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._subscribers = SubscriberRegistry()
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def atomic_batches(self) -> bool:
        return True

    @property
    def db_path(self) -> Path:
        """Database file path for this app id."""
        # Sanitize app_id to prevent path traversal
        safe_id = "".join(c for c in self.app_id if c.isalnum() or c in "-_")
        return self.data_dir / f"cinetrack_{safe_id}.db"

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection.

        Yields:
            SQLite connection in autocommit mode (explicit transactions)

        Raises:
            StoreConnectionError: If the store is not connected
        """
        if not self._connected:
            raise StoreConnectionError("Not connected")

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS documents (
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data_json TEXT NOT NULL DEFAULT '{}',
                seq INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (collection, doc_id)
            );

            CREATE INDEX IF NOT EXISTS idx_documents_seq ON documents(collection, seq);
        """)
        conn.execute(
            "INSERT OR IGNORE INTO schema_version (version, applied_at) VALUES (?, ?)",
            (self.SCHEMA_VERSION, int(time.time() * 1000)),
        )

    def schema_version(self) -> int:
        """Highest schema version applied to the database."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
            return row[0] or 0

    async def connect(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._lock:
            try:
                self.data_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreConnectionError(f"Cannot create data directory {self.data_dir}: {e}")
            self._connected = True
            try:
                with self._get_connection() as conn:
                    self._create_schema(conn)
            except sqlite3.Error as e:
                self._connected = False
                raise StoreConnectionError(f"Cannot open database {self.db_path}: {e}")
        logger.info(f"Opened document store: {self.db_path}")

    async def close(self) -> None:
        """Cancel all subscriptions and stop accepting operations."""
        self._subscribers.clear()
        self._connected = False
        logger.debug("SqliteDocumentStore closed")

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=row["doc_id"],
            data=json.loads(row["data_json"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _read_collection(self, conn: sqlite3.Connection, collection: str) -> list[Document]:
        cursor = conn.execute(
            "SELECT * FROM documents WHERE collection = ? ORDER BY seq",
            (collection,),
        )
        return [self._row_to_document(row) for row in cursor.fetchall()]

    def _publish(self, collection: str) -> None:
        # Runs after COMMIT; errors here must not fail the write
        if not self._subscribers.has_subscribers(collection):
            return
        try:
            with self._get_connection() as conn:
                snapshot = self._read_collection(conn, collection)
        except sqlite3.Error as e:
            logger.error(
                f"Snapshot read after commit failed: {e}",
                extra={"collection": collection},
                exc_info=True,
            )
            return
        self._subscribers.notify(collection, snapshot)

    async def insert(
        self,
        collection: str,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> str:
        doc_id = doc_id or uuid.uuid4().hex
        now = int(time.time() * 1000)

        async with self._lock:
            try:
                with self._transaction() as conn:
                    cursor = conn.execute(
                        "SELECT COALESCE(MAX(seq), 0) + 1 FROM documents WHERE collection = ?",
                        (collection,),
                    )
                    seq = cursor.fetchone()[0]
                    conn.execute(
                        """
                        INSERT INTO documents
                        (collection, doc_id, data_json, seq, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                        """,
                        (collection, doc_id, json.dumps(data), seq, now, now),
                    )
            except sqlite3.IntegrityError:
                raise StoreError(f"Document already exists: {collection}/{doc_id}")
            except sqlite3.Error as e:
                raise StoreError(f"Insert failed: {e}") from e
            self._publish(collection)

        logger.debug("Inserted document", extra={"collection": collection, "doc_id": doc_id})
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Document | None:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT * FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            row = cursor.fetchone()
            return self._row_to_document(row) if row else None

    async def query_once(self, collection: str) -> list[Document]:
        with self._get_connection() as conn:
            return self._read_collection(conn, collection)

    def _merge_patch(
        self,
        conn: sqlite3.Connection,
        collection: str,
        doc_id: str,
        patch: dict[str, Any],
        now: int,
    ) -> Document:
        cursor = conn.execute(
            "SELECT * FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        )
        row = cursor.fetchone()
        if not row:
            raise DocumentNotFoundError(collection, doc_id)

        data = json.loads(row["data_json"])
        data.update(patch)
        conn.execute(
            """
            UPDATE documents SET data_json = ?, updated_at = ?
            WHERE collection = ? AND doc_id = ?
            """,
            (json.dumps(data), now, collection, doc_id),
        )
        return Document(id=doc_id, data=data, created_at=row["created_at"], updated_at=now)

    async def update(
        self,
        collection: str,
        doc_id: str,
        patch: dict[str, Any],
    ) -> Document:
        now = int(time.time() * 1000)
        async with self._lock:
            try:
                with self._transaction() as conn:
                    document = self._merge_patch(conn, collection, doc_id, patch, now)
            except sqlite3.Error as e:
                raise StoreError(f"Update failed: {e}") from e
            self._publish(collection)
        return document

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            try:
                with self._transaction() as conn:
                    cursor = conn.execute(
                        "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                        (collection, doc_id),
                    )
                    deleted = cursor.rowcount > 0
            except sqlite3.Error as e:
                raise StoreError(f"Delete failed: {e}") from e
            if deleted:
                self._publish(collection)
        return deleted

    async def batched_update(
        self,
        collection: str,
        patches: Sequence[tuple[str, dict[str, Any]]],
    ) -> None:
        now = int(time.time() * 1000)
        async with self._lock:
            try:
                with self._transaction() as conn:
                    for doc_id, patch in patches:
                        self._merge_patch(conn, collection, doc_id, patch, now)
            except DocumentNotFoundError as e:
                raise BatchWriteError(str(e), failed_id=e.doc_id) from e
            except sqlite3.Error as e:
                raise BatchWriteError(f"Batch update failed: {e}") from e
            self._publish(collection)

        logger.debug(
            "Batch update committed",
            extra={"collection": collection, "count": len(patches)},
        )

    async def batched_delete(self, collection: str, doc_ids: Sequence[str]) -> int:
        async with self._lock:
            try:
                with self._transaction() as conn:
                    deleted = 0
                    for doc_id in doc_ids:
                        cursor = conn.execute(
                            "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                            (collection, doc_id),
                        )
                        deleted += cursor.rowcount
            except sqlite3.Error as e:
                raise BatchWriteError(f"Batch delete failed: {e}") from e
            if deleted:
                self._publish(collection)

        logger.debug(
            "Batch delete committed",
            extra={"collection": collection, "count": deleted},
        )
        return deleted

    async def subscribe(self, collection: str, callback: SnapshotCallback) -> Subscription:
        async with self._lock:
            with self._get_connection() as conn:
                snapshot = self._read_collection(conn, collection)
            subscription = self._subscribers.add(collection, callback)
            subscription.deliver(snapshot)
        logger.debug("Subscribed", extra={"collection": collection})
        return subscription

    async def get_stats(self) -> dict[str, int]:
        """Document counts per collection."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT collection, COUNT(*) FROM documents GROUP BY collection"
            )
            return {row[0]: row[1] for row in cursor.fetchall()}
