"""
Document store abstraction for CineTrack.

This module provides a pluggable document store interface supporting:
- SQLite (single file per app id, transactional batches)
- In-memory (for testing and local development)

The store holds the catalog and request collections and pushes full
collection snapshots to subscribers after every committed write.

Invariants:
    - Subscribers receive complete snapshots, never diffs
    - Snapshots arrive in commit order
    - Batched writes on atomic stores never partially apply

How to change safely:
    - New backends must implement the DocumentStore protocol
    - Backends without cross-document transactions must report
      atomic_batches=False and list applied ids in BatchWriteError
"""

from .base import (
    BatchWriteError,
    Document,
    DocumentNotFoundError,
    DocumentStore,
    SnapshotCallback,
    StoreConnectionError,
    StoreError,
    Subscription,
    create_document_store,
)
from .memory import InMemoryDocumentStore
from .sqlite import SqliteDocumentStore

__all__ = [
    # Protocol and types
    "DocumentStore",
    "Document",
    "Subscription",
    "SnapshotCallback",
    "StoreError",
    "StoreConnectionError",
    "DocumentNotFoundError",
    "BatchWriteError",
    # Factory
    "create_document_store",
    # Implementations
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
]
