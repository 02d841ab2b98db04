"""
Application context for CineTrack.

The AppContext bundles the configuration and the document store handle and
is passed explicitly to every component that touches the store. Tests build
one around an InMemoryDocumentStore.

Invariants:
    - Collection paths are derived from app_id only
    - A context owns its store: open() connects it, close() closes it
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .config import AppConfig
from .store import DocumentStore, create_document_store

logger = logging.getLogger(__name__)


def collection_path(app_id: str, name: str) -> str:
    """Path of a public data collection for an app id."""
    return f"artifacts/{app_id}/public/data/{name}"


@dataclass
class AppContext:
    """Explicit runtime context.

    Attributes:
        config: Application configuration
        store: Document store shared by catalog and requests

    Example:
        >>> context = AppContext.from_config(AppConfig.from_env())
        >>> await context.open()
        >>> context.requests_path
        'artifacts/default-movie-app/public/data/requests'
    """

    config: AppConfig
    store: DocumentStore

    @classmethod
    def from_config(cls, config: AppConfig) -> AppContext:
        return cls(config=config, store=create_document_store(config))

    @property
    def app_id(self) -> str:
        return self.config.app_id

    @property
    def catalog_path(self) -> str:
        return collection_path(self.config.app_id, "movies")

    @property
    def requests_path(self) -> str:
        return collection_path(self.config.app_id, "requests")

    async def open(self) -> None:
        if not self.store.is_connected:
            await self.store.connect()
            logger.info("Document store connected", extra={"app_id": self.app_id})

    async def close(self) -> None:
        if self.store.is_connected:
            await self.store.close()
            logger.info("Document store closed", extra={"app_id": self.app_id})
