"""
Catalog management.

CatalogService wraps the movies collection: public reads and search,
administrator add/edit/delete, and the one-time starter seed.

Invariants:
    - Titles are stored as entered; search is case-insensitive substring
    - Both title and poster URL are required (trimmed non-empty) on add
    - Seeding only happens when the collection is empty
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..context import AppContext
from ..errors import MutationError, NotFoundError, ValidationError
from ..live import LiveView
from ..store import Document, DocumentNotFoundError, StoreError
from .models import STARTER_TITLES, CatalogEntry, poster_placeholder

logger = logging.getLogger(__name__)


def entries_from_documents(documents: Iterable[Document]) -> list[CatalogEntry]:
    return [CatalogEntry.from_document(doc) for doc in documents]


def filter_entries(entries: Iterable[CatalogEntry], search: str | None) -> list[CatalogEntry]:
    """Entries whose title contains ``search``, ignoring case."""
    if not search:
        return list(entries)
    needle = search.lower()
    return [entry for entry in entries if needle in entry.title.lower()]


class CatalogFeed(LiveView[list[CatalogEntry]]):
    """Live catalog listing."""

    def __init__(self, context: AppContext) -> None:
        super().__init__(context.store, context.catalog_path, entries_from_documents)

    @property
    def entries(self) -> list[CatalogEntry]:
        return self.value or []


class CatalogService:
    """CRUD over the movies collection.

    Example:
        >>> catalog = CatalogService(context)
        >>> await catalog.seed_if_empty()
        >>> entry = await catalog.add_entry("Dune", "https://example.com/dune.jpg")
        >>> [e.title for e in await catalog.list_entries(search="dun")]
        ['Dune']
    """

    def __init__(self, context: AppContext) -> None:
        self.context = context
        self.store = context.store
        self.collection = context.catalog_path

    async def list_entries(self, search: str | None = None) -> list[CatalogEntry]:
        documents = await self.store.query_once(self.collection)
        return filter_entries(entries_from_documents(documents), search)

    async def get_entry(self, entry_id: str) -> CatalogEntry:
        document = await self.store.get(self.collection, entry_id)
        if document is None:
            raise NotFoundError(f"Catalog entry not found: {entry_id}", "catalog_entry", entry_id)
        return CatalogEntry.from_document(document)

    async def add_entry(self, title: str, poster_url: str) -> CatalogEntry:
        """Add a title.

        Raises:
            ValidationError: If either field is blank
            MutationError: If the store rejects the insert
        """
        if not title or not title.strip() or not poster_url or not poster_url.strip():
            raise ValidationError(
                "Please fill out both fields.",
                errors=[
                    name
                    for name, value in (("title", title), ("poster_url", poster_url))
                    if not value or not value.strip()
                ],
            )

        try:
            entry_id = await self.store.insert(
                self.collection, {"title": title, "poster_url": poster_url}
            )
        except StoreError as e:
            raise MutationError("Failed to add movie.", "add_entry") from e

        logger.info("Catalog entry added", extra={"entry_id": entry_id, "title": title})
        return CatalogEntry(id=entry_id, title=title, poster_url=poster_url)

    async def edit_entry(
        self,
        entry_id: str,
        title: str | None = None,
        poster_url: str | None = None,
    ) -> CatalogEntry:
        """Change an entry's title and/or poster.

        Raises:
            ValidationError: If nothing is changed or the title is blank
            NotFoundError: If the entry doesn't exist
        """
        patch: dict[str, str] = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("Title must not be empty", field_name="title")
            patch["title"] = title
        if poster_url is not None:
            patch["poster_url"] = poster_url
        if not patch:
            raise ValidationError("Nothing to update")

        try:
            document = await self.store.update(self.collection, entry_id, patch)
        except DocumentNotFoundError as e:
            raise NotFoundError(
                f"Catalog entry not found: {entry_id}", "catalog_entry", entry_id
            ) from e
        except StoreError as e:
            raise MutationError("Failed to update movie.", "edit_entry", [entry_id]) from e

        logger.info("Catalog entry updated", extra={"entry_id": entry_id, "fields": list(patch)})
        return CatalogEntry.from_document(document)

    async def delete_entry(self, entry_id: str) -> None:
        """Remove an entry.

        Raises:
            NotFoundError: If the entry doesn't exist
        """
        try:
            deleted = await self.store.delete(self.collection, entry_id)
        except StoreError as e:
            raise MutationError("Failed to delete movie.", "delete_entry", [entry_id]) from e
        if not deleted:
            raise NotFoundError(f"Catalog entry not found: {entry_id}", "catalog_entry", entry_id)
        logger.info("Catalog entry deleted", extra={"entry_id": entry_id})

    async def seed_if_empty(self) -> int:
        """Insert the starter titles into an empty catalog.

        Failures are logged, not raised.

        Returns:
            Number of entries inserted
        """
        inserted = 0
        try:
            if await self.store.query_once(self.collection):
                return 0
            logger.info("Seeding initial movie data...")
            for title in STARTER_TITLES:
                await self.store.insert(
                    self.collection,
                    {"title": title, "poster_url": poster_placeholder(title)},
                )
                inserted += 1
        except StoreError as e:
            logger.error(f"Error seeding movie data: {e}", extra={"inserted": inserted})
        return inserted
