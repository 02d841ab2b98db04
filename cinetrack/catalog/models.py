"""
Catalog data model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..store import Document


@dataclass(frozen=True)
class CatalogEntry:
    """A title in the public catalog.

    Attributes:
        id: Store-assigned document id
        title: Display title, also the key visitor requests are grouped by
        poster_url: Poster image location (not validated as a URL)
    """

    id: str
    title: str
    poster_url: str = ""

    @classmethod
    def from_document(cls, document: Document) -> CatalogEntry:
        return cls(
            id=document.id,
            title=str(document.get("title") or ""),
            poster_url=str(document.get("poster_url") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "poster_url": self.poster_url}


def poster_placeholder(title: str) -> str:
    """Placeholder poster URL showing the title."""
    return f"https://placehold.co/400x600/0f172a/ffffff?text={title.replace(' ', '+')}"


STARTER_TITLES: tuple[str, ...] = (
    "Inception",
    "The Matrix",
    "Interstellar",
    "Parasite",
    "The Dark Knight",
    "Stranger Things",
)
