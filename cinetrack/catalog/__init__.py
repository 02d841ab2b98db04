"""
Public movie/series catalog for CineTrack.
"""

from .models import STARTER_TITLES, CatalogEntry, poster_placeholder
from .service import CatalogFeed, CatalogService, entries_from_documents, filter_entries

__all__ = [
    "CatalogEntry",
    "CatalogFeed",
    "CatalogService",
    "STARTER_TITLES",
    "entries_from_documents",
    "filter_entries",
    "poster_placeholder",
]
