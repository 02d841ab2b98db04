"""
Unit tests for catalog models and search.
"""

from cinetrack.catalog import (
    STARTER_TITLES,
    CatalogEntry,
    entries_from_documents,
    filter_entries,
    poster_placeholder,
)
from cinetrack.store import Document


class TestFilterEntries:
    """Tests for filter_entries."""

    ENTRIES = [
        CatalogEntry("1", "The Matrix"),
        CatalogEntry("2", "The Dark Knight"),
        CatalogEntry("3", "Inception"),
    ]

    def test_no_search_returns_all(self):
        """Empty or missing search returns every entry."""
        assert filter_entries(self.ENTRIES, None) == self.ENTRIES
        assert filter_entries(self.ENTRIES, "") == self.ENTRIES

    def test_case_insensitive_substring(self):
        """Search matches any part of the title, ignoring case."""
        assert [e.id for e in filter_entries(self.ENTRIES, "the")] == ["1", "2"]
        assert [e.id for e in filter_entries(self.ENTRIES, "CEPT")] == ["3"]

    def test_no_match(self):
        """Unmatched search returns nothing."""
        assert filter_entries(self.ENTRIES, "dune") == []


class TestCatalogModels:
    """Tests for CatalogEntry and helpers."""

    def test_from_document(self):
        """Documents convert to entries; missing fields become empty."""
        entries = entries_from_documents(
            [
                Document(id="a", data={"title": "Dune", "poster_url": "https://x/dune.jpg"}),
                Document(id="b", data={}),
            ]
        )

        assert entries[0] == CatalogEntry("a", "Dune", "https://x/dune.jpg")
        assert entries[1] == CatalogEntry("b", "", "")

    def test_poster_placeholder(self):
        """Placeholder URLs encode spaces as plus signs."""
        url = poster_placeholder("The Dark Knight")
        assert url.startswith("https://placehold.co/")
        assert url.endswith("text=The+Dark+Knight")

    def test_starter_titles(self):
        """Six starter titles ship with the catalog."""
        assert len(STARTER_TITLES) == 6
        assert "Stranger Things" in STARTER_TITLES
