"""
Unit tests for request models.

Tests cover:
- Timestamp parsing
- RequestRecord validation
- RequestGroup serialization
"""

from datetime import datetime, timedelta, timezone

import pytest

from cinetrack.errors import DataIntegrityError
from cinetrack.requests import AggregationResult, RequestGroup, RequestRecord, parse_timestamp
from cinetrack.requests.models import to_millis
from cinetrack.store import Document


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_unix_millis(self):
        """Integers are Unix milliseconds."""
        parsed = parse_timestamp(1_700_000_000_000)
        assert parsed == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    def test_float_millis(self):
        """Floats are accepted as milliseconds."""
        assert parse_timestamp(1500.0) == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)

    def test_iso_string_with_z(self):
        """ISO strings with a Z suffix are UTC."""
        parsed = parse_timestamp("2024-03-01T12:00:00Z")
        assert parsed == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_iso_string_with_offset(self):
        """Offsets are preserved."""
        parsed = parse_timestamp("2024-03-01T12:00:00+02:00")
        assert parsed == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_naive_datetime_is_utc(self):
        """Naive datetimes are treated as UTC."""
        parsed = parse_timestamp(datetime(2024, 3, 1, 12, 0))
        assert parsed.tzinfo is timezone.utc

    def test_aware_datetime_unchanged(self):
        """Aware datetimes pass through."""
        tz = timezone(timedelta(hours=-5))
        moment = datetime(2024, 3, 1, 12, 0, tzinfo=tz)
        assert parse_timestamp(moment) is moment

    @pytest.mark.parametrize("value", [None, True, False, "not a date", [1], {}])
    def test_rejects_invalid(self, value):
        """Unreadable values raise ValueError."""
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_to_millis_roundtrip(self):
        """to_millis inverts integer parsing."""
        assert to_millis(parse_timestamp(1_700_000_000_123)) == 1_700_000_000_123


class TestRequestRecord:
    """Tests for RequestRecord."""

    def test_from_document(self):
        """Valid documents convert to records."""
        document = Document(
            id="r1",
            data={
                "movie_title": "Dune",
                "requested_at": 1_700_000_000_000,
                "requested_by": "visitor:abc",
                "action_taken": True,
            },
        )

        record = RequestRecord.from_document(document)

        assert record.id == "r1"
        assert record.movie_title == "Dune"
        assert record.requested_by == "visitor:abc"
        assert record.action_taken is True

    def test_missing_requester_allowed(self):
        """requested_by is optional."""
        document = Document(id="r1", data={"movie_title": "Dune", "requested_at": 0})
        assert RequestRecord.from_document(document).requested_by is None

    def test_missing_title_raises(self):
        """Missing title is a data integrity error."""
        with pytest.raises(DataIntegrityError) as exc_info:
            RequestRecord.from_document(Document(id="r1", data={"requested_at": 0}))

        assert exc_info.value.doc_id == "r1"
        assert exc_info.value.field_name == "movie_title"
        assert exc_info.value.code == "DATA_INTEGRITY"

    def test_naive_requested_at_is_utc(self):
        """Naive datetimes are normalised to UTC at construction."""
        record = RequestRecord("r1", "Dune", datetime(2024, 1, 1))

        assert record.requested_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert record.requested_at.tzinfo is not None

    def test_to_data(self):
        """to_data produces storable fields."""
        record = RequestRecord(
            id="r1",
            movie_title="Dune",
            requested_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            requested_by="v",
        )

        assert record.to_data() == {
            "movie_title": "Dune",
            "requested_at": 1_704_067_200_000,
            "requested_by": "v",
            "action_taken": False,
        }


class TestRequestGroup:
    """Tests for RequestGroup and AggregationResult."""

    @pytest.fixture
    def group(self):
        return RequestGroup(
            movie_title="Dune",
            member_ids=("a", "b"),
            requester_ids=("v1", "v2"),
            latest_requested_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
            all_actioned=False,
        )

    def test_to_dict(self, group):
        """to_dict is JSON friendly."""
        assert group.to_dict() == {
            "movie_title": "Dune",
            "member_ids": ["a", "b"],
            "requester_ids": ["v1", "v2"],
            "request_count": 2,
            "latest_requested_at": "2024-01-01T00:00:00+00:00",
            "all_actioned": False,
        }

    def test_find(self, group):
        """find matches titles exactly."""
        result = AggregationResult(groups=(group,))

        assert result.find("Dune") is group
        assert result.find("dune") is None
