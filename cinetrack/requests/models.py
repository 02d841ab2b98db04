"""
Request data model.

RequestRecord is the stored, per-visitor request. RequestGroup is the
derived aggregate over all records sharing one title; it is recomputed from
every snapshot and never persisted.

Stored document fields:
    movie_title   str   grouping key, compared byte-for-byte
    requested_at  int   Unix ms (datetime and ISO-8601 strings also read)
    requested_by  str   visitor session id
    action_taken  bool  absent or null reads as False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from ..errors import DataIntegrityError
from ..store import Document


def parse_timestamp(value: Any) -> datetime:
    """Interpret a stored timestamp as an aware UTC datetime.

    Args:
        value: Unix milliseconds, a datetime, or an ISO-8601 string

    Returns:
        Timezone-aware datetime

    Raises:
        ValueError: If the value cannot be interpreted
    """
    # bool is an int subclass
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a timestamp: {value!r}")

    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as e:
            raise ValueError(f"timestamp out of range: {value!r}") from e

    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    raise ValueError(f"unsupported timestamp type: {type(value).__name__}")


def to_millis(moment: datetime) -> int:
    """Unix milliseconds for an aware or naive (UTC) datetime."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class RequestRecord:
    """A single visitor request.

    Attributes:
        id: Store-assigned document id
        movie_title: Requested title (grouping key)
        requested_at: Creation time
        requested_by: Visitor session id
        action_taken: Whether the administrator has handled it
    """

    id: str
    movie_title: str
    requested_at: datetime
    requested_by: str | None = None
    action_taken: bool = False

    def __post_init__(self) -> None:
        # Naive datetimes are UTC, as for stored documents
        object.__setattr__(self, "requested_at", parse_timestamp(self.requested_at))

    @classmethod
    def from_document(cls, document: Document) -> RequestRecord:
        """Validate and convert a stored document.

        Raises:
            DataIntegrityError: If the document does not describe a request
        """
        title = document.get("movie_title")
        if not isinstance(title, str) or not title:
            raise DataIntegrityError(
                f"Request {document.id} has no title",
                doc_id=document.id,
                field_name="movie_title",
            )

        try:
            requested_at = parse_timestamp(document.get("requested_at"))
        except ValueError as e:
            raise DataIntegrityError(
                f"Request {document.id} has an unreadable timestamp: {e}",
                doc_id=document.id,
                field_name="requested_at",
            ) from e

        action_taken = document.get("action_taken")
        if action_taken is None:
            action_taken = False
        elif not isinstance(action_taken, bool):
            raise DataIntegrityError(
                f"Request {document.id} has a non-boolean action flag: {action_taken!r}",
                doc_id=document.id,
                field_name="action_taken",
            )

        return cls(
            id=document.id,
            movie_title=title,
            requested_at=requested_at,
            requested_by=document.get("requested_by"),
            action_taken=action_taken,
        )

    def to_data(self) -> dict[str, Any]:
        """Document fields (without id) for storage."""
        return {
            "movie_title": self.movie_title,
            "requested_at": to_millis(self.requested_at),
            "requested_by": self.requested_by,
            "action_taken": self.action_taken,
        }


@dataclass(frozen=True)
class RequestGroup:
    """All requests for one title, merged.

    Attributes:
        movie_title: Grouping key, unique within one aggregation result
        member_ids: Request ids in snapshot order
        requester_ids: Requesting visitors, parallel to member_ids
        latest_requested_at: Most recent request time among members
        all_actioned: True iff every member has action_taken set
    """

    movie_title: str
    member_ids: tuple[str, ...]
    requester_ids: tuple[str | None, ...]
    latest_requested_at: datetime
    all_actioned: bool

    @property
    def request_count(self) -> int:
        return len(self.member_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "movie_title": self.movie_title,
            "member_ids": list(self.member_ids),
            "requester_ids": list(self.requester_ids),
            "request_count": self.request_count,
            "latest_requested_at": self.latest_requested_at.isoformat(),
            "all_actioned": self.all_actioned,
        }


@dataclass(frozen=True)
class RecordIssue:
    """A record excluded from aggregation.

    Attributes:
        doc_id: Offending document id
        field_name: Field that failed validation
        message: Human-readable description
    """

    doc_id: str | None
    field_name: str | None
    message: str

    @classmethod
    def from_error(cls, error: DataIntegrityError) -> RecordIssue:
        return cls(doc_id=error.doc_id, field_name=error.field_name, message=error.message)


@dataclass(frozen=True)
class AggregationResult:
    """Ordered groups plus the records that could not be used.

    Attributes:
        groups: Groups in display order
        issues: Data-integrity problems found in the snapshot
    """

    groups: tuple[RequestGroup, ...] = ()
    issues: tuple[RecordIssue, ...] = field(default=())

    def find(self, movie_title: str) -> RequestGroup | None:
        """Group for an exact title, or None."""
        for group in self.groups:
            if group.movie_title == movie_title:
                return group
        return None

    def __len__(self) -> int:
        return len(self.groups)
