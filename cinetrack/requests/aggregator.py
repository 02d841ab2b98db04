"""
Request aggregation.

Pure functions with no I/O - fully testable. A live view calls
aggregate_requests() with every snapshot of the requests collection and
replaces its previous result wholesale.

Ordering:
    1. Groups with any un-actioned request come before fully actioned ones
    2. Within each of those partitions, most recent request first
    3. Full ties keep first-seen order (sorts are stable)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from operator import attrgetter

from ..errors import DataIntegrityError
from ..store import Document
from .models import AggregationResult, RecordIssue, RequestGroup, RequestRecord

logger = logging.getLogger(__name__)


@dataclass
class _GroupBuilder:
    """Mutable accumulator for one title during a single pass."""

    movie_title: str
    member_ids: list[str] = field(default_factory=list)
    requester_ids: list[str | None] = field(default_factory=list)
    latest_requested_at: datetime | None = None
    all_actioned: bool = True

    def add(self, record: RequestRecord) -> None:
        self.member_ids.append(record.id)
        self.requester_ids.append(record.requested_by)
        if self.latest_requested_at is None or record.requested_at > self.latest_requested_at:
            self.latest_requested_at = record.requested_at
        if not record.action_taken:
            self.all_actioned = False

    def build(self) -> RequestGroup:
        return RequestGroup(
            movie_title=self.movie_title,
            member_ids=tuple(self.member_ids),
            requester_ids=tuple(self.requester_ids),
            latest_requested_at=self.latest_requested_at,
            all_actioned=self.all_actioned,
        )


def group_records(records: Iterable[RequestRecord]) -> list[RequestGroup]:
    """Partition records by exact title, preserving first-seen order.

    Args:
        records: Validated request records

    Returns:
        Unsorted groups, one per distinct title
    """
    builders: dict[str, _GroupBuilder] = {}
    for record in records:
        builder = builders.get(record.movie_title)
        if builder is None:
            builder = builders[record.movie_title] = _GroupBuilder(record.movie_title)
        builder.add(record)
    return [builder.build() for builder in builders.values()]


def sort_groups(groups: Iterable[RequestGroup]) -> list[RequestGroup]:
    """Order groups un-actioned first, then most recent first.

    Two stable passes: the secondary key first, then the primary key.
    """
    by_recency = sorted(groups, key=attrgetter("latest_requested_at"), reverse=True)
    return sorted(by_recency, key=attrgetter("all_actioned"))


def aggregate_requests(
    documents: Iterable[Document | RequestRecord],
) -> AggregationResult:
    """Turn a requests snapshot into ordered groups.

    Documents that fail validation are excluded and reported as issues;
    the rest of the snapshot is still aggregated.

    Args:
        documents: Full snapshot of the requests collection (raw documents
            or already validated records)

    Returns:
        AggregationResult with ordered groups and any integrity issues

    Example:
        >>> result = aggregate_requests(snapshot)
        >>> [g.movie_title for g in result.groups]
        ['Dune', 'Arrival']
    """
    records: list[RequestRecord] = []
    issues: list[RecordIssue] = []

    for item in documents:
        if isinstance(item, RequestRecord):
            records.append(item)
            continue
        try:
            records.append(RequestRecord.from_document(item))
        except DataIntegrityError as e:
            issues.append(RecordIssue.from_error(e))

    if issues:
        logger.warning(
            f"Excluded {len(issues)} malformed request record(s) from aggregation",
            extra={"doc_ids": [issue.doc_id for issue in issues]},
        )

    return AggregationResult(
        groups=tuple(sort_groups(group_records(records))),
        issues=tuple(issues),
    )
