"""
Visitor requests for CineTrack.

This module handles:
- Request records and derived request groups
- Aggregation of a requests snapshot into ordered groups
- Atomic group actions (toggle done/undone, delete) and submissions
- The live request feed used by the administrator panel

Invariants:
    - Groups exactly partition the valid records of a snapshot by title
    - Un-actioned groups sort before actioned ones, then most recent first
    - Group actions never leave a group in a reported-successful mixed state
"""

from .actions import RequestActionExecutor
from .aggregator import aggregate_requests, group_records, sort_groups
from .feed import RequestFeed
from .models import (
    AggregationResult,
    RecordIssue,
    RequestGroup,
    RequestRecord,
    parse_timestamp,
)

__all__ = [
    "RequestRecord",
    "RequestGroup",
    "RecordIssue",
    "AggregationResult",
    "parse_timestamp",
    "aggregate_requests",
    "group_records",
    "sort_groups",
    "RequestActionExecutor",
    "RequestFeed",
]
