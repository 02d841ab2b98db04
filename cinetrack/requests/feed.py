"""
Live request panel feed.

RequestFeed is the administrator's view of the requests collection: a
LiveView whose transform is aggregate_requests(). Presentation code reads
``groups`` and calls the executor; the next snapshot brings the result.
"""

from __future__ import annotations

import logging

from ..context import AppContext
from ..live import LiveView
from .aggregator import aggregate_requests
from .models import AggregationResult, RecordIssue, RequestGroup

logger = logging.getLogger(__name__)


class RequestFeed(LiveView[AggregationResult]):
    """Ordered request groups, recomputed on every snapshot.

    Example:
        >>> async with RequestFeed(context) as feed:
        ...     for group in feed.groups:
        ...         print(group.movie_title, group.request_count)
    """

    def __init__(self, context: AppContext) -> None:
        super().__init__(context.store, context.requests_path, aggregate_requests)

    @property
    def result(self) -> AggregationResult:
        return self.value or AggregationResult()

    @property
    def groups(self) -> tuple[RequestGroup, ...]:
        return self.result.groups

    @property
    def issues(self) -> tuple[RecordIssue, ...]:
        return self.result.issues

    def find(self, movie_title: str) -> RequestGroup | None:
        return self.result.find(movie_title)
