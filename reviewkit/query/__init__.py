"""Cache-backed query and optimistic mutation engine."""

from reviewkit.query.cache import QueryCache, QueryEntry, QueryStatus
from reviewkit.query.client import OptimisticUpdate, QueryClient, Snapshot
from reviewkit.query.keys import (
    LIST_KINDS,
    STALE_TIMES,
    USER_SCOPED_KINDS,
    QueryFilter,
    QueryKey,
    ResourceKind,
)
from reviewkit.query.population import (
    CrossPopulation,
    filter_my_pull_requests,
    filter_review_requests,
    merge_pull_request_lists,
)

__all__ = [
    "CrossPopulation",
    "LIST_KINDS",
    "OptimisticUpdate",
    "QueryCache",
    "QueryClient",
    "QueryEntry",
    "QueryFilter",
    "QueryKey",
    "QueryStatus",
    "ResourceKind",
    "STALE_TIMES",
    "Snapshot",
    "USER_SCOPED_KINDS",
    "filter_my_pull_requests",
    "filter_review_requests",
    "merge_pull_request_lists",
]
