"""
Cache keys for the query engine.

A key names one resource on one repository. Keys are hashable and carry a
total order so that mutations can lock several of them without deadlock.
"""

import math
from dataclasses import dataclass
from enum import Enum

from reviewkit.types import StateFilter


class ResourceKind(str, Enum):
    PULL_REQUESTS = "pull_requests"
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_DIFF = "pull_request_diff"
    PULL_REQUEST_FILES = "pull_request_files"
    PULL_REQUEST_COMMITS = "pull_request_commits"
    PULL_REQUEST_COMMENTS = "pull_request_comments"
    ISSUE_COMMENTS = "issue_comments"
    PULL_REQUEST_REVIEWS = "pull_request_reviews"
    REVIEW_THREADS = "review_threads"
    CHECK_RUNS = "check_runs"
    MY_PULL_REQUESTS = "my_pull_requests"
    REVIEW_REQUESTS = "review_requests"
    INVOLVED_PULL_REQUESTS = "involved_pull_requests"
    LABELS = "labels"
    COLLABORATORS = "collaborators"
    CURRENT_USER = "current_user"


LIST_KINDS = frozenset(
    {
        ResourceKind.PULL_REQUESTS,
        ResourceKind.MY_PULL_REQUESTS,
        ResourceKind.REVIEW_REQUESTS,
        ResourceKind.INVOLVED_PULL_REQUESTS,
    }
)

USER_SCOPED_KINDS = frozenset(
    {
        ResourceKind.MY_PULL_REQUESTS,
        ResourceKind.REVIEW_REQUESTS,
        ResourceKind.INVOLVED_PULL_REQUESTS,
    }
)

# Seconds before cached data counts as stale.
LIST_STALE_TIME = 30.0
DETAIL_STALE_TIME = 60.0
REFERENCE_STALE_TIME = 300.0


def default_stale_time(kind: ResourceKind) -> float:
    if kind is ResourceKind.CURRENT_USER:
        return math.inf
    if kind in LIST_KINDS:
        return LIST_STALE_TIME
    if kind in (ResourceKind.LABELS, ResourceKind.COLLABORATORS):
        return REFERENCE_STALE_TIME
    return DETAIL_STALE_TIME


STALE_TIMES: dict[ResourceKind, float] = {kind: default_stale_time(kind) for kind in ResourceKind}


@dataclass(frozen=True)
class QueryKey:
    """
    Identity of a cached query.

    Attributes:
        kind: Resource family
        owner: Repository owner (empty for account-wide resources)
        repo: Repository name
        id: Resource identifier within the repository (PR number, ref)
        params: Extra sorted ``(name, value)`` pairs, e.g. state filter
    """

    kind: ResourceKind
    owner: str = ""
    repo: str = ""
    id: str = ""
    params: tuple[tuple[str, str], ...] = ()

    def param(self, name: str, default: str | None = None) -> str | None:
        for key, value in self.params:
            if key == name:
                return value
        return default

    def sort_key(self) -> tuple:
        """Canonical ordering used when locking several keys."""
        return (self.kind.value, self.owner, self.repo, self.id, self.params)

    def with_kind(self, kind: ResourceKind) -> "QueryKey":
        return QueryKey(kind, self.owner, self.repo, self.id, self.params)

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.owner or self.repo:
            parts.append(f"{self.owner}/{self.repo}")
        if self.id:
            parts.append(self.id)
        parts.extend(f"{k}={v}" for k, v in self.params)
        return ":".join(parts)


@dataclass(frozen=True)
class QueryFilter:
    """Prefix-style match over query keys; unset fields match anything."""

    kind: ResourceKind | None = None
    owner: str | None = None
    repo: str | None = None
    id: str | None = None

    def matches(self, key: QueryKey) -> bool:
        return (
            (self.kind is None or key.kind is self.kind)
            and (self.owner is None or key.owner == self.owner)
            and (self.repo is None or key.repo == self.repo)
            and (self.id is None or key.id == self.id)
        )


def _params(**params: object) -> tuple[tuple[str, str], ...]:
    return tuple(sorted((name, str(value)) for name, value in params.items()))


def _state(state: StateFilter | str) -> str:
    return StateFilter(state).value


def current_user_key() -> QueryKey:
    return QueryKey(ResourceKind.CURRENT_USER)


def pull_requests_key(
    owner: str, repo: str, state: StateFilter | str = StateFilter.OPEN, limit: int = 20
) -> QueryKey:
    return QueryKey(
        ResourceKind.PULL_REQUESTS, owner, repo, params=_params(limit=limit, state=_state(state))
    )


def pull_request_key(owner: str, repo: str, number: int) -> QueryKey:
    return QueryKey(ResourceKind.PULL_REQUEST, owner, repo, str(number))


def pull_request_resource_key(kind: ResourceKind, owner: str, repo: str, number: int) -> QueryKey:
    """Key for a per-PR resource such as files, comments or reviews."""
    return QueryKey(kind, owner, repo, str(number))


def check_runs_key(owner: str, repo: str, ref: str) -> QueryKey:
    return QueryKey(ResourceKind.CHECK_RUNS, owner, repo, ref)


def labels_key(owner: str, repo: str) -> QueryKey:
    return QueryKey(ResourceKind.LABELS, owner, repo)


def collaborators_key(owner: str, repo: str) -> QueryKey:
    return QueryKey(ResourceKind.COLLABORATORS, owner, repo)


def user_scoped_key(
    kind: ResourceKind, owner: str, repo: str, state: StateFilter | str = StateFilter.OPEN
) -> QueryKey:
    if kind not in USER_SCOPED_KINDS:
        raise ValueError(f"{kind.value} is not a user-scoped query")
    return QueryKey(kind, owner, repo, params=_params(state=_state(state)))


def pull_request_filter(owner: str, repo: str, number: int) -> list[QueryFilter]:
    """Filters covering every per-PR resource of one pull request."""
    return [
        QueryFilter(kind=kind, owner=owner, repo=repo, id=str(number))
        for kind in (
            ResourceKind.PULL_REQUEST,
            ResourceKind.PULL_REQUEST_DIFF,
            ResourceKind.PULL_REQUEST_FILES,
            ResourceKind.PULL_REQUEST_COMMITS,
            ResourceKind.PULL_REQUEST_COMMENTS,
            ResourceKind.ISSUE_COMMENTS,
            ResourceKind.PULL_REQUEST_REVIEWS,
            ResourceKind.REVIEW_THREADS,
        )
    ]


def list_filters(owner: str, repo: str) -> list[QueryFilter]:
    """Filters covering every pull request list of one repository."""
    return [QueryFilter(kind=kind, owner=owner, repo=repo) for kind in LIST_KINDS]
