"""
Cross-population of the user-scoped pull request lists.

"Involved" is the union of "mine" and "review requests", so a fetch of one
side can fill the others without a network round trip:

* involved -> mine, involved -> review requests (by filtering)
* mine + review requests -> involved (by merging, when both are fresh)

Edges only run after a network fetch and only write into keys that are not
already fresh. Populated writes do not trigger further population. The
involved -> review requests edge is skipped for backends whose involved
results do not list requested reviewers (search hits carry none).
"""

from collections.abc import Iterable

from reviewkit.logging import log_cache_event
from reviewkit.query.cache import QueryCache
from reviewkit.query.keys import (
    USER_SCOPED_KINDS,
    QueryKey,
    ResourceKind,
    current_user_key,
)
from reviewkit.types import PullRequest, User


def filter_my_pull_requests(prs: Iterable[PullRequest], login: str) -> tuple[PullRequest, ...]:
    return tuple(pr for pr in prs if pr.author.login == login)


def filter_review_requests(prs: Iterable[PullRequest], login: str) -> tuple[PullRequest, ...]:
    return tuple(
        pr for pr in prs if any(reviewer.login == login for reviewer in pr.requested_reviewers)
    )


def merge_pull_request_lists(
    first: Iterable[PullRequest], second: Iterable[PullRequest]
) -> tuple[PullRequest, ...]:
    """Concatenate two lists, dropping numbers already seen. Order is kept."""
    merged = []
    seen = set()
    for pr in (*first, *second):
        if pr.number in seen:
            continue
        seen.add(pr.number)
        merged.append(pr)
    return tuple(merged)


class CrossPopulation:
    """
    Fetch hook that fills sibling user-scoped lists from a fresh result.

    Attributes:
        review_requests_from_involved: Derive review requests from an
            involved result. Turn off when involved pull requests arrive
            without their requested reviewers.
    """

    def __init__(self, cache: QueryCache, review_requests_from_involved: bool = True) -> None:
        self.cache = cache
        self.review_requests_from_involved = review_requests_from_involved

    def current_user(self) -> User | None:
        return self.cache.get_data(current_user_key())

    def __call__(self, key: QueryKey, data: object) -> list[QueryKey]:
        """
        Run the population edges leaving ``key``.

        Returns:
            Keys that were written
        """
        if key.kind not in USER_SCOPED_KINDS:
            return []
        user = self.current_user()
        if user is None:
            return []
        if key.kind is ResourceKind.INVOLVED_PULL_REQUESTS:
            return self._from_involved(key, data, user.login)
        return self._to_involved(key)

    def _from_involved(self, key: QueryKey, prs, login: str) -> list[QueryKey]:
        edges = [(ResourceKind.MY_PULL_REQUESTS, filter_my_pull_requests)]
        if self.review_requests_from_involved:
            edges.append((ResourceKind.REVIEW_REQUESTS, filter_review_requests))
        written = []
        for kind, derive in edges:
            target = key.with_kind(kind)
            if self.cache.is_fresh(target):
                continue
            self.cache.set_data(target, derive(prs, login))
            log_cache_event("populate", str(target), f"from {key}")
            written.append(target)
        return written

    def _to_involved(self, key: QueryKey) -> list[QueryKey]:
        target = key.with_kind(ResourceKind.INVOLVED_PULL_REQUESTS)
        if self.cache.is_fresh(target):
            return []
        mine = key.with_kind(ResourceKind.MY_PULL_REQUESTS)
        requested = key.with_kind(ResourceKind.REVIEW_REQUESTS)
        if not (self.cache.is_fresh(mine) and self.cache.is_fresh(requested)):
            return []
        self.cache.set_data(
            target,
            merge_pull_request_lists(self.cache.get_data(mine), self.cache.get_data(requested)),
        )
        log_cache_event("populate", str(target), f"from {mine} + {requested}")
        return [target]
