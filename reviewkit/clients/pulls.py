"""Pull requests resource client."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from reviewkit.query import OptimisticUpdate, QueryFilter, ResourceKind
from reviewkit.query.keys import (
    LIST_KINDS,
    labels_key,
    list_filters,
    pull_request_filter,
    pull_request_key,
    pull_request_resource_key,
    pull_requests_key,
    user_scoped_key,
)
from reviewkit.query.optimistic import (
    mark_closed,
    mark_merged,
    mark_reopened,
    replace_in_list,
    replace_labels,
)
from reviewkit.types import (
    Commit,
    FileChange,
    Label,
    ListPullRequestsOptions,
    MergeMethod,
    MergeResult,
    PullRequest,
    StateFilter,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class PullsClient:
    """Client for pull request reads and state changes."""

    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        """
        Initialize the pulls client.

        Args:
            provider: Backend adapter
            queries: Query engine holding the cache
        """
        self.provider = provider
        self.queries = queries

    async def list(
        self,
        owner: str,
        repo: str,
        state: StateFilter | str = StateFilter.OPEN,
        limit: int = 20,
    ) -> tuple[PullRequest, ...]:
        """
        List pull requests of a repository.

        Args:
            owner: Repository owner (Azure: "org/project")
            repo: Repository name
            state: "open", "closed" (merged included) or "all"
            limit: Maximum results, clamped to the backend's page cap

        Returns:
            Pull requests, most recently updated first where the backend sorts
        """
        options = ListPullRequestsOptions(state=state, limit=limit)
        return await self.queries.fetch_query(
            pull_requests_key(owner, repo, options.state, options.limit),
            lambda: self.provider.list_pull_requests(owner, repo, options),
        )

    async def get(self, owner: str, repo: str, number: int) -> PullRequest:
        return await self.queries.fetch_query(
            pull_request_key(owner, repo, number),
            lambda: self.provider.get_pull_request(owner, repo, number),
        )

    async def diff(self, owner: str, repo: str, number: int) -> str:
        """Return the unified diff of a pull request."""
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.PULL_REQUEST_DIFF, owner, repo, number),
            lambda: self.provider.get_pull_request_diff(owner, repo, number),
        )

    async def files(self, owner: str, repo: str, number: int) -> tuple[FileChange, ...]:
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.PULL_REQUEST_FILES, owner, repo, number),
            lambda: self.provider.get_pull_request_files(owner, repo, number),
        )

    async def commits(self, owner: str, repo: str, number: int) -> tuple[Commit, ...]:
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.PULL_REQUEST_COMMITS, owner, repo, number),
            lambda: self.provider.get_pull_request_commits(owner, repo, number),
        )

    async def mine(
        self, owner: str, repo: str, state: StateFilter | str = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests authored by the current user."""
        state = StateFilter(state)
        return await self.queries.fetch_query(
            user_scoped_key(ResourceKind.MY_PULL_REQUESTS, owner, repo, state),
            lambda: self.provider.get_my_pull_requests(owner, repo, state),
        )

    async def review_requests(
        self, owner: str, repo: str, state: StateFilter | str = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests awaiting the current user's review."""
        state = StateFilter(state)
        return await self.queries.fetch_query(
            user_scoped_key(ResourceKind.REVIEW_REQUESTS, owner, repo, state),
            lambda: self.provider.get_review_requests(owner, repo, state),
        )

    async def involved(
        self, owner: str, repo: str, state: StateFilter | str = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests the current user authored or was asked to review."""
        state = StateFilter(state)
        return await self.queries.fetch_query(
            user_scoped_key(ResourceKind.INVOLVED_PULL_REQUESTS, owner, repo, state),
            lambda: self.provider.get_involved_pull_requests(owner, repo, state),
        )

    async def merge(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod | str = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> MergeResult:
        """
        Merge a pull request.

        The cached pull request flips to merged immediately and leaves every
        cached "open" list; both are rolled back if the backend refuses.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            method: Merge strategy; must be supported by the backend
            commit_title: Optional merge commit title
            commit_message: Optional merge commit message

        Returns:
            MergeResult reported by the backend

        Raises:
            CapabilityError: If the backend does not support ``method``
            ProviderError: If the backend rejects the merge
        """
        method = MergeMethod(method)
        at = datetime.now(timezone.utc)
        return await self.queries.mutate(
            lambda: self.provider.merge_pull_request(
                owner, repo, number, method, commit_title, commit_message
            ),
            updates=self._state_change_updates(owner, repo, number, mark_merged(at)),
            invalidate=[*pull_request_filter(owner, repo, number), *list_filters(owner, repo)],
        )

    async def close(self, owner: str, repo: str, number: int) -> PullRequest:
        """Close a pull request without merging it."""
        at = datetime.now(timezone.utc)
        return await self.queries.mutate(
            lambda: self.provider.close_pull_request(owner, repo, number),
            updates=self._state_change_updates(owner, repo, number, mark_closed(at)),
            invalidate=[*pull_request_filter(owner, repo, number), *list_filters(owner, repo)],
        )

    async def reopen(self, owner: str, repo: str, number: int) -> PullRequest:
        """
        Reopen a closed pull request.

        Merged pull requests stay merged in the cache; the backend decides
        whether they can be reopened.

        Raises:
            CapabilityError: If the backend cannot reopen pull requests
        """
        at = datetime.now(timezone.utc)
        return await self.queries.mutate(
            lambda: self.provider.reopen_pull_request(owner, repo, number),
            updates=self._state_change_updates(owner, repo, number, mark_reopened(at)),
            invalidate=[*pull_request_filter(owner, repo, number), *list_filters(owner, repo)],
        )

    async def set_labels(
        self, owner: str, repo: str, number: int, names: "Iterable[str]"
    ) -> None:
        """
        Replace the labels of a pull request.

        Colors and descriptions come from the cached repository labels when
        present, so the optimistic pull request renders like the final one.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            names: Label names; an empty iterable clears every label

        Raises:
            CapabilityError: If the backend has no labels
        """
        names = tuple(dict.fromkeys(names))
        known = {
            label.name: label
            for label in self.queries.cache.get_data(labels_key(owner, repo)) or ()
        }
        labels = tuple(known.get(name, Label(name=name)) for name in names)
        await self.queries.mutate(
            lambda: self.provider.set_labels(owner, repo, number, names),
            updates=self._state_change_updates(owner, repo, number, replace_labels(labels)),
            invalidate=list_filters(owner, repo),
        )

    def _state_change_updates(
        self,
        owner: str,
        repo: str,
        number: int,
        transform: "Callable[[PullRequest | None], PullRequest | None]",
    ) -> "list[OptimisticUpdate]":
        updates = [OptimisticUpdate(pull_request_key(owner, repo, number), transform)]
        for kind in sorted(LIST_KINDS, key=lambda k: k.value):
            for entry in self.queries.cache.find(QueryFilter(kind=kind, owner=owner, repo=repo)):
                if not entry.has_data:
                    continue
                state = entry.key.param("state", StateFilter.OPEN.value)
                updates.append(
                    OptimisticUpdate(entry.key, replace_in_list(number, transform, state))
                )
        return updates
