"""Review threads resource client."""

from typing import TYPE_CHECKING

from reviewkit.query import OptimisticUpdate, ResourceKind
from reviewkit.query.keys import pull_request_resource_key
from reviewkit.query.optimistic import set_thread_resolved
from reviewkit.types import ReviewThread

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class ThreadsClient:
    """Client for listing and resolving review threads."""

    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def list(self, owner: str, repo: str, number: int) -> tuple[ReviewThread, ...]:
        """
        Resolvable review threads of a pull request.

        Backends without resolvable threads return an empty tuple.
        """
        if not self.provider.capabilities.review_threads:
            return ()
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.REVIEW_THREADS, owner, repo, number),
            lambda: self.provider.get_review_threads(owner, repo, number),
        )

    async def resolve(self, owner: str, repo: str, number: int, thread_id: str) -> None:
        """
        Mark a thread resolved.

        Raises:
            CapabilityError: If the backend has no resolvable threads
        """
        await self._set_resolved(owner, repo, number, thread_id, True)

    async def unresolve(self, owner: str, repo: str, number: int, thread_id: str) -> None:
        await self._set_resolved(owner, repo, number, thread_id, False)

    async def _set_resolved(
        self, owner: str, repo: str, number: int, thread_id: str, resolved: bool
    ) -> None:
        effect = self.provider.resolve_thread if resolved else self.provider.unresolve_thread
        key = pull_request_resource_key(ResourceKind.REVIEW_THREADS, owner, repo, number)
        await self.queries.mutate(
            lambda: effect(owner, repo, number, thread_id),
            updates=[OptimisticUpdate(key, set_thread_resolved(thread_id, resolved))],
        )
