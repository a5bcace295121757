"""CI checks resource client."""

from typing import TYPE_CHECKING

from reviewkit.query.keys import check_runs_key
from reviewkit.types import CheckRun, CheckStatus

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class ChecksClient:
    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def list(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        """
        Return CI checks for a commit sha or branch name.

        Backends without a CI API return an empty tuple.
        """
        if not self.provider.capabilities.check_runs:
            return ()
        return await self.queries.fetch_query(
            check_runs_key(owner, repo, ref),
            lambda: self.provider.get_check_runs(owner, repo, ref),
        )

    async def pending(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        """Checks that have not completed yet."""
        runs = await self.list(owner, repo, ref)
        return tuple(run for run in runs if run.status is not CheckStatus.COMPLETED)
