"""Repository metadata resource client."""

from typing import TYPE_CHECKING

from reviewkit.query.keys import collaborators_key, labels_key
from reviewkit.types import Label, User

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class ReposClient:
    """Client for repository labels and collaborators."""

    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def labels(self, owner: str, repo: str) -> tuple[Label, ...]:
        """
        Labels defined on the repository.

        Raises:
            CapabilityError: If the backend has no labels
        """
        return await self.queries.fetch_query(
            labels_key(owner, repo), lambda: self.provider.get_labels(owner, repo)
        )

    async def collaborators(self, owner: str, repo: str) -> tuple[User, ...]:
        """Accounts with access to the repository, e.g. to pick reviewers."""
        return await self.queries.fetch_query(
            collaborators_key(owner, repo), lambda: self.provider.get_collaborators(owner, repo)
        )
