"""Current user resource client."""

from typing import TYPE_CHECKING

from reviewkit.query.keys import current_user_key
from reviewkit.types import User

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class UsersClient:
    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def current(self) -> User:
        """The account the token belongs to. Cached for the client's lifetime."""
        return await self.queries.fetch_query(current_user_key(), self.provider.get_current_user)

    async def validate_token(self) -> bool:
        """True if the backend accepts the configured credentials."""
        return await self.provider.validate_token()
