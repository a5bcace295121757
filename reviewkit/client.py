"""
reviewkit main client.

Binds one backend adapter to a query engine and exposes the resource
clients.
"""

from typing import Any

import httpx

from reviewkit.clients import (
    ChecksClient,
    CommentsClient,
    PullsClient,
    ReposClient,
    ReviewsClient,
    ThreadsClient,
    UsersClient,
)
from reviewkit.config import ProviderConfig, ProviderKind
from reviewkit.providers import Provider, create_provider
from reviewkit.query import QueryClient
from reviewkit.retry import RetryConfig


class ReviewClient:
    """
    Client for reviewing pull requests on any supported backend.

    Example:
        ```python
        import asyncio
        from reviewkit import ReviewClient

        async def main():
            async with ReviewClient.from_env() as client:
                prs = await client.pulls.list("octocat", "hello-world")
                await client.comments.create("octocat", "hello-world", prs[0].number, "LGTM")

        asyncio.run(main())
        ```
    """

    def __init__(
        self,
        provider: Provider,
        queries: QueryClient | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            provider: Backend adapter
            queries: Query engine (optional, one is created per client)
            retry_config: Retry policy for a new query engine (optional)
        """
        self.provider = provider
        self.queries = queries or QueryClient(retry_config=retry_config)

        self.pulls = PullsClient(provider, self.queries)
        self.comments = CommentsClient(provider, self.queries)
        self.reviews = ReviewsClient(provider, self.queries)
        self.checks = ChecksClient(provider, self.queries)
        self.users = UsersClient(provider, self.queries)
        self.threads = ThreadsClient(provider, self.queries)
        self.repos = ReposClient(provider, self.queries)

        if self.queries.population is not None:
            self.queries.population.review_requests_from_involved = (
                provider.involved_lists_reviewers
            )

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        retry_config: RetryConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "ReviewClient":
        return cls(create_provider(config, http_client=http_client), retry_config=retry_config)

    @classmethod
    def from_token(
        cls,
        provider: ProviderKind | str,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        retry_config: RetryConfig | None = None,
    ) -> "ReviewClient":
        """
        Create a client for a backend and access token.

        Raises:
            ConfigurationError: If the provider is unknown or the token empty
        """
        config = ProviderConfig(provider=provider, token=token, base_url=base_url, timeout=timeout)
        return cls.from_config(config, retry_config=retry_config)

    @classmethod
    def from_env(cls, retry_config: RetryConfig | None = None) -> "ReviewClient":
        """
        Create a client from environment variables.

        See ``ProviderConfig.from_env`` for the variables read.

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        return cls.from_config(ProviderConfig.from_env(), retry_config=retry_config)

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def close(self) -> None:
        """Cancel background reads and close the transport."""
        await self.queries.close()
        await self.provider.close()

    async def __aenter__(self) -> "ReviewClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
