"""Backend adapters and the provider selector."""

import httpx

from reviewkit.config import ProviderConfig, ProviderKind
from reviewkit.exceptions import ConfigurationError
from reviewkit.logging import get_logger, truncate_token
from reviewkit.providers.azure import AzureDevOpsProvider
from reviewkit.providers.base import (
    DEFAULT_LIST_LIMIT,
    Provider,
    ProviderCapabilities,
)
from reviewkit.providers.bitbucket import BitbucketProvider
from reviewkit.providers.github import GitHubProvider
from reviewkit.providers.gitlab import GitLabProvider

PROVIDERS: dict[ProviderKind, type[Provider]] = {
    ProviderKind.GITHUB: GitHubProvider,
    ProviderKind.GITLAB: GitLabProvider,
    ProviderKind.BITBUCKET: BitbucketProvider,
    ProviderKind.AZURE: AzureDevOpsProvider,
}


def create_provider(
    config: ProviderConfig, http_client: httpx.AsyncClient | None = None
) -> Provider:
    """
    Instantiate the adapter a configuration selects.

    Args:
        config: Provider kind, token and optional base URL
        http_client: Pre-built httpx client (optional)

    Returns:
        A ready-to-use adapter

    Raises:
        ConfigurationError: If the provider kind has no adapter
    """
    provider_cls = PROVIDERS.get(config.provider)
    if provider_cls is None:
        raise ConfigurationError(f"No adapter registered for {config.provider!r}")
    get_logger("providers").debug(
        "Using %s adapter (token %s)", provider_cls.name, truncate_token(config.token)
    )
    return provider_cls.from_token(
        config.token,
        base_url=config.base_url,
        timeout=config.timeout,
        http_client=http_client,
    )


__all__ = [
    "Provider",
    "ProviderCapabilities",
    "DEFAULT_LIST_LIMIT",
    "GitHubProvider",
    "GitLabProvider",
    "BitbucketProvider",
    "AzureDevOpsProvider",
    "PROVIDERS",
    "create_provider",
]
