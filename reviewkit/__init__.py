"""reviewkit - pull request review across GitHub, GitLab, Bitbucket and Azure DevOps."""

from reviewkit.client import ReviewClient
from reviewkit.config import ProviderConfig, ProviderKind
from reviewkit.exceptions import (
    CapabilityError,
    ConfigurationError,
    NetworkError,
    ProviderError,
    QueryCancelledError,
    ReviewKitError,
    SchemaValidationError,
)
from reviewkit.logging import configure_logging, get_logger
from reviewkit.providers import Provider, create_provider
from reviewkit.query import QueryClient, QueryFilter, QueryKey, ResourceKind
from reviewkit.retry import RetryConfig

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Main client
    "ReviewClient",
    # Configuration
    "ProviderConfig",
    "ProviderKind",
    # Adapters
    "Provider",
    "create_provider",
    # Query engine
    "QueryClient",
    "QueryKey",
    "QueryFilter",
    "ResourceKind",
    "RetryConfig",
    # Exceptions
    "ReviewKitError",
    "ConfigurationError",
    "NetworkError",
    "ProviderError",
    "SchemaValidationError",
    "CapabilityError",
    "QueryCancelledError",
    # Logging
    "configure_logging",
    "get_logger",
]
