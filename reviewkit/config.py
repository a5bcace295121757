"""Provider configuration."""

import os
from dataclasses import dataclass
from enum import Enum

from reviewkit.exceptions import ConfigurationError


class ProviderKind(str, Enum):
    GITHUB = "github"
    GITLAB = "gitlab"
    BITBUCKET = "bitbucket"
    AZURE = "azure"


# Backend-specific token variables consulted when REVIEWKIT_TOKEN is unset.
_TOKEN_ENV_VARS = {
    ProviderKind.GITHUB: "GITHUB_TOKEN",
    ProviderKind.GITLAB: "GITLAB_TOKEN",
    ProviderKind.BITBUCKET: "BITBUCKET_TOKEN",
    ProviderKind.AZURE: "AZURE_DEVOPS_TOKEN",
}


@dataclass(frozen=True)
class ProviderConfig:
    """
    Selects and authenticates one backend.

    Attributes:
        provider: Which backend to talk to
        token: Access token (Bitbucket also accepts "user:app_password")
        base_url: API root override for self-hosted instances
        timeout: Request timeout in seconds
    """

    provider: ProviderKind
    token: str
    base_url: str | None = None
    timeout: float = 30.0

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "provider", ProviderKind(self.provider))
        except ValueError:
            choices = ", ".join(kind.value for kind in ProviderKind)
            raise ConfigurationError(
                f"Unknown provider {self.provider!r}; expected one of: {choices}"
            ) from None
        if not self.token:
            raise ConfigurationError(f"An access token is required for {self.provider.value}")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """
        Build a configuration from environment variables.

        Environment variables:
            REVIEWKIT_PROVIDER: github, gitlab, bitbucket or azure (default: github)
            REVIEWKIT_TOKEN: Access token; falls back to GITHUB_TOKEN,
                GITLAB_TOKEN, BITBUCKET_TOKEN or AZURE_DEVOPS_TOKEN for the
                selected provider
            REVIEWKIT_BASE_URL: API root override (optional)
            REVIEWKIT_TIMEOUT: Request timeout in seconds (default: 30)

        Raises:
            ConfigurationError: If a variable is missing or invalid
        """
        provider_name = os.environ.get("REVIEWKIT_PROVIDER", ProviderKind.GITHUB.value).lower()
        try:
            provider = ProviderKind(provider_name)
        except ValueError:
            raise ConfigurationError(
                f"REVIEWKIT_PROVIDER has unknown value {provider_name!r}"
            ) from None

        token = os.environ.get("REVIEWKIT_TOKEN") or os.environ.get(_TOKEN_ENV_VARS[provider])
        if not token:
            raise ConfigurationError(
                f"REVIEWKIT_TOKEN or {_TOKEN_ENV_VARS[provider]} environment variable is required"
            )

        timeout_str = os.environ.get("REVIEWKIT_TIMEOUT")
        timeout = 30.0
        if timeout_str:
            try:
                timeout = float(timeout_str)
            except ValueError:
                raise ConfigurationError(
                    f"REVIEWKIT_TIMEOUT must be a number, got {timeout_str!r}"
                ) from None

        return cls(
            provider=provider,
            token=token,
            base_url=os.environ.get("REVIEWKIT_BASE_URL") or None,
            timeout=timeout,
        )
