"""GitHub backend."""

from reviewkit.providers.github.provider import GitHubProvider

__all__ = ["GitHubProvider"]
