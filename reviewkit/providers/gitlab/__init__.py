"""GitLab backend."""

from reviewkit.providers.gitlab.provider import GitLabProvider

__all__ = ["GitLabProvider"]
