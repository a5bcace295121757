"""Bitbucket Cloud backend."""

from reviewkit.providers.bitbucket.provider import BitbucketProvider

__all__ = ["BitbucketProvider"]
