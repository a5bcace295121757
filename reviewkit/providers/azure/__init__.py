"""Azure DevOps backend."""

from reviewkit.providers.azure.provider import AzureDevOpsProvider

__all__ = ["AzureDevOpsProvider"]
