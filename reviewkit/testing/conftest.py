"""
Pytest plugin for reviewkit testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
discovered by pytest. To use them, add this to your conftest.py:

    pytest_plugins = ["reviewkit.testing.conftest"]
"""

from reviewkit.testing.fixtures import (
    mock_provider,
    mock_provider_with_prs,
    query_client,
    review_client,
    sample_check_run,
    sample_comment,
    sample_issue_comment,
    sample_pull_request,
    sample_review,
    sample_user,
)

__all__ = [
    "mock_provider",
    "mock_provider_with_prs",
    "query_client",
    "review_client",
    "sample_user",
    "sample_pull_request",
    "sample_comment",
    "sample_issue_comment",
    "sample_review",
    "sample_check_run",
]
