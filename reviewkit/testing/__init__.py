"""reviewkit testing utilities.

Provides a mock adapter and fixtures for testing code built on reviewkit.
"""

from reviewkit.testing.fixtures import (
    create_mock_check_run,
    create_mock_comment,
    create_mock_file_change,
    create_mock_issue_comment,
    create_mock_pull_request,
    create_mock_review,
    create_mock_review_thread,
    create_mock_user,
)
from reviewkit.testing.mock import MockCall, MockProvider, MockResponse

__all__ = [
    # Mock adapter
    "MockProvider",
    "MockCall",
    "MockResponse",
    # Helper functions
    "create_mock_user",
    "create_mock_pull_request",
    "create_mock_comment",
    "create_mock_issue_comment",
    "create_mock_review",
    "create_mock_review_thread",
    "create_mock_check_run",
    "create_mock_file_change",
]
