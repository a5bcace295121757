"""
Pytest fixtures and factories for reviewkit testing.

Provides canonical entities with sensible defaults and ready-wired clients
backed by ``MockProvider``.
"""

import itertools
from collections.abc import Generator
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import pytest

from reviewkit.types import (
    BranchRef,
    CheckConclusion,
    CheckRun,
    CheckStatus,
    Comment,
    DiffSide,
    FileChange,
    FileStatus,
    IssueComment,
    PullRequest,
    PullRequestState,
    RepositoryRef,
    Review,
    ReviewState,
    ReviewThread,
    User,
)

if TYPE_CHECKING:
    from reviewkit.client import ReviewClient
    from reviewkit.query import QueryClient
    from reviewkit.testing.mock import MockProvider

MOCK_OWNER = "octocat"
MOCK_REPO = "hello-world"
MOCK_TIMESTAMP = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

_ids = itertools.count(1000)


# ============================================================================
# Factories
# ============================================================================


def create_mock_user(login: str = "octocat", id: int = 1, **kwargs: Any) -> User:
    return User(login=login, id=id, **kwargs)


def create_mock_pull_request(
    number: int = 1,
    owner: str = MOCK_OWNER,
    repo: str = MOCK_REPO,
    author: User | None = None,
    **kwargs: Any,
) -> PullRequest:
    """
    Create a PullRequest with customizable fields.

    Passing ``merged=True`` without a state produces a consistent merged
    pull request (closed, with ``merged_at`` and ``closed_at`` set).

    Args:
        number: Pull request number
        owner: Repository owner
        repo: Repository name
        author: Author (default: ``create_mock_user()``)
        **kwargs: Additional fields to override

    Returns:
        PullRequest object
    """
    defaults: dict[str, Any] = {
        "id": f"PR_{number}",
        "title": f"Test PR #{number}",
        "state": PullRequestState.OPEN,
        "head": BranchRef(ref="feature", sha="a" * 40),
        "base": BranchRef(ref="main", sha="b" * 40),
        "created_at": MOCK_TIMESTAMP,
        "updated_at": MOCK_TIMESTAMP,
        "html_url": f"https://github.com/{owner}/{repo}/pull/{number}",
    }
    if kwargs.get("merged"):
        defaults.update(
            state=PullRequestState.CLOSED, merged_at=MOCK_TIMESTAMP, closed_at=MOCK_TIMESTAMP
        )
    elif kwargs.get("state") == PullRequestState.CLOSED:
        defaults["closed_at"] = MOCK_TIMESTAMP
    defaults.update(kwargs)
    return PullRequest(
        number=number,
        author=author or create_mock_user(),
        repository=RepositoryRef(owner=owner, name=repo),
        **defaults,
    )


def create_mock_comment(
    body: str = "Looks good",
    author: User | None = None,
    id: int | None = None,
    path: str | None = "src/app.py",
    line: int | None = 10,
    side: DiffSide | None = DiffSide.RIGHT,
    in_reply_to_id: int | None = None,
) -> Comment:
    return Comment(
        id=id if id is not None else next(_ids),
        body=body,
        author=author or create_mock_user(),
        created_at=MOCK_TIMESTAMP,
        updated_at=MOCK_TIMESTAMP,
        path=path,
        line=line,
        side=side if path is not None else None,
        in_reply_to_id=in_reply_to_id,
    )


def create_mock_issue_comment(
    body: str = "Thanks!", author: User | None = None, id: int | None = None
) -> IssueComment:
    return IssueComment(
        id=id if id is not None else next(_ids),
        body=body,
        author=author or create_mock_user(),
        created_at=MOCK_TIMESTAMP,
        updated_at=MOCK_TIMESTAMP,
    )


def create_mock_review(
    state: ReviewState = ReviewState.APPROVED,
    author: User | None = None,
    body: str | None = None,
    id: int | None = None,
) -> Review:
    return Review(
        id=id if id is not None else next(_ids),
        author=author or create_mock_user(login="reviewer", id=2),
        state=state,
        body=body,
        submitted_at=MOCK_TIMESTAMP,
    )


def create_mock_check_run(
    name: str = "build",
    status: CheckStatus = CheckStatus.COMPLETED,
    conclusion: CheckConclusion | None = CheckConclusion.SUCCESS,
    id: int | None = None,
) -> CheckRun:
    return CheckRun(
        id=id if id is not None else next(_ids),
        name=name,
        status=status,
        conclusion=conclusion if status is CheckStatus.COMPLETED else None,
        started_at=MOCK_TIMESTAMP,
        completed_at=MOCK_TIMESTAMP if status is CheckStatus.COMPLETED else None,
    )


def create_mock_file_change(filename: str = "src/app.py", **kwargs: Any) -> FileChange:
    defaults: dict[str, Any] = {"status": FileStatus.MODIFIED, "additions": 3, "deletions": 1}
    defaults.update(kwargs)
    return FileChange(filename=filename, **defaults)


def create_mock_review_thread(
    id: str | None = None, resolved: bool = False, comment_ids: tuple[int, ...] = ()
) -> ReviewThread:
    return ReviewThread(
        id=id if id is not None else f"thread-{next(_ids)}",
        resolved=resolved,
        comment_ids=comment_ids,
        path="src/app.py",
        line=10,
    )


# ============================================================================
# Client Fixtures
# ============================================================================


async def _no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def mock_provider() -> Generator["MockProvider", None, None]:
    """
    Provide a MockProvider for testing.

    Example:
        ```python
        async def test_my_feature(mock_provider, review_client):
            mock_provider.configure("get_pull_request", error=ProviderError("gone", status=404))
            with pytest.raises(ProviderError):
                await review_client.pulls.get("octocat", "hello-world", 1)
        ```
    """
    from reviewkit.testing.mock import MockProvider

    provider = MockProvider()
    yield provider
    provider.reset()


@pytest.fixture
def query_client() -> "QueryClient":
    """A QueryClient whose retry backoff does not actually sleep."""
    from reviewkit.query import QueryClient

    return QueryClient(sleep=_no_sleep)


@pytest.fixture
def review_client(mock_provider: "MockProvider", query_client: "QueryClient") -> "ReviewClient":
    """A ReviewClient wired to ``mock_provider`` and ``query_client``."""
    from reviewkit.client import ReviewClient

    return ReviewClient(mock_provider, queries=query_client)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_user() -> User:
    return create_mock_user()


@pytest.fixture
def sample_pull_request() -> PullRequest:
    return create_mock_pull_request()


@pytest.fixture
def sample_comment() -> Comment:
    return create_mock_comment()


@pytest.fixture
def sample_issue_comment() -> IssueComment:
    return create_mock_issue_comment()


@pytest.fixture
def sample_review() -> Review:
    return create_mock_review()


@pytest.fixture
def sample_check_run() -> CheckRun:
    return create_mock_check_run()


@pytest.fixture
def mock_provider_with_prs(mock_provider: "MockProvider") -> "MockProvider":
    """
    A MockProvider serving three pull requests: one authored by the current
    user, one requesting their review, and one merged.
    """
    me = mock_provider.user
    other = create_mock_user(login="hubot", id=2)
    mock_provider.configure_pull_requests(
        create_mock_pull_request(number=1, author=me),
        create_mock_pull_request(number=2, author=other, requested_reviewers=(me,)),
        create_mock_pull_request(number=3, author=me, merged=True),
    )
    return mock_provider
