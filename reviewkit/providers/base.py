"""
Backend adapter contract.

Every adapter speaks one service's REST dialect and returns only canonical
types from ``reviewkit.types``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from reviewkit.exceptions import CapabilityError, SchemaValidationError
from reviewkit.logging import get_logger
from reviewkit.transport import AsyncHTTPTransport
from reviewkit.types import (
    CheckRun,
    Comment,
    CommentInput,
    Commit,
    FileChange,
    IssueComment,
    Label,
    ListPullRequestsOptions,
    MergeMethod,
    MergeResult,
    PullRequest,
    Review,
    ReviewInput,
    ReviewThread,
    StateFilter,
    User,
)

T = TypeVar("T")

DEFAULT_LIST_LIMIT = 20
MAX_PAGES = 20

_logger = get_logger("providers")


@lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter:
    return TypeAdapter(tp)


@dataclass(frozen=True)
class ProviderCapabilities:
    """Optional features an adapter supports."""

    inline_comments: bool = True
    check_runs: bool = True
    review_threads: bool = True
    labels: bool = True
    collaborators: bool = True
    reopen: bool = True
    merge_methods: frozenset[MergeMethod] = field(
        default_factory=lambda: frozenset(MergeMethod)
    )


class Provider(ABC):
    """
    Base class for backend adapters.

    Subclasses set ``name`` and ``page_cap`` and implement the abstract
    operations. Optional operations default to raising ``CapabilityError``;
    an adapter overriding one also leaves its capability flag on. Mapping of
    payloads happens in each backend's ``mappers`` module so it stays free
    of I/O.

    Attributes:
        involved_lists_reviewers: Whether pull requests returned by
            ``get_involved_pull_requests`` carry their requested reviewers
    """

    name: str = "provider"
    page_cap: int = 100
    capabilities: ProviderCapabilities = ProviderCapabilities()
    involved_lists_reviewers: bool = True

    def __init__(self, transport: AsyncHTTPTransport) -> None:
        """
        Initialize the adapter.

        Args:
            transport: Authenticated transport for this backend
        """
        self.transport = transport

    @classmethod
    @abstractmethod
    def from_token(
        cls,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "Provider":
        """Build the adapter with the backend's auth scheme and default base URL."""

    async def close(self) -> None:
        await self.transport.close()

    def parse(self, tp: type[T] | Any, data: Any, endpoint: str) -> T:
        """
        Validate a payload against a backend schema.

        Args:
            tp: Pydantic model or type expression (e.g. ``list[Model]``)
            data: Decoded JSON payload
            endpoint: Endpoint the payload came from, for error messages

        Raises:
            SchemaValidationError: If the payload does not match
        """
        try:
            return _adapter(tp).validate_python(data)
        except ValidationError as e:
            raise SchemaValidationError(
                self.name, endpoint, e.errors(include_url=False)
            ) from e

    def clamp_limit(self, options: ListPullRequestsOptions) -> int:
        return options.clamped(self.page_cap)

    async def validate_token(self) -> bool:
        """
        Check the configured credentials against the backend.

        Returns:
            True if the identity lookup succeeded, False on any failure
        """
        try:
            await self.get_current_user()
        except Exception as e:
            _logger.debug("%s token validation failed: %s", self.name, e)
            return False
        return True

    async def create_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment | IssueComment:
        """
        Post a comment, inline when ``path`` and ``line`` are both given.

        Raises:
            CapabilityError: If an inline comment is requested from a backend
                that cannot anchor comments to lines
        """
        if comment.is_inline:
            if not self.capabilities.inline_comments:
                raise CapabilityError(self.name, "inline comments")
            return await self.create_inline_comment(owner, repo, number, comment)
        return await self.create_issue_comment(owner, repo, number, comment.body)

    # Identity

    @abstractmethod
    async def get_current_user(self) -> User:
        """Return the account the token belongs to."""

    # Pull requests

    @abstractmethod
    async def list_pull_requests(
        self, owner: str, repo: str, options: ListPullRequestsOptions | None = None
    ) -> tuple[PullRequest, ...]:
        """List pull requests, clamping the limit to ``page_cap``."""

    @abstractmethod
    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        ...

    @abstractmethod
    async def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        """Return a unified diff for the whole pull request."""

    @abstractmethod
    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> tuple[FileChange, ...]:
        ...

    @abstractmethod
    async def get_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> tuple[Commit, ...]:
        ...

    @abstractmethod
    async def get_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[Comment, ...]:
        """Return inline review comments, system and deleted ones dropped."""

    @abstractmethod
    async def get_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        """Return general conversation comments, system and deleted ones dropped."""

    @abstractmethod
    async def get_pull_request_reviews(
        self, owner: str, repo: str, number: int
    ) -> tuple[Review, ...]:
        ...

    @abstractmethod
    async def get_check_runs(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        """Return CI checks for a commit sha or branch name."""

    # User-scoped queries

    @abstractmethod
    async def get_my_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests authored by the current user."""

    @abstractmethod
    async def get_review_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests awaiting the current user's review."""

    @abstractmethod
    async def get_involved_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        """Pull requests the current user authored or reviews."""

    # Mutations

    @abstractmethod
    async def create_inline_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment:
        ...

    @abstractmethod
    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> IssueComment:
        ...

    @abstractmethod
    async def approve_review(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        ...

    @abstractmethod
    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        ...

    @abstractmethod
    async def create_review(
        self, owner: str, repo: str, number: int, review: ReviewInput
    ) -> None:
        ...

    @abstractmethod
    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> MergeResult:
        ...

    @abstractmethod
    async def close_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        ...

    # Optional operations

    async def reopen_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        """Reopen a closed, unmerged pull request."""
        raise CapabilityError(self.name, "reopening pull requests")

    async def edit_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> IssueComment:
        """
        Replace the body of a conversation comment.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            comment_id: Comment to edit
            body: New markdown body
            thread_id: Enclosing thread, required where comment ids are
                only unique within a thread

        Returns:
            The updated comment
        """
        raise CapabilityError(self.name, "editing comments")

    async def edit_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> Comment:
        """Replace the body of an inline review comment."""
        raise CapabilityError(self.name, "editing comments")

    async def delete_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        thread_id: str | None = None,
    ) -> None:
        """Delete an inline review comment."""
        raise CapabilityError(self.name, "deleting comments")

    async def get_review_threads(
        self, owner: str, repo: str, number: int
    ) -> tuple[ReviewThread, ...]:
        """Resolvable review threads. Backends without them return none."""
        return ()

    async def resolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        raise CapabilityError(self.name, "review threads")

    async def unresolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        raise CapabilityError(self.name, "review threads")

    async def get_labels(self, owner: str, repo: str) -> tuple[Label, ...]:
        """Labels defined on the repository."""
        raise CapabilityError(self.name, "labels")

    async def set_labels(
        self, owner: str, repo: str, number: int, labels: tuple[str, ...]
    ) -> None:
        """Replace the labels on a pull request with ``labels`` (by name)."""
        raise CapabilityError(self.name, "labels")

    async def get_collaborators(self, owner: str, repo: str) -> tuple[User, ...]:
        """Accounts with access to the repository."""
        raise CapabilityError(self.name, "collaborators")

    def _check_merge_method(self, method: MergeMethod) -> MergeMethod:
        method = MergeMethod(method)
        if method not in self.capabilities.merge_methods:
            raise CapabilityError(self.name, f"{method.value} merges")
        return method
