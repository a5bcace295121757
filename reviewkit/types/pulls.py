"""Pull request data models."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from reviewkit.types.users import User


class PullRequestState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class StateFilter(str, Enum):
    """State filter accepted by list queries."""

    OPEN = "open"
    CLOSED = "closed"
    ALL = "all"


class MergeMethod(str, Enum):
    MERGE = "merge"
    SQUASH = "squash"
    REBASE = "rebase"


@dataclass(frozen=True)
class BranchRef:
    """A branch name and the commit it points at."""

    ref: str
    sha: str = ""


@dataclass(frozen=True)
class RepositoryRef:
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class Label:
    name: str
    color: str = ""
    description: str | None = None


@dataclass(frozen=True)
class PullRequest:
    """
    Canonical pull request.

    ``merged`` implies ``state == CLOSED``; a merged pull request carries
    ``closed_at == merged_at``. Construction rejects a merged pull request
    that is not closed.
    """

    id: str
    number: int
    title: str
    state: PullRequestState
    author: User
    head: BranchRef
    base: BranchRef
    repository: RepositoryRef
    created_at: datetime
    updated_at: datetime
    body: str | None = None
    merged: bool = False
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    labels: tuple[Label, ...] = ()
    requested_reviewers: tuple[User, ...] = ()
    mergeable: bool | None = None
    draft: bool = False
    html_url: str = ""

    def __post_init__(self) -> None:
        if self.merged and self.state is not PullRequestState.CLOSED:
            raise ValueError(f"pull request #{self.number} is merged but not closed")

    @property
    def is_open(self) -> bool:
        return self.state is PullRequestState.OPEN

    @property
    def is_closed_unmerged(self) -> bool:
        return self.state is PullRequestState.CLOSED and not self.merged

    def with_merged(self, at: datetime) -> "PullRequest":
        """Return a copy in the merged state."""
        return replace(
            self,
            state=PullRequestState.CLOSED,
            merged=True,
            merged_at=at,
            closed_at=at,
            updated_at=at,
        )

    def with_closed(self, at: datetime) -> "PullRequest":
        """Return a copy in the closed-unmerged state."""
        return replace(
            self,
            state=PullRequestState.CLOSED,
            merged=False,
            closed_at=at,
            updated_at=at,
        )

    def with_reopened(self, at: datetime) -> "PullRequest":
        """Return a copy back in the open state. Merged pull requests stay merged."""
        if self.merged:
            return self
        return replace(self, state=PullRequestState.OPEN, closed_at=None, updated_at=at)

    def with_labels(self, labels: tuple[Label, ...]) -> "PullRequest":
        return replace(self, labels=tuple(labels))

    def matches_state(self, state: "StateFilter | str") -> bool:
        state = StateFilter(state)
        if state is StateFilter.ALL:
            return True
        return self.state.value == state.value


@dataclass(frozen=True)
class ListPullRequestsOptions:
    """Options for listing pull requests."""

    state: StateFilter = StateFilter.OPEN
    limit: int = 20

    def __post_init__(self) -> None:
        object.__setattr__(self, "state", StateFilter(self.state))
        if self.limit < 1:
            raise ValueError("limit must be positive")

    def clamped(self, page_cap: int) -> int:
        return min(self.limit, page_cap)


@dataclass(frozen=True)
class MergeResult:
    """Result of merging a pull request."""

    merged: bool
    sha: str | None = None
    message: str = field(default="")
