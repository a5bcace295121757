"""Comment data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from reviewkit.types.users import User


class DiffSide(str, Enum):
    """Which side of a diff an inline comment anchors to."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"


@dataclass(frozen=True)
class Comment:
    """
    A review comment. Anchored to a file line when ``path`` is set.

    ``thread_id`` names the enclosing thread on backends whose comment ids
    are only unique within a thread (Azure DevOps).
    """

    id: int
    body: str
    author: User
    created_at: datetime
    updated_at: datetime
    html_url: str = ""
    path: str | None = None
    line: int | None = None
    side: DiffSide | None = None
    in_reply_to_id: int | None = None
    thread_id: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.path is not None and self.line is not None


@dataclass(frozen=True)
class IssueComment:
    """A general conversation comment on a pull request."""

    id: int
    body: str
    author: User
    created_at: datetime
    updated_at: datetime
    html_url: str = ""
    thread_id: str | None = None
