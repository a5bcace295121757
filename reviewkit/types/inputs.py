"""Mutation input models."""

from dataclasses import dataclass

from reviewkit.types.comments import DiffSide
from reviewkit.types.reviews import ReviewEvent


@dataclass(frozen=True)
class CommentInput:
    """
    A comment to post.

    Setting both ``path`` and ``line`` requests an inline comment; otherwise
    the comment is posted to the general conversation.
    """

    body: str
    path: str | None = None
    line: int | None = None
    side: DiffSide | None = None
    in_reply_to_id: int | None = None

    @property
    def is_inline(self) -> bool:
        return self.path is not None and self.line is not None


@dataclass(frozen=True)
class ReviewCommentInput:
    """An inline comment submitted as part of a review."""

    path: str
    line: int
    body: str
    side: DiffSide = DiffSide.RIGHT


@dataclass(frozen=True)
class ReviewInput:
    event: ReviewEvent
    body: str = ""
    comments: tuple[ReviewCommentInput, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "event", ReviewEvent(self.event))
