"""Review data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from reviewkit.types.users import User


class ReviewState(str, Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"


class ReviewEvent(str, Enum):
    """Verdict submitted with a review."""

    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    COMMENT = "COMMENT"

    def to_state(self) -> ReviewState:
        return _EVENT_STATES[self]


_EVENT_STATES = {
    ReviewEvent.APPROVE: ReviewState.APPROVED,
    ReviewEvent.REQUEST_CHANGES: ReviewState.CHANGES_REQUESTED,
    ReviewEvent.COMMENT: ReviewState.COMMENTED,
}


@dataclass(frozen=True)
class Review:
    """A submitted pull request review."""

    id: int
    author: User
    state: ReviewState
    body: str | None = None
    submitted_at: datetime | None = None
    html_url: str = ""
