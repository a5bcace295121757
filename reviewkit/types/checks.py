"""CI check data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CheckStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CheckConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CheckRun:
    """
    A CI job or build attached to a commit.

    ``conclusion`` is set exactly when ``status`` is COMPLETED.
    """

    id: int
    name: str
    status: CheckStatus
    conclusion: CheckConclusion | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    html_url: str = ""

    def __post_init__(self) -> None:
        completed = self.status is CheckStatus.COMPLETED
        if completed and self.conclusion is None:
            raise ValueError(f"check run {self.name!r} is completed without a conclusion")
        if not completed and self.conclusion is not None:
            raise ValueError(f"check run {self.name!r} has a conclusion but is {self.status.value}")
