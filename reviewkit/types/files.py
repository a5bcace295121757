"""Changed-file data models."""

from dataclasses import dataclass
from enum import Enum


class FileStatus(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    RENAMED = "renamed"


@dataclass(frozen=True)
class FileChange:
    """One file touched by a pull request."""

    filename: str
    status: FileStatus
    additions: int = 0
    deletions: int = 0
    previous_filename: str | None = None  # renames only
    patch: str | None = None

    @property
    def changes(self) -> int:
        return self.additions + self.deletions
