"""Commit data models."""

from dataclasses import dataclass
from datetime import datetime

from reviewkit.types.users import User


@dataclass(frozen=True)
class CommitAuthor:
    """Git-level author signature."""

    name: str
    email: str
    date: datetime | None = None


@dataclass(frozen=True)
class Commit:
    sha: str
    message: str
    author: CommitAuthor
    user: User | None = None  # linked backend account, when resolvable
    html_url: str = ""
