"""Mapping helpers shared by all backends."""

from datetime import datetime
from enum import Enum

from reviewkit.types import CheckConclusion, CheckStatus, User, UserType

BRANCH_PREFIX = "refs/heads/"

# Stand-in for deleted or unresolvable accounts.
GHOST_USER = User(login="ghost", id=0)


def strip_ref(ref: str) -> str:
    """Turn ``refs/heads/feature`` into ``feature``."""
    if ref.startswith(BRANCH_PREFIX):
        return ref[len(BRANCH_PREFIX):]
    return ref


def user_type(value: str | None) -> UserType:
    try:
        return UserType(value)
    except ValueError:
        return UserType.USER


def closed_at_for(
    merged: bool, merged_at: datetime | None, closed_at: datetime | None
) -> datetime | None:
    """A merged pull request is closed at the moment it was merged."""
    if merged and merged_at is not None:
        return merged_at
    return closed_at


def check_outcome(
    status: CheckStatus, conclusion: CheckConclusion | None
) -> tuple[CheckStatus, CheckConclusion | None]:
    """
    Reconcile a status/conclusion pair so it satisfies the CheckRun invariant.

    Backends occasionally report a terminal result without a completed
    status or the reverse; a result wins over a status.
    """
    if conclusion is not None:
        return CheckStatus.COMPLETED, conclusion
    if status is CheckStatus.COMPLETED:
        return CheckStatus.COMPLETED, CheckConclusion.NEUTRAL
    return status, None


class CommentKind(str, Enum):
    """Classification applied to backend comments before mapping."""

    INLINE = "inline"
    GENERAL = "general"
    SYSTEM = "system"


def file_diff(old_path: str, new_path: str, fragment: str | None, placeholder: str) -> str:
    """
    Build a unified diff section for one file.

    Backends that only return per-file hunks get synthesized ``diff --git``
    headers; when no hunk content is available the placeholder line marks
    the gap explicitly.
    """
    header = "\n".join(
        [
            f"diff --git a/{old_path} b/{new_path}",
            f"--- a/{old_path}",
            f"+++ b/{new_path}",
        ]
    )
    if fragment:
        body = fragment.rstrip("\n")
        return f"{header}\n{body}"
    return f"{header}\n@@\n{placeholder}"


def count_diff_lines(patch: str) -> tuple[int, int]:
    """Count added and removed lines in a hunk, ignoring file headers."""
    additions = deletions = 0
    for line in patch.splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1
    return additions, deletions
