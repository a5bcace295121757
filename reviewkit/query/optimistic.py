"""
Pure updaters used for optimistic writes.

Each ``apply_*`` function takes the cached value (None when the key is
absent) and returns the value expected after the mutation succeeds. None
means "leave the key absent". Temporary entities carry negative ids so they
can never collide with backend ids.
"""

import itertools
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from reviewkit.types import (
    Comment,
    CommentInput,
    IssueComment,
    Label,
    PullRequest,
    Review,
    ReviewEvent,
    ReviewThread,
    StateFilter,
    User,
)

OPTIMISTIC_USER = User(login="you", id=0)

_temporary_ids = itertools.count(-1, -1)


def next_temporary_id() -> int:
    return next(_temporary_ids)


def is_temporary_id(value: int) -> bool:
    return value < 0


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_optimistic_comment(
    comment: CommentInput, author: User | None = None, now: datetime | None = None
) -> Comment:
    now = now or _now()
    return Comment(
        id=next_temporary_id(),
        body=comment.body,
        author=author or OPTIMISTIC_USER,
        created_at=now,
        updated_at=now,
        path=comment.path,
        line=comment.line,
        side=comment.side,
        in_reply_to_id=comment.in_reply_to_id,
    )


def create_optimistic_issue_comment(
    body: str, author: User | None = None, now: datetime | None = None
) -> IssueComment:
    now = now or _now()
    return IssueComment(
        id=next_temporary_id(),
        body=body,
        author=author or OPTIMISTIC_USER,
        created_at=now,
        updated_at=now,
    )


def create_optimistic_review(
    event: ReviewEvent | str,
    body: str | None = None,
    author: User | None = None,
    now: datetime | None = None,
) -> Review:
    return Review(
        id=next_temporary_id(),
        author=author or OPTIMISTIC_USER,
        state=ReviewEvent(event).to_state(),
        body=body or None,
        submitted_at=now or _now(),
    )


def append(item: Any) -> Callable[[Any], tuple]:
    """Updater appending ``item`` to a cached tuple, creating it when absent."""

    def updater(current: Any) -> tuple:
        return (*(current or ()), item)

    return updater


def apply_optimistic_comment(current: tuple[Comment, ...] | None, comment: Comment) -> tuple[Comment, ...]:
    return append(comment)(current)


def apply_optimistic_issue_comment(
    current: tuple[IssueComment, ...] | None, comment: IssueComment
) -> tuple[IssueComment, ...]:
    return append(comment)(current)


def apply_optimistic_review(current: tuple[Review, ...] | None, review: Review) -> tuple[Review, ...]:
    return append(review)(current)


def mark_merged(at: datetime | None = None) -> Callable[[PullRequest | None], PullRequest | None]:
    """Updater replacing a cached pull request with its merged form."""

    def updater(current: PullRequest | None) -> PullRequest | None:
        if current is None:
            return None
        return current.with_merged(at or _now())

    return updater


def mark_closed(at: datetime | None = None) -> Callable[[PullRequest | None], PullRequest | None]:
    """Updater replacing a cached pull request with its closed-unmerged form."""

    def updater(current: PullRequest | None) -> PullRequest | None:
        if current is None:
            return None
        return current.with_closed(at or _now())

    return updater


def mark_reopened(at: datetime | None = None) -> Callable[[PullRequest | None], PullRequest | None]:
    """Updater moving a closed-unmerged pull request back to open."""

    def updater(current: PullRequest | None) -> PullRequest | None:
        if current is None:
            return None
        return current.with_reopened(at or _now())

    return updater


def replace_labels(
    labels: tuple[Label, ...]
) -> Callable[[PullRequest | None], PullRequest | None]:
    def updater(current: PullRequest | None) -> PullRequest | None:
        if current is None:
            return None
        return current.with_labels(labels)

    return updater


def replace_in_list(
    number: int, transform: Callable[[PullRequest], PullRequest], state: StateFilter | str
) -> Callable[[tuple[PullRequest, ...] | None], tuple[PullRequest, ...] | None]:
    """
    Updater for a cached pull request list after a state change.

    The matching pull request is transformed, then dropped if it no longer
    matches the list's state filter.
    """

    def updater(current: tuple[PullRequest, ...] | None) -> tuple[PullRequest, ...] | None:
        if current is None:
            return None
        result = []
        for pr in current:
            if pr.number == number:
                pr = transform(pr)
                if not pr.matches_state(state):
                    continue
            result.append(pr)
        return tuple(result)

    return updater


def _same_comment(comment: Comment | IssueComment, comment_id: int, thread_id: str | None) -> bool:
    return comment.id == comment_id and comment.thread_id == thread_id


def edit_comment(
    comment_id: int, body: str, thread_id: str | None = None, at: datetime | None = None
) -> Callable[[tuple | None], tuple | None]:
    """Updater rewriting the body of one comment in a cached comment list."""

    def updater(current: tuple | None) -> tuple | None:
        if current is None:
            return None
        now = at or _now()
        return tuple(
            replace(c, body=body, updated_at=now) if _same_comment(c, comment_id, thread_id) else c
            for c in current
        )

    return updater


def remove_comment(
    comment_id: int, thread_id: str | None = None
) -> Callable[[tuple | None], tuple | None]:
    def updater(current: tuple | None) -> tuple | None:
        if current is None:
            return None
        return tuple(c for c in current if not _same_comment(c, comment_id, thread_id))

    return updater


def set_thread_resolved(
    thread_id: str, resolved: bool
) -> Callable[[tuple[ReviewThread, ...] | None], tuple[ReviewThread, ...] | None]:
    """Updater flipping the resolved flag of one cached review thread."""

    def updater(current: tuple[ReviewThread, ...] | None) -> tuple[ReviewThread, ...] | None:
        if current is None:
            return None
        return tuple(
            thread.with_resolved(resolved) if thread.id == thread_id else thread
            for thread in current
        )

    return updater
