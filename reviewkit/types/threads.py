"""Review thread data models."""

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ReviewThread:
    """
    A resolvable discussion anchored to a diff.

    Attributes:
        id: Backend thread identifier (GitHub node id, GitLab discussion id,
            Azure DevOps thread id)
        resolved: Whether the thread is marked resolved
        comment_ids: Ids of the comments in the thread, oldest first
        path: File the thread is anchored to, when known
        line: Line the thread is anchored to, when known
    """

    id: str
    resolved: bool
    comment_ids: tuple[int, ...] = ()
    path: str | None = None
    line: int | None = None

    def with_resolved(self, resolved: bool) -> "ReviewThread":
        return replace(self, resolved=resolved)
