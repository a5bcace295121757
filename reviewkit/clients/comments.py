"""Comments resource client."""

from typing import TYPE_CHECKING

from reviewkit.exceptions import CapabilityError
from reviewkit.query import OptimisticUpdate, ResourceKind
from reviewkit.query.keys import current_user_key, pull_request_resource_key
from reviewkit.query.optimistic import (
    append,
    create_optimistic_comment,
    create_optimistic_issue_comment,
    edit_comment,
    remove_comment,
)
from reviewkit.types import Comment, CommentInput, DiffSide, IssueComment

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class CommentsClient:
    """Client for inline review comments and conversation comments."""

    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def list(self, owner: str, repo: str, number: int) -> tuple[Comment, ...]:
        """Inline review comments of a pull request."""
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.PULL_REQUEST_COMMENTS, owner, repo, number),
            lambda: self.provider.get_pull_request_comments(owner, repo, number),
        )

    async def list_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        """General conversation comments of a pull request."""
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.ISSUE_COMMENTS, owner, repo, number),
            lambda: self.provider.get_issue_comments(owner, repo, number),
        )

    async def create(
        self,
        owner: str,
        repo: str,
        number: int,
        body: str,
        path: str | None = None,
        line: int | None = None,
        side: DiffSide | None = None,
        in_reply_to_id: int | None = None,
    ) -> Comment | IssueComment:
        """
        Post a comment.

        Giving both ``path`` and ``line`` posts an inline comment; anything
        else goes to the conversation. The comment appears in the cached
        list at once, under a temporary negative id, until the list is
        refetched.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            body: Comment text
            path: File path for an inline comment
            line: Line number for an inline comment
            side: Diff side for an inline comment
            in_reply_to_id: Comment being replied to

        Returns:
            The comment as stored by the backend

        Raises:
            CapabilityError: If an inline comment is requested from a
                backend without inline comment support
        """
        comment = CommentInput(
            body=body, path=path, line=line, side=side, in_reply_to_id=in_reply_to_id
        )
        if comment.is_inline and not self.provider.capabilities.inline_comments:
            raise CapabilityError(self.provider.name, "inline comments")

        author = self.queries.get_query_data(current_user_key())
        if comment.is_inline:
            key = pull_request_resource_key(
                ResourceKind.PULL_REQUEST_COMMENTS, owner, repo, number
            )
            placeholder = create_optimistic_comment(comment, author)
        else:
            key = pull_request_resource_key(ResourceKind.ISSUE_COMMENTS, owner, repo, number)
            placeholder = create_optimistic_issue_comment(body, author)

        return await self.queries.mutate(
            lambda: self.provider.create_comment(owner, repo, number, comment),
            updates=[OptimisticUpdate(key, append(placeholder))],
        )

    async def reply(
        self, owner: str, repo: str, number: int, parent: Comment, body: str
    ) -> Comment | IssueComment:
        """Reply to an inline comment, anchored where the parent is."""
        return await self.create(
            owner,
            repo,
            number,
            body,
            path=parent.path,
            line=parent.line,
            side=parent.side,
            in_reply_to_id=parent.id,
        )

    async def edit(
        self, owner: str, repo: str, number: int, comment: Comment | IssueComment, body: str
    ) -> Comment | IssueComment:
        """
        Replace the body of a comment.

        The cached list holding the comment shows the new body at once and
        is rolled back if the backend refuses.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            comment: Comment as returned by ``list`` or ``list_issue_comments``
            body: New markdown body

        Returns:
            The comment as stored by the backend
        """
        if isinstance(comment, Comment):
            kind = ResourceKind.PULL_REQUEST_COMMENTS
            effect = self.provider.edit_review_comment
        else:
            kind = ResourceKind.ISSUE_COMMENTS
            effect = self.provider.edit_issue_comment
        key = pull_request_resource_key(kind, owner, repo, number)
        return await self.queries.mutate(
            lambda: effect(owner, repo, number, comment.id, body, thread_id=comment.thread_id),
            updates=[OptimisticUpdate(key, edit_comment(comment.id, body, comment.thread_id))],
        )

    async def delete(self, owner: str, repo: str, number: int, comment: Comment) -> None:
        """Delete an inline review comment."""
        key = pull_request_resource_key(ResourceKind.PULL_REQUEST_COMMENTS, owner, repo, number)
        await self.queries.mutate(
            lambda: self.provider.delete_review_comment(
                owner, repo, number, comment.id, thread_id=comment.thread_id
            ),
            updates=[OptimisticUpdate(key, remove_comment(comment.id, comment.thread_id))],
        )
