"""Reviews resource client."""

from typing import TYPE_CHECKING

from reviewkit.query import OptimisticUpdate, ResourceKind
from reviewkit.query.keys import current_user_key, pull_request_key, pull_request_resource_key
from reviewkit.query.optimistic import append, create_optimistic_comment, create_optimistic_review
from reviewkit.types import (
    CommentInput,
    Review,
    ReviewCommentInput,
    ReviewEvent,
    ReviewInput,
)

if TYPE_CHECKING:
    from reviewkit.providers import Provider
    from reviewkit.query import QueryClient


class ReviewsClient:
    """Client for review verdicts."""

    def __init__(self, provider: "Provider", queries: "QueryClient") -> None:
        self.provider = provider
        self.queries = queries

    async def list(self, owner: str, repo: str, number: int) -> tuple[Review, ...]:
        return await self.queries.fetch_query(
            pull_request_resource_key(ResourceKind.PULL_REQUEST_REVIEWS, owner, repo, number),
            lambda: self.provider.get_pull_request_reviews(owner, repo, number),
        )

    async def approve(self, owner: str, repo: str, number: int, body: str | None = None) -> None:
        """Approve a pull request, optionally with a message."""
        await self._submit(
            owner,
            repo,
            number,
            ReviewInput(ReviewEvent.APPROVE, body or ""),
            lambda: self.provider.approve_review(owner, repo, number, body),
        )

    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        """Ask the author for changes."""
        await self._submit(
            owner,
            repo,
            number,
            ReviewInput(ReviewEvent.REQUEST_CHANGES, body or ""),
            lambda: self.provider.request_changes(owner, repo, number, body),
        )

    async def submit(
        self,
        owner: str,
        repo: str,
        number: int,
        event: ReviewEvent | str,
        body: str = "",
        comments: tuple[ReviewCommentInput, ...] = (),
    ) -> None:
        """
        Submit a review with a verdict and optional inline comments.

        Args:
            owner: Repository owner
            repo: Repository name
            number: Pull request number
            event: APPROVE, REQUEST_CHANGES or COMMENT
            body: Review summary
            comments: Inline comments submitted with the review
        """
        review = ReviewInput(event=event, body=body, comments=tuple(comments))
        await self._submit(
            owner,
            repo,
            number,
            review,
            lambda: self.provider.create_review(owner, repo, number, review),
        )

    async def _submit(self, owner, repo, number, review: ReviewInput, effect) -> None:
        author = self.queries.get_query_data(current_user_key())
        reviews_key = pull_request_resource_key(
            ResourceKind.PULL_REQUEST_REVIEWS, owner, repo, number
        )
        updates = [
            OptimisticUpdate(
                reviews_key, append(create_optimistic_review(review.event, review.body, author))
            )
        ]
        if review.comments:
            comments_key = pull_request_resource_key(
                ResourceKind.PULL_REQUEST_COMMENTS, owner, repo, number
            )
            for inline in review.comments:
                placeholder = create_optimistic_comment(
                    CommentInput(
                        body=inline.body, path=inline.path, line=inline.line, side=inline.side
                    ),
                    author,
                )
                updates.append(OptimisticUpdate(comments_key, append(placeholder)))

        await self.queries.mutate(
            effect,
            updates=updates,
            invalidate=[
                pull_request_key(owner, repo, number),
                pull_request_resource_key(ResourceKind.ISSUE_COMMENTS, owner, repo, number),
            ],
        )
