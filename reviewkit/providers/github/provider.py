"""GitHub adapter."""

from typing import Any, TypeVar

import httpx

from reviewkit.exceptions import ProviderError
from reviewkit.providers.base import (
    MAX_PAGES,
    Provider,
    ProviderCapabilities,
)
from reviewkit.providers.github import mappers
from reviewkit.providers.github.schemas import (
    GitHubCheckRunList,
    GitHubCommit,
    GitHubFile,
    GitHubGraphQLResponse,
    GitHubIssueComment,
    GitHubLabel,
    GitHubMergeResponse,
    GitHubPullRequest,
    GitHubReview,
    GitHubReviewComment,
    GitHubReviewThreadPage,
    GitHubSearchResult,
    GitHubUser,
)
from reviewkit.transport import AsyncHTTPTransport, BearerAuth
from reviewkit.types import (
    CheckRun,
    Comment,
    CommentInput,
    Commit,
    DiffSide,
    FileChange,
    IssueComment,
    Label,
    ListPullRequestsOptions,
    MergeMethod,
    MergeResult,
    PullRequest,
    Review,
    ReviewEvent,
    ReviewInput,
    ReviewThread,
    StateFilter,
    User,
)

M = TypeVar("M")

DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"

_SEARCH_STATES = {
    StateFilter.OPEN: "is:open",
    StateFilter.CLOSED: "is:closed",
    StateFilter.ALL: "",
}

REVIEW_THREADS_QUERY = """
query($owner: String!, $repo: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $number) {
      reviewThreads(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          isResolved
          path
          line
          comments(first: 100) { nodes { databaseId } }
        }
      }
    }
  }
}
"""

RESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  resolveReviewThread(input: {threadId: $threadId}) { thread { id isResolved } }
}
"""

UNRESOLVE_THREAD_MUTATION = """
mutation($threadId: ID!) {
  unresolveReviewThread(input: {threadId: $threadId}) { thread { id isResolved } }
}
"""


class GitHubProvider(Provider):
    """
    Adapter for the GitHub REST API.

    Example:
        ```python
        provider = GitHubProvider.from_token("ghp_...")
        prs = await provider.list_pull_requests("octocat", "hello-world")
        ```
    """

    name = "github"
    page_cap = 100
    capabilities = ProviderCapabilities()
    # Search hits do not list requested reviewers.
    involved_lists_reviewers = False

    DEFAULT_BASE_URL = "https://api.github.com"

    @classmethod
    def from_token(
        cls,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "GitHubProvider":
        transport = AsyncHTTPTransport(
            base_url=base_url or cls.DEFAULT_BASE_URL,
            auth=BearerAuth(token),
            provider=cls.name,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            http_client=http_client,
        )
        return cls(transport)

    async def _get_paginated(
        self, path: str, model: type[M], params: dict[str, Any] | None = None
    ) -> list[M]:
        """Follow ``Link: rel="next"`` headers, up to MAX_PAGES pages."""
        items: list[M] = []
        url: str = path
        query: dict[str, Any] | None = {"per_page": 100, **(params or {})}
        for _ in range(MAX_PAGES):
            response = await self.transport.request("GET", url, params=query)
            items.extend(self.parse(list[model], self.transport.decode_json(response, path), path))
            next_url = response.links.get("next", {}).get("url")
            if not next_url:
                break
            url, query = next_url, None
        return items

    async def get_current_user(self) -> User:
        data = await self.transport.get_json("/user")
        return mappers.map_user(self.parse(GitHubUser, data, "/user"))

    async def list_pull_requests(
        self, owner: str, repo: str, options: ListPullRequestsOptions | None = None
    ) -> tuple[PullRequest, ...]:
        options = options or ListPullRequestsOptions()
        path = f"/repos/{owner}/{repo}/pulls"
        data = await self.transport.get_json(
            path,
            params={"state": options.state.value, "per_page": self.clamp_limit(options)},
        )
        pulls = self.parse(list[GitHubPullRequest], data, path)
        return tuple(mappers.map_pull_request(pr, owner, repo) for pr in pulls)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = f"/repos/{owner}/{repo}/pulls/{number}"
        data = await self.transport.get_json(path)
        return mappers.map_pull_request(self.parse(GitHubPullRequest, data, path), owner, repo)

    async def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        return await self.transport.get_text(
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": DIFF_MEDIA_TYPE},
        )

    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> tuple[FileChange, ...]:
        files = await self._get_paginated(f"/repos/{owner}/{repo}/pulls/{number}/files", GitHubFile)
        return tuple(mappers.map_file(file) for file in files)

    async def get_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> tuple[Commit, ...]:
        commits = await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls/{number}/commits", GitHubCommit
        )
        return tuple(mappers.map_commit(commit) for commit in commits)

    async def get_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[Comment, ...]:
        comments = await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls/{number}/comments", GitHubReviewComment
        )
        return tuple(mappers.map_review_comment(comment) for comment in comments)

    async def get_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        comments = await self._get_paginated(
            f"/repos/{owner}/{repo}/issues/{number}/comments", GitHubIssueComment
        )
        return tuple(mappers.map_issue_comment(comment) for comment in comments)

    async def get_pull_request_reviews(
        self, owner: str, repo: str, number: int
    ) -> tuple[Review, ...]:
        reviews = await self._get_paginated(
            f"/repos/{owner}/{repo}/pulls/{number}/reviews", GitHubReview
        )
        mapped = (mappers.map_review(review) for review in reviews)
        return tuple(review for review in mapped if review is not None)

    async def get_check_runs(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        path = f"/repos/{owner}/{repo}/commits/{ref}/check-runs"
        data = await self.transport.get_json(path, params={"per_page": 100})
        result = self.parse(GitHubCheckRunList, data, path)
        return tuple(mappers.map_check_run(run) for run in result.check_runs)

    async def _search_pull_requests(
        self, owner: str, repo: str, state: StateFilter, qualifier: str
    ) -> tuple[PullRequest, ...]:
        terms = ["is:pr", f"repo:{owner}/{repo}", _SEARCH_STATES[StateFilter(state)], qualifier]
        data = await self.transport.get_json(
            "/search/issues",
            params={"q": " ".join(term for term in terms if term), "per_page": 100},
        )
        result = self.parse(GitHubSearchResult, data, "/search/issues")
        return tuple(
            mappers.map_search_item(item, owner, repo)
            for item in result.items
            if item.pull_request is not None
        )

    async def get_my_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        return await self._search_pull_requests(owner, repo, state, "author:@me")

    async def get_review_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        return await self._search_pull_requests(owner, repo, state, "review-requested:@me")

    async def get_involved_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        return await self._search_pull_requests(owner, repo, state, "involves:@me")

    async def create_inline_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment:
        base = f"/repos/{owner}/{repo}/pulls/{number}/comments"
        if comment.in_reply_to_id is not None:
            path = f"{base}/{comment.in_reply_to_id}/replies"
            data = await self.transport.send_json("POST", path, {"body": comment.body})
        else:
            # Line comments must name the commit they were written against.
            pr = await self.get_pull_request(owner, repo, number)
            path = base
            data = await self.transport.send_json(
                "POST",
                path,
                {
                    "body": comment.body,
                    "path": comment.path,
                    "line": comment.line,
                    "side": (comment.side or DiffSide.RIGHT).value,
                    "commit_id": pr.head.sha,
                },
            )
        return mappers.map_review_comment(self.parse(GitHubReviewComment, data, path))

    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> IssueComment:
        path = f"/repos/{owner}/{repo}/issues/{number}/comments"
        data = await self.transport.send_json("POST", path, {"body": body})
        return mappers.map_issue_comment(self.parse(GitHubIssueComment, data, path))

    async def create_review(
        self, owner: str, repo: str, number: int, review: ReviewInput
    ) -> None:
        payload: dict[str, Any] = {"event": review.event.value, "body": review.body}
        if review.comments:
            payload["comments"] = [
                {"path": c.path, "line": c.line, "side": c.side.value, "body": c.body}
                for c in review.comments
            ]
        await self.transport.send_json(
            "POST", f"/repos/{owner}/{repo}/pulls/{number}/reviews", payload
        )

    async def approve_review(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        await self.create_review(owner, repo, number, ReviewInput(ReviewEvent.APPROVE, body or ""))

    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        await self.create_review(
            owner, repo, number, ReviewInput(ReviewEvent.REQUEST_CHANGES, body or "")
        )

    async def merge_pull_request(
        self,
        owner: str,
        repo: str,
        number: int,
        method: MergeMethod = MergeMethod.MERGE,
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> MergeResult:
        method = self._check_merge_method(method)
        payload: dict[str, Any] = {"merge_method": method.value}
        if commit_title:
            payload["commit_title"] = commit_title
        if commit_message:
            payload["commit_message"] = commit_message
        path = f"/repos/{owner}/{repo}/pulls/{number}/merge"
        data = await self.transport.send_json("PUT", path, payload)
        result = self.parse(GitHubMergeResponse, data, path)
        return MergeResult(merged=result.merged, sha=result.sha, message=result.message)

    async def close_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = f"/repos/{owner}/{repo}/pulls/{number}"
        data = await self.transport.send_json("PATCH", path, {"state": "closed"})
        return mappers.map_pull_request(self.parse(GitHubPullRequest, data, path), owner, repo)

    async def reopen_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = f"/repos/{owner}/{repo}/pulls/{number}"
        data = await self.transport.send_json("PATCH", path, {"state": "open"})
        return mappers.map_pull_request(self.parse(GitHubPullRequest, data, path), owner, repo)

    async def edit_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> IssueComment:
        path = f"/repos/{owner}/{repo}/issues/comments/{comment_id}"
        data = await self.transport.send_json("PATCH", path, {"body": body})
        return mappers.map_issue_comment(self.parse(GitHubIssueComment, data, path))

    async def edit_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> Comment:
        path = f"/repos/{owner}/{repo}/pulls/comments/{comment_id}"
        data = await self.transport.send_json("PATCH", path, {"body": body})
        return mappers.map_review_comment(self.parse(GitHubReviewComment, data, path))

    async def delete_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        thread_id: str | None = None,
    ) -> None:
        await self.transport.request("DELETE", f"/repos/{owner}/{repo}/pulls/comments/{comment_id}")

    def _graphql_url(self) -> str:
        # GitHub Enterprise serves REST under /api/v3 and GraphQL under /api/graphql.
        base = self.transport.base_url
        if base.endswith("/api/v3"):
            return base[: -len("/v3")] + "/graphql"
        return f"{base}/graphql"

    async def _graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """
        Run a GraphQL document.

        Raises:
            ProviderError: If the response carries GraphQL errors; these
                arrive with status 200 so ``status`` is None
        """
        data = await self.transport.send_json(
            "POST", self._graphql_url(), {"query": query, "variables": variables}
        )
        result = self.parse(GitHubGraphQLResponse, data, "/graphql")
        if result.errors:
            raise ProviderError(
                f"{self.name} GraphQL error: {result.errors[0].message}", provider=self.name
            )
        return result.data or {}

    async def get_review_threads(
        self, owner: str, repo: str, number: int
    ) -> tuple[ReviewThread, ...]:
        threads: list[ReviewThread] = []
        cursor = None
        for _ in range(MAX_PAGES):
            data = await self._graphql(
                REVIEW_THREADS_QUERY,
                {"owner": owner, "repo": repo, "number": number, "cursor": cursor},
            )
            pull = (data.get("repository") or {}).get("pullRequest")
            if pull is None:
                raise ProviderError(
                    f"{self.name} pull request {owner}/{repo}#{number} not found",
                    status=404,
                    provider=self.name,
                )
            page = self.parse(GitHubReviewThreadPage, pull.get("reviewThreads"), "/graphql")
            threads.extend(mappers.map_review_thread(thread) for thread in page.nodes)
            if not page.page_info.has_next_page:
                break
            cursor = page.page_info.end_cursor
        return tuple(threads)

    async def resolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._graphql(RESOLVE_THREAD_MUTATION, {"threadId": thread_id})

    async def unresolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._graphql(UNRESOLVE_THREAD_MUTATION, {"threadId": thread_id})

    async def get_labels(self, owner: str, repo: str) -> tuple[Label, ...]:
        labels = await self._get_paginated(f"/repos/{owner}/{repo}/labels", GitHubLabel)
        return tuple(mappers.map_label(label) for label in labels)

    async def set_labels(
        self, owner: str, repo: str, number: int, labels: tuple[str, ...]
    ) -> None:
        # Pull requests share the issue label endpoint.
        await self.transport.send_json(
            "PUT", f"/repos/{owner}/{repo}/issues/{number}/labels", {"labels": list(labels)}
        )

    async def get_collaborators(self, owner: str, repo: str) -> tuple[User, ...]:
        users = await self._get_paginated(f"/repos/{owner}/{repo}/collaborators", GitHubUser)
        return tuple(mappers.map_user(user) for user in users)
