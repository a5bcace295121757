"""Bitbucket Cloud adapter."""

from typing import Any, TypeVar

import httpx

from reviewkit.providers.base import MAX_PAGES, Provider, ProviderCapabilities
from reviewkit.providers.bitbucket import mappers
from reviewkit.providers.bitbucket.schemas import (
    BitbucketComment,
    BitbucketCommit,
    BitbucketDiffStat,
    BitbucketPage,
    BitbucketPipeline,
    BitbucketPipelineStep,
    BitbucketPullRequest,
    BitbucketUser,
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
    ListPullRequestsOptions,
    MergeMethod,
    MergeResult,
    PullRequest,
    Review,
    ReviewEvent,
    ReviewInput,
    StateFilter,
    User,
)

M = TypeVar("M")

# Bitbucket returns only OPEN pull requests unless states are listed.
_PR_STATES = {
    StateFilter.OPEN: ("OPEN",),
    StateFilter.CLOSED: ("MERGED", "DECLINED", "SUPERSEDED"),
    StateFilter.ALL: ("OPEN", "MERGED", "DECLINED", "SUPERSEDED"),
}

_MERGE_STRATEGIES = {
    MergeMethod.MERGE: "merge_commit",
    MergeMethod.SQUASH: "squash",
    MergeMethod.REBASE: "fast_forward",
}


def bitbucket_auth(token: str) -> httpx.Auth:
    """``user:app_password`` credentials use Basic auth; access tokens use Bearer."""
    if ":" in token:
        username, password = token.split(":", 1)
        return httpx.BasicAuth(username, password)
    return BearerAuth(token)


class BitbucketProvider(Provider):
    """Adapter for the Bitbucket Cloud 2.0 API."""

    name = "bitbucket"
    page_cap = 50
    capabilities = ProviderCapabilities(
        review_threads=False, labels=False, collaborators=False, reopen=False
    )
    # Pull request listings omit the reviewers field.
    involved_lists_reviewers = False

    DEFAULT_BASE_URL = "https://api.bitbucket.org/2.0"

    def __init__(self, transport: AsyncHTTPTransport) -> None:
        super().__init__(transport)
        self._me: BitbucketUser | None = None

    @classmethod
    def from_token(
        cls,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "BitbucketProvider":
        transport = AsyncHTTPTransport(
            base_url=base_url or cls.DEFAULT_BASE_URL,
            auth=bitbucket_auth(token),
            provider=cls.name,
            headers={"Accept": "application/json"},
            timeout=timeout,
            http_client=http_client,
        )
        return cls(transport)

    def _pr_path(self, owner: str, repo: str, number: int | None = None) -> str:
        path = f"/repositories/{owner}/{repo}/pullrequests"
        if number is not None:
            path = f"{path}/{number}"
        return path

    async def _get_all_pages(
        self,
        path: str,
        model: type[M],
        params: dict[str, Any] | list[tuple[str, Any]] | None = None,
    ) -> list[M]:
        """Follow the ``next`` links of the ``values`` envelope, up to MAX_PAGES pages."""
        items: list[M] = []
        url: str | None = path
        query = params
        for _ in range(MAX_PAGES):
            if url is None:
                break
            data = await self.transport.get_json(url, params=query)
            page = self.parse(BitbucketPage[model], data, path)
            items.extend(page.values)
            url, query = page.next, None
        return items

    async def _current_bitbucket_user(self) -> BitbucketUser:
        if self._me is None:
            data = await self.transport.get_json("/user")
            self._me = self.parse(BitbucketUser, data, "/user")
        return self._me

    async def get_current_user(self) -> User:
        return mappers.map_user(await self._current_bitbucket_user())

    def _state_params(self, state: StateFilter) -> list[tuple[str, Any]]:
        return [("state", name) for name in _PR_STATES[StateFilter(state)]]

    async def list_pull_requests(
        self, owner: str, repo: str, options: ListPullRequestsOptions | None = None
    ) -> tuple[PullRequest, ...]:
        options = options or ListPullRequestsOptions()
        path = self._pr_path(owner, repo)
        params = [("pagelen", self.clamp_limit(options)), *self._state_params(options.state)]
        data = await self.transport.get_json(path, params=params)
        page = self.parse(BitbucketPage[BitbucketPullRequest], data, path)
        return tuple(mappers.map_pull_request(pr, owner, repo) for pr in page.values)

    async def _get_pull_request(self, owner: str, repo: str, number: int) -> BitbucketPullRequest:
        path = self._pr_path(owner, repo, number)
        return self.parse(BitbucketPullRequest, await self.transport.get_json(path), path)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        pr = await self._get_pull_request(owner, repo, number)
        return mappers.map_pull_request(pr, owner, repo)

    async def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        return await self.transport.get_text(f"{self._pr_path(owner, repo, number)}/diff")

    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> tuple[FileChange, ...]:
        stats = await self._get_all_pages(
            f"{self._pr_path(owner, repo, number)}/diffstat", BitbucketDiffStat
        )
        return tuple(mappers.map_diffstat(stat) for stat in stats)

    async def get_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> tuple[Commit, ...]:
        commits = await self._get_all_pages(
            f"{self._pr_path(owner, repo, number)}/commits", BitbucketCommit
        )
        return tuple(mappers.map_commit(commit) for commit in commits)

    async def _get_comments(self, owner: str, repo: str, number: int) -> list[BitbucketComment]:
        return await self._get_all_pages(
            f"{self._pr_path(owner, repo, number)}/comments",
            BitbucketComment,
            {"pagelen": 100},
        )

    async def get_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[Comment, ...]:
        pr = await self._get_pull_request(owner, repo, number)
        comments = await self._get_comments(owner, repo, number)
        return mappers.map_comments(comments, pr.links.html.href)

    async def get_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        pr = await self._get_pull_request(owner, repo, number)
        comments = await self._get_comments(owner, repo, number)
        return mappers.map_issue_comments(comments, pr.links.html.href)

    async def get_pull_request_reviews(
        self, owner: str, repo: str, number: int
    ) -> tuple[Review, ...]:
        return mappers.map_reviews(await self._get_pull_request(owner, repo, number))

    async def get_check_runs(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        path = f"/repositories/{owner}/{repo}/pipelines/"
        data = await self.transport.get_json(path, params={"sort": "-created_on", "pagelen": 20})
        pipelines = self.parse(BitbucketPage[BitbucketPipeline], data, path).values
        pipeline = next(
            (p for p in pipelines if _targets(p, ref)),
            None,
        )
        if pipeline is None:
            return ()
        steps = await self._get_all_pages(f"{path}{pipeline.uuid}/steps/", BitbucketPipelineStep)
        return tuple(mappers.map_pipeline_step(step) for step in steps)

    async def _query_pull_requests(
        self, owner: str, repo: str, state: StateFilter, query: str
    ) -> tuple[PullRequest, ...]:
        params = [("q", query), ("pagelen", self.page_cap), *self._state_params(state)]
        prs = await self._get_all_pages(self._pr_path(owner, repo), BitbucketPullRequest, params)
        return tuple(mappers.map_pull_request(pr, owner, repo) for pr in prs)

    async def get_my_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._current_bitbucket_user()
        return await self._query_pull_requests(owner, repo, state, f'author.uuid="{me.uuid}"')

    async def get_review_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._current_bitbucket_user()
        return await self._query_pull_requests(owner, repo, state, f'reviewers.uuid="{me.uuid}"')

    async def get_involved_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._current_bitbucket_user()
        query = f'(author.uuid="{me.uuid}" OR reviewers.uuid="{me.uuid}")'
        return await self._query_pull_requests(owner, repo, state, query)

    async def create_inline_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment:
        anchor = "from" if comment.side is DiffSide.LEFT else "to"
        payload: dict[str, Any] = {
            "content": {"raw": comment.body},
            "inline": {"path": comment.path, anchor: comment.line},
        }
        if comment.in_reply_to_id is not None:
            payload["parent"] = {"id": comment.in_reply_to_id}
        path = f"{self._pr_path(owner, repo, number)}/comments"
        data = await self.transport.send_json("POST", path, payload)
        return mappers.map_comment(self.parse(BitbucketComment, data, path), "")

    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> IssueComment:
        path = f"{self._pr_path(owner, repo, number)}/comments"
        data = await self.transport.send_json("POST", path, {"content": {"raw": body}})
        return mappers.map_issue_comment(self.parse(BitbucketComment, data, path), "")

    async def approve_review(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        await self.transport.send_json("POST", f"{self._pr_path(owner, repo, number)}/approve")
        if body and body.strip():
            await self.create_issue_comment(owner, repo, number, body)

    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        await self.transport.send_json(
            "POST", f"{self._pr_path(owner, repo, number)}/request-changes"
        )
        if body and body.strip():
            await self.create_issue_comment(owner, repo, number, body)

    async def create_review(
        self, owner: str, repo: str, number: int, review: ReviewInput
    ) -> None:
        for inline in review.comments:
            await self.create_inline_comment(
                owner,
                repo,
                number,
                CommentInput(body=inline.body, path=inline.path, line=inline.line, side=inline.side),
            )
        if review.event is ReviewEvent.APPROVE:
            await self.approve_review(owner, repo, number, review.body)
        elif review.event is ReviewEvent.REQUEST_CHANGES:
            await self.request_changes(owner, repo, number, review.body)
        elif review.body.strip():
            await self.create_issue_comment(owner, repo, number, review.body)

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
        payload: dict[str, Any] = {"merge_strategy": _MERGE_STRATEGIES[method]}
        message = "\n\n".join(part for part in (commit_title, commit_message) if part)
        if message:
            payload["message"] = message
        path = f"{self._pr_path(owner, repo, number)}/merge"
        pr = self.parse(BitbucketPullRequest, await self.transport.send_json("POST", path, payload), path)
        return MergeResult(
            merged=pr.state == "MERGED",
            sha=pr.merge_commit.hash if pr.merge_commit else None,
            message=f"pull request #{number} {pr.state.lower()}",
        )

    async def close_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = f"{self._pr_path(owner, repo, number)}/decline"
        pr = self.parse(BitbucketPullRequest, await self.transport.send_json("POST", path), path)
        return mappers.map_pull_request(pr, owner, repo)

    async def _edit_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str
    ) -> BitbucketComment:
        path = f"{self._pr_path(owner, repo, number)}/comments/{comment_id}"
        data = await self.transport.send_json("PUT", path, {"content": {"raw": body}})
        return self.parse(BitbucketComment, data, path)

    async def edit_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> IssueComment:
        comment = await self._edit_comment(owner, repo, number, comment_id, body)
        return mappers.map_issue_comment(comment, "")

    async def edit_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> Comment:
        comment = await self._edit_comment(owner, repo, number, comment_id, body)
        return mappers.map_comment(comment, "")

    async def delete_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        thread_id: str | None = None,
    ) -> None:
        await self.transport.request(
            "DELETE", f"{self._pr_path(owner, repo, number)}/comments/{comment_id}"
        )


def _targets(pipeline: BitbucketPipeline, ref: str) -> bool:
    target = pipeline.target
    if target is None:
        return False
    if target.ref_name == ref:
        return True
    return target.commit is not None and target.commit.hash.startswith(ref)
