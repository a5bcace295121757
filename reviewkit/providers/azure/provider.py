"""Azure DevOps adapter."""

import re
from typing import Any
from urllib.parse import quote

import httpx

from reviewkit.exceptions import ConfigurationError, SchemaValidationError
from reviewkit.providers.azure import mappers
from reviewkit.providers.azure.schemas import (
    AzureBuild,
    AzureComment,
    AzureCommit,
    AzureIteration,
    AzureIterationChanges,
    AzureList,
    AzureProfile,
    AzurePullRequest,
    AzureThread,
)
from reviewkit.providers.base import Provider, ProviderCapabilities
from reviewkit.transport import AsyncHTTPTransport
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
    ReviewThread,
    StateFilter,
    User,
)

API_VERSION = "7.1"

VOTE_APPROVE = 10
VOTE_REJECT = -10

_SHA = re.compile(r"^[0-9a-f]{7,40}$")

# Closed covers both completed and abandoned, so it is searched as both.
_PR_STATUSES = {
    StateFilter.OPEN: ("active",),
    StateFilter.CLOSED: ("completed", "abandoned"),
    StateFilter.ALL: ("all",),
}

_MERGE_STRATEGIES = {
    MergeMethod.MERGE: "noFastForward",
    MergeMethod.SQUASH: "squash",
    MergeMethod.REBASE: "rebase",
}


def split_owner(owner: str) -> tuple[str, str]:
    """
    Split an Azure owner into organization and project.

    Raises:
        ConfigurationError: If owner is not of the form "org/project"
    """
    parts = owner.split("/")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(
            f'Azure DevOps owner must be "organization/project", got {owner!r}'
        )
    return parts[0], parts[1]


class AzureDevOpsProvider(Provider):
    """
    Adapter for Azure DevOps Services.

    Repositories are addressed as ``owner="organization/project"`` and
    ``repo=<repository name>``.
    """

    name = "azure"
    page_cap = 1000
    capabilities = ProviderCapabilities(labels=False, collaborators=False)

    DEFAULT_BASE_URL = "https://dev.azure.com"
    PROFILE_URL = "https://app.vssps.visualstudio.com/_apis/profile/profiles/me"

    def __init__(self, transport: AsyncHTTPTransport) -> None:
        super().__init__(transport)
        self._me: AzureProfile | None = None

    @classmethod
    def from_token(
        cls,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "AzureDevOpsProvider":
        transport = AsyncHTTPTransport(
            base_url=base_url or cls.DEFAULT_BASE_URL,
            # Personal access tokens go in the password slot with an empty user.
            auth=httpx.BasicAuth("", token),
            provider=cls.name,
            headers={"Accept": "application/json"},
            timeout=timeout,
            http_client=http_client,
        )
        return cls(transport)

    def _repo_path(self, owner: str, repo: str) -> str:
        org, project = split_owner(owner)
        return f"/{quote(org)}/{quote(project)}/_apis/git/repositories/{quote(repo)}"

    def _pr_path(self, owner: str, repo: str, number: int | None = None) -> str:
        path = f"{self._repo_path(owner, repo)}/pullrequests"
        if number is not None:
            path = f"{path}/{number}"
        return path

    def _params(self, **params: Any) -> dict[str, Any]:
        return {"api-version": API_VERSION, **params}

    async def _get_list(self, path: str, model: Any, **params: Any) -> list[Any]:
        data = await self.transport.get_json(path, params=self._params(**params))
        return self.parse(AzureList[model], data, path).value

    def _map(self, pr: AzurePullRequest, owner: str, repo: str) -> PullRequest:
        org, project = split_owner(owner)
        return mappers.map_pull_request(pr, self.transport.base_url, org, project, repo)

    def _pr_url(self, owner: str, repo: str, number: int) -> str:
        org, project = split_owner(owner)
        return mappers.pull_request_url(self.transport.base_url, org, project, repo, number)

    async def _profile(self) -> AzureProfile:
        if self._me is None:
            data = await self.transport.get_json(
                self.PROFILE_URL, params={"api-version": API_VERSION}
            )
            self._me = self.parse(AzureProfile, data, "profile/profiles/me")
        return self._me

    async def get_current_user(self) -> User:
        return mappers.map_profile(await self._profile())

    async def _search(
        self, owner: str, repo: str, state: StateFilter, top: int | None = None, **criteria: Any
    ) -> tuple[PullRequest, ...]:
        state = StateFilter(state)
        statuses = _PR_STATUSES[state]
        prs: list[AzurePullRequest] = []
        for status in statuses:
            params = {"searchCriteria.status": status}
            params.update({f"searchCriteria.{key}": value for key, value in criteria.items()})
            if top is not None:
                params["$top"] = top
            prs.extend(await self._get_list(self._pr_path(owner, repo), AzurePullRequest, **params))
        mapped = [self._map(pr, owner, repo) for pr in prs]
        if len(statuses) > 1:
            mapped.sort(key=lambda pr: pr.closed_at or pr.created_at, reverse=True)
        mapped = [pr for pr in mapped if pr.matches_state(state)]
        return tuple(mapped if top is None else mapped[:top])

    async def list_pull_requests(
        self, owner: str, repo: str, options: ListPullRequestsOptions | None = None
    ) -> tuple[PullRequest, ...]:
        options = options or ListPullRequestsOptions()
        return await self._search(owner, repo, options.state, top=self.clamp_limit(options))

    async def _get_pull_request(self, owner: str, repo: str, number: int) -> AzurePullRequest:
        path = self._pr_path(owner, repo, number)
        data = await self.transport.get_json(path, params=self._params())
        return self.parse(AzurePullRequest, data, path)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        return self._map(await self._get_pull_request(owner, repo, number), owner, repo)

    async def _latest_changes(self, owner: str, repo: str, number: int) -> AzureIterationChanges:
        base = self._pr_path(owner, repo, number)
        iterations = await self._get_list(f"{base}/iterations", AzureIteration)
        if not iterations:
            return AzureIterationChanges()
        latest = max(iteration.id for iteration in iterations)
        path = f"{base}/iterations/{latest}/changes"
        data = await self.transport.get_json(path, params=self._params())
        return self.parse(AzureIterationChanges, data, path)

    async def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        changes = await self._latest_changes(owner, repo, number)
        return mappers.changes_to_unified(changes.change_entries)

    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> tuple[FileChange, ...]:
        changes = await self._latest_changes(owner, repo, number)
        return tuple(mappers.map_change(change) for change in changes.change_entries)

    async def get_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> tuple[Commit, ...]:
        commits = await self._get_list(
            f"{self._pr_path(owner, repo, number)}/commits", AzureCommit
        )
        return tuple(mappers.map_commit(commit) for commit in commits)

    async def _get_threads(self, owner: str, repo: str, number: int) -> list[AzureThread]:
        return await self._get_list(f"{self._pr_path(owner, repo, number)}/threads", AzureThread)

    async def get_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[Comment, ...]:
        threads = await self._get_threads(owner, repo, number)
        return mappers.map_threads_to_comments(threads, self._pr_url(owner, repo, number))

    async def get_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        threads = await self._get_threads(owner, repo, number)
        return mappers.map_threads_to_issue_comments(threads, self._pr_url(owner, repo, number))

    async def get_pull_request_reviews(
        self, owner: str, repo: str, number: int
    ) -> tuple[Review, ...]:
        pr = await self._get_pull_request(owner, repo, number)
        return mappers.map_reviews(pr, self._pr_url(owner, repo, number))

    async def get_check_runs(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        org, project = split_owner(owner)
        path = f"/{quote(org)}/{quote(project)}/_apis/build/builds"
        if _SHA.match(ref):
            builds = await self._get_list(path, AzureBuild, **{"$top": 50})
            builds = [b for b in builds if b.source_version and b.source_version.startswith(ref)]
        else:
            branch = ref if ref.startswith("refs/") else f"refs/heads/{ref}"
            builds = await self._get_list(path, AzureBuild, branchName=branch)
        return tuple(mappers.map_build(build) for build in builds)

    async def get_my_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._profile()
        return await self._search(owner, repo, state, creatorId=me.id)

    async def get_review_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._profile()
        return await self._search(owner, repo, state, reviewerId=me.id)

    async def get_involved_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        authored = await self.get_my_pull_requests(owner, repo, state)
        reviewing = await self.get_review_requests(owner, repo, state)
        seen = {pr.number for pr in authored}
        return authored + tuple(pr for pr in reviewing if pr.number not in seen)

    async def _create_thread(
        self, owner: str, repo: str, number: int, payload: dict[str, Any]
    ) -> AzureThread:
        path = f"{self._pr_path(owner, repo, number)}/threads"
        data = await self.transport.send_json("POST", path, payload, params=self._params())
        thread = self.parse(AzureThread, data, path)
        if not thread.comments:
            raise SchemaValidationError(self.name, path)
        return thread

    async def create_inline_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment:
        position = {"line": comment.line, "offset": 1}
        if comment.side is DiffSide.LEFT:
            context = {"leftFileStart": position, "leftFileEnd": position}
        else:
            context = {"rightFileStart": position, "rightFileEnd": position}
        payload = {
            "comments": [{"parentCommentId": 0, "content": comment.body, "commentType": 1}],
            "status": 1,
            "threadContext": {"filePath": f"/{comment.path.lstrip('/')}", **context},
        }
        thread = await self._create_thread(owner, repo, number, payload)
        return mappers.map_thread_comment(
            thread.comments[0], thread, self._pr_url(owner, repo, number)
        )

    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> IssueComment:
        payload = {
            "comments": [{"parentCommentId": 0, "content": body, "commentType": 1}],
            "status": 1,
        }
        thread = await self._create_thread(owner, repo, number, payload)
        return mappers.map_thread_issue_comment(
            thread.comments[0], thread, self._pr_url(owner, repo, number)
        )

    async def _vote(self, owner: str, repo: str, number: int, vote: int) -> None:
        me = await self._profile()
        await self.transport.send_json(
            "PUT",
            f"{self._pr_path(owner, repo, number)}/reviewers/{me.id}",
            {"vote": vote},
            params=self._params(),
        )

    async def approve_review(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        if body and body.strip():
            await self.create_issue_comment(owner, repo, number, body)
        await self._vote(owner, repo, number, VOTE_APPROVE)

    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        if body and body.strip():
            await self.create_issue_comment(owner, repo, number, body)
        await self._vote(owner, repo, number, VOTE_REJECT)

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
        current = await self._get_pull_request(owner, repo, number)
        completion: dict[str, Any] = {"mergeStrategy": _MERGE_STRATEGIES[method]}
        message = "\n\n".join(part for part in (commit_title, commit_message) if part)
        if message:
            completion["mergeCommitMessage"] = message
        payload: dict[str, Any] = {"status": "completed", "completionOptions": completion}
        if current.last_merge_source_commit is not None:
            payload["lastMergeSourceCommit"] = {
                "commitId": current.last_merge_source_commit.commit_id
            }
        path = self._pr_path(owner, repo, number)
        data = await self.transport.send_json("PATCH", path, payload, params=self._params())
        pr = self.parse(AzurePullRequest, data, path)
        return MergeResult(
            merged=pr.status == "completed",
            sha=pr.last_merge_commit.commit_id if pr.last_merge_commit else None,
            message=f"pull request {number} {pr.status}",
        )

    async def close_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = self._pr_path(owner, repo, number)
        data = await self.transport.send_json(
            "PATCH", path, {"status": "abandoned"}, params=self._params()
        )
        return self._map(self.parse(AzurePullRequest, data, path), owner, repo)

    async def reopen_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = self._pr_path(owner, repo, number)
        data = await self.transport.send_json(
            "PATCH", path, {"status": "active"}, params=self._params()
        )
        return self._map(self.parse(AzurePullRequest, data, path), owner, repo)

    def _comment_path(
        self, owner: str, repo: str, number: int, thread_id: str | None, comment_id: int
    ) -> str:
        # Comment ids are only unique within their thread.
        if thread_id is None:
            raise ConfigurationError("Azure DevOps comments are addressed by thread_id and id")
        return f"{self._pr_path(owner, repo, number)}/threads/{thread_id}/comments/{comment_id}"

    async def _edit_comment(
        self, owner: str, repo: str, number: int, comment_id: int, body: str, thread_id: str | None
    ) -> tuple[AzureComment, AzureThread]:
        path = self._comment_path(owner, repo, number, thread_id, comment_id)
        data = await self.transport.send_json(
            "PATCH", path, {"content": body}, params=self._params()
        )
        comment = self.parse(AzureComment, data, path)
        thread_path = f"{self._pr_path(owner, repo, number)}/threads/{thread_id}"
        thread = self.parse(
            AzureThread,
            await self.transport.get_json(thread_path, params=self._params()),
            thread_path,
        )
        return comment, thread

    async def edit_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> IssueComment:
        comment, thread = await self._edit_comment(owner, repo, number, comment_id, body, thread_id)
        return mappers.map_thread_issue_comment(comment, thread, self._pr_url(owner, repo, number))

    async def edit_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> Comment:
        comment, thread = await self._edit_comment(owner, repo, number, comment_id, body, thread_id)
        return mappers.map_thread_comment(comment, thread, self._pr_url(owner, repo, number))

    async def delete_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        thread_id: str | None = None,
    ) -> None:
        await self.transport.request(
            "DELETE",
            self._comment_path(owner, repo, number, thread_id, comment_id),
            params=self._params(),
        )

    async def get_review_threads(
        self, owner: str, repo: str, number: int
    ) -> tuple[ReviewThread, ...]:
        threads = await self._get_threads(owner, repo, number)
        mapped = (mappers.map_thread_to_review_thread(thread) for thread in threads)
        return tuple(thread for thread in mapped if thread is not None)

    async def _set_thread_status(
        self, owner: str, repo: str, number: int, thread_id: str, status: int
    ) -> None:
        await self.transport.send_json(
            "PATCH",
            f"{self._pr_path(owner, repo, number)}/threads/{thread_id}",
            {"status": status},
            params=self._params(),
        )

    async def resolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._set_thread_status(owner, repo, number, thread_id, mappers.THREAD_STATUS_FIXED)

    async def unresolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._set_thread_status(owner, repo, number, thread_id, mappers.THREAD_STATUS_ACTIVE)
