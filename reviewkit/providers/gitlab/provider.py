"""GitLab adapter."""

from typing import Any, TypeVar
from urllib.parse import quote

import httpx

from reviewkit.exceptions import ProviderError, SchemaValidationError
from reviewkit.providers.base import MAX_PAGES, Provider, ProviderCapabilities
from reviewkit.providers.gitlab import mappers
from reviewkit.providers.gitlab.schemas import (
    GitLabApprovals,
    GitLabCommit,
    GitLabDiff,
    GitLabDiscussion,
    GitLabJob,
    GitLabLabel,
    GitLabMergeRequest,
    GitLabNote,
    GitLabPipeline,
    GitLabUser,
)
from reviewkit.transport import AsyncHTTPTransport, HeaderTokenAuth
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

# GitLab "closed" excludes merged requests; canonical closed includes them,
# so closed queries ask for both states and merge the results.
_MR_STATES = {
    StateFilter.OPEN: ("opened",),
    StateFilter.CLOSED: ("closed", "merged"),
    StateFilter.ALL: ("all",),
}


def encode_project_path(owner: str, repo: str) -> str:
    """URL-encode ``owner/repo`` into a single path segment (``group%2Fproject``)."""
    return quote(f"{owner}/{repo}", safe="")


class GitLabProvider(Provider):
    """Adapter for the GitLab REST API (gitlab.com or self-managed)."""

    name = "gitlab"
    page_cap = 100
    capabilities = ProviderCapabilities(
        merge_methods=frozenset({MergeMethod.MERGE, MergeMethod.SQUASH}),
    )

    DEFAULT_BASE_URL = "https://gitlab.com/api/v4"

    def __init__(self, transport: AsyncHTTPTransport) -> None:
        super().__init__(transport)
        self._me: GitLabUser | None = None

    @classmethod
    def from_token(
        cls,
        token: str,
        base_url: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "GitLabProvider":
        transport = AsyncHTTPTransport(
            base_url=base_url or cls.DEFAULT_BASE_URL,
            auth=HeaderTokenAuth("PRIVATE-TOKEN", token),
            provider=cls.name,
            headers={"Accept": "application/json"},
            timeout=timeout,
            http_client=http_client,
        )
        return cls(transport)

    def _mr_path(self, owner: str, repo: str, number: int | None = None) -> str:
        path = f"/projects/{encode_project_path(owner, repo)}/merge_requests"
        if number is not None:
            path = f"{path}/{number}"
        return path

    async def _get_all_pages(
        self, path: str, model: type[M], params: dict[str, Any] | None = None
    ) -> list[M]:
        """Follow the ``X-Next-Page`` header, up to MAX_PAGES pages."""
        items: list[M] = []
        page = "1"
        for _ in range(MAX_PAGES):
            response = await self.transport.request(
                "GET", path, params={"per_page": 100, **(params or {}), "page": page}
            )
            items.extend(self.parse(list[model], self.transport.decode_json(response, path), path))
            page = response.headers.get("X-Next-Page", "")
            if not page:
                break
        return items

    async def _current_gitlab_user(self) -> GitLabUser:
        if self._me is None:
            data = await self.transport.get_json("/user")
            self._me = self.parse(GitLabUser, data, "/user")
        return self._me

    async def get_current_user(self) -> User:
        return mappers.map_user(await self._current_gitlab_user())

    async def _list_merge_requests(
        self, owner: str, repo: str, state: StateFilter, limit: int | None = None, **filters: Any
    ) -> tuple[PullRequest, ...]:
        """
        List merge requests in one canonical state, newest update first.

        Each GitLab state is queried separately, so a ``limit`` is honored
        per state before the merged result is cut down to it.
        """
        path = self._mr_path(owner, repo)
        gitlab_states = _MR_STATES[state]
        mrs: list[GitLabMergeRequest] = []
        for gitlab_state in gitlab_states:
            params = {"state": gitlab_state, "order_by": "updated_at", "sort": "desc", **filters}
            if limit is None:
                mrs.extend(await self._get_all_pages(path, GitLabMergeRequest, params))
            else:
                data = await self.transport.get_json(path, params={**params, "per_page": limit})
                mrs.extend(self.parse(list[GitLabMergeRequest], data, path))
        prs = [mappers.map_merge_request(mr, owner, repo) for mr in mrs]
        if len(gitlab_states) > 1:
            prs.sort(key=lambda pr: pr.updated_at, reverse=True)
        prs = [pr for pr in prs if pr.matches_state(state)]
        return tuple(prs if limit is None else prs[:limit])

    async def list_pull_requests(
        self, owner: str, repo: str, options: ListPullRequestsOptions | None = None
    ) -> tuple[PullRequest, ...]:
        options = options or ListPullRequestsOptions()
        return await self._list_merge_requests(
            owner, repo, options.state, limit=self.clamp_limit(options)
        )

    async def _get_merge_request(self, owner: str, repo: str, number: int) -> GitLabMergeRequest:
        path = self._mr_path(owner, repo, number)
        data = await self.transport.get_json(path)
        return self.parse(GitLabMergeRequest, data, path)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        mr = await self._get_merge_request(owner, repo, number)
        return mappers.map_merge_request(mr, owner, repo)

    async def _get_diffs(self, owner: str, repo: str, number: int) -> list[GitLabDiff]:
        return await self._get_all_pages(f"{self._mr_path(owner, repo, number)}/diffs", GitLabDiff)

    async def get_pull_request_diff(self, owner: str, repo: str, number: int) -> str:
        return mappers.diffs_to_unified(await self._get_diffs(owner, repo, number))

    async def get_pull_request_files(
        self, owner: str, repo: str, number: int
    ) -> tuple[FileChange, ...]:
        diffs = await self._get_diffs(owner, repo, number)
        return tuple(mappers.map_diff_to_file_change(diff) for diff in diffs)

    async def get_pull_request_commits(
        self, owner: str, repo: str, number: int
    ) -> tuple[Commit, ...]:
        commits = await self._get_all_pages(
            f"{self._mr_path(owner, repo, number)}/commits", GitLabCommit
        )
        return tuple(mappers.map_commit(commit) for commit in commits)

    async def _get_notes(self, owner: str, repo: str, number: int) -> list[GitLabNote]:
        return await self._get_all_pages(
            f"{self._mr_path(owner, repo, number)}/notes",
            GitLabNote,
            {"sort": "asc", "order_by": "created_at"},
        )

    async def get_pull_request_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[Comment, ...]:
        mr = await self._get_merge_request(owner, repo, number)
        notes = await self._get_notes(owner, repo, number)
        return mappers.map_notes_to_comments(notes, mr.web_url)

    async def get_issue_comments(
        self, owner: str, repo: str, number: int
    ) -> tuple[IssueComment, ...]:
        mr = await self._get_merge_request(owner, repo, number)
        notes = await self._get_notes(owner, repo, number)
        return mappers.map_notes_to_issue_comments(notes, mr.web_url)

    async def get_pull_request_reviews(
        self, owner: str, repo: str, number: int
    ) -> tuple[Review, ...]:
        mr = await self._get_merge_request(owner, repo, number)
        path = f"{self._mr_path(owner, repo, number)}/approvals"
        approvals = self.parse(GitLabApprovals, await self.transport.get_json(path), path)
        return mappers.map_approvals_to_reviews(approvals, mr.updated_at, mr.web_url)

    async def get_check_runs(self, owner: str, repo: str, ref: str) -> tuple[CheckRun, ...]:
        project = f"/projects/{encode_project_path(owner, repo)}"
        path = f"{project}/pipelines"
        data = await self.transport.get_json(path, params={"sha": ref, "per_page": 1})
        pipelines = self.parse(list[GitLabPipeline], data, path)
        if not pipelines:
            # Branch names are accepted as well as shas.
            data = await self.transport.get_json(path, params={"ref": ref, "per_page": 1})
            pipelines = self.parse(list[GitLabPipeline], data, path)
        if not pipelines:
            return ()
        jobs = await self._get_all_pages(f"{project}/pipelines/{pipelines[0].id}/jobs", GitLabJob)
        return tuple(mappers.map_job_to_check_run(job) for job in jobs)

    async def get_my_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._current_gitlab_user()
        return await self._list_merge_requests(
            owner, repo, StateFilter(state), author_username=me.username
        )

    async def get_review_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        me = await self._current_gitlab_user()
        return await self._list_merge_requests(
            owner, repo, StateFilter(state), reviewer_username=me.username
        )

    async def get_involved_pull_requests(
        self, owner: str, repo: str, state: StateFilter = StateFilter.OPEN
    ) -> tuple[PullRequest, ...]:
        authored = await self.get_my_pull_requests(owner, repo, state)
        reviewing = await self.get_review_requests(owner, repo, state)
        seen = {pr.number for pr in authored}
        return authored + tuple(pr for pr in reviewing if pr.number not in seen)

    async def create_inline_comment(
        self, owner: str, repo: str, number: int, comment: CommentInput
    ) -> Comment:
        mr = await self._get_merge_request(owner, repo, number)
        if mr.diff_refs is None:
            raise ProviderError(
                f"merge request !{number} has no diff to comment on", provider=self.name
            )
        position: dict[str, Any] = {
            "position_type": "text",
            "base_sha": mr.diff_refs.base_sha,
            "head_sha": mr.diff_refs.head_sha,
            "start_sha": mr.diff_refs.start_sha,
            "new_path": comment.path,
            "old_path": comment.path,
        }
        if comment.side is DiffSide.LEFT:
            position["old_line"] = comment.line
        else:
            position["new_line"] = comment.line

        path = f"{self._mr_path(owner, repo, number)}/discussions"
        data = await self.transport.send_json(
            "POST", path, {"body": comment.body, "position": position}
        )
        discussion = self.parse(GitLabDiscussion, data, path)
        if not discussion.notes:
            raise SchemaValidationError(self.name, path)
        return mappers.map_note_to_comment(discussion.notes[0], mr.web_url)

    async def create_issue_comment(
        self, owner: str, repo: str, number: int, body: str
    ) -> IssueComment:
        path = f"{self._mr_path(owner, repo, number)}/notes"
        data = await self.transport.send_json("POST", path, {"body": body})
        note = self.parse(GitLabNote, data, path)
        return mappers.map_note_to_issue_comment(note, "")

    async def approve_review(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        await self.transport.send_json("POST", f"{self._mr_path(owner, repo, number)}/approve", {})
        if body and body.strip():
            await self.create_issue_comment(owner, repo, number, body)

    async def request_changes(
        self, owner: str, repo: str, number: int, body: str | None = None
    ) -> None:
        # GitLab has no change-request verdict; the request is recorded as a note.
        note = f"REQUEST_CHANGES: {body}" if body else "REQUEST_CHANGES"
        await self.create_issue_comment(owner, repo, number, note)

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
        payload: dict[str, Any] = {"squash": method is MergeMethod.SQUASH}
        message = "\n\n".join(part for part in (commit_title, commit_message) if part)
        if message:
            key = "squash_commit_message" if method is MergeMethod.SQUASH else "merge_commit_message"
            payload[key] = message
        path = f"{self._mr_path(owner, repo, number)}/merge"
        data = await self.transport.send_json("PUT", path, payload)
        mr = self.parse(GitLabMergeRequest, data, path)
        return MergeResult(
            merged=mr.state == "merged",
            sha=mr.merge_commit_sha or mr.squash_commit_sha,
            message=f"merge request !{number} {mr.state}",
        )

    async def close_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = self._mr_path(owner, repo, number)
        data = await self.transport.send_json("PUT", path, {"state_event": "close"})
        return mappers.map_merge_request(self.parse(GitLabMergeRequest, data, path), owner, repo)

    async def reopen_pull_request(self, owner: str, repo: str, number: int) -> PullRequest:
        path = self._mr_path(owner, repo, number)
        data = await self.transport.send_json("PUT", path, {"state_event": "reopen"})
        return mappers.map_merge_request(self.parse(GitLabMergeRequest, data, path), owner, repo)

    async def _edit_note(
        self, owner: str, repo: str, number: int, note_id: int, body: str
    ) -> GitLabNote:
        path = f"{self._mr_path(owner, repo, number)}/notes/{note_id}"
        data = await self.transport.send_json("PUT", path, {"body": body})
        return self.parse(GitLabNote, data, path)

    async def edit_issue_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> IssueComment:
        note = await self._edit_note(owner, repo, number, comment_id, body)
        return mappers.map_note_to_issue_comment(note, "")

    async def edit_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        body: str,
        thread_id: str | None = None,
    ) -> Comment:
        note = await self._edit_note(owner, repo, number, comment_id, body)
        return mappers.map_note_to_comment(note, "")

    async def delete_review_comment(
        self,
        owner: str,
        repo: str,
        number: int,
        comment_id: int,
        thread_id: str | None = None,
    ) -> None:
        await self.transport.request(
            "DELETE", f"{self._mr_path(owner, repo, number)}/notes/{comment_id}"
        )

    async def get_review_threads(
        self, owner: str, repo: str, number: int
    ) -> tuple[ReviewThread, ...]:
        discussions = await self._get_all_pages(
            f"{self._mr_path(owner, repo, number)}/discussions", GitLabDiscussion
        )
        threads = (mappers.map_discussion_to_thread(d) for d in discussions)
        return tuple(thread for thread in threads if thread is not None)

    async def _set_discussion_resolved(
        self, owner: str, repo: str, number: int, thread_id: str, resolved: bool
    ) -> None:
        await self.transport.send_json(
            "PUT",
            f"{self._mr_path(owner, repo, number)}/discussions/{thread_id}",
            {"resolved": resolved},
        )

    async def resolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._set_discussion_resolved(owner, repo, number, thread_id, True)

    async def unresolve_thread(
        self, owner: str, repo: str, number: int, thread_id: str
    ) -> None:
        await self._set_discussion_resolved(owner, repo, number, thread_id, False)

    async def get_labels(self, owner: str, repo: str) -> tuple[Label, ...]:
        labels = await self._get_all_pages(
            f"/projects/{encode_project_path(owner, repo)}/labels", GitLabLabel
        )
        return tuple(mappers.map_label(label) for label in labels)

    async def set_labels(
        self, owner: str, repo: str, number: int, labels: tuple[str, ...]
    ) -> None:
        # An empty string clears every label.
        await self.transport.send_json(
            "PUT", self._mr_path(owner, repo, number), {"labels": ",".join(labels)}
        )

    async def get_collaborators(self, owner: str, repo: str) -> tuple[User, ...]:
        members = await self._get_all_pages(
            f"/projects/{encode_project_path(owner, repo)}/members/all", GitLabUser
        )
        return tuple(mappers.map_user(member) for member in members)
