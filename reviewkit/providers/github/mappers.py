"""GitHub payload to canonical model mapping."""

from reviewkit.providers.github.schemas import (
    GitHubCheckRun,
    GitHubCommit,
    GitHubFile,
    GitHubIssueComment,
    GitHubLabel,
    GitHubPullRequest,
    GitHubReview,
    GitHubReviewComment,
    GitHubReviewThread,
    GitHubSearchItem,
    GitHubUser,
)
from reviewkit.providers.mapping import (
    GHOST_USER,
    check_outcome,
    closed_at_for,
    strip_ref,
    user_type,
)
from reviewkit.types import (
    BranchRef,
    CheckConclusion,
    CheckRun,
    CheckStatus,
    Comment,
    Commit,
    CommitAuthor,
    DiffSide,
    FileChange,
    FileStatus,
    IssueComment,
    Label,
    PullRequest,
    PullRequestState,
    RepositoryRef,
    Review,
    ReviewState,
    ReviewThread,
    User,
)

FILE_STATUSES = {
    "added": FileStatus.ADDED,
    "copied": FileStatus.ADDED,
    "removed": FileStatus.REMOVED,
    "modified": FileStatus.MODIFIED,
    "changed": FileStatus.MODIFIED,
    "unchanged": FileStatus.MODIFIED,
    "renamed": FileStatus.RENAMED,
}

REVIEW_STATES = {
    "APPROVED": ReviewState.APPROVED,
    "CHANGES_REQUESTED": ReviewState.CHANGES_REQUESTED,
    "COMMENTED": ReviewState.COMMENTED,
    "DISMISSED": ReviewState.COMMENTED,
}

CHECK_STATUSES = {
    "queued": CheckStatus.QUEUED,
    "requested": CheckStatus.QUEUED,
    "waiting": CheckStatus.QUEUED,
    "pending": CheckStatus.QUEUED,
    "in_progress": CheckStatus.IN_PROGRESS,
    "completed": CheckStatus.COMPLETED,
}

CHECK_CONCLUSIONS = {
    "success": CheckConclusion.SUCCESS,
    "failure": CheckConclusion.FAILURE,
    "neutral": CheckConclusion.NEUTRAL,
    "cancelled": CheckConclusion.CANCELLED,
    "timed_out": CheckConclusion.TIMED_OUT,
    "skipped": CheckConclusion.SKIPPED,
    "action_required": CheckConclusion.FAILURE,
    "startup_failure": CheckConclusion.FAILURE,
    "stale": CheckConclusion.NEUTRAL,
}


def map_user(user: GitHubUser | None) -> User:
    if user is None:
        return GHOST_USER
    return User(
        login=user.login,
        id=user.id,
        avatar_url=user.avatar_url,
        html_url=user.html_url,
        type=user_type(user.type),
    )


def map_label(label: GitHubLabel) -> Label:
    return Label(name=label.name, color=label.color, description=label.description)


def map_pull_request(pr: GitHubPullRequest, owner: str, repo: str) -> PullRequest:
    """
    Map a pull request payload.

    The list endpoint omits ``merged``, so a set ``merged_at`` also counts.
    """
    merged = bool(pr.merged) or pr.merged_at is not None
    state = PullRequestState.OPEN if pr.state == "open" and not merged else PullRequestState.CLOSED
    repository = RepositoryRef(owner=owner, name=repo)
    if pr.base.repo is not None:
        repository = RepositoryRef(owner=pr.base.repo.owner.login, name=pr.base.repo.name)

    return PullRequest(
        id=str(pr.id),
        number=pr.number,
        title=pr.title,
        body=pr.body,
        state=state,
        merged=merged,
        author=map_user(pr.user),
        head=BranchRef(ref=strip_ref(pr.head.ref), sha=pr.head.sha),
        base=BranchRef(ref=strip_ref(pr.base.ref), sha=pr.base.sha),
        repository=repository,
        created_at=pr.created_at,
        updated_at=pr.updated_at,
        merged_at=pr.merged_at if merged else None,
        closed_at=closed_at_for(merged, pr.merged_at, pr.closed_at),
        labels=tuple(map_label(label) for label in pr.labels),
        requested_reviewers=tuple(map_user(user) for user in pr.requested_reviewers),
        mergeable=pr.mergeable,
        draft=pr.draft,
        html_url=pr.html_url,
    )


def _repository_from_url(repository_url: str, owner: str, repo: str) -> RepositoryRef:
    # https://api.github.com/repos/{owner}/{repo}
    parts = repository_url.rstrip("/").split("/")
    if len(parts) >= 2 and "repos" in parts:
        return RepositoryRef(owner=parts[-2], name=parts[-1])
    return RepositoryRef(owner=owner, name=repo)


def map_search_item(item: GitHubSearchItem, owner: str, repo: str) -> PullRequest:
    """
    Map an issue-shaped search hit.

    Search results carry no branch information, so ``head`` and ``base``
    are left empty.
    """
    merged_at = item.pull_request.merged_at if item.pull_request else None
    merged = merged_at is not None
    state = PullRequestState.OPEN if item.state == "open" and not merged else PullRequestState.CLOSED
    return PullRequest(
        id=str(item.id),
        number=item.number,
        title=item.title,
        body=item.body,
        state=state,
        merged=merged,
        author=map_user(item.user),
        head=BranchRef(ref=""),
        base=BranchRef(ref=""),
        repository=_repository_from_url(item.repository_url, owner, repo),
        created_at=item.created_at,
        updated_at=item.updated_at,
        merged_at=merged_at,
        closed_at=closed_at_for(merged, merged_at, item.closed_at),
        labels=tuple(map_label(label) for label in item.labels),
        draft=item.draft,
        html_url=item.html_url,
    )


def map_review_comment(comment: GitHubReviewComment) -> Comment:
    side = DiffSide(comment.side) if comment.side in ("LEFT", "RIGHT") else DiffSide.RIGHT
    return Comment(
        id=comment.id,
        body=comment.body,
        author=map_user(comment.user),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        html_url=comment.html_url,
        path=comment.path,
        line=comment.line if comment.line is not None else comment.original_line,
        side=side,
        in_reply_to_id=comment.in_reply_to_id,
    )


def map_issue_comment(comment: GitHubIssueComment) -> IssueComment:
    return IssueComment(
        id=comment.id,
        body=comment.body,
        author=map_user(comment.user),
        created_at=comment.created_at,
        updated_at=comment.updated_at,
        html_url=comment.html_url,
    )


def map_review_thread(thread: GitHubReviewThread) -> ReviewThread:
    return ReviewThread(
        id=thread.id,
        resolved=thread.is_resolved,
        comment_ids=tuple(
            c.database_id for c in thread.comments.nodes if c.database_id is not None
        ),
        path=thread.path,
        line=thread.line,
    )


def map_review(review: GitHubReview) -> Review | None:
    """Map a review; pending (unsubmitted) reviews map to None."""
    state = REVIEW_STATES.get(review.state)
    if state is None:
        return None
    return Review(
        id=review.id,
        author=map_user(review.user),
        state=state,
        body=review.body or None,
        submitted_at=review.submitted_at,
        html_url=review.html_url,
    )


def map_file(file: GitHubFile) -> FileChange:
    status = FILE_STATUSES.get(file.status, FileStatus.MODIFIED)
    return FileChange(
        filename=file.filename,
        status=status,
        additions=file.additions,
        deletions=file.deletions,
        previous_filename=file.previous_filename if status is FileStatus.RENAMED else None,
        patch=file.patch,
    )


def map_commit(commit: GitHubCommit) -> Commit:
    actor = commit.commit.author
    return Commit(
        sha=commit.sha,
        message=commit.commit.message,
        author=CommitAuthor(
            name=actor.name if actor else "",
            email=actor.email if actor else "",
            date=actor.date if actor else None,
        ),
        user=map_user(commit.author) if commit.author else None,
        html_url=commit.html_url,
    )


def map_check_run(run: GitHubCheckRun) -> CheckRun:
    status, conclusion = check_outcome(
        CHECK_STATUSES.get(run.status, CheckStatus.QUEUED),
        CHECK_CONCLUSIONS.get(run.conclusion) if run.conclusion else None,
    )
    return CheckRun(
        id=run.id,
        name=run.name,
        status=status,
        conclusion=conclusion,
        started_at=run.started_at,
        completed_at=run.completed_at,
        html_url=run.html_url or "",
    )
