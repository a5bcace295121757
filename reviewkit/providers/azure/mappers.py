"""Azure DevOps payload to canonical model mapping."""

from reviewkit.providers.azure.schemas import (
    AzureBuild,
    AzureChangeEntry,
    AzureComment,
    AzureCommit,
    AzureIdentity,
    AzureProfile,
    AzurePullRequest,
    AzureReviewer,
    AzureThread,
)
from reviewkit.providers.mapping import CommentKind, check_outcome, closed_at_for, file_diff, strip_ref
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
    identity_hash,
)

MISSING_CONTENT_PLACEHOLDER = "+ Azure DevOps diff content not available via changes API"

PR_STATES = {
    "active": (PullRequestState.OPEN, False),
    "completed": (PullRequestState.CLOSED, True),
    "abandoned": (PullRequestState.CLOSED, False),
}

# Comment types arrive as names or as their numeric codes.
SYSTEM_COMMENT_TYPES = {"system", "codechange", "2", "3"}

# Thread statuses, by name or numeric code, that count as resolved.
RESOLVED_THREAD_STATUSES = {"fixed", "wontfix", "closed", "bydesign", "2", "3", "4", "5"}
THREAD_STATUS_ACTIVE = 1
THREAD_STATUS_FIXED = 2

CHANGE_TYPES = {
    "add": FileStatus.ADDED,
    "1": FileStatus.ADDED,
    "edit": FileStatus.MODIFIED,
    "2": FileStatus.MODIFIED,
    "rename": FileStatus.RENAMED,
    "8": FileStatus.RENAMED,
    "edit, rename": FileStatus.RENAMED,
    "10": FileStatus.RENAMED,
    "delete": FileStatus.REMOVED,
    "16": FileStatus.REMOVED,
}

BUILD_STATUSES = {
    "completed": CheckStatus.COMPLETED,
    "inProgress": CheckStatus.IN_PROGRESS,
}

BUILD_RESULTS = {
    "succeeded": CheckConclusion.SUCCESS,
    "partiallySucceeded": CheckConclusion.NEUTRAL,
    "failed": CheckConclusion.FAILURE,
    "canceled": CheckConclusion.CANCELLED,
}


def vote_to_state(vote: int) -> ReviewState:
    """
    Translate a reviewer vote.

    10 approved, 5 approved with suggestions, 0 no vote, -5 waiting for
    author, -10 rejected.
    """
    if vote >= 10 or vote == 5:
        return ReviewState.APPROVED
    if vote <= -10 or vote == -5:
        return ReviewState.CHANGES_REQUESTED
    return ReviewState.COMMENTED


def map_identity(identity: AzureIdentity) -> User:
    return User(
        login=identity.unique_name or identity.display_name,
        id=identity_hash(identity.id),
        avatar_url=identity.image_url or "",
    )


def map_profile(profile: AzureProfile) -> User:
    return User(
        login=profile.email_address or profile.public_alias or profile.display_name,
        id=identity_hash(profile.id),
    )


def pull_request_url(base_url: str, org: str, project: str, repo: str, number: int) -> str:
    return f"{base_url}/{org}/{project}/_git/{repo}/pullrequest/{number}"


def map_pull_request(
    pr: AzurePullRequest, base_url: str, org: str, project: str, repo: str
) -> PullRequest:
    state, merged = PR_STATES.get(pr.status, (PullRequestState.CLOSED, False))
    finished_at = pr.closed_date or pr.creation_date
    merged_at = finished_at if merged else None
    closed_at = finished_at if state is PullRequestState.CLOSED else None
    if pr.merge_status == "succeeded":
        mergeable = True
    elif pr.merge_status in ("conflicts", "rejectedByPolicy", "failure"):
        mergeable = False
    else:
        mergeable = None

    return PullRequest(
        id=str(pr.pull_request_id),
        number=pr.pull_request_id,
        title=pr.title,
        body=pr.description or None,
        state=state,
        merged=merged,
        author=map_identity(pr.created_by),
        head=BranchRef(
            ref=strip_ref(pr.source_ref_name),
            sha=pr.last_merge_source_commit.commit_id if pr.last_merge_source_commit else "",
        ),
        base=BranchRef(
            ref=strip_ref(pr.target_ref_name),
            sha=pr.last_merge_target_commit.commit_id if pr.last_merge_target_commit else "",
        ),
        # Azure repositories are addressed as "org/project" + repository name.
        repository=RepositoryRef(owner=f"{org}/{project}", name=repo),
        created_at=pr.creation_date,
        updated_at=pr.closed_date or pr.creation_date,
        merged_at=merged_at,
        closed_at=closed_at_for(merged, merged_at, closed_at),
        labels=tuple(Label(name=label.name) for label in pr.labels),
        requested_reviewers=tuple(
            map_identity(reviewer) for reviewer in pr.reviewers if reviewer.vote == 0
        ),
        mergeable=mergeable,
        draft=pr.is_draft,
        html_url=pull_request_url(base_url, org, project, repo, pr.pull_request_id),
    )


def map_reviewer_to_review(reviewer: AzureReviewer, pr: AzurePullRequest, pr_url: str) -> Review:
    return Review(
        id=identity_hash(reviewer.id),
        author=map_identity(reviewer),
        state=vote_to_state(reviewer.vote),
        submitted_at=pr.closed_date or pr.creation_date,
        html_url=pr_url,
    )


def map_reviews(pr: AzurePullRequest, pr_url: str) -> tuple[Review, ...]:
    """Reviewers who have not voted yet produce no review."""
    return tuple(
        map_reviewer_to_review(reviewer, pr, pr_url)
        for reviewer in pr.reviewers
        if reviewer.vote != 0
    )


def is_system_comment(comment: AzureComment) -> bool:
    return str(comment.comment_type).lower() in SYSTEM_COMMENT_TYPES


def classify_thread(thread: AzureThread) -> CommentKind | None:
    """Classify a thread; deleted threads classify as None."""
    if thread.is_deleted:
        return None
    if all(is_system_comment(comment) for comment in thread.comments):
        return CommentKind.SYSTEM
    if thread.thread_context is not None:
        return CommentKind.INLINE
    return CommentKind.GENERAL


def _visible_comments(thread: AzureThread) -> list[AzureComment]:
    return [c for c in thread.comments if not c.is_deleted and not is_system_comment(c)]


def map_thread_comment(comment: AzureComment, thread: AzureThread, pr_url: str) -> Comment:
    context = thread.thread_context
    path = None
    line = None
    side = None
    if context is not None:
        path = context.file_path.lstrip("/")
        if context.right_file_start is not None:
            line, side = context.right_file_start.line, DiffSide.RIGHT
        elif context.left_file_start is not None:
            line, side = context.left_file_start.line, DiffSide.LEFT
    return Comment(
        id=comment.id,
        body=comment.content,
        author=map_identity(comment.author),
        created_at=comment.published_date,
        updated_at=comment.last_updated_date or comment.published_date,
        html_url=f"{pr_url}?_a=files&discussionId={thread.id}",
        path=path,
        line=line,
        side=side,
        in_reply_to_id=comment.parent_comment_id if comment.parent_comment_id > 0 else None,
        thread_id=str(thread.id),
    )


def map_thread_issue_comment(
    comment: AzureComment, thread: AzureThread, pr_url: str
) -> IssueComment:
    return IssueComment(
        id=comment.id,
        body=comment.content,
        author=map_identity(comment.author),
        created_at=comment.published_date,
        updated_at=comment.last_updated_date or comment.published_date,
        html_url=f"{pr_url}?_a=overview&discussionId={thread.id}",
        thread_id=str(thread.id),
    )


def map_threads_to_comments(threads: list[AzureThread], pr_url: str) -> tuple[Comment, ...]:
    return tuple(
        map_thread_comment(comment, thread, pr_url)
        for thread in threads
        if classify_thread(thread) is CommentKind.INLINE
        for comment in _visible_comments(thread)
    )


def map_threads_to_issue_comments(
    threads: list[AzureThread], pr_url: str
) -> tuple[IssueComment, ...]:
    return tuple(
        map_thread_issue_comment(comment, thread, pr_url)
        for thread in threads
        if classify_thread(thread) is CommentKind.GENERAL
        for comment in _visible_comments(thread)
    )


def is_resolved_status(status: str | int | None) -> bool:
    return status is not None and str(status).lower() in RESOLVED_THREAD_STATUSES


def map_thread_to_review_thread(thread: AzureThread) -> ReviewThread | None:
    """Map an inline thread; deleted, general and system threads map to None."""
    if classify_thread(thread) is not CommentKind.INLINE:
        return None
    comment = map_thread_comment(thread.comments[0], thread, "")
    return ReviewThread(
        id=str(thread.id),
        resolved=is_resolved_status(thread.status),
        comment_ids=tuple(c.id for c in _visible_comments(thread)),
        path=comment.path,
        line=comment.line,
    )


def _repo_path(path: str | None) -> str:
    return (path or "").lstrip("/")


def map_change(change: AzureChangeEntry) -> FileChange:
    status = CHANGE_TYPES.get(str(change.change_type).lower(), FileStatus.MODIFIED)
    previous = None
    if status is FileStatus.RENAMED and change.original_path:
        previous = _repo_path(change.original_path)
    return FileChange(
        filename=_repo_path(change.item.path if change.item else None),
        status=status,
        previous_filename=previous,
    )


def changes_to_unified(changes: list[AzureChangeEntry]) -> str:
    """
    Synthesize a unified diff from iteration changes.

    The changes API carries no hunk content, so every file section holds
    the explicit placeholder line.
    """
    sections = []
    for change in changes:
        file = map_change(change)
        old_path = file.previous_filename or file.filename
        sections.append(file_diff(old_path, file.filename, None, MISSING_CONTENT_PLACEHOLDER))
    return "\n".join(sections)


def map_commit(commit: AzureCommit) -> Commit:
    return Commit(
        sha=commit.commit_id,
        message=commit.comment,
        author=CommitAuthor(
            name=commit.author.name,
            email=commit.author.email,
            date=commit.author.date,
        ),
        html_url=commit.remote_url or "",
    )


def map_build(build: AzureBuild) -> CheckRun:
    status = BUILD_STATUSES.get(build.status, CheckStatus.QUEUED)
    conclusion = None
    if status is CheckStatus.COMPLETED and build.result:
        conclusion = BUILD_RESULTS.get(build.result)
    status, conclusion = check_outcome(status, conclusion)
    name = build.definition.name if build.definition and build.definition.name else None
    html_url = build.links.web.href if build.links and build.links.web else ""
    return CheckRun(
        id=build.id,
        name=name or build.build_number or str(build.id),
        status=status,
        conclusion=conclusion,
        started_at=build.start_time,
        completed_at=build.finish_time,
        html_url=html_url,
    )
