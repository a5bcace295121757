"""GitLab payload to canonical model mapping."""

from datetime import datetime

from reviewkit.providers.gitlab.schemas import (
    GitLabApprovals,
    GitLabCommit,
    GitLabDiff,
    GitLabDiscussion,
    GitLabJob,
    GitLabLabel,
    GitLabMergeRequest,
    GitLabNote,
    GitLabUser,
)
from reviewkit.providers.mapping import (
    CommentKind,
    check_outcome,
    closed_at_for,
    count_diff_lines,
    file_diff,
    strip_ref,
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
    UserType,
)

EMPTY_DIFF_PLACEHOLDER = "+ GitLab returned no diff content for this file"

# GitLab "locked" is a transient state while a merge is being processed.
MR_STATES = {
    "opened": (PullRequestState.OPEN, False),
    "locked": (PullRequestState.OPEN, False),
    "closed": (PullRequestState.CLOSED, False),
    "merged": (PullRequestState.CLOSED, True),
}

JOB_STATUSES = {
    "created": (CheckStatus.QUEUED, None),
    "waiting_for_resource": (CheckStatus.QUEUED, None),
    "preparing": (CheckStatus.QUEUED, None),
    "pending": (CheckStatus.QUEUED, None),
    "scheduled": (CheckStatus.QUEUED, None),
    "manual": (CheckStatus.QUEUED, None),
    "running": (CheckStatus.IN_PROGRESS, None),
    "success": (CheckStatus.COMPLETED, CheckConclusion.SUCCESS),
    "failed": (CheckStatus.COMPLETED, CheckConclusion.FAILURE),
    "canceled": (CheckStatus.COMPLETED, CheckConclusion.CANCELLED),
    "skipped": (CheckStatus.COMPLETED, CheckConclusion.SKIPPED),
}


def map_user(user: GitLabUser) -> User:
    return User(
        login=user.username,
        id=user.id,
        avatar_url=user.avatar_url or "",
        html_url=user.web_url,
        type=UserType.BOT if user.bot else UserType.USER,
    )


def map_merge_request(mr: GitLabMergeRequest, owner: str, repo: str) -> PullRequest:
    state, merged = MR_STATES.get(mr.state, (PullRequestState.CLOSED, False))
    if mr.has_conflicts:
        mergeable = False
    elif mr.merge_status == "can_be_merged":
        mergeable = True
    else:
        mergeable = None

    return PullRequest(
        id=str(mr.id),
        number=mr.iid,
        title=mr.title,
        body=mr.description,
        state=state,
        merged=merged,
        author=map_user(mr.author),
        head=BranchRef(ref=strip_ref(mr.source_branch), sha=mr.sha or ""),
        base=BranchRef(
            ref=strip_ref(mr.target_branch),
            sha=mr.diff_refs.base_sha if mr.diff_refs else "",
        ),
        repository=RepositoryRef(owner=owner, name=repo),
        created_at=mr.created_at,
        updated_at=mr.updated_at,
        merged_at=mr.merged_at if merged else None,
        closed_at=closed_at_for(merged, mr.merged_at, mr.closed_at),
        labels=tuple(Label(name=name) for name in mr.labels),
        requested_reviewers=tuple(map_user(user) for user in mr.reviewers),
        mergeable=mergeable,
        draft=mr.draft,
        html_url=mr.web_url,
    )


def classify_note(note: GitLabNote) -> CommentKind:
    if note.system:
        return CommentKind.SYSTEM
    if note.position is not None and note.position.new_path:
        return CommentKind.INLINE
    return CommentKind.GENERAL


def map_note_to_comment(note: GitLabNote, mr_web_url: str) -> Comment:
    position = note.position
    line = None
    side = None
    if position is not None:
        line = position.new_line if position.new_line is not None else position.old_line
        side = DiffSide.RIGHT if position.new_line is not None else DiffSide.LEFT
    return Comment(
        id=note.id,
        body=note.body,
        author=map_user(note.author),
        created_at=note.created_at,
        updated_at=note.updated_at,
        html_url=f"{mr_web_url}#note_{note.id}",
        path=position.new_path if position else None,
        line=line,
        side=side,
    )


def map_note_to_issue_comment(note: GitLabNote, mr_web_url: str) -> IssueComment:
    return IssueComment(
        id=note.id,
        body=note.body,
        author=map_user(note.author),
        created_at=note.created_at,
        updated_at=note.updated_at,
        html_url=f"{mr_web_url}#note_{note.id}",
    )


def map_notes_to_comments(notes: list[GitLabNote], mr_web_url: str) -> tuple[Comment, ...]:
    return tuple(
        map_note_to_comment(note, mr_web_url)
        for note in notes
        if classify_note(note) is CommentKind.INLINE
    )


def map_notes_to_issue_comments(
    notes: list[GitLabNote], mr_web_url: str
) -> tuple[IssueComment, ...]:
    return tuple(
        map_note_to_issue_comment(note, mr_web_url)
        for note in notes
        if classify_note(note) is CommentKind.GENERAL
    )


def map_discussion_to_thread(discussion: GitLabDiscussion) -> ReviewThread | None:
    """
    Map a discussion to a review thread.

    Single notes, system notes and discussions that cannot be resolved
    map to None. The first note carries the resolution state.
    """
    if discussion.individual_note or not discussion.notes:
        return None
    first = discussion.notes[0]
    if first.system or not first.resolvable:
        return None
    position = first.position
    line = None
    if position is not None:
        line = position.new_line if position.new_line is not None else position.old_line
    return ReviewThread(
        id=discussion.id,
        resolved=first.resolved,
        comment_ids=tuple(note.id for note in discussion.notes if not note.system),
        path=position.new_path if position else None,
        line=line,
    )


def map_label(label: GitLabLabel) -> Label:
    return Label(name=label.name, color=label.color.lstrip("#"), description=label.description)


def map_diff_to_file_change(diff: GitLabDiff) -> FileChange:
    if diff.new_file:
        status = FileStatus.ADDED
    elif diff.deleted_file:
        status = FileStatus.REMOVED
    elif diff.renamed_file:
        status = FileStatus.RENAMED
    else:
        status = FileStatus.MODIFIED
    additions, deletions = count_diff_lines(diff.diff)
    return FileChange(
        filename=diff.new_path,
        status=status,
        additions=additions,
        deletions=deletions,
        previous_filename=diff.old_path if diff.renamed_file else None,
        patch=diff.diff or None,
    )


def diffs_to_unified(diffs: list[GitLabDiff]) -> str:
    return "\n".join(
        file_diff(diff.old_path, diff.new_path, diff.diff, EMPTY_DIFF_PLACEHOLDER)
        for diff in diffs
    )


def map_commit(commit: GitLabCommit) -> Commit:
    return Commit(
        sha=commit.id,
        message=commit.message,
        author=CommitAuthor(
            name=commit.author_name,
            email=commit.author_email,
            date=commit.authored_date,
        ),
        html_url=commit.web_url or "",
    )


def map_job_to_check_run(job: GitLabJob) -> CheckRun:
    status, conclusion = JOB_STATUSES.get(job.status, (CheckStatus.QUEUED, None))
    # Allowed failures do not fail the pipeline.
    if conclusion is CheckConclusion.FAILURE and job.allow_failure:
        conclusion = CheckConclusion.NEUTRAL
    status, conclusion = check_outcome(status, conclusion)
    return CheckRun(
        id=job.id,
        name=f"{job.stage} / {job.name}" if job.stage else job.name,
        status=status,
        conclusion=conclusion,
        started_at=job.started_at,
        completed_at=job.finished_at,
        html_url=job.web_url,
    )


def map_approvals_to_reviews(
    approvals: GitLabApprovals, approved_at: datetime | None, mr_web_url: str
) -> tuple[Review, ...]:
    """GitLab has no review objects; each approval becomes an APPROVED review."""
    return tuple(
        Review(
            id=entry.user.id,
            author=map_user(entry.user),
            state=ReviewState.APPROVED,
            submitted_at=approved_at,
            html_url=mr_web_url,
        )
        for entry in approvals.approved_by
    )
