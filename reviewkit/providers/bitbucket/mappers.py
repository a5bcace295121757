"""Bitbucket payload to canonical model mapping."""

import re

from reviewkit.providers.bitbucket.schemas import (
    BitbucketComment,
    BitbucketCommit,
    BitbucketDiffStat,
    BitbucketParticipant,
    BitbucketPipelineStep,
    BitbucketPullRequest,
    BitbucketUser,
)
from reviewkit.providers.mapping import CommentKind, check_outcome, closed_at_for, strip_ref
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
    PullRequest,
    PullRequestState,
    RepositoryRef,
    Review,
    ReviewState,
    User,
    UserType,
    identity_hash,
)

PR_STATES = {
    "OPEN": (PullRequestState.OPEN, False),
    "MERGED": (PullRequestState.CLOSED, True),
    "DECLINED": (PullRequestState.CLOSED, False),
    "SUPERSEDED": (PullRequestState.CLOSED, False),
}

DIFFSTAT_STATUSES = {
    "added": FileStatus.ADDED,
    "removed": FileStatus.REMOVED,
    "renamed": FileStatus.RENAMED,
    "modified": FileStatus.MODIFIED,
    "merge conflict": FileStatus.MODIFIED,
}

STEP_STATUSES = {
    "COMPLETED": CheckStatus.COMPLETED,
    "IN_PROGRESS": CheckStatus.IN_PROGRESS,
    "RUNNING": CheckStatus.IN_PROGRESS,
    "PENDING": CheckStatus.QUEUED,
    "PAUSED": CheckStatus.QUEUED,
    "HALTED": CheckStatus.QUEUED,
}

STEP_RESULTS = {
    "SUCCESSFUL": CheckConclusion.SUCCESS,
    "FAILED": CheckConclusion.FAILURE,
    "ERROR": CheckConclusion.FAILURE,
    "STOPPED": CheckConclusion.CANCELLED,
    "EXPIRED": CheckConclusion.TIMED_OUT,
    "NOT_RUN": CheckConclusion.SKIPPED,
}

_RAW_AUTHOR = re.compile(r"^(.+?)\s*<(.+?)>$")


def map_user(user: BitbucketUser) -> User:
    login = user.nickname or user.display_name or user.uuid
    avatar = user.links.avatar.href if user.links and user.links.avatar else ""
    return User(
        login=login,
        id=identity_hash(user.uuid),
        avatar_url=avatar,
        html_url=f"https://bitbucket.org/{user.nickname or user.uuid}",
        type=UserType.BOT if user.type == "app_user" else UserType.USER,
    )


def map_pull_request(pr: BitbucketPullRequest, owner: str, repo: str) -> PullRequest:
    """
    Map a pull request payload.

    Bitbucket reports no merge or close timestamps; ``updated_on`` of a
    finished pull request stands in for both.
    """
    state, merged = PR_STATES.get(pr.state, (PullRequestState.CLOSED, False))
    merged_at = pr.updated_on if merged else None
    closed_at = pr.updated_on if state is PullRequestState.CLOSED else None
    return PullRequest(
        id=str(pr.id),
        number=pr.id,
        title=pr.title,
        body=pr.description or None,
        state=state,
        merged=merged,
        author=map_user(pr.author),
        head=BranchRef(
            ref=strip_ref(pr.source.branch.name),
            sha=pr.source.commit.hash if pr.source.commit else "",
        ),
        base=BranchRef(
            ref=strip_ref(pr.destination.branch.name),
            sha=pr.destination.commit.hash if pr.destination.commit else "",
        ),
        repository=RepositoryRef(owner=owner, name=repo),
        created_at=pr.created_on,
        updated_at=pr.updated_on,
        merged_at=merged_at,
        closed_at=closed_at_for(merged, merged_at, closed_at),
        requested_reviewers=tuple(map_user(user) for user in pr.reviewers),
        draft=pr.draft,
        html_url=pr.links.html.href,
    )


def classify_comment(comment: BitbucketComment) -> CommentKind | None:
    """Classify a comment; soft-deleted comments classify as None."""
    if comment.deleted:
        return None
    if comment.inline is not None:
        return CommentKind.INLINE
    return CommentKind.GENERAL


def map_comment(comment: BitbucketComment, pr_html_url: str) -> Comment:
    inline = comment.inline
    line = None
    side = None
    if inline is not None:
        line = inline.to if inline.to is not None else inline.from_
        side = DiffSide.RIGHT if inline.to is not None else DiffSide.LEFT
    return Comment(
        id=comment.id,
        body=comment.content.raw,
        author=map_user(comment.user),
        created_at=comment.created_on,
        updated_at=comment.updated_on,
        html_url=f"{pr_html_url}#comment-{comment.id}",
        path=inline.path if inline else None,
        line=line,
        side=side,
        in_reply_to_id=comment.parent.id if comment.parent else None,
    )


def map_issue_comment(comment: BitbucketComment, pr_html_url: str) -> IssueComment:
    return IssueComment(
        id=comment.id,
        body=comment.content.raw,
        author=map_user(comment.user),
        created_at=comment.created_on,
        updated_at=comment.updated_on,
        html_url=f"{pr_html_url}#comment-{comment.id}",
    )


def map_comments(comments: list[BitbucketComment], pr_html_url: str) -> tuple[Comment, ...]:
    return tuple(
        map_comment(comment, pr_html_url)
        for comment in comments
        if classify_comment(comment) is CommentKind.INLINE
    )


def map_issue_comments(
    comments: list[BitbucketComment], pr_html_url: str
) -> tuple[IssueComment, ...]:
    return tuple(
        map_issue_comment(comment, pr_html_url)
        for comment in comments
        if classify_comment(comment) is CommentKind.GENERAL
    )


def map_diffstat(diffstat: BitbucketDiffStat) -> FileChange:
    status = DIFFSTAT_STATUSES.get(diffstat.status, FileStatus.MODIFIED)
    if diffstat.new is not None:
        filename = diffstat.new.path
    elif diffstat.old is not None:
        filename = diffstat.old.path
    else:
        filename = ""
    previous = None
    if status is FileStatus.RENAMED and diffstat.old is not None:
        previous = diffstat.old.path
    return FileChange(
        filename=filename,
        status=status,
        additions=diffstat.lines_added,
        deletions=diffstat.lines_removed,
        previous_filename=previous,
    )


def parse_raw_author(raw: str) -> tuple[str, str]:
    """Split ``"Name <email>"`` into its parts."""
    match = _RAW_AUTHOR.match(raw)
    if match:
        return match.group(1).strip(), match.group(2).strip()
    return raw, ""


def map_commit(commit: BitbucketCommit) -> Commit:
    name, email = parse_raw_author(commit.author.raw)
    html_url = ""
    if commit.links and commit.links.html:
        html_url = commit.links.html.href
    return Commit(
        sha=commit.hash,
        message=commit.message,
        author=CommitAuthor(name=name, email=email, date=commit.date),
        user=map_user(commit.author.user) if commit.author.user else None,
        html_url=html_url,
    )


def map_pipeline_step(step: BitbucketPipelineStep) -> CheckRun:
    status = STEP_STATUSES.get(step.state.name, CheckStatus.QUEUED)
    conclusion = None
    if status is CheckStatus.COMPLETED and step.state.result is not None:
        conclusion = STEP_RESULTS.get(step.state.result.name, CheckConclusion.NEUTRAL)
    status, conclusion = check_outcome(status, conclusion)
    return CheckRun(
        id=identity_hash(step.uuid),
        name=step.name or step.uuid,
        status=status,
        conclusion=conclusion,
        started_at=step.started_on,
        completed_at=step.completed_on,
    )


def map_participant_to_review(
    participant: BitbucketParticipant, pr: BitbucketPullRequest
) -> Review:
    if participant.state == "changes_requested":
        state = ReviewState.CHANGES_REQUESTED
    elif participant.approved:
        state = ReviewState.APPROVED
    else:
        state = ReviewState.COMMENTED
    return Review(
        id=identity_hash(participant.user.uuid),
        author=map_user(participant.user),
        state=state,
        submitted_at=participant.participated_on or pr.updated_on,
        html_url=pr.links.html.href,
    )


def map_reviews(pr: BitbucketPullRequest) -> tuple[Review, ...]:
    """Reviewer participants become reviews; plain participants do not."""
    return tuple(
        map_participant_to_review(participant, pr)
        for participant in pr.participants
        if participant.role == "REVIEWER"
    )
