"""reviewkit canonical data model.

Every backend adapter translates its payloads into these types.
"""

from reviewkit.types.checks import CheckConclusion, CheckRun, CheckStatus
from reviewkit.types.comments import Comment, DiffSide, IssueComment
from reviewkit.types.commits import Commit, CommitAuthor
from reviewkit.types.files import FileChange, FileStatus
from reviewkit.types.inputs import CommentInput, ReviewCommentInput, ReviewInput
from reviewkit.types.pulls import (
    BranchRef,
    Label,
    ListPullRequestsOptions,
    MergeMethod,
    MergeResult,
    PullRequest,
    PullRequestState,
    RepositoryRef,
    StateFilter,
)
from reviewkit.types.reviews import Review, ReviewEvent, ReviewState
from reviewkit.types.threads import ReviewThread
from reviewkit.types.users import User, UserType, identity_hash

__all__ = [
    # Users
    "User",
    "UserType",
    "identity_hash",
    # Pull requests
    "PullRequest",
    "PullRequestState",
    "StateFilter",
    "BranchRef",
    "RepositoryRef",
    "Label",
    "MergeMethod",
    "MergeResult",
    "ListPullRequestsOptions",
    # Comments
    "Comment",
    "IssueComment",
    "DiffSide",
    # Reviews
    "Review",
    "ReviewEvent",
    "ReviewState",
    # Threads
    "ReviewThread",
    # Files and commits
    "FileChange",
    "FileStatus",
    "Commit",
    "CommitAuthor",
    # Checks
    "CheckRun",
    "CheckStatus",
    "CheckConclusion",
    # Inputs
    "CommentInput",
    "ReviewCommentInput",
    "ReviewInput",
]
