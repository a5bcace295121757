"""GitLab REST v4 payload schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class GitLabUser(BaseModel):
    id: int
    username: str
    name: str = ""
    avatar_url: str | None = None
    web_url: str = ""
    bot: bool = False


class GitLabDiffRefs(BaseModel):
    base_sha: str
    head_sha: str
    start_sha: str


class GitLabMergeRequest(BaseModel):
    id: int
    iid: int
    title: str
    description: str | None = None
    state: str
    draft: bool = False
    author: GitLabUser
    source_branch: str
    target_branch: str
    sha: str | None = None
    diff_refs: GitLabDiffRefs | None = None
    created_at: datetime
    updated_at: datetime
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    labels: list[str] = Field(default_factory=list)
    reviewers: list[GitLabUser] = Field(default_factory=list)
    has_conflicts: bool = False
    merge_status: str | None = None
    merge_commit_sha: str | None = None
    squash_commit_sha: str | None = None
    web_url: str = ""


class GitLabPosition(BaseModel):
    new_path: str | None = None
    old_path: str | None = None
    new_line: int | None = None
    old_line: int | None = None


class GitLabNote(BaseModel):
    id: int
    body: str = ""
    author: GitLabUser
    created_at: datetime
    updated_at: datetime
    system: bool = False
    position: GitLabPosition | None = None
    resolvable: bool = False
    resolved: bool = False


class GitLabDiscussion(BaseModel):
    id: str
    individual_note: bool = False
    notes: list[GitLabNote] = Field(default_factory=list)


class GitLabLabel(BaseModel):
    id: int | None = None
    name: str
    color: str = ""
    description: str | None = None


class GitLabDiff(BaseModel):
    old_path: str
    new_path: str
    diff: str = ""
    new_file: bool = False
    renamed_file: bool = False
    deleted_file: bool = False


class GitLabCommit(BaseModel):
    id: str
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    authored_date: datetime | None = None
    web_url: str | None = None


class GitLabPipeline(BaseModel):
    id: int
    status: str = ""


class GitLabJob(BaseModel):
    id: int
    name: str
    stage: str = ""
    status: str
    allow_failure: bool = False
    web_url: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None


class GitLabApprover(BaseModel):
    user: GitLabUser


class GitLabApprovals(BaseModel):
    approved_by: list[GitLabApprover] = Field(default_factory=list)
