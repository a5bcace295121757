"""GitHub REST v3 payload schemas."""

from datetime import datetime

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GitHubUser(BaseModel):
    login: str
    id: int
    avatar_url: str = ""
    html_url: str = ""
    type: str = "User"


class GitHubLabel(BaseModel):
    name: str
    color: str = ""
    description: str | None = None


class GitHubRepoOwner(BaseModel):
    login: str


class GitHubRepo(BaseModel):
    name: str
    owner: GitHubRepoOwner


class GitHubBranch(BaseModel):
    ref: str
    sha: str
    repo: GitHubRepo | None = None


class GitHubPullRequest(BaseModel):
    id: int
    number: int
    title: str
    body: str | None = None
    state: str
    user: GitHubUser | None = None
    head: GitHubBranch
    base: GitHubBranch
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    merged_at: datetime | None = None
    merged: bool | None = None
    mergeable: bool | None = None
    draft: bool = False
    labels: list[GitHubLabel] = Field(default_factory=list)
    requested_reviewers: list[GitHubUser] = Field(default_factory=list)
    html_url: str = ""


class GitHubSearchPullRequestLink(BaseModel):
    merged_at: datetime | None = None
    html_url: str = ""


class GitHubSearchItem(BaseModel):
    """Issue-shaped pull request returned by ``/search/issues``."""

    id: int
    number: int
    title: str
    body: str | None = None
    state: str
    user: GitHubUser | None = None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    labels: list[GitHubLabel] = Field(default_factory=list)
    draft: bool = False
    html_url: str = ""
    repository_url: str = ""
    pull_request: GitHubSearchPullRequestLink | None = None


class GitHubSearchResult(BaseModel):
    total_count: int = 0
    items: list[GitHubSearchItem] = Field(default_factory=list)


class GitHubReviewComment(BaseModel):
    id: int
    body: str
    user: GitHubUser | None = None
    created_at: datetime
    updated_at: datetime
    html_url: str = ""
    path: str
    line: int | None = None
    original_line: int | None = None
    side: str | None = None
    in_reply_to_id: int | None = None


class GitHubIssueComment(BaseModel):
    id: int
    body: str = ""
    user: GitHubUser | None = None
    created_at: datetime
    updated_at: datetime
    html_url: str = ""


class GitHubReview(BaseModel):
    id: int
    user: GitHubUser | None = None
    state: str
    body: str | None = None
    submitted_at: datetime | None = None
    html_url: str = ""


class GitHubFile(BaseModel):
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    previous_filename: str | None = None
    patch: str | None = None


class GitHubGitActor(BaseModel):
    name: str = ""
    email: str = ""
    date: datetime | None = None


class GitHubCommitDetail(BaseModel):
    message: str
    author: GitHubGitActor | None = None


class GitHubCommit(BaseModel):
    sha: str
    commit: GitHubCommitDetail
    author: GitHubUser | None = None
    html_url: str = ""


class GitHubCheckRun(BaseModel):
    id: int
    name: str
    status: str
    conclusion: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    html_url: str | None = None


class GitHubCheckRunList(BaseModel):
    total_count: int = 0
    check_runs: list[GitHubCheckRun] = Field(default_factory=list)


class GitHubMergeResponse(BaseModel):
    sha: str | None = None
    merged: bool
    message: str = ""


# GraphQL payloads are camelCase.


class GitHubGraphQLModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GitHubGraphQLError(BaseModel):
    message: str = ""
    type: str | None = None


class GitHubGraphQLResponse(BaseModel):
    data: dict[str, Any] | None = None
    errors: list[GitHubGraphQLError] = Field(default_factory=list)


class GitHubPageInfo(GitHubGraphQLModel):
    has_next_page: bool = False
    end_cursor: str | None = None


class GitHubThreadComment(GitHubGraphQLModel):
    database_id: int | None = None


class GitHubThreadComments(GitHubGraphQLModel):
    nodes: list[GitHubThreadComment] = Field(default_factory=list)


class GitHubReviewThread(GitHubGraphQLModel):
    id: str
    is_resolved: bool = False
    path: str | None = None
    line: int | None = None
    comments: GitHubThreadComments = Field(default_factory=GitHubThreadComments)


class GitHubReviewThreadPage(GitHubGraphQLModel):
    page_info: GitHubPageInfo = Field(default_factory=GitHubPageInfo)
    nodes: list[GitHubReviewThread] = Field(default_factory=list)
