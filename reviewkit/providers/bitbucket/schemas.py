"""Bitbucket Cloud 2.0 payload schemas."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class BitbucketLink(BaseModel):
    href: str = ""


class BitbucketUserLinks(BaseModel):
    avatar: BitbucketLink | None = None
    html: BitbucketLink | None = None


class BitbucketUser(BaseModel):
    uuid: str
    display_name: str = ""
    nickname: str | None = None
    account_id: str | None = None
    type: str = "user"
    links: BitbucketUserLinks | None = None


class BitbucketBranch(BaseModel):
    name: str


class BitbucketCommitRef(BaseModel):
    hash: str


class BitbucketRepoRef(BaseModel):
    full_name: str = ""


class BitbucketEndpoint(BaseModel):
    branch: BitbucketBranch
    commit: BitbucketCommitRef | None = None
    repository: BitbucketRepoRef | None = None


class BitbucketParticipant(BaseModel):
    user: BitbucketUser
    role: str = "PARTICIPANT"
    approved: bool = False
    state: str | None = None
    participated_on: datetime | None = None


class BitbucketPullRequestLinks(BaseModel):
    html: BitbucketLink = Field(default_factory=BitbucketLink)


class BitbucketPullRequest(BaseModel):
    id: int
    title: str
    description: str = ""
    state: str
    author: BitbucketUser
    source: BitbucketEndpoint
    destination: BitbucketEndpoint
    created_on: datetime
    updated_on: datetime
    reviewers: list[BitbucketUser] = Field(default_factory=list)
    participants: list[BitbucketParticipant] = Field(default_factory=list)
    merge_commit: BitbucketCommitRef | None = None
    draft: bool = False
    links: BitbucketPullRequestLinks = Field(default_factory=BitbucketPullRequestLinks)


class BitbucketContent(BaseModel):
    raw: str = ""


class BitbucketInline(BaseModel):
    path: str
    to: int | None = None
    from_: int | None = Field(default=None, alias="from")


class BitbucketParentRef(BaseModel):
    id: int


class BitbucketComment(BaseModel):
    id: int
    content: BitbucketContent
    user: BitbucketUser
    created_on: datetime
    updated_on: datetime
    deleted: bool = False
    inline: BitbucketInline | None = None
    parent: BitbucketParentRef | None = None


class BitbucketPath(BaseModel):
    path: str


class BitbucketDiffStat(BaseModel):
    status: str
    lines_added: int = 0
    lines_removed: int = 0
    old: BitbucketPath | None = None
    new: BitbucketPath | None = None


class BitbucketCommitAuthor(BaseModel):
    raw: str = ""
    user: BitbucketUser | None = None


class BitbucketCommitLinks(BaseModel):
    html: BitbucketLink | None = None


class BitbucketCommit(BaseModel):
    hash: str
    message: str = ""
    date: datetime | None = None
    author: BitbucketCommitAuthor
    links: BitbucketCommitLinks | None = None


class BitbucketStateName(BaseModel):
    name: str


class BitbucketStepState(BaseModel):
    name: str
    result: BitbucketStateName | None = None


class BitbucketPipelineStep(BaseModel):
    uuid: str
    name: str | None = None
    state: BitbucketStepState
    started_on: datetime | None = None
    completed_on: datetime | None = None


class BitbucketPipelineTarget(BaseModel):
    ref_name: str | None = None
    commit: BitbucketCommitRef | None = None


class BitbucketPipeline(BaseModel):
    uuid: str
    build_number: int | None = None
    target: BitbucketPipelineTarget | None = None


class BitbucketPage(BaseModel, Generic[T]):
    """The ``values`` envelope wrapping every Bitbucket collection."""

    values: list[T] = Field(default_factory=list)
    next: str | None = None
    pagelen: int | None = None
