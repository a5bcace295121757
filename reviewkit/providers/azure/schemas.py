"""Azure DevOps REST 7.1 payload schemas."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class AzureModel(BaseModel):
    """Azure payloads are camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AzureList(AzureModel, Generic[T]):
    """The ``value`` envelope wrapping every Azure DevOps collection."""

    value: list[T] = Field(default_factory=list)
    count: int | None = None


class AzureIdentity(AzureModel):
    id: str
    display_name: str = ""
    unique_name: str | None = None
    image_url: str | None = None


class AzureReviewer(AzureIdentity):
    vote: int = 0
    is_required: bool = False


class AzureProfile(AzureModel):
    id: str
    display_name: str = ""
    email_address: str | None = None
    public_alias: str | None = None


class AzureCommitRef(AzureModel):
    commit_id: str


class AzureLabel(AzureModel):
    id: str | None = None
    name: str


class AzureRepositoryRef(AzureModel):
    id: str = ""
    name: str = ""


class AzurePullRequest(AzureModel):
    pull_request_id: int
    title: str
    description: str = ""
    status: str
    is_draft: bool = False
    created_by: AzureIdentity
    creation_date: datetime
    closed_date: datetime | None = None
    source_ref_name: str
    target_ref_name: str
    last_merge_source_commit: AzureCommitRef | None = None
    last_merge_target_commit: AzureCommitRef | None = None
    last_merge_commit: AzureCommitRef | None = None
    reviewers: list[AzureReviewer] = Field(default_factory=list)
    labels: list[AzureLabel] = Field(default_factory=list)
    merge_status: str | None = None
    repository: AzureRepositoryRef | None = None


class AzureFilePosition(AzureModel):
    line: int
    offset: int = 1


class AzureThreadContext(AzureModel):
    file_path: str
    right_file_start: AzureFilePosition | None = None
    left_file_start: AzureFilePosition | None = None


class AzureComment(AzureModel):
    id: int
    parent_comment_id: int = 0
    content: str = ""
    author: AzureIdentity
    published_date: datetime
    last_updated_date: datetime | None = None
    comment_type: str | int = "text"
    is_deleted: bool = False


class AzureThread(AzureModel):
    id: int
    is_deleted: bool = False
    status: str | int | None = None
    comments: list[AzureComment] = Field(default_factory=list)
    thread_context: AzureThreadContext | None = None


class AzureIteration(AzureModel):
    id: int


class AzureChangeItem(AzureModel):
    path: str = ""


class AzureChangeEntry(AzureModel):
    change_type: str | int
    item: AzureChangeItem | None = None
    original_path: str | None = None


class AzureIterationChanges(AzureModel):
    change_entries: list[AzureChangeEntry] = Field(default_factory=list)


class AzureGitUserDate(AzureModel):
    name: str = ""
    email: str = ""
    date: datetime | None = None


class AzureCommit(AzureModel):
    commit_id: str
    comment: str = ""
    author: AzureGitUserDate = Field(default_factory=AzureGitUserDate)
    remote_url: str | None = None


class AzureBuildDefinition(AzureModel):
    name: str = ""


class AzureWebLink(AzureModel):
    href: str = ""


class AzureBuildLinks(AzureModel):
    web: AzureWebLink | None = None


class AzureBuild(AzureModel):
    id: int
    build_number: str | None = None
    status: str
    result: str | None = None
    source_version: str | None = None
    definition: AzureBuildDefinition | None = None
    start_time: datetime | None = None
    finish_time: datetime | None = None
    links: AzureBuildLinks | None = Field(default=None, alias="_links")
