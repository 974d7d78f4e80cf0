from enum import Enum
from typing import Annotated, Literal, Optional, Union

import pydantic


class Model(pydantic.BaseModel):
    pass


class Result(str, Enum):
    SUCCESS = "SUCCESS"
    UNSTABLE = "UNSTABLE"
    FAILURE = "FAILURE"
    NOT_BUILT = "NOT_BUILT"
    ABORTED = "ABORTED"


class Status(str, Enum):
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"
    INPROGRESS = "INPROGRESS"
    STOPPED = "STOPPED"


class Folder(Model):
    full_name: str


class Job(Model):
    full_name: str
    # relative to the CI root, e.g. "job/repo/job/main/"
    url: str
    parent: Folder


class BranchHead(Model):
    name: str


class PullRequestHead(Model):
    id: str
    name: str
    origin_name: str
    repo_owner: str
    repository: str
    target: Optional[str] = None


class GitRevision(Model):
    kind: Literal["git"] = "git"
    head: BranchHead
    hash: str


class OpaqueRevision(Model):
    kind: Literal["opaque"] = "opaque"
    head: BranchHead


class PullRequestRevision(Model):
    kind: Literal["pull-request"] = "pull-request"
    head: PullRequestHead
    pull: Union[GitRevision, OpaqueRevision]

    def unwrap(self) -> Union[GitRevision, OpaqueRevision]:
        return self.pull


Revision = Annotated[
    Union[GitRevision, PullRequestRevision, OpaqueRevision],
    pydantic.Field(discriminator="kind"),
]


class Build(Model):
    number: int
    full_display_name: str
    description: Optional[str] = None
    result: Optional[Result] = None
    job: Job
    url: Optional[str] = None
    revision: Optional[Revision] = None

    @property
    def id(self) -> str:
        return f"{self.job.full_name}#{self.number}"

    def __str__(self) -> str:
        return f"Build({self.id})"


class CheckoutEvent(Model):
    build: Build
    workspace: Optional[str] = None


class CompletedEvent(Model):
    build: Build


class BitbucketBuildStatus(Model):
    hash: str
    description: str
    state: Status
    url: str
    key: str
    name: str

    def payload(self) -> dict:
        return self.model_dump(
            include={"state", "key", "name", "url", "description"}, mode="json"
        )
