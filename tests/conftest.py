from typing import List, Optional

import pytest

from bbstatus.bitbucket import NotificationContext
from bbstatus.bitbucket.model import (
    BranchHead,
    Build,
    Folder,
    GitRevision,
    Job,
    PullRequestHead,
    PullRequestRevision,
    Result,
)
from bbstatus.cache import MarkerCache
from bbstatus.location import ConfiguredRootUrlProvider
from bbstatus.model import BitbucketSource, SourceTraits

HASH = "a" * 40


class RecordingListener:
    def __init__(self):
        self.lines: List[str] = []
        self.errors = []

    def println(self, line: str) -> None:
        self.lines.append(line)

    def error(self, message: str, exc_info: Optional[BaseException] = None) -> None:
        self.errors.append((message, exc_info))


class FakeClient:
    def __init__(self, is_cloud: bool = False, fail: Optional[Exception] = None):
        self.is_cloud = is_cloud
        self.fail = fail
        self.posted = []

    async def post_build_status(self, status) -> None:
        if self.fail is not None:
            raise self.fail
        self.posted.append(status)


class FakeClientFactory:
    def __init__(self, client: FakeClient):
        self.client = client
        self.heads = []

    def build_client(self, source, head=None):
        self.heads.append(head)
        return self.client


def git_revision(branch: str = "main", hash: str = HASH) -> GitRevision:
    return GitRevision(head=BranchHead(name=branch), hash=hash)


def pr_revision(origin: str = "feature/x", hash: str = HASH) -> PullRequestRevision:
    return PullRequestRevision(
        head=PullRequestHead(
            id="7",
            name="PR-7",
            origin_name=origin,
            repo_owner="fork-owner",
            repository="repo-fork",
            target="main",
        ),
        pull=git_revision(origin, hash),
    )


def make_build(
    result: Optional[Result] = None,
    description: Optional[str] = None,
    revision=None,
    number: int = 1,
    job_name: str = "main",
    url: Optional[str] = None,
) -> Build:
    return Build(
        number=number,
        full_display_name=f"team » repo » {job_name} #{number}",
        description=description,
        result=result,
        job=Job(
            full_name=f"team/repo/{job_name}",
            url=f"job/team/job/repo/job/{job_name}/",
            parent=Folder(full_name="team/repo"),
        ),
        url=url,
        revision=revision if revision is not None else git_revision(),
    )


def make_source(**traits) -> BitbucketSource:
    return BitbucketSource(
        repo_owner="team",
        repository="repo",
        server_url="https://bitbucket.example.com",
        jobs=["team/repo/*"],
        traits=SourceTraits(**traits),
    )


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def clients(client):
    return FakeClientFactory(client)


@pytest.fixture
def context(clients):
    return NotificationContext(
        clients=clients,
        root_urls=ConfiguredRootUrlProvider("https://ci.example.com/"),
    )


@pytest.fixture
def markers(tmp_path):
    with MarkerCache(str(tmp_path / "markers")) as cache:
        yield cache
