from __future__ import annotations

from fnmatch import fnmatch
import io
import os
from typing import TYPE_CHECKING, List, Optional

import pydantic
import yaml

if TYPE_CHECKING:
    from bbstatus.bitbucket.model import Job

BITBUCKET_CLOUD_URL = "https://bitbucket.org"


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", populate_by_name=True)


class InvalidSourcesConfig(Exception):
    raw_config: str
    source_path: str

    def __init__(self, *args, **kwargs):
        self.raw_config = kwargs.pop("raw_config")
        self.source_path = kwargs.pop("source_path")
        super().__init__(*args, **kwargs)


class SourceTraits(Model):
    notifications_disabled: bool = pydantic.Field(
        False, alias="notifications-disabled"
    )
    send_success_for_unstable: bool = pydantic.Field(
        False, alias="send-success-for-unstable"
    )
    disable_notification_for_not_built: bool = pydantic.Field(
        False, alias="disable-notification-for-not-built"
    )
    exclude_origin_pr_branches: bool = pydantic.Field(
        False, alias="exclude-origin-pr-branches"
    )


class Credentials(Model):
    username: str
    token_env: str = pydantic.Field(alias="token-env")

    @property
    def token(self) -> Optional[str]:
        return os.environ.get(self.token_env)


class BitbucketSource(Model):
    server_url: str = pydantic.Field(BITBUCKET_CLOUD_URL, alias="server-url")
    repo_owner: str = pydantic.Field(alias="repo-owner")
    repository: str
    credentials: Optional[Credentials] = None
    jobs: List[str] = pydantic.Field(default_factory=list)
    traits: SourceTraits = pydantic.Field(default_factory=SourceTraits)

    @pydantic.field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_cloud(self) -> bool:
        return self.server_url in (BITBUCKET_CLOUD_URL, "https://api.bitbucket.org")

    def matches(self, job: Job) -> bool:
        return any(fnmatch(job.full_name, pattern) for pattern in self.jobs)

    def __str__(self) -> str:
        return f"BitbucketSource({self.server_url}, {self.repo_owner}/{self.repository})"


class SourcesConfig(Model):
    sources: List[BitbucketSource] = pydantic.Field(default_factory=list)

    def find_source(self, job: Job) -> Optional[BitbucketSource]:
        for source in self.sources:
            if source.matches(job):
                return source
        return None


def load_sources_config(path: str) -> SourcesConfig:
    with open(path) as fh:
        raw = fh.read()

    try:
        data = yaml.safe_load(io.StringIO(raw))
    except yaml.YAMLError as e:
        raise InvalidSourcesConfig(str(e), raw_config=raw, source_path=path)

    try:
        return SourcesConfig() if data is None else SourcesConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise InvalidSourcesConfig(str(e), raw_config=raw, source_path=path)
