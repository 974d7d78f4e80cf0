from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from bbstatus.bitbucket.model import Build

UNCONFIGURED_HOST = "unconfigured-jenkins-location"


class RootUrlError(Exception):
    pass


class RootUrlNotConfigured(RootUrlError):
    def __init__(self, message: str = "Could not determine Jenkins URL."):
        super().__init__(message)


class InvalidRootUrl(RootUrlError):
    pass


class ConfiguredRootUrlProvider:
    root_url: Optional[str]

    def __init__(self, root_url: Optional[str]):
        self.root_url = root_url

    def get_run_url(self, build: Build) -> str:
        if not self.root_url:
            raise RootUrlNotConfigured()
        if build.url is not None:
            return build.url
        root = self.root_url.rstrip("/")
        job_url = build.job.url.strip("/")
        return f"{root}/{job_url}/{build.number}/"
