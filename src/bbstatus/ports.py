"""Ports for the collaborators the notifier consumes.

The notification logic only talks to the CI host and to Bitbucket through
these contracts, so it can run inside the web service, the command line, or
a test with fakes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from bbstatus.bitbucket.api import BitbucketApi
    from bbstatus.bitbucket.model import Build, Job, PullRequestHead, Revision
    from bbstatus.model import BitbucketSource


class TaskListener(Protocol):
    """Append-only diagnostics sink attached to a build."""

    def println(self, line: str) -> None:
        ...

    def error(self, message: str, exc_info: Optional[BaseException] = None) -> None:
        ...


class SourceLookup(Protocol):
    def find_source(self, job: Job) -> Optional[BitbucketSource]:
        ...


class RevisionLookup(Protocol):
    def get_revision(self, source: BitbucketSource, build: Build) -> Optional[Revision]:
        ...


class ClientFactory(Protocol):
    def build_client(
        self, source: BitbucketSource, head: Optional[PullRequestHead] = None
    ) -> BitbucketApi:
        ...


class RootUrlProvider(Protocol):
    """Resolves the externally reachable URL of a build.

    Raises ``RootUrlNotConfigured`` when no global root URL is known.
    """

    def get_run_url(self, build: Build) -> str:
        ...


class MarkerStore(Protocol):
    def has_marker(self, build_id: str) -> bool:
        ...

    def add_marker(self, build_id: str) -> bool:
        """Sets the marker, returning False when it was already set."""
        ...
