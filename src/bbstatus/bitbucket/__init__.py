from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlsplit

from sanic.log import logger

from bbstatus.bitbucket.api import BitbucketApi
from bbstatus.bitbucket.model import (
    BitbucketBuildStatus,
    Build,
    GitRevision,
    PullRequestRevision,
    Result,
    Revision,
    Status,
)
from bbstatus.location import UNCONFIGURED_HOST, InvalidRootUrl, RootUrlError
from bbstatus.metric import notification_counter, notification_skipped_counter
from bbstatus.model import BitbucketSource
from bbstatus.ports import ClientFactory, RevisionLookup, RootUrlProvider, TaskListener

NOT_BUILT_DESCRIPTION = "This commit was not built (probably the build was skipped)"


@dataclass(frozen=True)
class SourcePolicy:
    notifications_disabled: bool = False
    send_success_for_unstable: bool = False
    disable_notification_for_not_built: bool = False
    share_key_between_branch_and_pr: bool = False

    @classmethod
    def from_source(cls, source: BitbucketSource) -> "SourcePolicy":
        traits = source.traits
        return cls(
            notifications_disabled=traits.notifications_disabled,
            send_success_for_unstable=traits.send_success_for_unstable,
            disable_notification_for_not_built=traits.disable_notification_for_not_built,
            share_key_between_branch_and_pr=traits.exclude_origin_pr_branches,
        )


class AttachedRevisionLookup:
    """Uses the revision the CI runner attached to the build."""

    def get_revision(self, source: BitbucketSource, build: Build) -> Optional[Revision]:
        return build.revision


@dataclass
class NotificationContext:
    clients: ClientFactory
    root_urls: RootUrlProvider
    revisions: RevisionLookup = field(default_factory=AttachedRevisionLookup)


def get_hash(revision: Optional[Revision]) -> Optional[str]:
    if isinstance(revision, PullRequestRevision):
        revision = revision.unwrap()
    if isinstance(revision, GitRevision):
        return revision.hash
    return None


def get_build_key(build: Build, branch: str, share_key: bool) -> str:
    # branch project and PR project report under one key
    if share_key:
        return f"{build.job.parent.full_name}/{branch}"
    return build.job.url


def check_url(url: str, cloud: bool) -> str:
    try:
        parts = urlsplit(url)
        host = parts.hostname
        # port is parsed lazily and raises on garbage
        parts.port
    except ValueError:
        raise InvalidRootUrl("Bad Jenkins URL")

    if not parts.scheme or not host:
        raise InvalidRootUrl("Bad Jenkins URL")
    if host == "localhost":
        raise InvalidRootUrl("Jenkins URL cannot start with http://localhost")
    if host == UNCONFIGURED_HOST:
        raise InvalidRootUrl("Could not determine Jenkins URL.")
    if cloud and "." not in host:
        raise InvalidRootUrl(
            "Please use a fully qualified name or an IP address for Jenkins URL, "
            "this is required by Bitbucket cloud"
        )
    return url


def sanitize_description(
    description: Optional[str], listener: TaskListener
) -> Optional[str]:
    if description is None:
        return None
    # Bitbucket rejects huge descriptions with HTTP 400
    if description.startswith("<"):
        listener.println(
            "Not sending the build description to Bitbucket, as it appears to be HTML."
        )
        return None
    if len(description.splitlines()) > 2:
        listener.println(
            "Not sending the build description to Bitbucket, "
            "as it contains more than 2 lines of text."
        )
        return None
    return description


def _default_if_blank(description: Optional[str], default: str) -> str:
    if description is None or description.strip() == "":
        return default
    return description


def build_status(
    result: Optional[Result],
    description: Optional[str],
    policy: SourcePolicy,
    cloud: bool,
) -> Tuple[Optional[Status], str]:
    if result == Result.SUCCESS:
        return Status.SUCCESSFUL, _default_if_blank(
            description, "This commit looks good."
        )
    elif result == Result.UNSTABLE:
        description = _default_if_blank(description, "This commit has test failures.")
        if policy.send_success_for_unstable:
            return Status.SUCCESSFUL, description
        return Status.FAILED, description
    elif result == Result.FAILURE:
        return Status.FAILED, _default_if_blank(
            description, "There was a failure building this commit."
        )
    elif result == Result.NOT_BUILT:
        # Cloud and Server support different build states
        description = _default_if_blank(description, NOT_BUILT_DESCRIPTION)
        if policy.disable_notification_for_not_built:
            return (Status.STOPPED if cloud else None), description
        return Status.SUCCESSFUL, description
    elif result is not None:
        return Status.FAILED, _default_if_blank(
            description, "Something is wrong with the build of this commit."
        )
    return Status.INPROGRESS, _default_if_blank(
        description, "The build is in progress..."
    )


async def create_status(
    context: NotificationContext,
    build: Build,
    listener: TaskListener,
    bitbucket: BitbucketApi,
    policy: SourcePolicy,
    key: str,
    hash: str,
) -> Optional[BitbucketBuildStatus]:
    try:
        url = context.root_urls.get_run_url(build)
        check_url(url, bitbucket.is_cloud)
    except RootUrlError as e:
        listener.println(
            "Can not determine Jenkins root URL or Jenkins URL is not a valid URL "
            "regarding Bitbucket API. Commit status notifications are disabled "
            "until a root URL is configured in Jenkins global configuration. \n"
            f"{type(e).__name__}: {e}"
        )
        notification_skipped_counter.labels(reason="invalid_url").inc()
        return None

    description = sanitize_description(build.description, listener)
    state, description = build_status(
        build.result, description, policy, bitbucket.is_cloud
    )

    if state is None:
        listener.println("[Bitbucket] Skip result notification")
        notification_skipped_counter.labels(reason="no_state").inc()
        return None

    status = BitbucketBuildStatus(
        hash=hash,
        description=description,
        state=state,
        url=url,
        key=key,
        name=build.full_display_name,
    )
    await bitbucket.post_build_status(status)
    notification_counter.labels(state=state.value).inc()
    logger.info("Posted %s for %s on %s", state.value, build, hash)
    if build.result is not None:
        listener.println("[Bitbucket] Build result notified")
    return status


async def send_notifications(
    context: NotificationContext,
    source: BitbucketSource,
    build: Build,
    listener: TaskListener,
) -> Optional[BitbucketBuildStatus]:
    policy = SourcePolicy.from_source(source)
    if policy.notifications_disabled:
        logger.debug("Notifications disabled for %s", source)
        notification_skipped_counter.labels(reason="disabled").inc()
        return None

    revision = context.revisions.get_revision(source, build)
    if revision is None:
        logger.debug("No revision for %s", build)
        notification_skipped_counter.labels(reason="no_revision").inc()
        return None

    hash = get_hash(revision)
    if hash is None:
        logger.debug("No commit hash for %s", build)
        notification_skipped_counter.labels(reason="no_hash").inc()
        return None

    if isinstance(revision, PullRequestRevision):
        listener.println("[Bitbucket] Notifying pull request build result")
        key = get_build_key(
            build, revision.head.origin_name, policy.share_key_between_branch_and_pr
        )
        bitbucket = context.clients.build_client(source, revision.head)
    else:
        listener.println("[Bitbucket] Notifying commit build result")
        key = get_build_key(
            build, revision.head.name, policy.share_key_between_branch_and_pr
        )
        bitbucket = context.clients.build_client(source)

    return await create_status(context, build, listener, bitbucket, policy, key, hash)
