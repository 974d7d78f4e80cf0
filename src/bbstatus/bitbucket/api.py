from typing import Optional, Tuple

import aiohttp
import cachetools
from sanic.log import logger

from bbstatus.bitbucket.model import BitbucketBuildStatus, PullRequestHead
from bbstatus.model import BitbucketSource


class BitbucketRequestError(Exception):
    status_code: int
    body: str
    url: str

    def __init__(self, status_code: int, body: str, url: str):
        self.status_code = status_code
        self.body = body
        self.url = url
        super().__init__(f"Bitbucket responded {status_code} for {url}: {body}")


class BitbucketApi:
    is_cloud: bool = False

    session: aiohttp.ClientSession
    repo_owner: str
    repository: str
    auth: Optional[aiohttp.BasicAuth]
    dry_run: bool

    call_count: int

    def __init__(
        self,
        session: aiohttp.ClientSession,
        repo_owner: str,
        repository: str,
        auth: Optional[aiohttp.BasicAuth] = None,
        dry_run: bool = False,
    ):
        self.session = session
        self.repo_owner = repo_owner
        self.repository = repository
        self.auth = auth
        self.dry_run = dry_run
        self.call_count = 0

    def build_status_url(self, hash: str) -> str:
        raise NotImplementedError()

    async def post_build_status(self, status: BitbucketBuildStatus) -> None:
        url = self.build_status_url(status.hash)
        payload = status.payload()

        if self.dry_run:
            logger.info("Dry run, not posting %s to %s", payload, url)
            return

        self.call_count += 1
        logger.debug("Posting build status %s on %s", status.state.value, url)
        async with self.session.post(url, json=payload, auth=self.auth) as resp:
            if resp.status >= 400:
                raise BitbucketRequestError(resp.status, await resp.text(), url)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.repo_owner}/{self.repository})"


class BitbucketCloudApiClient(BitbucketApi):
    is_cloud = True
    api_url = "https://api.bitbucket.org"

    def build_status_url(self, hash: str) -> str:
        return (
            f"{self.api_url}/2.0/repositories/{self.repo_owner}/{self.repository}"
            f"/commit/{hash}/statuses/build"
        )


class BitbucketServerApiClient(BitbucketApi):
    server_url: str

    def __init__(self, session: aiohttp.ClientSession, server_url: str, *args, **kwargs):
        super().__init__(session, *args, **kwargs)
        self.server_url = server_url.rstrip("/")

    def build_status_url(self, hash: str) -> str:
        # build statuses on Server are global to the commit, not per repository
        return f"{self.server_url}/rest/build-status/1.0/commits/{hash}"


class SessionClientFactory:
    session: aiohttp.ClientSession
    clients: cachetools.LRUCache

    def __init__(
        self, session: aiohttp.ClientSession, dry_run: bool = False, maxsize: int = 100
    ):
        self.session = session
        self.dry_run = dry_run
        self.clients = cachetools.LRUCache(maxsize=maxsize)

    def build_client(
        self, source: BitbucketSource, head: Optional[PullRequestHead] = None
    ) -> BitbucketApi:
        if head is not None:
            owner, repository = head.repo_owner, head.repository
        else:
            owner, repository = source.repo_owner, source.repository

        cache_key: Tuple[str, str, str] = (source.server_url, owner, repository)
        if client := self.clients.get(cache_key):
            return client

        auth = None
        if source.credentials is not None:
            token = source.credentials.token
            if token is None:
                logger.warning(
                    "Environment variable %s is not set, posting anonymously for %s",
                    source.credentials.token_env,
                    source,
                )
            else:
                auth = aiohttp.BasicAuth(source.credentials.username, token)

        if source.is_cloud:
            client = BitbucketCloudApiClient(
                self.session, owner, repository, auth=auth, dry_run=self.dry_run
            )
        else:
            client = BitbucketServerApiClient(
                self.session,
                source.server_url,
                owner,
                repository,
                auth=auth,
                dry_run=self.dry_run,
            )
        logger.debug("Created %r", client)
        self.clients[cache_key] = client
        return client
