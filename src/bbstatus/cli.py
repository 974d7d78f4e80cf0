import asyncio
from contextlib import asynccontextmanager
import logging
import sys
from typing import Optional

import aiohttp
import pydantic
import typer
from prometheus_client import push_to_gateway

from bbstatus import config
from bbstatus.bitbucket import check_url as validate_url
from bbstatus.bitbucket.model import CheckoutEvent, CompletedEvent
from bbstatus.cache import MarkerStoreNotConfigured, get_marker_store
from bbstatus.listeners import BuildListeners
from bbstatus.location import RootUrlError
from bbstatus.logger import LOG_FORMAT, get_log_handlers
from bbstatus.metric import cli_notification_count, push_registry
from bbstatus.model import InvalidSourcesConfig, load_sources_config
from bbstatus.tasklistener import StreamTaskListener
from bbstatus.web import create_app, make_listeners

logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
logger = logging.getLogger("bbstatus")

app = typer.Typer()


@app.callback()
def init():
    logging.getLogger().setLevel(config.OVERRIDE_LOGGING)
    logger.setLevel(config.OVERRIDE_LOGGING)
    get_log_handlers(logger)


@asynccontextmanager
async def build_listeners():
    try:
        sources = load_sources_config(config.SOURCES_CONFIG)
    except InvalidSourcesConfig as e:
        logger.error("Invalid sources file %s:\n%s", e.source_path, e)
        raise typer.Exit(code=2)

    try:
        markers = get_marker_store()
    except MarkerStoreNotConfigured as e:
        logger.error("%s", e)
        raise typer.Exit(code=2)

    with markers:
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT)
        ) as session:
            yield make_listeners(session, sources, markers)


def push_metrics():
    if config.PUSH_GATEWAY is None:
        return
    try:
        push_to_gateway(config.PUSH_GATEWAY, job="bbstatus", registry=push_registry)
    except OSError:
        logger.warning("Could not push metrics to %s", config.PUSH_GATEWAY, exc_info=True)


def parse_event(model, payload: typer.FileText):
    try:
        return model.model_validate_json(payload.read())
    except pydantic.ValidationError as e:
        typer.echo(f"Invalid event payload:\n{e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000, workers: int = 1):
    create_app().run(host=host, port=port, workers=workers, single_process=workers == 1)


@app.command()
def checkout(payload: typer.FileText = typer.Argument(..., help="Event JSON, - for stdin")):
    """Report the "in progress" status for a freshly checked out build."""
    event = parse_event(CheckoutEvent, payload)

    async def handle():
        async with build_listeners() as listeners:
            listener = StreamTaskListener(event.build.id, sys.stdout)
            await listeners.on_checkout(event, listener)

    asyncio.run(handle())
    cli_notification_count.labels(event="checkout").inc()
    push_metrics()


@app.command()
def completed(payload: typer.FileText = typer.Argument(..., help="Event JSON, - for stdin")):
    """Report the final status of a completed build."""
    event = parse_event(CompletedEvent, payload)

    async def handle():
        async with build_listeners() as listeners:
            listener = StreamTaskListener(event.build.id, sys.stdout)
            await listeners.on_completed(event, listener)

    asyncio.run(handle())
    cli_notification_count.labels(event="completed").inc()
    push_metrics()


@app.command()
def check_url(
    url: Optional[str] = typer.Argument(None),
    cloud: bool = typer.Option(False, help="Apply Bitbucket Cloud rules"),
):
    url = url or config.JENKINS_URL
    if url is None:
        typer.echo("No URL given and JENKINS_URL is not set", err=True)
        raise typer.Exit(code=1)
    try:
        validate_url(url, cloud)
    except RootUrlError as e:
        typer.echo(f"{url}: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{url}: ok")
