import logging
from typing import Optional

import aiohttp
import pydantic
from prometheus_client import core
from prometheus_client.exposition import generate_latest
from sanic import Sanic, Request, response
from sanic.log import logger
import sanic.log

from bbstatus import config
from bbstatus.bitbucket import NotificationContext
from bbstatus.bitbucket.api import SessionClientFactory
from bbstatus.bitbucket.model import CheckoutEvent, CompletedEvent
from bbstatus.cache import get_marker_store
from bbstatus.listeners import BuildListeners
from bbstatus.location import ConfiguredRootUrlProvider
from bbstatus.logger import LOG_FORMAT, get_log_handlers
from bbstatus.metric import error_counter, request_counter
from bbstatus.model import SourcesConfig, load_sources_config
from bbstatus.tasklistener import CollectingTaskListener

logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)

EVENT_TYPES = {
    "checkout": CheckoutEvent,
    "completed": CompletedEvent,
}


def make_listeners(
    session: aiohttp.ClientSession, sources: SourcesConfig, markers
) -> BuildListeners:
    return BuildListeners(
        sources=sources,
        markers=markers,
        context=NotificationContext(
            clients=SessionClientFactory(session, dry_run=config.DRY_RUN),
            root_urls=ConfiguredRootUrlProvider(config.JENKINS_URL),
        ),
    )


async def process_build_event(app, event_name: str, body: bytes) -> response.HTTPResponse:
    try:
        event = EVENT_TYPES[event_name].model_validate_json(body)
    except pydantic.ValidationError as e:
        logger.warning("Rejecting malformed %s event", event_name)
        return response.json({"error": str(e)}, status=400)

    listener = CollectingTaskListener(event.build.id)
    listeners: BuildListeners = app.ctx.build_listeners

    logger.debug("Dispatching %s event for %s", event_name, event.build)
    try:
        if event_name == "checkout":
            await listeners.on_checkout(event, listener)
        else:
            await listeners.on_completed(event, listener)
    except Exception:
        error_counter.labels(context="event_dispatch").inc()
        logger.error("Exception raised when dispatching event", exc_info=True)

    return response.json({"log": listener.lines})


def create_app(sources: Optional[SourcesConfig] = None):
    app = Sanic("bbstatus")
    app.update_config(config)

    logging.getLogger().setLevel(config.OVERRIDE_LOGGING)

    get_log_handlers(sanic.log.logger)

    if sources is None:
        sources = load_sources_config(config.SOURCES_CONFIG)
    app.ctx.sources = sources
    app.ctx.markers = get_marker_store()
    logger.info("Loaded %d Bitbucket sources", len(app.ctx.sources.sources))

    @app.listener("before_server_start")
    async def init(app, loop):
        logger.debug("Creating aiohttp session")
        app.ctx.aiohttp_session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT)
        )
        app.ctx.build_listeners = make_listeners(
            app.ctx.aiohttp_session, app.ctx.sources, app.ctx.markers
        )

    @app.listener("after_server_stop")
    async def close(app, loop):
        await app.ctx.aiohttp_session.close()

    @app.on_request
    async def on_request(request: Request):
        if request.path == "/metrics":
            return
        request_counter.labels(path=request.path).inc()

    @app.get("/status")
    async def status(request):
        logger.debug("status check")
        return response.text("ok")

    @app.post("/checkout")
    async def checkout(request):
        return await process_build_event(app, "checkout", request.body)

    @app.post("/completed")
    async def completed(request):
        return await process_build_event(app, "completed", request.body)

    @app.get("/metrics")
    async def metrics(request):
        return response.raw(generate_latest(core.REGISTRY))

    return app
