from __future__ import annotations

from dataclasses import dataclass

from sanic.log import logger

from bbstatus.bitbucket import NotificationContext, send_notifications
from bbstatus.bitbucket.model import CheckoutEvent, CompletedEvent
from bbstatus.metric import error_counter, event_counter
from bbstatus.ports import MarkerStore, SourceLookup, TaskListener


@dataclass
class BuildListeners:
    sources: SourceLookup
    markers: MarkerStore
    context: NotificationContext

    async def on_checkout(self, event: CheckoutEvent, listener: TaskListener) -> None:
        """Sends the "in progress" status on the first checkout of a build."""
        build = event.build
        event_counter.labels(event="checkout").inc()

        source = self.sources.find_source(build.job)
        if source is None:
            logger.debug("No Bitbucket source for %s", build.job.full_name)
            return

        if self.context.revisions.get_revision(source, build) is None:
            return

        if not self.markers.add_marker(build.id):
            logger.debug("%s already notified on checkout", build)
            return

        try:
            await send_notifications(self.context, source, build, listener)
        except Exception as e:
            error_counter.labels(context="checkout").inc()
            listener.error("Could not send notifications", exc_info=e)

    async def on_completed(self, event: CompletedEvent, listener: TaskListener) -> None:
        """Sends the final status of a build, overwriting the in-progress one."""
        build = event.build
        event_counter.labels(event="completed").inc()

        source = self.sources.find_source(build.job)
        if source is None:
            logger.debug("No Bitbucket source for %s", build.job.full_name)
            return

        try:
            await send_notifications(self.context, source, build, listener)
        except Exception as e:
            error_counter.labels(context="completed").inc()
            listener.error("Could not send notifications", exc_info=e)
