from datetime import datetime
import logging
from typing import Optional

import diskcache

from bbstatus import config

logger = logging.getLogger("bbstatus")


class MarkerStoreNotConfigured(Exception):
    def __init__(self):
        super().__init__(
            "DISKCACHE_DIR is not set, checkout markers cannot be persisted"
        )


class MarkerCache(diskcache.Cache):
    marker_key: str = "checkout_notified"

    def _key(self, build_id: str) -> str:
        return f"{self.marker_key}_{build_id}"

    def has_marker(self, build_id: str) -> bool:
        return self._key(build_id) in self

    def add_marker(self, build_id: str) -> bool:
        """Returns True only for the caller that actually set the marker."""
        # add() is atomic across processes and never overwrites
        added = self.add(self._key(build_id), datetime.now())
        if added:
            logger.debug("Marked %s as checkout notified", build_id)
        return added

    def marked_at(self, build_id: str) -> Optional[datetime]:
        return self.get(self._key(build_id))


def get_marker_store(directory: Optional[str] = None) -> MarkerCache:
    directory = directory or config.DISKCACHE_DIR
    if directory is None:
        raise MarkerStoreNotConfigured()
    logger.info("Opening cache dir: %s", directory)
    return MarkerCache(directory)
