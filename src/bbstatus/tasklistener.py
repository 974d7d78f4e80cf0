from __future__ import annotations

import logging
import sys
import traceback
from typing import List, Optional, TextIO

logger = logging.getLogger("bbstatus")


class StreamTaskListener:
    def __init__(self, name: str, stream: Optional[TextIO] = None):
        self.name = name
        self.stream = stream if stream is not None else sys.stdout

    def println(self, line: str) -> None:
        print(line, file=self.stream)

    def error(self, message: str, exc_info: Optional[BaseException] = None) -> None:
        logger.error("[%s] %s", self.name, message, exc_info=exc_info)
        print(f"ERROR: {message}", file=self.stream)
        if exc_info is not None:
            traceback.print_exception(
                type(exc_info), exc_info, exc_info.__traceback__, file=self.stream
            )


class CollectingTaskListener:
    """Keeps the lines of one build in memory and mirrors them to the logger."""

    lines: List[str]

    def __init__(self, name: str):
        self.name = name
        self.lines = []

    def println(self, line: str) -> None:
        logger.info("[%s] %s", self.name, line)
        self.lines.append(line)

    def error(self, message: str, exc_info: Optional[BaseException] = None) -> None:
        logger.error("[%s] %s", self.name, message, exc_info=exc_info)
        self.lines.append(f"ERROR: {message}")
        if exc_info is not None:
            self.lines.extend(
                traceback.format_exception(
                    type(exc_info), exc_info, exc_info.__traceback__
                )
            )
