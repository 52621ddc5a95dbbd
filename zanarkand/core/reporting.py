"""Log fan-out to the standard logger and the caller-supplied callback."""

from __future__ import annotations

import logging
from collections.abc import Callable

LOGGER = logging.getLogger("zanarkand")

LogCallback = Callable[[str, str], None]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def noop_logger(level: str, message: str) -> None:
    return None


class Reporter:
    def __init__(self, callback: LogCallback | None = None, logger: logging.Logger = LOGGER) -> None:
        self._callback = callback or noop_logger
        self._logger = logger

    def log(self, level: str, message: str) -> None:
        self._logger.log(_LEVELS.get(level, logging.INFO), message)
        try:
            self._callback(level, message)
        except Exception:
            self._logger.exception("Log callback failed for message %r", message)

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def error(self, message: str) -> None:
        self.log("error", message)
