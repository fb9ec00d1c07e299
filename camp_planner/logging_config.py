"""
Logging setup shared by the planner API and its stores.

Every line has the shape ``2026-01-06T14:05:52Z [api] INFO message``, with
the time taken from the record in UTC.

``LOG_LEVEL`` picks the verbosity:
    INFO   request-level events (sign-ins, schedule created/deleted)
    DEBUG  store reads and writes, subscription lifecycle
    TRACE  full document payloads as read from the store

Typical use, once per process:

    from camp_planner.logging_config import configure_logging

    configure_logging(source="api")

Modules then log through ``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import os
import sys
import time

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

# Uvicorn attaches its own handlers to these; they are re-pointed at ours
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

# Client libraries that log every HTTP call at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "pocketbase")


def resolve_level(debug: bool | None = None) -> int:
    """Level from ``LOG_LEVEL``; ``debug`` raises INFO to DEBUG."""
    level = LEVELS.get(os.getenv("LOG_LEVEL", "").strip().upper(), logging.INFO)
    if debug and level > logging.DEBUG:
        return logging.DEBUG
    return level


class ISO8601Formatter(logging.Formatter):
    """``<UTC timestamp> [source] LEVEL message``, plus the traceback if any."""

    def __init__(self, source: str = "app"):
        super().__init__()
        self.source = source

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created))
        line = f"{stamp} [{self.source}] {record.levelname} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class NoisyAccessFilter(logging.Filter):
    """Drop INFO access lines for health checks and live-update streams.

    Each open schedule view holds a long-lived ``/events`` request, and load
    balancers poll ``/health``. Both still show up at DEBUG.
    """

    NOISY_PATHS = ("/health", "/events")

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno <= logging.DEBUG:
            return True
        # uvicorn.access args: (client, method, path, http_version, status)
        if isinstance(record.args, tuple) and len(record.args) == 5:
            method, path = str(record.args[1]), str(record.args[2])
        else:
            message = record.getMessage()
            method, path = ("GET" if "GET " in message else ""), message
        if method != "GET":
            return True
        return not any(noisy in path for noisy in self.NOISY_PATHS)


def configure_logging(
    source: str = "app",
    level: int | None = None,
    debug: bool | None = None,
) -> logging.Logger:
    """Install the planner handler on the root and uvicorn loggers.

    Args:
        source: Tag shown in brackets on every line ("api", "worker", ...)
        level: Explicit level; defaults to ``resolve_level(debug)``
        debug: Treat an unset or INFO ``LOG_LEVEL`` as DEBUG

    Returns:
        The root logger
    """
    if level is None:
        level = resolve_level(debug)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ISO8601Formatter(source=source))
    handler.addFilter(NoisyAccessFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in _UVICORN_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers[:] = [handler]
        server_logger.setLevel(level)
        server_logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
