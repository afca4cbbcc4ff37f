"""statly_observe.logger - Structured, multi-destination logging.

Quick start:
    from statly_observe.logger import Logger

    log = Logger(dsn="https://sk_live_xxx@statly.live/acme", logger_name="api")
    log.info("request handled", {"path": "/health", "status": 200})
    log.audit("user deleted", {"user_id": 7})   # never filtered or sampled
    log.close()

Module-level helpers (``info``, ``error``...) write through a lazily created
default Logger with only the console destination. Replace it with
``set_default_logger``.

Exported names:
    Logger:        The logger itself.
    LogEntry:      Record handed to every destination.
    Destination:   Base class for custom destinations.
    ConsoleDestination, FileDestination, ObserveDestination: Built-in sinks.
    Scrubber:      Secret redaction used on messages and context.
    AIFeatures:    Client for the AI error-analysis endpoints.
"""

import threading
from typing import Optional

from .ai import AIFeatures
from .destinations import ConsoleDestination, Destination, FileDestination, ObserveDestination
from .levels import AUDIT, DEFAULT_LEVELS, EXTENDED_LEVELS, LOG_LEVELS, LogEntry
from .logger import Logger
from .scrubbing import REDACTED, Scrubber

_default_logger: Optional[Logger] = None
_default_lock = threading.Lock()


def get_default_logger() -> Logger:
    global _default_logger
    with _default_lock:
        if _default_logger is None:
            _default_logger = Logger()
        return _default_logger


def set_default_logger(logger: Optional[Logger]) -> None:
    """Replace the default logger. ``None`` makes the next call create a fresh one."""
    global _default_logger
    with _default_lock:
        _default_logger = logger


def trace(message, context=None):
    get_default_logger().trace(message, context)


def debug(message, context=None):
    get_default_logger().debug(message, context)


def info(message, context=None):
    get_default_logger().info(message, context)


def warn(message, context=None):
    get_default_logger().warn(message, context)


def error(message, context=None):
    get_default_logger().error(message, context)


def fatal(message, context=None):
    get_default_logger().fatal(message, context)


def audit(message, context=None):
    get_default_logger().audit(message, context)


__all__ = [
    "Logger",
    "LogEntry",
    "LOG_LEVELS",
    "DEFAULT_LEVELS",
    "EXTENDED_LEVELS",
    "AUDIT",
    "Destination",
    "ConsoleDestination",
    "FileDestination",
    "ObserveDestination",
    "Scrubber",
    "REDACTED",
    "AIFeatures",
    "get_default_logger",
    "set_default_logger",
    "trace",
    "debug",
    "info",
    "warn",
    "error",
    "fatal",
    "audit",
]
