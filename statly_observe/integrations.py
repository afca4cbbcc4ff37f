"""integrations.py - Hooks into the host process.

GlobalHandlers
    Wraps ``sys.excepthook`` and ``threading.excepthook`` so uncaught
    exceptions are reported before the previously installed hook runs. The
    host's own behaviour is unchanged: the original hook always gets the
    exception.

LoggingIntegration / BreadcrumbHandler
    A ``logging.Handler`` attached to the root logger that turns every
    standard-library log record into a breadcrumb. Records from the SDK's own
    ``statly_observe`` loggers are ignored so delivery diagnostics never feed
    back into the breadcrumb trail.
"""

import logging
import sys
import threading
from typing import Any, Callable, Dict, Optional

_log = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException, Dict[str, Any]], object]
BreadcrumbCallback = Callable[[Dict[str, Any]], object]

_SDK_LOGGER_PREFIX = "statly_observe"


class GlobalHandlers:
    """Installs and removes process-wide uncaught-exception hooks."""

    def __init__(self, excepthook: bool = True, thread_excepthook: bool = True) -> None:
        self._use_excepthook = excepthook
        self._use_thread_excepthook = thread_excepthook
        self._callback: Optional[ErrorCallback] = None
        self._original_excepthook: Optional[Callable] = None
        self._original_thread_excepthook: Optional[Callable] = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self, callback: ErrorCallback) -> None:
        """Start reporting uncaught exceptions to ``callback``."""
        self._callback = callback
        if self._installed:
            return
        if self._use_excepthook:
            self._original_excepthook = sys.excepthook
            sys.excepthook = self._handle_exception
        if self._use_thread_excepthook:
            self._original_thread_excepthook = threading.excepthook
            threading.excepthook = self._handle_thread_exception
        self._installed = True

    def uninstall(self) -> None:
        """Restore the hooks that were active before ``install()``."""
        if self._installed:
            if self._original_excepthook is not None:
                sys.excepthook = self._original_excepthook
            if self._original_thread_excepthook is not None:
                threading.excepthook = self._original_thread_excepthook
        self._original_excepthook = None
        self._original_thread_excepthook = None
        self._callback = None
        self._installed = False

    def _report(self, exc: Optional[BaseException], context: Dict[str, Any]) -> None:
        if self._callback is None or exc is None or isinstance(exc, KeyboardInterrupt):
            return
        try:
            self._callback(exc, context)
        except Exception:
            _log.exception("Failed to capture uncaught exception")

    def _handle_exception(self, exc_type, exc_value, exc_tb) -> None:
        self._report(exc_value, {"mechanism": {"type": "excepthook", "handled": False}})
        original = self._original_excepthook or sys.__excepthook__
        original(exc_type, exc_value, exc_tb)

    def _handle_thread_exception(self, args) -> None:
        thread_name = args.thread.name if args.thread is not None else None
        self._report(
            args.exc_value,
            {
                "mechanism": {"type": "threading.excepthook", "handled": False},
                "thread": thread_name,
            },
        )
        original = self._original_thread_excepthook or threading.__excepthook__
        original(args)


def _breadcrumb_level(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warning"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


class BreadcrumbHandler(logging.Handler):
    """A logging.Handler that records every log record as a breadcrumb.

    Example:
        >>> crumbs = []
        >>> handler = BreadcrumbHandler(crumbs.append)
        >>> logging.getLogger("app").addHandler(handler)
    """

    def __init__(self, callback: BreadcrumbCallback, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._callback = callback

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == _SDK_LOGGER_PREFIX or record.name.startswith(_SDK_LOGGER_PREFIX + "."):
            return
        try:
            crumb: Dict[str, Any] = {
                "category": "logging",
                "message": record.getMessage(),
                "level": _breadcrumb_level(record.levelno),
                "data": {"logger": record.name},
            }
            if record.exc_info and record.exc_info[1] is not None:
                crumb["data"]["exception"] = type(record.exc_info[1]).__name__
            self._callback(crumb)
        except Exception:
            # Let the logging machinery report it; the host's own logs keep flowing.
            self.handleError(record)


class LoggingIntegration:
    """Attaches a BreadcrumbHandler to a logger (the root logger by default)."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger()
        self._handler: Optional[BreadcrumbHandler] = None

    @property
    def installed(self) -> bool:
        return self._handler is not None

    def install(self, callback: BreadcrumbCallback) -> None:
        if self._handler is not None:
            return
        self._handler = BreadcrumbHandler(callback)
        self._logger.addHandler(self._handler)

    def uninstall(self) -> None:
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler = None
