"""client.py - Event construction and the client lifecycle.

StatlyClient turns raw inputs (exceptions, messages, finished spans) into
normalised event dicts and hands them to the Transport. Along the way it
applies the global options: sampling, ``before_send``, tags, the current
user, and a snapshot of the breadcrumb trail.

Lifecycle:
    uninitialised --init()--> initialised --close()--> uninitialised

``init()`` on an initialised client is a no-op with a warning. ``close()``
uninstalls the process hooks, flushes and destroys the transport; a new
``init()`` is required before hooks are active again.
"""

import logging
import random
import sys
import time
import traceback
import uuid
from typing import Any, Callable, Dict, Optional, TypeVar

from .version import __version__
from .breadcrumbs import BreadcrumbBuffer
from .config import ClientOptions
from .integrations import GlobalHandlers, LoggingIntegration
from .logger.scrubbing import Scrubber
from .span import Span
from .telemetry import TelemetryProvider, get_provider
from .transport import Transport

_log = logging.getLogger(__name__)

SDK_NAME = "statly-observe-python"

EVENT_LEVELS = ("debug", "info", "warning", "error", "fatal")

T = TypeVar("T")


def _now_ms() -> int:
    return int(time.time() * 1000)


def exception_info(exc: BaseException) -> Dict[str, Any]:
    """Describe ``exc`` as ``{type, value, stacktrace: {frames}}``.

    Frames are listed oldest call first. Never raises: a traceback that
    cannot be walked just yields no frames.
    """
    info: Dict[str, Any] = {"type": type(exc).__name__, "value": str(exc)}
    try:
        frames = [
            {
                "filename": frame.filename,
                "function": frame.name,
                "lineno": frame.lineno,
                "context_line": frame.line,
                "in_app": "site-packages" not in frame.filename
                and "dist-packages" not in frame.filename,
            }
            for frame in traceback.extract_tb(exc.__traceback__)
        ]
    except Exception:
        frames = []
    if frames:
        info["stacktrace"] = {"frames": frames}
    return info


def format_stack(exc: BaseException) -> Optional[str]:
    try:
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    except Exception:
        return None


class StatlyClient:
    """Builds events and drives the Transport.

    Example:
        >>> options = ClientOptions(dsn="https://sk_live_ab12cd34@statly.live/acme")
        >>> client = StatlyClient(options)
        >>> client.init()
        >>> client.capture_message("deploy finished", "info")
        '...'
        >>> client.close()
    """

    def __init__(
        self,
        options: ClientOptions,
        transport: Optional[Transport] = None,
        provider: Optional[TelemetryProvider] = None,
    ) -> None:
        self.options = options
        self.transport = transport or Transport(options.dsn, debug=options.debug)
        self.breadcrumbs = BreadcrumbBuffer(options.max_breadcrumbs)
        self.scrubber = Scrubber()
        self.provider = provider or get_provider()
        self._global_handlers = GlobalHandlers()
        self._logging_integration = LoggingIntegration()
        self._user: Optional[Dict[str, Any]] = None
        self._initialized = False
        self.provider.set_client(self)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Install the configured integrations. Safe to call twice."""
        if self._initialized:
            _log.warning("Statly client already initialized")
            return
        self._initialized = True
        self.provider.set_client(self)

        if self.options.auto_capture:
            self._global_handlers.install(self._capture_uncaught)
        if self.options.capture_console:
            self._logging_integration.install(self.breadcrumbs.add)

        self.add_breadcrumb(category="navigation", message="SDK initialized", level="info")
        if self.options.debug:
            _log.info(
                "Statly SDK initialized (environment=%s, release=%s)",
                self.options.environment,
                self.options.release,
            )

    # ------------------------------------------------------------------ #
    # Capture
    # ------------------------------------------------------------------ #

    def capture_exception(
        self,
        error: Any = None,
        context: Optional[Dict[str, Any]] = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        """Capture an exception and return its event id.

        ``error`` may be an exception, a string, or anything else (recorded as
        an unknown error). With no argument the exception currently being
        handled is used. ``tags`` override global tags for this event only.
        """
        if error is None:
            error = sys.exc_info()[1]
            if error is None:
                error = "Unknown error"

        extra = dict(context) if context else {}
        if isinstance(error, BaseException):
            exc = error
        elif isinstance(error, str):
            exc = Exception(error)
        else:
            exc = Exception("Unknown error")
            extra["originalError"] = repr(error)
        return self._capture_error(exc, extra or None, tags)

    def capture_message(
        self, message: str, level: str = "info", tags: Optional[Dict[str, str]] = None
    ) -> str:
        """Capture a plain message at ``level`` and return its event id."""
        if not self._sampled():
            return ""
        if level not in EVENT_LEVELS:
            _log.warning("Unknown event level %r, using 'info'", level)
            level = "info"
        return self._send_event(self._build_event(message=message, level=level, tags=tags))

    def capture_span(self, span: Span) -> str:
        """Report a finished span as a ``span``-level event."""
        event = self._build_event(
            message=f"Span: {span.name}", level="span", span=span.to_dict()
        )
        return self._send_event(event)

    def start_span(self, name: str, tags: Optional[Dict[str, str]] = None) -> Span:
        return self.provider.start_span(name, tags)

    def trace(
        self,
        name: str,
        operation: Callable[[Span], T],
        tags: Optional[Dict[str, str]] = None,
    ) -> T:
        return self.provider.trace(name, operation, tags)

    # ------------------------------------------------------------------ #
    # Context
    # ------------------------------------------------------------------ #

    def set_user(self, user: Optional[Dict[str, Any]]) -> None:
        """Set the user attached to later events; ``None`` clears it."""
        self._user = dict(user) if user is not None else None
        if self.options.debug and user:
            _log.info("User set: %s", user.get("id") or user.get("email"))

    def set_tag(self, key: str, value: str) -> None:
        self.options.tags[key] = value

    def set_tags(self, tags: Dict[str, str]) -> None:
        self.options.tags.update(tags)

    def add_breadcrumb(
        self, breadcrumb: Optional[Dict[str, Any]] = None, **fields: Any
    ) -> None:
        self.breadcrumbs.add(breadcrumb, **fields)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def flush(self) -> None:
        self.transport.flush()

    def close(self) -> None:
        """Uninstall hooks, flush and destroy the transport, reset state."""
        self._global_handlers.uninstall()
        self._logging_integration.uninstall()
        self.transport.flush()
        self.transport.destroy()
        if self.provider.client is self:
            self.provider.set_client(None)
        self._initialized = False

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _sampled(self) -> bool:
        return random.random() < self.options.sample_rate

    def _capture_uncaught(self, exc: BaseException, context: Dict[str, Any]) -> None:
        self._capture_error(exc, context)

    def _capture_error(
        self,
        exc: BaseException,
        extra: Optional[Dict[str, Any]],
        tags: Optional[Dict[str, str]] = None,
    ) -> str:
        if not self._sampled():
            return ""
        event = self._build_event(
            message=str(exc) or type(exc).__name__,
            level="error",
            stack=format_stack(exc),
            exception=exception_info(exc),
            extra=extra,
            tags=tags,
        )
        return self._send_event(event)

    def _build_event(self, **partial: Any) -> Dict[str, Any]:
        event: Dict[str, Any] = {
            "message": partial.pop("message", None) or "Unknown error",
            "timestamp": _now_ms(),
            "level": partial.pop("level", None) or "error",
            "environment": self.options.environment,
            "tags": {**self.options.tags, **(partial.pop("tags", None) or {})},
            "breadcrumbs": self.scrubber.scrub(self.breadcrumbs.get_all()),
            "sdk": {"name": SDK_NAME, "version": __version__},
        }
        if partial.get("extra"):
            partial["extra"] = self.scrubber.scrub(partial["extra"])
        if self.options.release:
            event["release"] = self.options.release
        if self._user is not None:
            event["user"] = dict(self._user)
        event.update({k: v for k, v in partial.items() if v is not None})
        return event

    def _send_event(self, event: Dict[str, Any]) -> str:
        processed: Any = event
        if self.options.before_send is not None:
            try:
                processed = self.options.before_send(event)
            except Exception:
                _log.exception("before_send raised, dropping the event")
                processed = None
        if not processed:
            if self.options.debug:
                _log.info("Event dropped by before_send")
            return ""
        if not isinstance(processed, dict):
            _log.warning(
                "before_send returned %s instead of a dict, dropping the event",
                type(processed).__name__,
            )
            return ""

        event_id = processed.setdefault("event_id", uuid.uuid4().hex)

        self.breadcrumbs.add(
            category="statly",
            message=f"Captured {event['level']}: {event['message'][:50]}",
            level="info",
        )
        self.transport.enqueue(processed)

        if self.options.debug:
            _log.info("Event captured: %s %s", event_id, event["message"])
        return event_id

