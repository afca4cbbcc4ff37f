"""api.py - Module-level façade over a single StatlyClient.

These functions are what host code normally calls. They hold the one active
client for the process and are safe to call before ``init()``: capture calls
then log a warning and return an empty id instead of raising.

Example:
    import statly_observe

    statly_observe.init(dsn="https://sk_live_ab12cd34@statly.live/acme", release="1.0.0")

    try:
        risky_operation()
    except Exception:
        statly_observe.capture_exception()

    statly_observe.capture_message("Something happened", "warning")
    statly_observe.set_user({"id": "user-123", "email": "user@example.com"})
    statly_observe.close()
"""

import logging
from typing import Any, Callable, ContextManager, Dict, Optional, TypeVar

from .client import StatlyClient
from .config import resolve_options
from .span import Span
from .telemetry import get_provider

_log = logging.getLogger(__name__)

_client: Optional[StatlyClient] = None

T = TypeVar("T")

_NOT_INITIALIZED = "Statly SDK not initialized. Call statly_observe.init() first."


def init(**options: Any) -> Optional[StatlyClient]:
    """Create and initialise the process-wide client.

    Options are the fields of ClientOptions. ``dsn`` and ``environment`` fall
    back to environment variables. Calling ``init()`` again before ``close()``
    keeps the existing client.

    Returns:
        The active client, or ``None`` when no DSN could be found.
    """
    global _client
    if _client is not None:
        _log.warning("Statly SDK already initialized. Call close() first to reinitialize.")
        return _client

    resolved = resolve_options(**options)
    if resolved is None:
        _log.error(
            "No DSN provided. Set STATLY_DSN in your environment or pass dsn to init()."
        )
        return None

    _client = StatlyClient(resolved)
    _client.init()
    return _client


def get_client() -> Optional[StatlyClient]:
    return _client


def capture_exception(
    error: Any = None,
    context: Optional[Dict[str, Any]] = None,
    tags: Optional[Dict[str, str]] = None,
) -> str:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return ""
    return _client.capture_exception(error, context, tags)


def capture_message(
    message: str, level: str = "info", tags: Optional[Dict[str, str]] = None
) -> str:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return ""
    return _client.capture_message(message, level, tags)


def capture_span(span: Span) -> str:
    if _client is None:
        return ""
    return _client.capture_span(span)


def set_user(user: Optional[Dict[str, Any]]) -> None:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return
    _client.set_user(user)


def set_tag(key: str, value: str) -> None:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return
    _client.set_tag(key, value)


def set_tags(tags: Dict[str, str]) -> None:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return
    _client.set_tags(tags)


def add_breadcrumb(breadcrumb: Optional[Dict[str, Any]] = None, **fields: Any) -> None:
    if _client is None:
        _log.warning(_NOT_INITIALIZED)
        return
    _client.add_breadcrumb(breadcrumb, **fields)


def start_span(name: str, tags: Optional[Dict[str, str]] = None) -> Optional[Span]:
    if _client is None:
        return None
    return _client.start_span(name, tags)


def trace(
    name: str,
    operation: Callable[[Span], T],
    tags: Optional[Dict[str, str]] = None,
) -> T:
    """Run ``operation`` inside a span.

    Without an initialised client the span is still created and finished,
    it is just not reported anywhere.
    """
    if _client is None:
        return get_provider().trace(name, operation, tags)
    return _client.trace(name, operation, tags)


def trace_span(name: str, tags: Optional[Dict[str, str]] = None) -> ContextManager[Span]:
    """``with``-block form of :func:`trace`."""
    provider = _client.provider if _client is not None else get_provider()
    return provider.span(name, tags)


def flush() -> None:
    if _client is not None:
        _client.flush()


def close() -> None:
    """Flush and shut down the active client so ``init()`` can run again."""
    global _client
    if _client is None:
        return
    client, _client = _client, None
    client.close()
