"""telemetry.py - Span lifecycle and trace propagation.

TelemetryProvider starts spans (inheriting the trace id of the active span),
finishes them, and reports finished spans to a registered sink, normally the
StatlyClient. ``trace()`` wraps a callable in a span and guarantees the span
is finished exactly once on every exit path.

A process-wide default provider backs the module-level helpers. It can be
replaced for tests with ``reset_provider()``.

Typical usage::

    from statly_observe.telemetry import trace

    def load(span):
        span.set_tag("table", "orders")
        return fetch_orders()

    orders = trace("orders.load", load)
"""

import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TypeVar

from .span import Span, SpanContext, SpanStatus, TraceContext, generate_id

_log = logging.getLogger(__name__)

T = TypeVar("T")


class TelemetryProvider:
    """Creates, finishes and reports spans for one TraceContext.

    Attributes:
        context (TraceContext): The active-span slot shared by every span
            this provider starts.
    """

    def __init__(self, context: Optional[TraceContext] = None) -> None:
        self.context = context or TraceContext()
        self._client: Any = None

    @property
    def client(self) -> Any:
        return self._client

    def set_client(self, client: Any) -> None:
        """Register the sink that receives finished spans.

        The sink needs a ``capture_span(span)`` method. Pass ``None`` to stop
        reporting.
        """
        self._client = client

    def start_span(self, name: str, tags: Optional[Dict[str, str]] = None) -> Span:
        """Start a span as a child of the active span and make it active."""
        parent = self.context.get_active_span()
        if parent is not None:
            trace_id = parent.context.trace_id
            parent_id = parent.context.span_id
        else:
            trace_id = generate_id()
            parent_id = None

        span = Span(name, SpanContext(trace_id, generate_id(), parent_id), tags)
        self.context.set_active_span(span)
        return span

    def finish_span(self, span: Span) -> None:
        """Finish ``span``, release the active slot if it still owns it, and report it."""
        span.finish()

        # A span that is no longer active must not clear someone else's slot.
        if self.context.get_active_span() is span:
            self.context.set_active_span(None)

        if self._client is not None:
            try:
                self._client.capture_span(span)
            except Exception:
                _log.exception("Failed to report span %r", span.name)

    @contextmanager
    def span(self, name: str, tags: Optional[Dict[str, str]] = None) -> Iterator[Span]:
        """Context manager that runs a block inside a span.

        On an exception the span is marked as failed and the exception is
        re-raised unchanged. The span is always finished and reported.
        """
        span = self.start_span(name, tags)
        try:
            yield span
        except BaseException as exc:
            span.set_status(SpanStatus.ERROR)
            span.set_tag("error", "true")
            span.set_tag("exception.type", type(exc).__name__)
            span.set_tag("exception.message", str(exc))
            raise
        finally:
            self.finish_span(span)

    def trace(
        self,
        name: str,
        operation: Callable[[Span], T],
        tags: Optional[Dict[str, str]] = None,
    ) -> T:
        """Call ``operation(span)`` inside a new span and return its result."""
        with self.span(name, tags) as span:
            return operation(span)

    async def trace_async(
        self,
        name: str,
        operation: Callable[[Span], Awaitable[T]],
        tags: Optional[Dict[str, str]] = None,
    ) -> T:
        """Await ``operation(span)`` inside a new span and return its result."""
        with self.span(name, tags) as span:
            return await operation(span)


_provider = TelemetryProvider()


def get_provider() -> TelemetryProvider:
    """Return the process-wide default provider."""
    return _provider


def reset_provider(context: Optional[TraceContext] = None) -> TelemetryProvider:
    """Replace the default provider with a fresh one and return it."""
    global _provider
    _provider = TelemetryProvider(context)
    return _provider


def trace(
    name: str,
    operation: Callable[[Span], T],
    tags: Optional[Dict[str, str]] = None,
) -> T:
    """Run ``operation`` inside a span using the default provider."""
    return get_provider().trace(name, operation, tags)


async def trace_async(
    name: str,
    operation: Callable[[Span], Awaitable[T]],
    tags: Optional[Dict[str, str]] = None,
) -> T:
    """Await ``operation`` inside a span using the default provider."""
    return await get_provider().trace_async(name, operation, tags)
