"""statly_observe - Error tracking, tracing and structured logging for Statly Observe.

Quick start:
    import statly_observe as statly

    # 1. Initialise once at startup (or set STATLY_DSN)
    statly.init(dsn="https://sk_live_xxx@statly.live/acme", release="1.4.2")

    # 2. Report errors and messages
    try:
        risky()
    except Exception as exc:
        statly.capture_exception(exc)
    statly.capture_message("cache warmed", level="info")

    # 3. Time work as spans
    with statly.trace_span("load_orders", tags={"db": "primary"}):
        load_orders()

    @statly.traced
    def process(order_id: int) -> dict:
        ...

    # 4. Flush before exit
    statly.close()

Structured logging lives in ``statly_observe.logger``.

Exported names:
    init, close, flush:          Client lifecycle.
    capture_exception, capture_message, capture_span: Reporting.
    set_user, set_tag, set_tags, add_breadcrumb:      Event context.
    trace, trace_span, trace_async, start_span, traced: Tracing.
    StatlyClient, ClientOptions, Transport, Span, ...: Lower-level building blocks.
"""

from .api import (
    add_breadcrumb,
    capture_exception,
    capture_message,
    capture_span,
    close,
    flush,
    get_client,
    init,
    set_tag,
    set_tags,
    set_user,
    start_span,
    trace,
    trace_span,
)
from .breadcrumbs import BreadcrumbBuffer
from .client import StatlyClient
from .config import ClientOptions
from .instrument import traced
from .logger import Logger
from .span import Span, SpanContext, SpanStatus
from .telemetry import TelemetryProvider, trace_async
from .transport import Transport, TransportResult
from .version import __version__

__all__ = [
    "init",
    "close",
    "flush",
    "get_client",
    "capture_exception",
    "capture_message",
    "capture_span",
    "set_user",
    "set_tag",
    "set_tags",
    "add_breadcrumb",
    "trace",
    "trace_async",
    "trace_span",
    "start_span",
    "traced",
    "StatlyClient",
    "ClientOptions",
    "BreadcrumbBuffer",
    "Span",
    "SpanContext",
    "SpanStatus",
    "TelemetryProvider",
    "Transport",
    "TransportResult",
    "Logger",
    "__version__",
]
