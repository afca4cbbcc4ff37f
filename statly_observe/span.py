"""span.py - Timed units of work and the active-span slot.

A Span records one operation inside a trace: its name, the ids that link it
to the rest of the trace, when it started and finished, and any tags or
metadata attached along the way.

TraceContext holds the single "active span" slot that new spans read to find
their parent. It is one value per context object, not a stack: two
independent traces that interleave before either finishes will race on it,
and a child started in between can be attached to the wrong parent.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, Optional


def generate_id() -> str:
    """Return a 16-character hex id for traces and spans.

    Ids only need to be unique with high probability, so a truncated UUID4
    is enough.
    """
    return uuid.uuid4().hex[:16]


def _now_ms() -> int:
    return int(time.time() * 1000)


class SpanStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class SpanContext:
    """Ids linking a span to its trace and parent."""

    __slots__ = ("trace_id", "span_id", "parent_id")

    def __init__(
        self, trace_id: str, span_id: str, parent_id: Optional[str] = None
    ) -> None:
        self.trace_id = trace_id
        self.span_id = span_id
        self.parent_id = parent_id

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"SpanContext(trace_id={self.trace_id!r}, span_id={self.span_id!r}, "
            f"parent_id={self.parent_id!r})"
        )


class Span:
    """A single timed operation.

    A span is mutable (tags, metadata, status) until ``finish()`` is called.
    ``finish()`` is idempotent: only the first call records the end time and
    duration.

    Example:
        >>> span = Span("db.query", SpanContext("t1", "s1"))
        >>> span.set_tag("table", "users").finish()
        >>> span.duration_ms is not None
        True
    """

    def __init__(
        self,
        name: str,
        context: SpanContext,
        tags: Optional[Dict[str, str]] = None,
        start_time: Optional[int] = None,
    ) -> None:
        self.name = name
        self.context = context
        self.start_time = _now_ms() if start_time is None else start_time
        self._end_time: Optional[int] = None
        self._duration_ms: Optional[int] = None
        self._status = SpanStatus.OK
        self._tags: Dict[str, str] = dict(tags) if tags else {}
        self._metadata: Dict[str, Any] = {}
        self._finished = False

    def finish(self, end_time: Optional[int] = None) -> "Span":
        """Record the end time and duration. Later calls are no-ops."""
        if self._finished:
            return self
        self._end_time = _now_ms() if end_time is None else end_time
        self._duration_ms = self._end_time - self.start_time
        self._finished = True
        return self

    def set_tag(self, key: str, value: str) -> "Span":
        self._tags[key] = value
        return self

    def set_metadata(self, key: str, value: Any) -> "Span":
        self._metadata[key] = value
        return self

    def set_status(self, status: SpanStatus) -> "Span":
        self._status = SpanStatus(status)
        return self

    @property
    def status(self) -> SpanStatus:
        return self._status

    @property
    def tags(self) -> Dict[str, str]:
        return dict(self._tags)

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    @property
    def end_time(self) -> Optional[int]:
        return self._end_time

    @property
    def duration_ms(self) -> Optional[int]:
        return self._duration_ms

    @property
    def finished(self) -> bool:
        return self._finished

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the span in the ingestion service's wire format."""
        return {
            "name": self.name,
            "traceId": self.context.trace_id,
            "spanId": self.context.span_id,
            "parentId": self.context.parent_id,
            "startTime": self.start_time,
            "endTime": self._end_time,
            "durationMs": self._duration_ms,
            "status": self._status.value,
            "tags": dict(self._tags),
            "metadata": dict(self._metadata),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"Span({self.name!r}, status={self._status.value!r}, finished={self._finished})"


class TraceContext:
    """Holder of the single active-span slot.

    Example:
        >>> ctx = TraceContext()
        >>> ctx.get_active_span() is None
        True
    """

    def __init__(self) -> None:
        self._active: Optional[Span] = None

    def get_active_span(self) -> Optional[Span]:
        return self._active

    def set_active_span(self, span: Optional[Span]) -> None:
        self._active = span
