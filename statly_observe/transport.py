"""transport.py - Batched HTTP delivery of events to the ingestion service.

Transport keeps a bounded in-memory queue of outbound events and flushes it
on three triggers: a periodic timer, the queue crossing a small threshold,
and explicit ``flush()`` calls. Delivery never blocks or raises into the
caller:

    - A full queue drops its oldest event to make room (drop-oldest
      backpressure).
    - At most one flush is in flight at a time.
    - A failed batch is put back at the front of the queue and retried on the
      next flush. Items enqueued while it was in flight go after it, and the
      queue is cut back to capacity by dropping the oldest.
    - Network errors and non-2xx responses come back as a TransportResult.

Typical usage::

    transport = Transport("https://sk_live_ab12cd34@statly.live/acme")
    transport.enqueue({"message": "hello", "level": "info"})
    transport.flush()
    transport.destroy()
"""

import json
import logging
import threading
from collections import deque
from typing import Any, Dict, List, Optional

import httpx

from .dsn import EVENTS_PATH, endpoint_for
from .worker import PeriodicFlusher, run_in_background

_log = logging.getLogger(__name__)

DSN_HEADER = "X-Statly-DSN"


class TransportResult:
    """Outcome of one HTTP send.

    Attributes:
        success (bool): True for any 2xx response.
        status (Optional[int]): HTTP status code, absent on network errors.
        error (Optional[str]): Response body or exception text on failure.
    """

    __slots__ = ("success", "status", "error")

    def __init__(
        self, success: bool, status: Optional[int] = None, error: Optional[str] = None
    ) -> None:
        self.success = success
        self.status = status
        self.error = error

    def __repr__(self) -> str:  # pragma: no cover
        return f"TransportResult(success={self.success}, status={self.status}, error={self.error!r})"


def encode_payload(payload: Any) -> bytes:
    """Serialise a payload, stringifying anything JSON cannot represent."""
    return json.dumps(payload, default=str).encode("utf-8")


def post_json(
    client: httpx.Client, url: str, dsn: str, payload: Any, debug: bool = False
) -> TransportResult:
    """POST ``payload`` to ``url`` and turn the outcome into a TransportResult."""
    try:
        response = client.post(
            url,
            content=encode_payload(payload),
            headers={"Content-Type": "application/json", DSN_HEADER: dsn},
        )
    except httpx.HTTPError as exc:
        if debug:
            _log.error("Network error sending to %s: %s", url, exc)
        return TransportResult(False, error=str(exc) or type(exc).__name__)

    if not response.is_success:
        if debug:
            _log.error("Ingestion API error %s: %s", response.status_code, response.text)
        return TransportResult(False, status=response.status_code, error=response.text)
    return TransportResult(True, status=response.status_code)


class Transport:
    """Bounded, batching event queue in front of one ingestion endpoint.

    Attributes:
        dsn (str): Raw connection string, sent verbatim for authentication.
        endpoint (str): Derived ``<scheme>://<host>/api/v1/observe/ingest`` URL.
    """

    def __init__(
        self,
        dsn: str,
        debug: bool = False,
        max_queue_size: int = 100,
        flush_at: Optional[int] = 10,
        flush_interval: Optional[float] = 5.0,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialise the transport and start its flush timer.

        Args:
            dsn: Connection string for the organisation.
            debug: Log delivery failures and queue overflow.
            max_queue_size: Maximum number of queued events.
            flush_at: Queue length that triggers an immediate background
                flush. ``None`` disables eager flushing.
            flush_interval: Seconds between periodic flushes. ``None``
                disables the timer.
            timeout: HTTP timeout in seconds.
            client: Optional pre-configured ``httpx.Client``. The transport
                closes only clients it created itself.
        """
        self.dsn = dsn
        self.endpoint = endpoint_for(dsn, EVENTS_PATH)
        self._debug = debug
        self._max_queue_size = max(1, max_queue_size)
        self._flush_at = flush_at
        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._flushing = False
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._timer: Optional[PeriodicFlusher] = None
        if flush_interval:
            self._timer = PeriodicFlusher(flush_interval, self.flush, name="statly-transport")
            self._timer.start()

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def pending(self) -> List[Dict[str, Any]]:
        """Return a copy of the queued events, oldest first."""
        with self._lock:
            return list(self._queue)

    def enqueue(self, event: Dict[str, Any]) -> None:
        """Queue an event, dropping the oldest one if the queue is full."""
        with self._lock:
            if len(self._queue) >= self._max_queue_size:
                self._queue.popleft()
                if self._debug:
                    _log.warning("Event queue full, dropping oldest event")
            self._queue.append(event)
            should_flush = (
                self._flush_at is not None
                and len(self._queue) >= self._flush_at
                and not self._flushing
            )

        if should_flush:
            run_in_background(self.flush, name="statly-transport-flush")

    def flush(self) -> TransportResult:
        """Send everything queued as one batch.

        Returns a successful empty result when there is nothing to send or
        another flush is already in flight.
        """
        with self._lock:
            if self._flushing or not self._queue:
                return TransportResult(True)
            self._flushing = True
            events = list(self._queue)
            self._queue.clear()

        try:
            result = self._send_batch(events)
        except Exception as exc:
            _log.exception("Unexpected error sending events")
            result = TransportResult(False, error=str(exc))

        with self._lock:
            if not result.success:
                # Failed items go ahead of anything enqueued meanwhile.
                combined = events + list(self._queue)
                self._queue = deque(combined[-self._max_queue_size:])
                if self._debug:
                    _log.error("Failed to send %d event(s), re-queued for retry", len(events))
            self._flushing = False
            self._idle.notify_all()
        return result

    def send(self, event: Dict[str, Any]) -> TransportResult:
        """Send one event immediately, bypassing the queue."""
        return self._send_batch([event])

    def destroy(self, timeout: float = 10.0) -> TransportResult:
        """Stop the timer, attempt a final flush and release the HTTP client.

        A flush already in flight is waited on for up to ``timeout`` seconds
        so that events queued behind it are still sent.
        """
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        self.wait_idle(timeout)
        result = self.flush()
        if self._owns_client:
            self._client.close()
        return result

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until no flush is in flight. Returns False on timeout."""
        with self._idle:
            idle = self._idle.wait_for(lambda: not self._flushing, timeout)
        if not idle:
            _log.warning("Timed out waiting for an in-flight flush")
        return idle

    def _send_batch(self, events: List[Dict[str, Any]]) -> TransportResult:
        if not events:
            return TransportResult(True)
        payload: Any = events[0] if len(events) == 1 else {"events": events}
        result = post_json(self._client, self.endpoint, self.dsn, payload, self._debug)
        if result.success and self._debug:
            _log.debug("Sent %d event(s)", len(events))
        return result
