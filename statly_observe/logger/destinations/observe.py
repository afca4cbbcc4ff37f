"""observe.py - Batched, sampled log delivery to the ingestion service.

ObserveDestination queues accepted entries and POSTs them as
``{"logs": [...]}`` to ``<scheme>://<host>/api/v1/logs/ingest``. A flush
happens every ``flush_interval`` seconds and, in the background, as soon as
the queue reaches ``batch_size``.

Each non-audit level has its own sample rate; an entry is kept when a
uniform draw falls below it. Audit entries are never sampled.

When a send fails, the batch goes back to the front of the queue and the
queue is capped at three batches, dropping the oldest entries first.
"""

import logging
import random
import threading
from collections import deque
from typing import Dict, Iterable, List, Optional

import httpx

from ...dsn import LOGS_PATH, endpoint_for
from ...transport import TransportResult, post_json
from ...worker import PeriodicFlusher, run_in_background
from ..levels import AUDIT, LOG_LEVELS, LogEntry
from .base import Destination

_log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_FLUSH_INTERVAL = 5.0
DEFAULT_SAMPLING: Dict[str, float] = {
    "trace": 0.01,
    "debug": 0.1,
    "info": 0.5,
    "warn": 1.0,
    "error": 1.0,
    "fatal": 1.0,
}


def _clamp(rate: float) -> float:
    return max(0.0, min(1.0, float(rate)))


class ObserveDestination(Destination):
    """Sends entries to the Statly Observe log ingestion endpoint.

    Attributes:
        dsn (str): Raw connection string, sent in the ``X-Statly-DSN`` header.
        endpoint (str): Derived logs ingestion URL.
        batch_size (int): Queue length that triggers a flush.
        sampling (Dict[str, float]): Per-level sample rates in [0, 1].
    """

    name = "observe"

    def __init__(
        self,
        dsn: str,
        enabled: bool = True,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: Optional[float] = DEFAULT_FLUSH_INTERVAL,
        sampling: Optional[Dict[str, float]] = None,
        levels: Optional[Iterable[str]] = None,
        debug: bool = False,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        super().__init__(enabled=enabled, levels=levels)
        self.dsn = dsn
        self.endpoint = endpoint_for(dsn, LOGS_PATH)
        self.batch_size = max(1, batch_size)
        self.sampling = dict(DEFAULT_SAMPLING)
        for level, rate in (sampling or {}).items():
            self.set_sampling_rate(level, rate)
        self._debug = debug
        self._queue: deque = deque()
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._flushing = False
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._timer: Optional[PeriodicFlusher] = None
        if flush_interval:
            self._timer = PeriodicFlusher(flush_interval, self.flush, name="statly-logs")
            self._timer.start()

    @property
    def max_queue_size(self) -> int:
        return self.batch_size * 3

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def pending(self) -> List[LogEntry]:
        with self._lock:
            return list(self._queue)

    def write(self, entry: LogEntry) -> None:
        if not self.accepts(entry):
            return
        if entry.level != AUDIT:
            if random.random() >= self.sampling.get(entry.level, 1.0):
                return

        with self._lock:
            self._queue.append(entry)
            should_flush = len(self._queue) >= self.batch_size and not self._flushing
        if should_flush:
            run_in_background(self.flush, name="statly-logs-flush")

    def flush(self) -> None:
        with self._lock:
            if self._flushing or not self._queue:
                return
            self._flushing = True
            entries = list(self._queue)
            self._queue.clear()

        try:
            result = post_json(
                self._client,
                self.endpoint,
                self.dsn,
                {"logs": [entry.to_dict() for entry in entries]},
                self._debug,
            )
        except Exception as exc:
            _log.exception("Unexpected error sending logs")
            result = TransportResult(False, error=str(exc))

        with self._lock:
            if not result.success:
                combined = entries + list(self._queue)
                self._queue = deque(combined[-self.max_queue_size:])
                _log.error(
                    "Failed to send %d log entries: %s",
                    len(entries),
                    result.error or result.status,
                )
            self._flushing = False
            self._idle.notify_all()

    def close(self, timeout: float = 10.0) -> None:
        if self._timer is not None:
            self._timer.stop()
            self._timer = None
        with self._idle:
            if not self._idle.wait_for(lambda: not self._flushing, timeout):
                _log.warning("Timed out waiting for an in-flight log flush")
        self.flush()
        if self._owns_client:
            self._client.close()

    def set_sampling_rate(self, level: str, rate: float) -> None:
        if level not in LOG_LEVELS or level == AUDIT:
            _log.warning("Ignoring sample rate for level %r", level)
            return
        self.sampling[level] = _clamp(rate)
