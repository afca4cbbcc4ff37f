"""worker.py - Background threads for periodic and eager flushing.

Both the event Transport and the remote log destination flush on a timer and
kick off an immediate flush when their queue crosses a threshold. Neither may
block the caller, so the work runs on daemon threads that never keep the
process alive on their own.
"""

import logging
import threading
from typing import Callable, Optional

_log = logging.getLogger(__name__)


def run_in_background(target: Callable[[], object], name: str) -> threading.Thread:
    """Run ``target`` once on a daemon thread, logging anything it raises."""

    def _run() -> None:
        try:
            target()
        except Exception:
            _log.exception("Background task %s failed", name)

    thread = threading.Thread(target=_run, name=name, daemon=True)
    thread.start()
    return thread


class PeriodicFlusher:
    """Calls ``callback`` every ``interval`` seconds until stopped.

    Example:
        >>> flusher = PeriodicFlusher(5.0, transport.flush, name="statly-events")
        >>> flusher.start()
        >>> flusher.stop()
    """

    def __init__(self, interval: float, callback: Callable[[], object], name: str) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stopped.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        """Stop the loop and wait up to ``timeout`` seconds for it to exit."""
        self._stopped.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _loop(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:
                _log.exception("Periodic flush %s failed", self._name)
