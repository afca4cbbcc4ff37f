"""breadcrumbs.py - Bounded trail of recent activity attached to every event.

BreadcrumbBuffer keeps the most recent ``max_breadcrumbs`` breadcrumbs in
insertion order. Each captured event takes a snapshot of the trail, so the
receiving side can see what happened right before an error.

Design decisions:
    - ``collections.deque(maxlen=N)`` gives O(1) append with automatic
      eviction of the oldest breadcrumb once the limit is reached.
    - ``get_all()`` returns copies of the stored dicts. Callers can mutate
      the snapshot freely without touching the buffer.
    - Shrinking the limit trims immediately and keeps the newest entries.
"""

import time
from collections import deque
from typing import Any, Dict, List, Optional


Breadcrumb = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


class BreadcrumbBuffer:
    """Fixed-capacity FIFO of breadcrumb dicts.

    Example:
        >>> crumbs = BreadcrumbBuffer(max_breadcrumbs=2)
        >>> crumbs.add(category="auth", message="login")
        >>> crumbs.add(category="nav", message="/home")
        >>> crumbs.add(category="nav", message="/settings")
        >>> [c["message"] for c in crumbs.get_all()]
        ['/home', '/settings']
    """

    def __init__(self, max_breadcrumbs: int = 100) -> None:
        """Initialise the buffer.

        Args:
            max_breadcrumbs: Maximum number of breadcrumbs retained. Negative
                values are treated as zero (nothing is kept).
        """
        self._buffer: deque = deque(maxlen=max(0, max_breadcrumbs))

    @property
    def max_breadcrumbs(self) -> int:
        return self._buffer.maxlen

    def add(
        self,
        breadcrumb: Optional[Breadcrumb] = None,
        *,
        category: Optional[str] = None,
        message: Optional[str] = None,
        level: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Stamp and append a breadcrumb, evicting the oldest when full.

        The breadcrumb may be passed as a dict, as keyword fields, or both
        (keywords win). A ``timestamp`` already present in the dict is kept.
        """
        crumb: Breadcrumb = {"timestamp": _now_ms()}
        if breadcrumb:
            crumb.update(breadcrumb)
        for key, value in (
            ("category", category),
            ("message", message),
            ("level", level),
            ("data", data),
        ):
            if value is not None:
                crumb[key] = value
        self._buffer.append(crumb)

    def get_all(self) -> List[Breadcrumb]:
        """Return a copy of every breadcrumb, oldest first."""
        snapshot = []
        for crumb in self._buffer:
            copy = dict(crumb)
            if isinstance(copy.get("data"), dict):
                copy["data"] = dict(copy["data"])
            snapshot.append(copy)
        return snapshot

    def clear(self) -> None:
        """Remove all breadcrumbs."""
        self._buffer.clear()

    def set_max_breadcrumbs(self, max_breadcrumbs: int) -> None:
        """Change the limit, trimming the oldest entries if it shrinks."""
        self._buffer = deque(self._buffer, maxlen=max(0, max_breadcrumbs))

    def __len__(self) -> int:
        return len(self._buffer)
