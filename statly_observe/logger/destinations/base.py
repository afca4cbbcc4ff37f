"""base.py - The Destination interface every log sink implements.

A Logger fans each LogEntry out to its destinations in registration order.
Each destination applies its own filtering:

    - ``enabled``   - a disabled destination drops everything;
    - ``levels``    - the set of level names it accepts;
    - ``min_level`` - the lowest level rank it accepts.

``audit`` entries pass both level checks. Only ``enabled`` can stop them.

Custom destinations subclass Destination and implement ``write()``. The
Logger also accepts duck-typed objects that just have a ``name`` and a
``write(entry)`` method; ``flush`` and ``close`` are optional there.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from ..levels import AUDIT, EXTENDED_LEVELS, LogEntry, level_value


class Destination(ABC):
    """Abstract base class for all log destinations.

    Example:
        >>> class MemoryDestination(Destination):
        ...     name = "memory"
        ...     def __init__(self):
        ...         super().__init__()
        ...         self.entries = []
        ...     def write(self, entry):
        ...         if self.accepts(entry):
        ...             self.entries.append(entry)
    """

    name: str = "destination"

    def __init__(
        self,
        enabled: bool = True,
        levels: Optional[Iterable[str]] = None,
        min_level: str = "trace",
    ) -> None:
        self.enabled = enabled
        self.levels = frozenset(levels) if levels is not None else EXTENDED_LEVELS
        self._min_level = level_value(min_level)

    @abstractmethod
    def write(self, entry: LogEntry) -> None:
        """Accept one entry. Must not block on I/O for long."""

    def flush(self) -> None:
        """Deliver anything buffered. No-op by default."""

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()

    def accepts(self, entry: LogEntry) -> bool:
        """Return True if this destination should write ``entry``."""
        if not self.enabled:
            return False
        if entry.level == AUDIT:
            return True
        if entry.level not in self.levels:
            return False
        return level_value(entry.level) >= self._min_level

    @property
    def min_level(self) -> int:
        return self._min_level

    def set_min_level(self, level: str) -> None:
        self._min_level = level_value(level)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
