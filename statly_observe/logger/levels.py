"""levels.py - Log levels and the LogEntry record.

Levels are ordered ``trace < debug < info < warn < error < fatal``. ``audit``
sits outside that order: it bypasses every level and sampling check and is
always written to every enabled destination.
"""

import logging
from typing import Any, Dict, FrozenSet, Iterable, Optional, Union

_log = logging.getLogger(__name__)

LOG_LEVELS: Dict[str, int] = {
    "trace": 0,
    "debug": 1,
    "info": 2,
    "warn": 3,
    "error": 4,
    "fatal": 5,
    "audit": 6,
}

AUDIT = "audit"

DEFAULT_LEVELS: FrozenSet[str] = frozenset({"debug", "info", "warn", "error", "fatal"})
EXTENDED_LEVELS: FrozenSet[str] = frozenset(LOG_LEVELS)

LevelSet = Union[str, Iterable[str]]


def level_value(level: str) -> int:
    """Return the numeric rank of ``level``.

    Raises:
        ValueError: If ``level`` is not one of LOG_LEVELS.
    """
    try:
        return LOG_LEVELS[level]
    except KeyError:
        raise ValueError(f"Unknown log level {level!r}") from None


def parse_level_set(levels: LevelSet) -> FrozenSet[str]:
    """Expand ``"default"``, ``"extended"`` or an explicit list into a set."""
    if levels == "default":
        return DEFAULT_LEVELS
    if levels == "extended":
        return EXTENDED_LEVELS
    if isinstance(levels, str):
        levels = [levels]
    parsed = set()
    for level in levels:
        if level in LOG_LEVELS:
            parsed.add(level)
        else:
            _log.warning("Ignoring unknown log level %r", level)
    return frozenset(parsed)


class LogEntry:
    """One structured log record, as handed to every destination.

    Attributes:
        level (str): One of LOG_LEVELS.
        message (str): Scrubbed log message.
        timestamp (int): Epoch milliseconds.
        logger_name (Optional[str]): Name of the emitting Logger.
        context (Dict[str, Any]): Scrubbed persistent + call-site context.
        tags (Dict[str, str]): Persistent tags.
        source (Optional[Dict[str, Any]]): ``{file, line, function}`` guess.
        trace_id, span_id, session_id (Optional[str]): Correlation ids.
        environment, release (Optional[str]): Deployment metadata.
        sdk_name, sdk_version (Optional[str]): SDK identity.
    """

    __slots__ = (
        "level",
        "message",
        "timestamp",
        "logger_name",
        "context",
        "tags",
        "source",
        "trace_id",
        "span_id",
        "session_id",
        "environment",
        "release",
        "sdk_name",
        "sdk_version",
    )

    _WIRE_NAMES = {
        "logger_name": "loggerName",
        "trace_id": "traceId",
        "span_id": "spanId",
        "session_id": "sessionId",
        "sdk_name": "sdkName",
        "sdk_version": "sdkVersion",
    }

    def __init__(
        self,
        level: str,
        message: str,
        timestamp: int,
        logger_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        tags: Optional[Dict[str, str]] = None,
        source: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None,
        span_id: Optional[str] = None,
        session_id: Optional[str] = None,
        environment: Optional[str] = None,
        release: Optional[str] = None,
        sdk_name: Optional[str] = None,
        sdk_version: Optional[str] = None,
    ) -> None:
        self.level = level
        self.message = message
        self.timestamp = timestamp
        self.logger_name = logger_name
        self.context = context if context is not None else {}
        self.tags = tags if tags is not None else {}
        self.source = source
        self.trace_id = trace_id
        self.span_id = span_id
        self.session_id = session_id
        self.environment = environment
        self.release = release
        self.sdk_name = sdk_name
        self.sdk_version = sdk_version

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to the wire format, omitting unset fields."""
        data = {}
        for attr in self.__slots__:
            value = getattr(self, attr)
            if value is None:
                continue
            data[self._WIRE_NAMES.get(attr, attr)] = value
        return data

    def __repr__(self) -> str:  # pragma: no cover
        return f"LogEntry({self.level!r}, {self.message!r})"
