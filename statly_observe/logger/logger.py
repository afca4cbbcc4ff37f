"""logger.py - Structured logger that fans entries out to destinations.

A Logger turns each call into a LogEntry and hands it to every destination
in registration order:

    1. the logger's own gate: level must be in ``levels`` and rank at least
       ``level`` (``audit`` skips this);
    2. the message and merged context are scrubbed;
    3. each destination applies its own filtering, sampling and buffering.

A destination that raises is logged and skipped; the rest still receive the
entry.

Typical usage::

    log = Logger(
        dsn="https://sk_live_xxx@statly.live/acme",
        logger_name="billing",
        destinations={"file": {"enabled": True, "path": "logs/billing.log"}},
    )
    log.info("Invoice sent", {"invoice_id": 42})
    try:
        charge()
    except PaymentError as exc:
        log.error(exc, {"invoice_id": 42})
    log.close()
"""

import inspect
import logging
import time
import traceback
import uuid
from typing import Any, Dict, List, Mapping, Optional, Union

from ..version import __version__
from .ai import AIFeatures
from .destinations import ConsoleDestination, FileDestination, ObserveDestination
from .levels import AUDIT, LOG_LEVELS, LevelSet, LogEntry, level_value, parse_level_set
from .scrubbing import Scrubber

_log = logging.getLogger(__name__)

SDK_NAME = "statly-observe-python"

_PACKAGE = __name__.rpartition(".")[0]

Context = Optional[Dict[str, Any]]


def _as_context(context: Any) -> Dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, Mapping):
        return dict(context)
    return {"value": context}


def _source_location() -> Optional[Dict[str, Any]]:
    """Best-effort guess of the first caller frame outside this package."""
    frame = inspect.currentframe()
    try:
        while frame is not None:
            module = frame.f_globals.get("__name__", "")
            if module != _PACKAGE and not module.startswith(_PACKAGE + "."):
                return {
                    "file": frame.f_code.co_filename,
                    "line": frame.f_lineno,
                    "function": frame.f_code.co_name,
                }
            frame = frame.f_back
        return None
    finally:
        del frame


class Logger:
    """Multi-destination structured logger.

    Attributes:
        dsn (Optional[str]): Connection string; enables the Observe
            destination and the AI helpers.
        environment, release (Optional[str]): Copied onto every entry.
    """

    def __init__(
        self,
        dsn: Optional[str] = None,
        level: str = "debug",
        levels: LevelSet = "default",
        logger_name: str = "default",
        environment: Optional[str] = None,
        release: Optional[str] = None,
        destinations: Optional[Dict[str, Dict[str, Any]]] = None,
        scrubbing: Optional[Dict[str, Any]] = None,
        context: Context = None,
        tags: Optional[Dict[str, str]] = None,
        debug: bool = False,
    ) -> None:
        """Initialise the logger.

        Args:
            dsn: Statly DSN. Without one, logs stay local.
            level: Minimum level name.
            levels: ``"default"`` (no trace), ``"extended"`` or an explicit
                list of level names.
            logger_name: Name stamped on each entry.
            environment: Deployment environment.
            release: Application release.
            destinations: ``{"console": {...}, "file": {...}, "observe":
                {...}}`` keyword arguments for the built-in destinations.
                Console is on unless ``enabled`` is False; file needs
                ``enabled`` and ``path``; observe needs a DSN.
            scrubbing: Keyword arguments for :class:`Scrubber`.
            context: Persistent context merged into every entry.
            tags: Persistent tags.
            debug: Log transport failures from the Observe destination.
        """
        self.dsn = dsn
        self.environment = environment
        self.release = release
        self._name = logger_name
        self._min_level = level_value(level)
        self._levels = parse_level_set(levels)
        self._scrubber = Scrubber(**(scrubbing or {}))
        self._context: Dict[str, Any] = dict(context or {})
        self._tags: Dict[str, str] = dict(tags or {})
        self._session_id: Optional[str] = str(uuid.uuid4())
        self._trace_id: Optional[str] = None
        self._span_id: Optional[str] = None
        self._destinations: List[Any] = []
        self._ai: Optional[AIFeatures] = AIFeatures(dsn) if dsn else None

        config = destinations or {}
        console = dict(config.get("console") or {})
        if console.get("enabled", True) is not False:
            self._destinations.append(ConsoleDestination(**console))

        file_config = dict(config.get("file") or {})
        if file_config.get("enabled") and file_config.get("path"):
            self._destinations.append(FileDestination(**file_config))

        observe = dict(config.get("observe") or {})
        if dsn and observe.get("enabled", True) is not False:
            observe.setdefault("debug", debug)
            self._destinations.append(ObserveDestination(dsn, **observe))

    # ---------------------------------------------------------------------- #
    # Logging methods
    # ---------------------------------------------------------------------- #

    def trace(self, message: str, context: Context = None) -> None:
        self._emit("trace", message, context)

    def debug(self, message: str, context: Context = None) -> None:
        self._emit("debug", message, context)

    def info(self, message: str, context: Context = None) -> None:
        self._emit("info", message, context)

    def warn(self, message: str, context: Context = None) -> None:
        self._emit("warn", message, context)

    warning = warn

    def error(self, message: Union[str, BaseException], context: Context = None) -> None:
        """Log at ``error``. An exception adds ``stack`` and ``errorType``."""
        self._log_error("error", message, context)

    def fatal(self, message: Union[str, BaseException], context: Context = None) -> None:
        """Log at ``fatal``. An exception adds ``stack`` and ``errorType``."""
        self._log_error("fatal", message, context)

    def audit(self, message: str, context: Context = None) -> None:
        """Log an audit entry. Never filtered by level or sampled."""
        self._write(self._create_entry(AUDIT, message, context))

    def log(self, level: str, message: str, context: Context = None) -> None:
        """Log at an explicit level name.

        Raises:
            ValueError: If ``level`` is not a known level.
        """
        self._emit(level, message, context)

    # ---------------------------------------------------------------------- #
    # Context, tags and tracing
    # ---------------------------------------------------------------------- #

    def set_context(self, context: Dict[str, Any]) -> None:
        self._context = {**self._context, **context}

    def clear_context(self) -> None:
        self._context = {}

    def set_tag(self, key: str, value: str) -> None:
        self._tags[key] = value

    def set_tags(self, tags: Dict[str, str]) -> None:
        self._tags = {**self._tags, **tags}

    def clear_tags(self) -> None:
        self._tags = {}

    def set_trace_id(self, trace_id: str) -> None:
        self._trace_id = trace_id

    def set_span_id(self, span_id: str) -> None:
        self._span_id = span_id

    def clear_tracing(self) -> None:
        self._trace_id = None
        self._span_id = None

    def bind_span(self, span) -> None:
        """Correlate subsequent entries with ``span`` (a :class:`~statly_observe.span.Span`)."""
        self._trace_id = span.context.trace_id
        self._span_id = span.context.span_id

    def child(
        self,
        name: Optional[str] = None,
        context: Context = None,
        tags: Optional[Dict[str, str]] = None,
    ) -> "Logger":
        """Return a logger sharing this one's destinations and settings.

        Context and tags are merged on top of the parent's current values.
        Session, trace and span ids are copied now; later changes on either
        side do not propagate.
        """
        child = Logger.__new__(Logger)
        child.dsn = self.dsn
        child.environment = self.environment
        child.release = self.release
        child._name = name or f"{self._name}.child"
        child._min_level = self._min_level
        child._levels = self._levels
        child._scrubber = self._scrubber
        child._context = {**self._context, **(context or {})}
        child._tags = {**self._tags, **(tags or {})}
        child._session_id = self._session_id
        child._trace_id = self._trace_id
        child._span_id = self._span_id
        child._destinations = list(self._destinations)
        child._ai = self._ai
        return child

    # ---------------------------------------------------------------------- #
    # Destinations and levels
    # ---------------------------------------------------------------------- #

    def add_destination(self, destination) -> None:
        self._destinations.append(destination)

    def remove_destination(self, name: str) -> None:
        self._destinations = [d for d in self._destinations if d.name != name]

    def get_destinations(self) -> List[Any]:
        return list(self._destinations)

    def set_level(self, level: str) -> None:
        self._min_level = level_value(level)

    def get_level(self) -> str:
        for name, value in LOG_LEVELS.items():
            if value == self._min_level:
                return name
        return "debug"

    def is_level_enabled(self, level: str) -> bool:
        if level == AUDIT:
            return True
        return level_value(level) >= self._min_level and level in self._levels

    # ---------------------------------------------------------------------- #
    # AI helpers
    # ---------------------------------------------------------------------- #

    def explain_error(self, error: Union[str, BaseException]) -> Dict[str, Any]:
        if self._ai is None:
            return {"summary": "AI features not available (no DSN configured)", "possibleCauses": []}
        return self._ai.explain_error(error)

    def suggest_fix(
        self, error: Union[str, BaseException], context: Context = None
    ) -> Dict[str, Any]:
        if self._ai is None:
            return {"summary": "AI features not available (no DSN configured)", "suggestedFixes": []}
        return self._ai.suggest_fix(error, context)

    def analyze_patterns(self, logs) -> Dict[str, Any]:
        if self._ai is None:
            return {
                "patterns": [],
                "summary": "AI features not available (no DSN configured)",
                "recommendations": [],
            }
        return self._ai.analyze_patterns(logs)

    def configure_ai(self, api_key: Optional[str] = None, enabled: Optional[bool] = None) -> None:
        if self._ai is None:
            return
        if api_key:
            self._ai.set_api_key(api_key)
        if enabled is not None:
            self._ai.set_enabled(enabled)

    # ---------------------------------------------------------------------- #
    # Lifecycle
    # ---------------------------------------------------------------------- #

    def flush(self) -> None:
        for dest in self._destinations:
            flush = getattr(dest, "flush", None)
            if flush is None:
                continue
            try:
                flush()
            except Exception:
                _log.exception("Failed to flush destination %s", getattr(dest, "name", dest))

    def close(self) -> None:
        """Close every destination. Child loggers share them, so close once."""
        for dest in self._destinations:
            close = getattr(dest, "close", None)
            if close is None:
                continue
            try:
                close()
            except Exception:
                _log.exception("Failed to close destination %s", getattr(dest, "name", dest))
        if self._ai is not None:
            self._ai.close()

    @property
    def name(self) -> str:
        return self._name

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    # ---------------------------------------------------------------------- #
    # Private helpers
    # ---------------------------------------------------------------------- #

    def _emit(self, level: str, message: str, context: Context) -> None:
        if not self.is_level_enabled(level):
            return
        self._write(self._create_entry(level, message, context))

    def _log_error(
        self, level: str, message: Union[str, BaseException], context: Context
    ) -> None:
        if not self.is_level_enabled(level):
            return
        if isinstance(message, BaseException):
            exc = message
            context = {
                **_as_context(context),
                "stack": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                "errorType": type(exc).__name__,
            }
            message = str(exc) or type(exc).__name__
        self._write(self._create_entry(level, message, context))

    def _create_entry(self, level: str, message: str, context: Context) -> LogEntry:
        merged = {**self._context, **_as_context(context)}
        return LogEntry(
            level=level,
            message=self._scrubber.scrub_message(str(message)),
            timestamp=int(time.time() * 1000),
            logger_name=self._name,
            context=self._scrubber.scrub(dict(merged)),
            tags=dict(self._tags),
            source=_source_location(),
            trace_id=self._trace_id,
            span_id=self._span_id,
            session_id=self._session_id,
            environment=self.environment,
            release=self.release,
            sdk_name=SDK_NAME,
            sdk_version=__version__,
        )

    def _write(self, entry: LogEntry) -> None:
        for dest in self._destinations:
            try:
                dest.write(entry)
            except Exception:
                _log.exception("Failed to write to destination %s", getattr(dest, "name", dest))
