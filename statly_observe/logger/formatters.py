"""formatters.py - Text renderings of a LogEntry.

``format_pretty`` produces a single human-readable line (plus an indented
context block) with optional ANSI colours. ``format_json`` produces one
compact JSON object per line, suitable for files and log shippers.
"""

import json
from datetime import datetime, timezone
from typing import Dict

from .levels import LogEntry

RESET = "\x1b[0m"
DIM = "\x1b[2m"
BLUE = "\x1b[34m"

LEVEL_COLORS: Dict[str, str] = {
    "trace": "\x1b[90m",
    "debug": "\x1b[36m",
    "info": "\x1b[32m",
    "warn": "\x1b[33m",
    "error": "\x1b[31m",
    "fatal": "\x1b[41m\x1b[37m",
    "audit": "\x1b[35m",
}

# Padded so messages line up.
LEVEL_LABELS: Dict[str, str] = {
    "trace": "TRACE",
    "debug": "DEBUG",
    "info": "INFO ",
    "warn": "WARN ",
    "error": "ERROR",
    "fatal": "FATAL",
    "audit": "AUDIT",
}


def format_timestamp(timestamp_ms: int) -> str:
    """Render epoch milliseconds as ``YYYY-mm-dd HH:MM:SS.mmm`` in UTC."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%d %H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def _paint(text: str, color: str, enabled: bool) -> str:
    return f"{color}{text}{RESET}" if enabled else text


def format_pretty(
    entry: LogEntry,
    colors: bool = True,
    timestamps: bool = True,
    show_level: bool = True,
    show_logger: bool = True,
    show_context: bool = True,
    show_source: bool = False,
) -> str:
    """Render ``entry`` for a terminal.

    Example output (colours off)::

        2024-01-15 12:34:56.789 INFO  [checkout] Order placed
        {
          "orderId": "A-1001"
        }
    """
    parts = []
    if timestamps:
        parts.append(_paint(format_timestamp(entry.timestamp), DIM, colors))
    if show_level:
        label = LEVEL_LABELS.get(entry.level, entry.level.upper())
        parts.append(_paint(label, LEVEL_COLORS.get(entry.level, ""), colors))
    if show_logger and entry.logger_name:
        parts.append(_paint(f"[{entry.logger_name}]", BLUE, colors))
    parts.append(entry.message)
    if show_source and entry.source:
        loc = ":".join(
            str(entry.source[k]) for k in ("file", "line", "function") if entry.source.get(k)
        )
        if loc:
            parts.append(_paint(f"({loc})", DIM, colors))

    result = " ".join(parts)
    if show_context and entry.context:
        context = json.dumps(entry.context, indent=2, default=str)
        result += "\n" + _paint(context, DIM, colors)
    return result


def format_text(entry: LogEntry) -> str:
    """Plain single-line rendering used by the file destination."""
    moment = datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc)
    line = f"{moment.isoformat(timespec='milliseconds')} [{entry.level.upper()}] "
    if entry.logger_name:
        line += f"[{entry.logger_name}] "
    line += entry.message
    if entry.context:
        line += " " + json.dumps(entry.context, default=str)
    return line


def format_json(entry: LogEntry) -> str:
    return json.dumps(entry.to_dict(), default=str)


def format_json_pretty(entry: LogEntry) -> str:
    return json.dumps(entry.to_dict(), indent=2, default=str)


def console_stream_name(level: str) -> str:
    """Return ``"stderr"`` for error and fatal entries, ``"stdout"`` otherwise."""
    return "stderr" if level in ("error", "fatal") else "stdout"

