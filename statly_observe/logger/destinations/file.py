"""file.py - Buffered log output to a file on disk, with rotation.

FileDestination buffers formatted lines in memory and appends them to the
log file once 100 lines or 64 KiB have accumulated, or when ``flush()`` /
``close()`` is called.

Rotation happens just before a buffer is written:

    size  - the current file is at least ``max_size`` bytes;
    time  - ``interval`` (hourly, daily, weekly) has passed since the last
            rotation.

The rotated file is renamed to ``<path>.<YYYY-mm-dd_HH-MM-SS_ffffff>`` (UTC).
Afterwards old rotated files are removed, keeping at most ``max_files`` of
them and none older than ``retention_days``.

If the log directory cannot be created the destination disables itself with
a warning instead of raising.

Typical usage::

    dest = FileDestination(
        "/var/log/myapp/app.log",
        rotation={"type": "size", "max_size": "5MB", "max_files": 3},
    )
"""

import logging
import os
import re
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..formatters import format_json, format_text
from ..levels import LogEntry
from .base import Destination

_log = logging.getLogger(__name__)

MAX_BUFFER_LINES = 100
MAX_BUFFER_BYTES = 64 * 1024
DEFAULT_MAX_SIZE = 10 * 1024 * 1024

ROTATION_INTERVALS = {
    "hourly": 60 * 60,
    "daily": 24 * 60 * 60,
    "weekly": 7 * 24 * 60 * 60,
}

_ROTATED_SUFFIX_FORMAT = "%Y-%m-%d_%H-%M-%S_%f"
_ROTATED_SUFFIX_RE = re.compile(r"\.(\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}_\d{6})$")
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(KB|MB|GB|B)?$", re.I)
_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}


def parse_size(size: Any) -> int:
    """Convert ``"10MB"``, ``"100KB"``, ``"512"`` or an int to bytes.

    Unparsable values fall back to 10 MiB with a warning.
    """
    if isinstance(size, (int, float)) and not isinstance(size, bool):
        return int(size)
    match = _SIZE_RE.match(str(size).strip())
    if not match:
        _log.warning("Cannot parse size %r, using 10MB", size)
        return DEFAULT_MAX_SIZE
    value = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    return int(value * _SIZE_UNITS[unit])


class FileDestination(Destination):
    """Appends entries to a log file, rotating it by size or time.

    Attributes:
        path (str): Path of the active log file.
        format (str): ``"json"`` (one object per line) or ``"text"``.
        rotation (Dict[str, Any]): Rotation settings, see module docstring.
    """

    name = "file"

    def __init__(
        self,
        path: str,
        enabled: bool = True,
        format: str = "json",
        rotation: Optional[Dict[str, Any]] = None,
        levels: Optional[Iterable[str]] = None,
        encoding: str = "utf-8",
    ) -> None:
        """Initialise the file destination.

        Args:
            path: Output file. Missing parent directories are created.
            enabled: Start enabled.
            format: ``"json"`` or ``"text"``.
            rotation: ``{"type": "size"|"time", "max_size": "10MB",
                "max_files": 5, "interval": "daily", "retention_days": 7}``.
                Defaults to size rotation at 10MB keeping 5 files.
            levels: Accepted levels. Defaults to all levels.
            encoding: File encoding.
        """
        super().__init__(enabled=enabled, levels=levels)
        self.path = path
        self.format = format
        self.rotation: Dict[str, Any] = dict(
            rotation or {"type": "size", "max_size": "10MB", "max_files": 5}
        )
        self._encoding = encoding
        self._max_size = parse_size(self.rotation.get("max_size", "10MB"))
        self._interval = ROTATION_INTERVALS.get(self.rotation.get("interval"))
        self._last_rotation = time.time()
        self._buffer: List[str] = []
        self._buffer_bytes = 0
        self._lock = threading.Lock()

        try:
            self._ensure_dir()
        except OSError as exc:
            _log.warning("File destination not available for %s: %s", path, exc)
            self.enabled = False

    def write(self, entry: LogEntry) -> None:
        if not self.accepts(entry):
            return

        line = (format_json(entry) if self.format == "json" else format_text(entry)) + "\n"
        with self._lock:
            self._buffer.append(line)
            self._buffer_bytes += len(line.encode(self._encoding, "replace"))
            full = (
                len(self._buffer) >= MAX_BUFFER_LINES
                or self._buffer_bytes >= MAX_BUFFER_BYTES
            )
        if full:
            self.flush()

    def flush(self) -> None:
        """Rotate if due, then append the buffered lines to the file."""
        with self._lock:
            if not self._buffer:
                return
            data = "".join(self._buffer)
            self._buffer = []
            self._buffer_bytes = 0

            self._rotate_if_needed()
            try:
                with open(self.path, "a", encoding=self._encoding) as f:
                    f.write(data)
            except OSError:
                _log.exception("Failed to write to log file %s", self.path)

    @property
    def buffered_lines(self) -> int:
        return len(self._buffer)

    # ---------------------------------------------------------------------- #
    # Private helpers
    # ---------------------------------------------------------------------- #

    def _ensure_dir(self) -> None:
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)

    def _rotate_if_needed(self) -> None:
        kind = self.rotation.get("type", "size")
        if kind == "size":
            try:
                due = os.path.getsize(self.path) >= self._max_size
            except FileNotFoundError:
                due = False  # Nothing written yet.
        elif kind == "time":
            due = self._interval is not None and time.time() - self._last_rotation >= self._interval
        else:
            due = False

        if due:
            self._rotate()

    def _rotate(self) -> None:
        suffix = datetime.now(timezone.utc).strftime(_ROTATED_SUFFIX_FORMAT)
        try:
            os.replace(self.path, f"{self.path}.{suffix}")
        except FileNotFoundError:
            pass
        except OSError:
            _log.exception("Failed to rotate log file %s", self.path)
            return
        self._last_rotation = time.time()
        self._cleanup_rotated()

    def _rotated_files(self) -> List[str]:
        directory = os.path.dirname(os.path.abspath(self.path))
        prefix = os.path.basename(self.path) + "."
        names = [
            name
            for name in os.listdir(directory)
            if name.startswith(prefix) and _ROTATED_SUFFIX_RE.search(name)
        ]
        # Newest first; the suffix sorts chronologically.
        return [os.path.join(directory, name) for name in sorted(names, reverse=True)]

    def _cleanup_rotated(self) -> None:
        max_files = self.rotation.get("max_files")
        retention_days = self.rotation.get("retention_days")
        try:
            rotated = self._rotated_files()
            doomed = set(rotated[max_files:]) if max_files else set()
            if retention_days:
                cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
                for path in rotated:
                    stamp = datetime.strptime(
                        _ROTATED_SUFFIX_RE.search(path).group(1), _ROTATED_SUFFIX_FORMAT
                    ).replace(tzinfo=timezone.utc)
                    if stamp < cutoff:
                        doomed.add(path)
            for path in doomed:
                os.remove(path)
        except OSError:
            _log.exception("Failed to clean up rotated log files for %s", self.path)
