"""console.py - Log output to the terminal.

ConsoleDestination prints each accepted entry to stdout, or to stderr for
``error`` and ``fatal``. Output is either a pretty single line (coloured when
the stream is a terminal) or one JSON object per line.

Colour detection, in order:
    FORCE_COLOR set  -> colours unless it is "0"
    NO_COLOR set     -> no colours
    TERM=dumb        -> no colours
    otherwise        -> colours only if the stream is a TTY
"""

import os
import sys
from typing import Iterable, Optional, TextIO

from ..formatters import console_stream_name, format_json, format_pretty
from ..levels import LogEntry
from .base import Destination


def supports_color(stream: TextIO) -> bool:
    """Return True if ANSI colours should be written to ``stream``."""
    env = os.environ
    if "FORCE_COLOR" in env:
        return env["FORCE_COLOR"] != "0"
    if "NO_COLOR" in env:
        return False
    if env.get("TERM") == "dumb":
        return False
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:
        # Closed stream.
        return False


class ConsoleDestination(Destination):
    """Writes entries to stdout/stderr.

    Attributes:
        colors (bool): Colourise when the stream supports it.
        format (str): ``"pretty"`` or ``"json"``.
        timestamps (bool): Prefix pretty lines with a UTC timestamp.
        show_logger (bool): Include ``[logger-name]`` in pretty lines.

    Example:
        >>> import io
        >>> out = io.StringIO()
        >>> dest = ConsoleDestination(format="json", stream=out, err_stream=out)
    """

    name = "console"

    def __init__(
        self,
        enabled: bool = True,
        colors: bool = True,
        format: str = "pretty",
        timestamps: bool = True,
        show_logger: bool = True,
        levels: Optional[Iterable[str]] = None,
        stream: Optional[TextIO] = None,
        err_stream: Optional[TextIO] = None,
    ) -> None:
        """Initialise the console destination.

        Args:
            enabled: Start enabled.
            colors: Allow ANSI colours (still subject to detection).
            format: ``"pretty"`` or ``"json"``.
            timestamps: Show timestamps in pretty output.
            show_logger: Show the logger name in pretty output.
            levels: Accepted levels. Defaults to all levels.
            stream: Stream for non-error output. Defaults to ``sys.stdout``
                looked up at write time.
            err_stream: Stream for error/fatal output. Defaults to
                ``sys.stderr`` looked up at write time.
        """
        super().__init__(enabled=enabled, levels=levels)
        self.colors = colors
        self.format = format
        self.timestamps = timestamps
        self.show_logger = show_logger
        self._stream = stream
        self._err_stream = err_stream

    def write(self, entry: LogEntry) -> None:
        if not self.accepts(entry):
            return

        stream = self._stream_for(entry.level)
        if self.format == "json":
            output = format_json(entry)
        else:
            output = format_pretty(
                entry,
                colors=self.colors and supports_color(stream),
                timestamps=self.timestamps,
                show_logger=self.show_logger,
            )
        print(output, file=stream)

    def flush(self) -> None:
        for stream in (self._stream_for("info"), self._stream_for("error")):
            flush = getattr(stream, "flush", None)
            if flush is not None:
                flush()

    def set_colors(self, enabled: bool) -> None:
        self.colors = enabled

    def set_format(self, format: str) -> None:
        self.format = format

    def _stream_for(self, level: str) -> TextIO:
        if console_stream_name(level) == "stderr":
            return self._err_stream or sys.stderr
        return self._stream or sys.stdout
