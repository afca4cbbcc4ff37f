"""test_destinations.py - Unit tests for the built-in log destinations.

Covers:
    - Destination.accepts(): levels, min_level, enabled, audit bypass
    - ConsoleDestination: stdout/stderr routing, JSON and pretty output,
      colour detection via FORCE_COLOR / NO_COLOR
    - FileDestination: buffering, size and time rotation, retention,
      self-disable when the directory cannot be created, parse_size()
    - ObserveDestination: batching, per-level sampling, audit never sampled,
      re-queue capped at three batches, single in-flight flush, close()
      waiting for an in-flight flush
"""

import io
import json
import os
import re
import threading
import time

import httpx
import respx

from statly_observe.logger.destinations import (
    ConsoleDestination,
    FileDestination,
    ObserveDestination,
)
from statly_observe.logger.destinations import console as console_module
from statly_observe.logger.destinations import observe as observe_module
from statly_observe.logger.destinations.file import parse_size
from statly_observe.logger.formatters import LEVEL_COLORS, format_pretty
from statly_observe.logger.levels import LogEntry

DSN = "https://sk_test@logs.example.com/acme"
LOGS_URL = "https://logs.example.com/api/v1/logs/ingest"


def _entry(level="info", message="hello", **kwargs):
    kwargs.setdefault("timestamp", 1700000000000)
    kwargs.setdefault("logger_name", "test")
    return LogEntry(level, message, **kwargs)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class TestAccepts:
    def test_level_set_and_min_level(self):
        """An entry must be in the level set and at or above min_level."""
        dest = ConsoleDestination(levels=["info", "error"])
        dest.set_min_level("error")

        assert not dest.accepts(_entry("warn"))
        assert not dest.accepts(_entry("info"))
        assert dest.accepts(_entry("error"))

    def test_audit_bypasses_levels(self):
        """audit passes even with an empty level set."""
        dest = ConsoleDestination(levels=[])
        dest.set_min_level("fatal")
        assert dest.accepts(_entry("audit"))

    def test_disabled_rejects_everything(self):
        """set_enabled(False) stops audit too."""
        dest = ConsoleDestination()
        dest.set_enabled(False)
        assert not dest.accepts(_entry("audit"))


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


class TestConsoleDestination:
    def setup_method(self):
        self.out = io.StringIO()
        self.err = io.StringIO()

    def _dest(self, **kwargs):
        return ConsoleDestination(stream=self.out, err_stream=self.err, **kwargs)

    def test_errors_go_to_err_stream(self):
        """error and fatal are written to the error stream, the rest to out."""
        dest = self._dest(format="json")
        dest.write(_entry("info", "fine"))
        dest.write(_entry("error", "broken"))

        assert json.loads(self.out.getvalue())["message"] == "fine"
        assert json.loads(self.err.getvalue())["message"] == "broken"

    def test_json_format_uses_wire_keys(self):
        """JSON output is the entry's to_dict()."""
        dest = self._dest(format="json")
        dest.write(_entry("warn", "careful", trace_id="t1"))

        data = json.loads(self.out.getvalue())
        assert data["level"] == "warn"
        assert data["loggerName"] == "test"
        assert data["traceId"] == "t1"

    def test_pretty_without_color(self, monkeypatch):
        """NO_COLOR disables ANSI escapes."""
        monkeypatch.delenv("FORCE_COLOR", raising=False)
        monkeypatch.setenv("NO_COLOR", "1")
        dest = self._dest(timestamps=False)
        dest.write(_entry("info", "plain"))

        assert self.out.getvalue() == "INFO  [test] plain\n"

    def test_pretty_forced_color(self, monkeypatch):
        """FORCE_COLOR enables ANSI escapes on a non-TTY stream."""
        monkeypatch.setenv("FORCE_COLOR", "1")
        dest = self._dest()
        dest.write(_entry("warn", "colourful"))

        assert LEVEL_COLORS["warn"] in self.out.getvalue()

    def test_set_colors_off(self, monkeypatch):
        """set_colors(False) wins over FORCE_COLOR."""
        monkeypatch.setenv("FORCE_COLOR", "1")
        dest = self._dest()
        dest.set_colors(False)
        dest.write(_entry("info"))
        assert "\x1b[" not in self.out.getvalue()

    def test_supports_color_dumb_terminal(self, monkeypatch):
        """TERM=dumb disables colour."""
        for name in ("FORCE_COLOR", "NO_COLOR"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert not console_module.supports_color(self.out)

    def test_pretty_includes_context(self):
        """format_pretty() appends the context as indented JSON."""
        text = format_pretty(_entry(context={"orderId": "A-1"}), colors=False, timestamps=False)
        assert text.splitlines()[0] == "INFO  [test] hello"
        assert '"orderId": "A-1"' in text


# ---------------------------------------------------------------------------
# File
# ---------------------------------------------------------------------------


class TestParseSize:
    def test_units(self):
        """parse_size() understands B, KB, MB and GB."""
        assert parse_size("512") == 512
        assert parse_size("100KB") == 100 * 1024
        assert parse_size("10MB") == 10 * 1024 * 1024
        assert parse_size("1gb") == 1024 ** 3
        assert parse_size(2048) == 2048

    def test_garbage_falls_back(self):
        """Unparsable sizes become 10MB."""
        assert parse_size("huge") == 10 * 1024 * 1024


class TestFileDestination:
    def test_buffers_until_flush(self, tmp_path):
        """Lines stay in memory until flush()."""
        path = tmp_path / "app.log"
        dest = FileDestination(str(path))
        dest.write(_entry(message="one"))
        dest.write(_entry(message="two"))

        assert dest.buffered_lines == 2
        assert not path.exists()

        dest.flush()

        lines = path.read_text().splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["one", "two"]
        assert dest.buffered_lines == 0

    def test_flushes_at_100_lines(self, tmp_path):
        """The buffer is written automatically at 100 lines."""
        path = tmp_path / "app.log"
        dest = FileDestination(str(path))
        for i in range(100):
            dest.write(_entry(message=str(i)))

        assert dest.buffered_lines == 0
        assert len(path.read_text().splitlines()) == 100

    def test_text_format(self, tmp_path):
        """format="text" writes one readable line per entry."""
        path = tmp_path / "app.log"
        dest = FileDestination(str(path), format="text")
        dest.write(_entry("warn", "disk low", context={"free": "1GB"}))
        dest.close()

        line = path.read_text().strip()
        assert "[WARN] [test] disk low" in line
        assert line.endswith('{"free": "1GB"}')

    def test_size_rotation_and_max_files(self, tmp_path):
        """Files over max_size are rotated; only max_files rotated copies stay."""
        path = tmp_path / "app.log"
        dest = FileDestination(
            str(path), rotation={"type": "size", "max_size": 10, "max_files": 2}
        )
        for i in range(4):
            dest.write(_entry(message=f"entry-{i}"))
            dest.flush()
            time.sleep(0.001)

        rotated = sorted(p.name for p in tmp_path.iterdir() if p.name != "app.log")
        assert len(rotated) == 2
        for name in rotated:
            assert re.match(r"app\.log\.\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}_\d{6}$", name)
        assert json.loads(path.read_text())["message"] == "entry-3"

    def test_time_rotation(self, tmp_path):
        """An elapsed interval rotates the file before the next write."""
        path = tmp_path / "app.log"
        dest = FileDestination(str(path), rotation={"type": "time", "interval": "hourly"})
        dest.write(_entry(message="old"))
        dest.flush()

        dest._last_rotation = time.time() - 2 * 60 * 60
        dest.write(_entry(message="new"))
        dest.flush()

        files = os.listdir(tmp_path)
        assert len(files) == 2
        assert json.loads(path.read_text())["message"] == "new"

    def test_retention_days_removes_old_files(self, tmp_path):
        """Rotated files older than retention_days are deleted."""
        path = tmp_path / "app.log"
        stale = tmp_path / "app.log.2000-01-01_00-00-00_000000"
        stale.write_text("ancient\n")
        unrelated = tmp_path / "other.txt"
        unrelated.write_text("keep me\n")

        dest = FileDestination(
            str(path), rotation={"type": "size", "max_size": 1, "retention_days": 1}
        )
        dest.write(_entry(message="a"))
        dest.flush()
        dest.write(_entry(message="b"))
        dest.flush()

        assert not stale.exists()
        assert unrelated.exists()

    def test_disables_itself_when_directory_unavailable(self, tmp_path):
        """A path whose parent cannot be created disables the destination."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        dest = FileDestination(str(blocker / "app.log"))

        assert dest.enabled is False
        dest.write(_entry())
        assert dest.buffered_lines == 0


# ---------------------------------------------------------------------------
# Observe
# ---------------------------------------------------------------------------


class TestObserveDestination:
    def setup_method(self):
        self.background = []

    def _dest(self, monkeypatch, **kwargs):
        monkeypatch.setattr(
            observe_module, "run_in_background", lambda target, name: self.background.append(name)
        )
        kwargs.setdefault("flush_interval", None)
        kwargs.setdefault(
            "sampling", {level: 1.0 for level in ("trace", "debug", "info", "warn", "error", "fatal")}
        )
        return ObserveDestination(DSN, **kwargs)

    def test_default_sampling_rates(self, monkeypatch):
        """Defaults sample trace 1%, debug 10%, info 50%, warn and above fully."""
        dest = self._dest(monkeypatch, sampling=None)
        assert dest.sampling == observe_module.DEFAULT_SAMPLING
        assert dest.endpoint == LOGS_URL

    @respx.mock
    def test_flush_posts_logs_envelope(self, monkeypatch):
        """flush() sends {"logs": [...]} with the DSN header."""
        route = respx.post(LOGS_URL).mock(return_value=httpx.Response(200))
        dest = self._dest(monkeypatch)
        dest.write(_entry("info", "a"))
        dest.write(_entry("error", "b"))

        dest.flush()

        request = route.calls[0].request
        body = json.loads(request.content)
        assert [log["message"] for log in body["logs"]] == ["a", "b"]
        assert body["logs"][0]["loggerName"] == "test"
        assert request.headers["X-Statly-DSN"] == DSN
        assert dest.queue_size == 0

    def test_batch_size_triggers_background_flush(self, monkeypatch):
        """Reaching batch_size schedules a flush."""
        dest = self._dest(monkeypatch, batch_size=2)
        dest.write(_entry())
        assert self.background == []
        dest.write(_entry())
        assert self.background == ["statly-logs-flush"]

    def test_sampling_per_level(self, monkeypatch):
        """A draw of 0.3 keeps info (50%) but drops debug (10%)."""
        dest = self._dest(monkeypatch, sampling=None)
        monkeypatch.setattr(observe_module.random, "random", lambda: 0.3)

        dest.write(_entry("debug", "dropped"))
        dest.write(_entry("info", "kept"))

        assert [e.message for e in dest.pending()] == ["kept"]

    def test_audit_never_sampled(self, monkeypatch):
        """audit is kept even when every draw would drop it."""
        dest = self._dest(monkeypatch, sampling={"info": 0.0})
        monkeypatch.setattr(observe_module.random, "random", lambda: 0.999)

        dest.write(_entry("info", "dropped"))
        dest.write(_entry("audit", "kept"))

        assert [e.message for e in dest.pending()] == ["kept"]

    def test_set_sampling_rate_clamps(self, monkeypatch):
        """Rates are clamped to [0, 1]; audit cannot be sampled."""
        dest = self._dest(monkeypatch)
        dest.set_sampling_rate("info", 5)
        dest.set_sampling_rate("debug", -1)
        dest.set_sampling_rate("audit", 0.5)

        assert dest.sampling["info"] == 1.0
        assert dest.sampling["debug"] == 0.0
        assert "audit" not in dest.sampling

    @respx.mock
    def test_failed_send_requeues_up_to_three_batches(self, monkeypatch):
        """A failed batch is put back, keeping at most 3 * batch_size newest entries."""
        respx.post(LOGS_URL).mock(return_value=httpx.Response(500))
        dest = self._dest(monkeypatch, batch_size=2)
        for i in range(8):
            dest.write(_entry(message=f"m{i}"))

        dest.flush()

        assert dest.max_queue_size == 6
        assert [e.message for e in dest.pending()] == [f"m{i}" for i in range(2, 8)]

    @respx.mock
    def test_close_flushes(self, monkeypatch):
        """close() sends whatever is queued."""
        route = respx.post(LOGS_URL).mock(return_value=httpx.Response(200))
        dest = self._dest(monkeypatch)
        dest.write(_entry())

        dest.close()

        assert route.call_count == 1

    @respx.mock
    def test_second_flush_during_send_is_a_noop(self, monkeypatch):
        """Only one flush posts at a time; a nested flush leaves the queue alone."""
        dest = self._dest(monkeypatch)

        def respond(request):
            dest.write(_entry(message="late"))
            dest.flush()
            return httpx.Response(200)

        route = respx.post(LOGS_URL).mock(side_effect=respond)
        dest.write(_entry(message="first"))

        dest.flush()

        assert route.call_count == 1
        assert [e.message for e in dest.pending()] == ["late"]

    @respx.mock
    def test_close_waits_for_in_flight_flush(self, monkeypatch):
        """close() lets a slow flush finish, then sends entries queued behind it."""
        dest = self._dest(monkeypatch)
        entered = threading.Event()
        release = threading.Event()
        sent = []

        def respond(request):
            sent.append([log["message"] for log in json.loads(request.content)["logs"]])
            if len(sent) == 1:
                entered.set()
                release.wait(5)
            return httpx.Response(200)

        respx.post(LOGS_URL).mock(side_effect=respond)
        dest.write(_entry(message="first"))
        worker = threading.Thread(target=dest.flush)
        worker.start()
        assert entered.wait(5)

        dest.write(_entry(message="late"))
        threading.Timer(0.1, release.set).start()
        dest.close()
        worker.join(5)

        assert sent == [["first"], ["late"]]
        assert dest.queue_size == 0
