"""test_integrations.py - Unit tests for process hooks and the logging bridge.

Covers:
    - GlobalHandlers wraps sys.excepthook and chains to the previous hook
    - GlobalHandlers reports uncaught thread exceptions
    - KeyboardInterrupt is not reported
    - uninstall() restores the previous hooks
    - BreadcrumbHandler record -> breadcrumb mapping, SDK loggers ignored
    - LoggingIntegration install/uninstall
"""

import logging
import sys
import threading

import pytest

from statly_observe.integrations import BreadcrumbHandler, GlobalHandlers, LoggingIntegration


# ---------------------------------------------------------------------------
# GlobalHandlers
# ---------------------------------------------------------------------------


class TestGlobalHandlers:
    def setup_method(self):
        self.reported = []
        self.chained = []

    def _callback(self, exc, context):
        self.reported.append((exc, context))

    def test_excepthook_reports_and_chains(self, monkeypatch):
        """The wrapper reports the exception, then calls the previous hook."""
        monkeypatch.setattr(sys, "excepthook", lambda *args: self.chained.append(args))
        handlers = GlobalHandlers(thread_excepthook=False)
        handlers.install(self._callback)

        error = ValueError("uncaught")
        sys.excepthook(ValueError, error, None)
        handlers.uninstall()

        assert self.reported == [(error, {"mechanism": {"type": "excepthook", "handled": False}})]
        assert self.chained == [(ValueError, error, None)]

    def test_keyboard_interrupt_not_reported(self, monkeypatch):
        """Ctrl-C still reaches the previous hook but is not captured."""
        monkeypatch.setattr(sys, "excepthook", lambda *args: self.chained.append(args))
        handlers = GlobalHandlers(thread_excepthook=False)
        handlers.install(self._callback)

        sys.excepthook(KeyboardInterrupt, KeyboardInterrupt(), None)
        handlers.uninstall()

        assert self.reported == []
        assert len(self.chained) == 1

    def test_thread_exception_reported(self, monkeypatch):
        """Uncaught exceptions in threads are reported with the thread name."""
        monkeypatch.setattr(threading, "excepthook", lambda args: self.chained.append(args))
        handlers = GlobalHandlers(excepthook=False)
        handlers.install(self._callback)

        def worker():
            raise RuntimeError("in thread")

        thread = threading.Thread(target=worker, name="worker-1")
        thread.start()
        thread.join()
        handlers.uninstall()

        (exc, context), = self.reported
        assert isinstance(exc, RuntimeError)
        assert context["thread"] == "worker-1"
        assert context["mechanism"]["type"] == "threading.excepthook"
        assert len(self.chained) == 1

    def test_uninstall_restores_hooks(self, monkeypatch):
        """uninstall() puts the original hooks back."""
        original = lambda *args: None  # noqa: E731
        original_thread = lambda args: None  # noqa: E731
        monkeypatch.setattr(sys, "excepthook", original)
        monkeypatch.setattr(threading, "excepthook", original_thread)

        handlers = GlobalHandlers()
        handlers.install(self._callback)
        assert handlers.installed
        assert sys.excepthook is not original

        handlers.uninstall()
        assert sys.excepthook is original
        assert threading.excepthook is original_thread
        assert not handlers.installed

    def test_failing_callback_still_chains(self, monkeypatch):
        """A callback that raises does not stop the previous hook."""
        monkeypatch.setattr(sys, "excepthook", lambda *args: self.chained.append(args))

        def broken(exc, context):
            raise RuntimeError("callback bug")

        handlers = GlobalHandlers(thread_excepthook=False)
        handlers.install(broken)
        sys.excepthook(ValueError, ValueError("x"), None)
        handlers.uninstall()

        assert len(self.chained) == 1


# ---------------------------------------------------------------------------
# Logging bridge
# ---------------------------------------------------------------------------


def _record(name="app", level=logging.INFO, msg="hello %s", args=("world",), exc_info=None):
    return logging.LogRecord(
        name=name, level=level, pathname="", lineno=0, msg=msg, args=args, exc_info=exc_info
    )


class TestBreadcrumbHandler:
    def setup_method(self):
        self.crumbs = []
        self.handler = BreadcrumbHandler(self.crumbs.append)

    @pytest.mark.parametrize(
        "levelno, expected",
        [
            (logging.DEBUG, "debug"),
            (logging.INFO, "info"),
            (logging.WARNING, "warning"),
            (logging.ERROR, "error"),
            (logging.CRITICAL, "error"),
        ],
    )
    def test_level_mapping(self, levelno, expected):
        """Standard levels map onto breadcrumb levels."""
        self.handler.emit(_record(level=levelno))
        assert self.crumbs[0]["level"] == expected

    def test_record_to_breadcrumb(self):
        """The formatted message and logger name are recorded."""
        self.handler.emit(_record())
        assert self.crumbs == [
            {"category": "logging", "message": "hello world", "level": "info", "data": {"logger": "app"}}
        ]

    def test_exception_type_recorded(self):
        """exc_info adds the exception class name."""
        try:
            raise OSError("disk")
        except OSError:
            record = _record(level=logging.ERROR, exc_info=sys.exc_info())
        self.handler.emit(record)
        assert self.crumbs[0]["data"]["exception"] == "OSError"

    def test_sdk_loggers_ignored(self):
        """statly_observe and its children are skipped; look-alike names are not."""
        self.handler.emit(_record(name="statly_observe"))
        self.handler.emit(_record(name="statly_observe.transport"))
        self.handler.emit(_record(name="statly_observer"))
        assert [c["data"]["logger"] for c in self.crumbs] == ["statly_observer"]


class TestLoggingIntegration:
    def test_install_and_uninstall(self):
        """Records on the target logger become breadcrumbs until uninstalled."""
        target = logging.getLogger("tests.integration.target")
        target.setLevel(logging.DEBUG)
        crumbs = []
        integration = LoggingIntegration(target)

        integration.install(crumbs.append)
        target.info("seen")
        integration.uninstall()
        target.info("not seen")

        assert [c["message"] for c in crumbs] == ["seen"]
        assert not integration.installed
