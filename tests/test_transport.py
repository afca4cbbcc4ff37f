"""test_transport.py - Unit tests for Transport and the DSN helpers.

Covers:
    - Dsn.parse() and endpoint_for() with the default-host fallback
    - enqueue(): drop-oldest when the queue is full
    - flush(): single event sent unwrapped, several wrapped in {"events": [...]}
    - flush(): X-Statly-DSN header
    - flush(): failed batch re-queued ahead of items enqueued during the send
    - flush(): network errors come back as a failed TransportResult
    - enqueue(): threshold starts a background flush
    - flush(): at most one flush in flight
    - destroy(): final flush, after waiting for an in-flight flush
    - Dsn.parse(): IPv6 hosts keep their brackets
"""

import json
import threading

import httpx
import pytest
import respx

from statly_observe import transport as transport_module
from statly_observe.dsn import DEFAULT_BASE_URL, EVENTS_PATH, Dsn, endpoint_for
from statly_observe.transport import Transport

DSN = "https://sk_live_test@ingest.example.com/acme"
URL = "https://ingest.example.com/api/v1/observe/ingest"


def _transport(**kwargs):
    kwargs.setdefault("flush_at", None)
    kwargs.setdefault("flush_interval", None)
    return Transport(DSN, **kwargs)


# ---------------------------------------------------------------------------
# DSN
# ---------------------------------------------------------------------------


class TestDsn:
    def test_parse_extracts_parts(self):
        """Dsn.parse() splits out key prefix, host and org slug."""
        dsn = Dsn.parse("https://sk_live_ab12@statly.live/acme")
        assert dsn.scheme == "https"
        assert dsn.key_prefix == "sk_live_ab12"
        assert dsn.host == "statly.live"
        assert dsn.org_slug == "acme"

    def test_parse_keeps_port(self):
        """A port is kept as part of the host."""
        assert Dsn.parse("http://key@localhost:3000/org").base_url == "http://localhost:3000"

    def test_parse_ipv6_host(self):
        """IPv6 literals keep their brackets in the base URL."""
        assert Dsn.parse("http://key@[::1]:3000/org").base_url == "http://[::1]:3000"
        assert endpoint_for("https://key@[2001:db8::1]/org", EVENTS_PATH) == (
            "https://[2001:db8::1]" + EVENTS_PATH
        )

    def test_parse_rejects_garbage(self):
        """Input without scheme and host raises ValueError."""
        with pytest.raises(ValueError):
            Dsn.parse("not a dsn")

    def test_endpoint_for_valid_dsn(self):
        """endpoint_for() joins scheme, host and path."""
        assert endpoint_for(DSN, EVENTS_PATH) == URL

    def test_endpoint_for_falls_back(self):
        """A malformed DSN falls back to the default host."""
        assert endpoint_for("garbage", EVENTS_PATH) == DEFAULT_BASE_URL + EVENTS_PATH
        assert Transport("garbage", flush_interval=None).endpoint == DEFAULT_BASE_URL + EVENTS_PATH


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


class TestTransportQueue:
    def test_overflow_drops_oldest(self):
        """Enqueuing 101 items with capacity 100 evicts exactly the first."""
        transport = _transport(max_queue_size=100)
        for i in range(101):
            transport.enqueue({"message": f"e{i}"})

        pending = transport.pending()
        assert transport.queue_size == 100
        assert pending[0]["message"] == "e1"
        assert pending[-1]["message"] == "e100"

    def test_threshold_starts_background_flush(self, monkeypatch):
        """Reaching flush_at schedules a flush without blocking the caller."""
        started = []
        monkeypatch.setattr(
            transport_module, "run_in_background", lambda target, name: started.append(name)
        )
        transport = _transport(flush_at=3)

        transport.enqueue({"message": "a"})
        transport.enqueue({"message": "b"})
        assert started == []

        transport.enqueue({"message": "c"})
        assert started == ["statly-transport-flush"]

    def test_flush_on_empty_queue_succeeds(self):
        """Flushing nothing is a successful no-op."""
        assert _transport().flush().success


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class TestTransportFlush:
    @respx.mock
    def test_single_event_sent_unwrapped(self):
        """One queued event is posted as the bare event object."""
        route = respx.post(URL).mock(return_value=httpx.Response(200))
        transport = _transport()
        transport.enqueue({"message": "hello", "level": "info"})

        result = transport.flush()

        assert result.success
        assert result.status == 200
        request = route.calls[0].request
        assert json.loads(request.content) == {"message": "hello", "level": "info"}
        assert request.headers["X-Statly-DSN"] == DSN
        assert request.headers["Content-Type"] == "application/json"
        assert transport.queue_size == 0

    @respx.mock
    def test_batch_wrapped_in_events(self):
        """Several events are posted as {"events": [...]} in order."""
        route = respx.post(URL).mock(return_value=httpx.Response(202))
        transport = _transport()
        transport.enqueue({"message": "a"})
        transport.enqueue({"message": "b"})

        transport.flush()

        body = json.loads(route.calls[0].request.content)
        assert body == {"events": [{"message": "a"}, {"message": "b"}]}

    @respx.mock
    def test_failed_batch_requeued_ahead_of_new_items(self):
        """Items from a failed send go before items enqueued during the send."""
        transport = _transport()

        def respond(request):
            transport.enqueue({"message": "late"})
            return httpx.Response(500, text="unavailable")

        respx.post(URL).mock(side_effect=respond)
        transport.enqueue({"message": "first"})
        transport.enqueue({"message": "second"})

        result = transport.flush()

        assert not result.success
        assert result.status == 500
        assert result.error == "unavailable"
        assert [e["message"] for e in transport.pending()] == ["first", "second", "late"]

    @respx.mock
    def test_requeue_truncates_oldest(self):
        """Re-queued items beyond capacity are dropped oldest first."""
        transport = _transport(max_queue_size=3)

        def respond(request):
            transport.enqueue({"message": "late1"})
            transport.enqueue({"message": "late2"})
            return httpx.Response(503)

        respx.post(URL).mock(side_effect=respond)
        for name in ("a", "b", "c"):
            transport.enqueue({"message": name})

        transport.flush()

        assert [e["message"] for e in transport.pending()] == ["c", "late1", "late2"]

    @respx.mock
    def test_network_error_returns_failed_result(self):
        """A connection error is reported in the result and the event kept."""
        respx.post(URL).mock(side_effect=httpx.ConnectError("refused"))
        transport = _transport()
        transport.enqueue({"message": "kept"})

        result = transport.flush()

        assert not result.success
        assert result.status is None
        assert "refused" in result.error
        assert transport.pending() == [{"message": "kept"}]

    @respx.mock
    def test_send_bypasses_queue(self):
        """send() posts immediately and leaves the queue alone."""
        route = respx.post(URL).mock(return_value=httpx.Response(200))
        transport = _transport()
        transport.enqueue({"message": "queued"})

        assert transport.send({"message": "now"}).success
        assert json.loads(route.calls[0].request.content) == {"message": "now"}
        assert transport.queue_size == 1

    @respx.mock
    def test_destroy_flushes_remaining_events(self):
        """destroy() attempts one last flush."""
        route = respx.post(URL).mock(return_value=httpx.Response(200))
        transport = Transport(DSN, flush_at=None, flush_interval=60)
        transport.enqueue({"message": "bye"})

        transport.destroy()

        assert route.call_count == 1
        assert transport.queue_size == 0


# ---------------------------------------------------------------------------
# Single flight and shutdown
# ---------------------------------------------------------------------------


class TestTransportSingleFlight:
    @respx.mock
    def test_second_flush_during_send_is_a_noop(self):
        """A flush while another is in flight returns at once without posting."""
        transport = _transport()
        nested = []

        def respond(request):
            transport.enqueue({"message": "late"})
            nested.append(transport.flush())
            return httpx.Response(200)

        route = respx.post(URL).mock(side_effect=respond)
        transport.enqueue({"message": "first"})

        assert transport.flush().success

        assert route.call_count == 1
        assert nested[0].success and nested[0].status is None
        assert transport.pending() == [{"message": "late"}]

    @respx.mock
    def test_destroy_waits_for_in_flight_flush(self):
        """destroy() lets a slow flush finish, then sends what queued behind it."""
        transport = _transport()
        entered = threading.Event()
        release = threading.Event()
        bodies = []

        def respond(request):
            bodies.append(json.loads(request.content))
            if len(bodies) == 1:
                entered.set()
                release.wait(5)
            return httpx.Response(200)

        respx.post(URL).mock(side_effect=respond)
        transport.enqueue({"message": "first"})
        worker = threading.Thread(target=transport.flush)
        worker.start()
        assert entered.wait(5)

        transport.enqueue({"message": "late"})
        threading.Timer(0.1, release.set).start()
        result = transport.destroy()
        worker.join(5)

        assert result.success
        assert bodies == [{"message": "first"}, {"message": "late"}]
        assert transport.queue_size == 0

    def test_wait_idle_times_out(self, caplog):
        """wait_idle() gives up after the timeout while a flush is stuck."""
        transport = _transport()
        transport._flushing = True
        assert transport.wait_idle(0.01) is False
        assert "Timed out" in caplog.text
        transport._flushing = False
        assert transport.wait_idle(0.01) is True
