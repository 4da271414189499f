from __future__ import annotations

import json
import threading

import connection_manager
from connection_manager import ConnectionManager
from models import ConnectionState
from schemas import SubtitleResponse


class FakeWebSocketApp:
    def __init__(self, url, on_open, on_message, on_error, on_close) -> None:  # noqa: ANN001
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.sent: list[str] = []
        self.closed = False
        self.fail_send = False
        self._done = threading.Event()

    def run_forever(self) -> None:
        self._done.wait()

    def send(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionError("socket is already closed")
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True
        self._done.set()

    # Test drivers, called the way websocket-client invokes callbacks
    def open(self) -> None:
        self.on_open(self)

    def receive(self, message) -> None:  # noqa: ANN001
        self.on_message(self, message)

    def error(self, exc: Exception) -> None:
        self.on_error(self, exc)

    def drop(self, code: int = 1006, reason: str = "") -> None:
        self.on_close(self, code, reason)


class FakeWebSocketFactory:
    def __init__(self) -> None:
        self.apps: list[FakeWebSocketApp] = []

    def __call__(self, url, on_open, on_message, on_error, on_close) -> FakeWebSocketApp:  # noqa: ANN001
        app = FakeWebSocketApp(url, on_open, on_message, on_error, on_close)
        self.apps.append(app)
        return app

    @property
    def latest(self) -> FakeWebSocketApp:
        return self.apps[-1]


class FakeTimer:
    def __init__(self, delay_s: float, callback) -> None:  # noqa: ANN001
        self.delay_s = delay_s
        self.callback = callback
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    def fire(self) -> None:
        self.fired = True
        self.callback()


class FakeTimerFactory:
    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, delay_s: float, callback) -> FakeTimer:  # noqa: ANN001
        timer = FakeTimer(delay_s, callback)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled and not t.fired]


def _make_manager(**kwargs):  # noqa: ANN003, ANN202
    ws_factory = FakeWebSocketFactory()
    timers = FakeTimerFactory()
    received: list[str] = []
    transitions: list[tuple[ConnectionState, ConnectionState]] = []
    manager = ConnectionManager(
        url="ws://localhost:8080",
        on_message=kwargs.pop("on_message", received.append),
        reconnect_interval_s=10.0,
        ws_factory=ws_factory,
        timer_factory=timers,
        on_state_change=lambda f, t: transitions.append((f, t)),
        **kwargs,
    )
    return manager, ws_factory, timers, received, transitions


def test_start_connects_and_open_transitions_to_open() -> None:
    manager, ws_factory, timers, _, transitions = _make_manager()

    assert manager.state == ConnectionState.IDLE
    manager.start()
    assert manager.state == ConnectionState.CONNECTING
    assert ws_factory.latest.url == "ws://localhost:8080"

    ws_factory.latest.open()

    assert manager.state == ConnectionState.OPEN
    assert manager.reconnect_pending is False
    assert transitions == [
        (ConnectionState.IDLE, ConnectionState.CONNECTING),
        (ConnectionState.CONNECTING, ConnectionState.OPEN),
    ]
    assert timers.timers == []


def test_start_is_idempotent_while_connecting_or_open() -> None:
    manager, ws_factory, _, _, _ = _make_manager()

    manager.start()
    manager.start()
    assert len(ws_factory.apps) == 1

    ws_factory.latest.open()
    manager.start()
    assert len(ws_factory.apps) == 1


def test_close_schedules_single_reconnect_with_fixed_delay() -> None:
    manager, ws_factory, timers, _, _ = _make_manager()
    manager.start()
    ws_factory.latest.open()

    ws_factory.latest.error(ConnectionResetError("reset"))
    ws_factory.latest.drop(1006, "abnormal")

    assert manager.state == ConnectionState.CLOSED
    assert len(timers.pending()) == 1
    assert timers.pending()[0].delay_s == 10.0


def test_reconnect_creates_fresh_session() -> None:
    manager, ws_factory, timers, _, _ = _make_manager()
    manager.start()
    first = ws_factory.latest
    first.drop()

    timers.pending()[0].fire()

    assert manager.state == ConnectionState.CONNECTING
    assert len(ws_factory.apps) == 2
    assert ws_factory.latest is not first
    assert manager.reconnect_pending is False

    ws_factory.latest.open()
    assert manager.state == ConnectionState.OPEN


def test_consecutive_failures_never_stack_timers() -> None:
    manager, ws_factory, timers, _, _ = _make_manager()
    manager.start()

    for _ in range(5):
        ws_factory.latest.error(OSError("connection refused"))
        ws_factory.latest.drop()
        assert len(timers.pending()) == 1
        timers.pending()[0].fire()
        assert len(timers.pending()) == 0

    assert len(ws_factory.apps) == 6
    assert len(timers.timers) == 5


def test_stale_callbacks_from_discarded_session_are_ignored() -> None:
    manager, ws_factory, timers, received, _ = _make_manager()
    manager.start()
    old = ws_factory.latest
    old.drop()
    timers.pending()[0].fire()
    current = ws_factory.latest
    current.open()

    old.receive('{"type": "GET_SUBTITLE"}')
    old.drop()
    old.error(OSError("late"))

    assert manager.state == ConnectionState.OPEN
    assert timers.pending() == []
    assert received == []
    assert current.closed is False


def test_inbound_text_is_handed_over_verbatim() -> None:
    manager, ws_factory, _, received, _ = _make_manager()
    manager.start()
    ws_factory.latest.open()

    ws_factory.latest.receive('{"type":"GET_SUBTITLE", "requestId": "r1"}')
    ws_factory.latest.receive("not json at all".encode("utf-8"))

    assert received == ['{"type":"GET_SUBTITLE", "requestId": "r1"}', "not json at all"]


def test_failing_message_callback_keeps_connection_open() -> None:
    def boom(_: str) -> None:
        raise RuntimeError("handler crashed")

    manager, ws_factory, timers, _, _ = _make_manager(on_message=boom)
    manager.start()
    ws_factory.latest.open()

    ws_factory.latest.receive("{}")

    assert manager.state == ConnectionState.OPEN
    assert timers.pending() == []


def test_send_when_open_serializes_response() -> None:
    manager, ws_factory, _, _, _ = _make_manager()
    manager.start()
    ws_factory.latest.open()

    response = SubtitleResponse.failure("r1", "该视频没有可用的字幕")
    assert manager.send(response) is True
    assert manager.send({"type": "PING"}) is True

    sent = [json.loads(item) for item in ws_factory.latest.sent]
    assert sent[0] == {"type": "SUBTITLE_RESULT", "requestId": "r1", "error": "该视频没有可用的字幕"}
    assert sent[1] == {"type": "PING"}
    assert "该视频" in ws_factory.latest.sent[0]


def test_send_while_disconnected_is_dropped() -> None:
    manager, ws_factory, _, _, _ = _make_manager()

    assert manager.send({"type": "PING"}) is False

    manager.start()
    assert manager.send({"type": "PING"}) is False

    ws_factory.latest.open()
    ws_factory.latest.drop()
    assert manager.send({"type": "PING"}) is False
    assert ws_factory.latest.sent == []


def test_send_failure_is_dropped_not_raised() -> None:
    manager, ws_factory, _, _, _ = _make_manager()
    manager.start()
    ws_factory.latest.open()
    ws_factory.latest.fail_send = True

    assert manager.send("{}") is False


def test_synchronous_connect_failure_schedules_reconnect() -> None:
    timers = FakeTimerFactory()

    def broken_factory(*args, **kwargs):  # noqa: ANN002, ANN003, ANN202
        raise ValueError("invalid url")

    manager = ConnectionManager(
        url="ws://bad",
        on_message=lambda _: None,
        ws_factory=broken_factory,
        timer_factory=timers,
    )
    manager.start()

    assert manager.state == ConnectionState.CLOSED
    assert len(timers.pending()) == 1

    timers.pending()[0].fire()
    assert manager.state == ConnectionState.CLOSED
    assert len(timers.pending()) == 1


def test_missing_websocket_library_schedules_reconnect(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(connection_manager, "websocket", None)
    timers = FakeTimerFactory()
    manager = ConnectionManager(url="ws://localhost:8080", on_message=lambda _: None, timer_factory=timers)

    manager.start()

    assert manager.state == ConnectionState.CLOSED
    assert len(timers.pending()) == 1


def test_run_forever_exit_without_close_callback_schedules_reconnect() -> None:
    timers = FakeTimerFactory()

    class ExitingApp(FakeWebSocketApp):
        def run_forever(self) -> None:
            raise OSError("handshake failed")

    manager = ConnectionManager(
        url="ws://localhost:8080",
        on_message=lambda _: None,
        ws_factory=ExitingApp,
        timer_factory=timers,
    )
    manager.start()
    manager._thread.join(timeout=2.0)

    assert manager.state == ConnectionState.CLOSED
    assert len(timers.pending()) == 1


def test_stop_cancels_reconnect_and_closes_session() -> None:
    manager, ws_factory, timers, _, _ = _make_manager()
    manager.start()
    ws_factory.latest.open()
    ws_factory.latest.drop()
    pending = timers.pending()[0]

    manager.stop()

    assert pending.cancelled is True
    assert manager.state == ConnectionState.CLOSED
    assert manager.reconnect_pending is False


def test_stop_suppresses_reconnect_until_started_again() -> None:
    manager, ws_factory, timers, _, _ = _make_manager()
    manager.start()
    app = ws_factory.latest
    app.open()

    manager.stop()
    app.drop()

    assert app.closed is True
    assert timers.pending() == []

    manager.start()
    assert manager.state == ConnectionState.CONNECTING
    assert len(ws_factory.apps) == 2
