from __future__ import annotations

import threading
from pathlib import Path

from config import JsonConfigStore
from main import App
from models import ConnectionState
from schemas import SubtitleResponse


class FakeConnection:
    def __init__(self) -> None:
        self.started = False
        self.stopped = False
        self.sent: list[object] = []

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def send(self, message: object) -> bool:
        self.sent.append(message)
        return True


class RecordingPipeline:
    def __init__(self) -> None:
        self.messages: list[str] = []
        self.threads: list[str] = []
        self.done = threading.Event()

    def handle_message(self, raw: str) -> None:
        self.messages.append(raw)
        self.threads.append(threading.current_thread().name)
        self.done.set()


def _app(tmp_path: Path) -> App:
    store = JsonConfigStore(path=tmp_path / "config.json")
    store.set_server_url("ws://127.0.0.1:9999")
    return App(store)


def test_app_builds_idle_connection_from_config(tmp_path: Path) -> None:
    app = _app(tmp_path)

    assert app.connection.state == ConnectionState.IDLE
    assert app.connection._url == "ws://127.0.0.1:9999"


def test_inbound_messages_run_off_the_connection_thread(tmp_path: Path) -> None:
    app = _app(tmp_path)
    pipeline = RecordingPipeline()
    app.pipeline = pipeline  # type: ignore[assignment]

    app._on_message('{"type": "GET_SUBTITLE"}')

    assert pipeline.done.wait(timeout=2.0)
    assert pipeline.messages == ['{"type": "GET_SUBTITLE"}']
    assert pipeline.threads == ["subtitle-request"]


def test_responses_go_through_the_connection(tmp_path: Path) -> None:
    app = _app(tmp_path)
    connection = FakeConnection()
    app.connection = connection  # type: ignore[assignment]

    response = SubtitleResponse.failure("r1", "boom")
    app._send_response(response)

    assert connection.sent == [response]


def test_run_starts_and_stops_connection(tmp_path: Path) -> None:
    app = _app(tmp_path)
    connection = FakeConnection()
    app.connection = connection  # type: ignore[assignment]

    app.quit()
    assert app.run() == 0

    assert connection.started is True
    assert connection.stopped is True
