"""Application entrypoint."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

from bilibili_client import BilibiliClient
from config import JsonConfigStore
from connection_manager import ConnectionManager
from interfaces import ConfigStore
from log_setup import setup_logging
from models import ConnectionState
from request_pipeline import RequestPipeline
from schemas import SubtitleResponse

logger = logging.getLogger(__name__)


class App:
    def __init__(self, config_store: ConfigStore | None = None) -> None:
        self.config_store = config_store or JsonConfigStore()
        self._shutdown = threading.Event()

        self.client = BilibiliClient(cookie=self.config_store.get_cookie())
        self.pipeline = RequestPipeline(self.client, send=self._send_response)
        self.connection = ConnectionManager(
            url=self.config_store.get_server_url(),
            on_message=self._on_message,
            reconnect_interval_s=self.config_store.get_reconnect_interval(),
            on_state_change=self._on_state_change,
        )

    # ------------------------------------------------------------------
    # Callbacks (called from the websocket thread)
    # ------------------------------------------------------------------

    def _on_message(self, raw: str) -> None:
        # Fetches can hang; keep them off the websocket thread
        threading.Thread(
            target=self.pipeline.handle_message,
            args=(raw,),
            name="subtitle-request",
            daemon=True,
        ).start()

    def _send_response(self, response: SubtitleResponse) -> None:
        if self.connection.send(response):
            logger.info("响应发送成功: requestId=%s", response.requestId)

    def _on_state_change(self, from_state: ConnectionState, to_state: ConnectionState) -> None:
        logger.debug("连接状态变化: %s -> %s", from_state.value, to_state.value)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.connection.start()
        try:
            while not self._shutdown.wait(timeout=1.0):
                pass
        except KeyboardInterrupt:
            pass
        self.connection.stop()
        return 0

    def quit(self, *_: Any) -> None:
        self._shutdown.set()


def main() -> int:
    config_store = JsonConfigStore()
    setup_logging(config_store.get_log_level())
    app = App(config_store)
    signal.signal(signal.SIGTERM, app.quit)
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
