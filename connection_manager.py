"""Websocket connection lifecycle with fixed-delay reconnection.

One ``ConnectionManager`` owns the control-plane session. Every connect
attempt builds a fresh ``websocket.WebSocketApp`` and runs it on a daemon
thread; open/message/error/close callbacks arrive on that thread, the
reconnect timer fires on its own thread, and a single ``RLock`` serializes
both so at most one reconnect is ever pending.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any, Callable, Optional

from interfaces import TimerFactory, TimerHandle, WebSocketApp, WebSocketFactory
from models import ConnectionState

try:
    import websocket
except Exception:  # pragma: no cover
    websocket = None  # type: ignore

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str], None]
StateCallback = Callable[[ConnectionState, ConnectionState], None]

DEFAULT_RECONNECT_INTERVAL_S = 10.0


def _websocket_app_factory(
    url: str,
    on_open: Callable[..., None],
    on_message: Callable[..., None],
    on_error: Callable[..., None],
    on_close: Callable[..., None],
) -> WebSocketApp:
    if websocket is None:
        raise RuntimeError("websocket-client is not installed")
    return websocket.WebSocketApp(
        url,
        on_open=on_open,
        on_message=on_message,
        on_error=on_error,
        on_close=on_close,
    )


def _threading_timer_factory(delay_s: float, callback: Callable[[], None]) -> TimerHandle:
    timer = threading.Timer(delay_s, callback)
    timer.daemon = True
    return timer


class ConnectionManager:
    def __init__(
        self,
        url: str,
        on_message: MessageCallback,
        reconnect_interval_s: float = DEFAULT_RECONNECT_INTERVAL_S,
        ws_factory: Optional[WebSocketFactory] = None,
        timer_factory: Optional[TimerFactory] = None,
        on_state_change: Optional[StateCallback] = None,
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._reconnect_interval_s = reconnect_interval_s
        self._ws_factory = ws_factory or _websocket_app_factory
        self._timer_factory = timer_factory or _threading_timer_factory
        self._on_state_change = on_state_change

        self._lock = threading.RLock()
        self._state = ConnectionState.IDLE
        self._ws: Optional[WebSocketApp] = None
        self._thread: Optional[threading.Thread] = None
        self._reconnect_timer: Optional[TimerHandle] = None
        self._stopped = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    def start(self) -> None:
        logger.info("启动WebSocket服务")
        with self._lock:
            self._stopped = False
        self._connect()

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._cancel_reconnect()
            ws = self._ws
            self._ws = None
            self._transition(ConnectionState.CLOSED)
        if ws is not None:
            try:
                ws.close()
            except Exception as exc:
                logger.warning("关闭WebSocket失败: %s", exc)
        logger.info("WebSocket服务已停止")

    def send(self, message: Any) -> bool:
        """Transmit ``message`` if the session is open, otherwise drop it."""
        payload = self._serialize(message)
        with self._lock:
            ws = self._ws if self._state == ConnectionState.OPEN else None
        if ws is None:
            logger.warning("WebSocket未连接，无法发送消息: %s", payload[:200])
            return False
        try:
            ws.send(payload)
        except Exception as exc:
            logger.warning("WebSocket发送失败，消息已丢弃: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        with self._lock:
            if self._stopped:
                return
            if self._state in (ConnectionState.CONNECTING, ConnectionState.OPEN):
                return
            self._transition(ConnectionState.CONNECTING)
            logger.info("尝试连接WebSocket服务器: %s", self._url)
            try:
                ws = self._ws_factory(
                    self._url,
                    on_open=self._handle_open,
                    on_message=self._handle_message,
                    on_error=self._handle_error,
                    on_close=self._handle_close,
                )
                self._ws = ws
                self._thread = threading.Thread(
                    target=self._run, args=(ws,), name="ws-connection", daemon=True
                )
                self._thread.start()
            except Exception as exc:
                logger.error("WebSocket连接异常: %s", exc)
                self._ws = None
                self._transition(ConnectionState.CLOSED)
                self._schedule_reconnect()

    def _run(self, ws: WebSocketApp) -> None:
        try:
            ws.run_forever()
        except Exception as exc:
            logger.error("WebSocket运行异常: %s", exc)
        # run_forever normally reports through on_close first; this covers
        # exits that did not.
        self._handle_disconnect(ws)

    def _handle_open(self, ws: WebSocketApp) -> None:
        with self._lock:
            if ws is not self._ws:
                return
            self._cancel_reconnect()
            self._transition(ConnectionState.OPEN)
        logger.info("WebSocket连接成功")

    def _handle_message(self, ws: WebSocketApp, message: Any) -> None:
        if ws is not self._ws:
            return
        if isinstance(message, bytes):
            message = message.decode("utf-8", errors="replace")
        try:
            self._on_message(message)
        except Exception:
            logger.exception("消息处理回调失败")

    def _handle_error(self, ws: WebSocketApp, error: Any) -> None:
        logger.error("WebSocket连接错误: %s", error)
        self._handle_disconnect(ws)

    def _handle_close(self, ws: WebSocketApp, code: Any = None, reason: Any = None) -> None:
        logger.info("WebSocket连接关闭 code=%s reason=%s", code, reason)
        self._handle_disconnect(ws)

    def _handle_disconnect(self, ws: WebSocketApp) -> None:
        with self._lock:
            if ws is not self._ws or self._stopped:
                return
            self._transition(ConnectionState.CLOSED)
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        with self._lock:
            if self._reconnect_timer is not None or self._stopped:
                return
            logger.info("%s秒后尝试重连...", self._reconnect_interval_s)
            timer = self._timer_factory(self._reconnect_interval_s, self._reconnect)
            self._reconnect_timer = timer
            timer.start()

    def _reconnect(self) -> None:
        # Clear and reconnect under one lock hold: no disconnect may schedule in between.
        with self._lock:
            self._reconnect_timer = None
            self._connect()

    def _cancel_reconnect(self) -> None:
        timer = self._reconnect_timer
        if timer is not None:
            timer.cancel()
            self._reconnect_timer = None

    def _transition(self, to_state: ConnectionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)

    @staticmethod
    def _serialize(message: Any) -> str:
        if isinstance(message, str):
            return message
        if hasattr(message, "to_wire"):
            message = message.to_wire()
        return json.dumps(message, ensure_ascii=False)
