"""Simple JSON-based config store."""

from __future__ import annotations

import json
from pathlib import Path

DEFAULT_SERVER_URL = "ws://localhost:8080"
DEFAULT_RECONNECT_INTERVAL_S = 10.0
DEFAULT_LOG_LEVEL = "INFO"


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "bili_subtitle_bridge" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_server_url(self) -> str:
        data = self._read_all()
        return str(data.get("server_url") or DEFAULT_SERVER_URL)

    def set_server_url(self, url: str) -> None:
        data = self._read_all()
        data["server_url"] = url
        self._write_all(data)

    def get_reconnect_interval(self) -> float:
        data = self._read_all()
        try:
            value = float(data.get("reconnect_interval_s", DEFAULT_RECONNECT_INTERVAL_S))
        except (TypeError, ValueError):
            return DEFAULT_RECONNECT_INTERVAL_S
        return value if value > 0 else DEFAULT_RECONNECT_INTERVAL_S

    def get_cookie(self) -> str:
        data = self._read_all()
        return str(data.get("cookie", ""))

    def set_cookie(self, cookie: str) -> None:
        data = self._read_all()
        data["cookie"] = cookie
        self._write_all(data)

    def get_log_level(self) -> str:
        data = self._read_all()
        return str(data.get("log_level", DEFAULT_LOG_LEVEL)).upper()

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
