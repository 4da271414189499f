"""Core data models for the bridge."""

from __future__ import annotations

from enum import Enum

GET_SUBTITLE = "GET_SUBTITLE"
SUBTITLE_RESULT = "SUBTITLE_RESULT"

UNKNOWN_AUTHOR = "未知作者"


class ConnectionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
