"""Shared error codes, user-facing messages and pipeline exceptions."""

from __future__ import annotations

INVALID_REQUEST = "INVALID_REQUEST"
INVALID_URL = "INVALID_URL"
API_ERROR = "API_ERROR"
NO_SUBTITLE = "NO_SUBTITLE"
NETWORK_ERROR = "NETWORK_ERROR"
PROTOCOL_ERROR = "PROTOCOL_ERROR"

ERROR_MESSAGES = {
    INVALID_REQUEST: "请求格式无效",
    INVALID_URL: "无法从URL中提取BV号，请确保URL格式正确",
    API_ERROR: "接口返回错误",
    NO_SUBTITLE: "该视频没有可用的字幕",
    NETWORK_ERROR: "网络请求失败",
    PROTOCOL_ERROR: "接口响应格式无效",
}


class SubtitleError(Exception):
    """Base class for failures that end one request's pipeline."""

    code = PROTOCOL_ERROR

    def __init__(self, message: str | None = None) -> None:
        self.message = message or ERROR_MESSAGES[self.code]
        super().__init__(self.message)


class InvalidVideoUrlError(SubtitleError):
    code = INVALID_URL


class ApiError(SubtitleError):
    """The API envelope carried a non-zero ``code``."""

    code = API_ERROR

    def __init__(self, message: str | None = None, api_code: int | None = None) -> None:
        super().__init__(message)
        self.api_code = api_code


class NoSubtitleError(SubtitleError):
    code = NO_SUBTITLE


class NetworkError(SubtitleError):
    code = NETWORK_ERROR


class ProtocolError(SubtitleError):
    code = PROTOCOL_ERROR
