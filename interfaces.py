"""Protocol interfaces used by ConnectionManager and RequestPipeline."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from schemas import SubtitleDocument, SubtitleTrack, VideoInfo


class SubtitleSource(Protocol):
    def extract_bvid(self, url: str) -> str: ...

    def get_video_info(self, bvid: str) -> VideoInfo: ...

    def get_subtitle_tracks(self, aid: int, cid: int) -> list[SubtitleTrack]: ...

    def download_subtitle(self, track: SubtitleTrack) -> SubtitleDocument: ...


class WebSocketApp(Protocol):
    def run_forever(self) -> Any: ...

    def send(self, data: str) -> Any: ...

    def close(self) -> None: ...


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


# (url, on_open, on_message, on_error, on_close) -> app
WebSocketFactory = Callable[..., WebSocketApp]
TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


class ConfigStore(Protocol):
    def get_server_url(self) -> str: ...

    def set_server_url(self, url: str) -> None: ...

    def get_reconnect_interval(self) -> float: ...

    def get_cookie(self) -> str: ...

    def set_cookie(self, cookie: str) -> None: ...

    def get_log_level(self) -> str: ...
