"""bilibili web API client used by the subtitle pipeline.

Metadata and caption-list lookups go through a session that carries the
user's bilibili cookie. Caption documents are public and are fetched through
a second, cookie-less session.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from errors import API_ERROR, ERROR_MESSAGES, ApiError, InvalidVideoUrlError, NetworkError, ProtocolError
from schemas import ApiEnvelope, PlayerInfo, SubtitleDocument, SubtitleTrack, VideoInfo

logger = logging.getLogger(__name__)

BVID_PATTERN = re.compile(r"/video/(BV\w+)")

VIEW_URL = "https://api.bilibili.com/x/web-interface/view"
PLAYER_URL = "https://api.bilibili.com/x/player/wbi/v2"
REFERER = "https://www.bilibili.com/"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)

ModelT = TypeVar("ModelT", bound=BaseModel)


def upgrade_scheme(url: str) -> str:
    """Rewrite ``http://`` and protocol-relative URLs to ``https://``."""
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    if url.startswith("//"):
        return "https:" + url
    return url


class BilibiliClient:
    def __init__(
        self,
        cookie: str = "",
        user_agent: str = DEFAULT_USER_AGENT,
        request_timeout_s: Optional[float] = None,
        session: Optional[requests.Session] = None,
        public_session: Optional[requests.Session] = None,
    ) -> None:
        self._request_timeout_s = request_timeout_s
        cookie = cookie or os.getenv("BILIBILI_COOKIE", "")
        if not cookie:
            logger.warning("未配置bilibili cookie，部分视频可能无法获取字幕")

        base_headers = {"User-Agent": user_agent, "Referer": REFERER}
        self._session = session or requests.Session()
        self._session.headers.update(base_headers)
        if cookie:
            self._session.headers["Cookie"] = cookie

        self._public_session = public_session or requests.Session()
        self._public_session.headers.update(base_headers)

    def extract_bvid(self, url: str) -> str:
        match = BVID_PATTERN.search(url or "")
        if not match:
            raise InvalidVideoUrlError()
        return match.group(1)

    def get_video_info(self, bvid: str) -> VideoInfo:
        envelope = self._get_envelope(VIEW_URL, {"bvid": bvid})
        if not envelope.ok:
            raise ApiError(f"获取视频信息失败: {self._api_message(envelope)}", api_code=envelope.code)
        return self._parse(VideoInfo, envelope.data)

    def get_subtitle_tracks(self, aid: int, cid: int) -> list[SubtitleTrack]:
        """Return the caption tracks that have a download URL, in API order."""
        envelope = self._get_envelope(PLAYER_URL, {"aid": aid, "cid": cid})
        if not envelope.ok:
            raise ApiError(f"获取字幕列表失败: {self._api_message(envelope)}", api_code=envelope.code)
        return self._parse(PlayerInfo, envelope.data).downloadable_tracks()

    def download_subtitle(self, track: SubtitleTrack) -> SubtitleDocument:
        url = upgrade_scheme(track.subtitle_url or "")
        logger.debug("下载字幕文件: %s", url)
        response = self._get(self._public_session, url)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise NetworkError(f"字幕下载失败: HTTP {response.status_code}") from exc
        return self._parse(SubtitleDocument, self._json(response))

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_envelope(self, url: str, params: dict[str, Any]) -> ApiEnvelope:
        response = self._get(self._session, url, params)
        return self._parse(ApiEnvelope, self._json(response))

    def _get(
        self,
        session: requests.Session,
        url: str,
        params: Optional[dict[str, Any]] = None,
    ) -> requests.Response:
        try:
            return session.get(url, params=params, timeout=self._request_timeout_s)
        except requests.RequestException as exc:
            raise NetworkError(f"{ERROR_MESSAGES[NetworkError.code]}: {exc}") from exc

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ProtocolError(
                f"{ERROR_MESSAGES[ProtocolError.code]}: HTTP {response.status_code}"
            ) from exc

    @staticmethod
    def _parse(model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ProtocolError(
                f"{ERROR_MESSAGES[ProtocolError.code]}: {model.__name__} ({exc.error_count()} errors)"
            ) from exc

    @staticmethod
    def _api_message(envelope: ApiEnvelope) -> str:
        return envelope.message or ERROR_MESSAGES[API_ERROR]
