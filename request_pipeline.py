"""Inbound message handling and the subtitle retrieval pipeline."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from errors import ERROR_MESSAGES, INVALID_REQUEST, NoSubtitleError, ProtocolError, SubtitleError
from interfaces import SubtitleSource
from models import GET_SUBTITLE, UNKNOWN_AUTHOR
from schemas import SubtitleData, SubtitleRequest, SubtitleResponse

logger = logging.getLogger(__name__)

ResponseSender = Callable[[SubtitleResponse], Any]


class RequestPipeline:
    """Turns one raw control-plane message into at most one response.

    Holds no per-request state, so ``handle_message`` may run on several
    threads at once.
    """

    def __init__(self, source: SubtitleSource, send: ResponseSender) -> None:
        self._source = source
        self._send = send

    def handle_message(self, raw: str) -> Optional[SubtitleResponse]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("消息解析失败: %s data=%r", exc, raw)
            return None
        if not isinstance(message, dict):
            logger.warning("消息不是JSON对象，已忽略: %r", raw)
            return None

        logger.info("收到消息: %s", message)
        msg_type = message.get("type")
        if msg_type != GET_SUBTITLE:
            logger.info("未知消息类型: %s", msg_type)
            return None

        try:
            request = SubtitleRequest.model_validate(message)
        except ValidationError as exc:
            return self._reject(message, exc)

        response = self.process_request(request)
        self._deliver(response)
        return response

    def process_request(self, request: SubtitleRequest) -> SubtitleResponse:
        logger.info("开始处理字幕请求: requestId=%s videoUrl=%s", request.requestId, request.videoUrl)
        try:
            data = self._fetch(request)
        except SubtitleError as exc:
            logger.warning(
                "处理字幕请求失败: requestId=%s code=%s error=%s",
                request.requestId,
                exc.code,
                exc.message,
            )
            return SubtitleResponse.failure(request.requestId, exc.message)
        except Exception as exc:
            logger.exception("处理字幕请求时发生未知错误: requestId=%s", request.requestId)
            return SubtitleResponse.failure(request.requestId, str(exc) or type(exc).__name__)

        logger.info("字幕数据准备完成: requestId=%s items=%d", request.requestId, len(data.subtitles))
        return SubtitleResponse.success(request.requestId, data)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fetch(self, request: SubtitleRequest) -> SubtitleData:
        bvid = self._source.extract_bvid(request.videoUrl)
        logger.info("提取BV号成功: %s", bvid)

        video = self._source.get_video_info(bvid)
        logger.info("获取视频信息成功: title=%s aid=%s", video.title, video.aid)
        if not video.pages:
            raise ProtocolError("视频没有分P信息")

        page = video.pages[0]
        tracks = self._source.get_subtitle_tracks(video.aid, page.cid)
        if not tracks:
            raise NoSubtitleError()
        logger.info("获取字幕列表成功: count=%d", len(tracks))

        document = self._source.download_subtitle(tracks[0])
        subtitles = document.body or []
        logger.info("字幕下载成功: itemCount=%d", len(subtitles))

        author = video.owner.name if video.owner and video.owner.name else UNKNOWN_AUTHOR
        return SubtitleData(
            title=video.title,
            author=author,
            url=request.videoUrl,
            ctime=video.ctime,
            subtitles=subtitles,
        )

    def _reject(self, message: dict, exc: ValidationError) -> Optional[SubtitleResponse]:
        request_id = message.get("requestId")
        if not isinstance(request_id, str):
            logger.warning("请求缺少requestId，已忽略: %s", message)
            return None
        fields = ", ".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        response = SubtitleResponse.failure(request_id, f"{ERROR_MESSAGES[INVALID_REQUEST]}: {fields}")
        self._deliver(response)
        return response

    def _deliver(self, response: SubtitleResponse) -> None:
        try:
            self._send(response)
        except Exception:
            logger.exception("发送响应失败: requestId=%s", response.requestId)
