"""Wire messages and bilibili API payloads.

Control-plane messages keep the camelCase keys the local server speaks.
API payloads only declare the fields the pipeline reads; anything else the
API sends is ignored.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from models import GET_SUBTITLE, SUBTITLE_RESULT


class SubtitleRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["GET_SUBTITLE"] = GET_SUBTITLE
    videoUrl: str = Field(..., description="Video page URL containing the BV id")
    requestId: str = Field(..., description="Caller-chosen correlation id")


class TranscriptItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # int before float so integral timestamps stay integral on the wire
    from_: Union[int, float] = Field(..., alias="from")
    to: Union[int, float]
    content: str = ""


class SubtitleData(BaseModel):
    title: str
    author: str
    url: str
    ctime: int
    subtitles: list[TranscriptItem] = Field(default_factory=list)


class SubtitleResponse(BaseModel):
    type: Literal["SUBTITLE_RESULT"] = SUBTITLE_RESULT
    requestId: str
    data: Optional[SubtitleData] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> "SubtitleResponse":
        if (self.data is None) == (self.error is None):
            raise ValueError("response must carry exactly one of data or error")
        return self

    @classmethod
    def success(cls, request_id: str, data: SubtitleData) -> "SubtitleResponse":
        return cls(requestId=request_id, data=data)

    @classmethod
    def failure(cls, request_id: str, message: str) -> "SubtitleResponse":
        return cls(requestId=request_id, error=message)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ----------------------------------------------------------------------
# bilibili API payloads
# ----------------------------------------------------------------------


class ApiEnvelope(BaseModel):
    """``{code, message, data}`` wrapper; ``code == 0`` means success."""

    code: int
    message: Optional[str] = None
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.code == 0


class VideoOwner(BaseModel):
    mid: Optional[int] = None
    name: Optional[str] = None


class VideoPage(BaseModel):
    cid: int
    page: Optional[int] = None
    part: Optional[str] = None


class VideoInfo(BaseModel):
    aid: int
    bvid: str = ""
    title: str
    ctime: int
    owner: Optional[VideoOwner] = None
    pages: list[VideoPage] = Field(default_factory=list)


class SubtitleTrack(BaseModel):
    id: Optional[int] = None
    lan: str = ""
    lan_doc: str = ""
    subtitle_url: Optional[str] = None


class SubtitleInfo(BaseModel):
    subtitles: Optional[list[SubtitleTrack]] = None


class PlayerInfo(BaseModel):
    subtitle: Optional[SubtitleInfo] = None

    def downloadable_tracks(self) -> list[SubtitleTrack]:
        if self.subtitle is None or not self.subtitle.subtitles:
            return []
        return [track for track in self.subtitle.subtitles if track.subtitle_url]


class SubtitleDocument(BaseModel):
    body: Optional[list[TranscriptItem]] = None
