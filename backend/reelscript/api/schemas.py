"""Request and response bodies for the /api routes."""

from __future__ import annotations

from dataclasses import asdict

from pydantic import BaseModel

from reelscript.core.models import AnalysisResult, SavedScript
from reelscript.core.ratelimit import LimitStatus
from reelscript.storage.videos import StoredVideo


class RateLimitStatus(BaseModel):
    current_requests: int
    max_requests: int
    remaining_requests: int
    window_ms: int
    reset_time: int

    @classmethod
    def from_status(cls, status: LimitStatus) -> "RateLimitStatus":
        return cls(**asdict(status))


class RateLimitOverview(BaseModel):
    analysis: RateLimitStatus
    save: RateLimitStatus


class AnalyzeRequest(BaseModel):
    """Either a stored ``video_path`` or an inline ``video_base64`` + ``mime_type``."""

    video_path: str | None = None
    video_base64: str | None = None
    mime_type: str | None = None


class AnalyzeResponse(BaseModel):
    success: bool = True
    is_demo_mode: bool
    result: AnalysisResult
    rate_limit: RateLimitStatus
    error: str | None = None


class VideoResponse(BaseModel):
    path: str
    size: int
    mime_type: str
    created_at: str

    @classmethod
    def from_stored(cls, video: StoredVideo) -> "VideoResponse":
        return cls(**asdict(video))


class VideoListResponse(BaseModel):
    videos: list[VideoResponse]


class SignedUrlResponse(BaseModel):
    signed_url: str
    expires_in: int


class ScriptListResponse(BaseModel):
    scripts: list[SavedScript]
    total: int
    """Number of saved scripts before the search filter."""


class ScriptTextResponse(BaseModel):
    text: str


class DeleteResponse(BaseModel):
    success: bool = True
    deleted: int = 1
