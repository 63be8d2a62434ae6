"""Video analysis and rate-limit status endpoints."""

from __future__ import annotations

import base64
import binascii
import logging

import anyio
from fastapi import APIRouter, HTTPException

from reelscript.api.deps import ServicesDep
from reelscript.api.schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    RateLimitOverview,
    RateLimitStatus,
)
from reelscript.auth.deps import CurrentUserId
from reelscript.core.ratelimit import RateLimitExceeded
from reelscript.core.sanitizer import is_valid_video_mime_type
from reelscript.services.analysis import AnalysisFailed
from reelscript.storage.videos import VideoStorageError

logger = logging.getLogger("reelscript.api.analysis")

router = APIRouter(tags=["analysis"])


def throttled(exc: RateLimitExceeded) -> HTTPException:
    return HTTPException(
        status_code=429,
        detail=exc.message,
        headers={"Retry-After": str(exc.retry_after)},
    )


def _load_video(body: AnalyzeRequest, user_id: str, services) -> tuple[bytes, str]:
    if body.video_base64:
        mime_type = (body.mime_type or "video/mp4").strip().lower()
        if not is_valid_video_mime_type(mime_type):
            raise HTTPException(status_code=400, detail="Unsupported format. Use MP4, MOV or WEBM")
        try:
            data = base64.b64decode(body.video_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise HTTPException(status_code=400, detail="video_base64 is not valid base64") from exc
        if not data:
            raise HTTPException(status_code=400, detail="video_base64 is empty")
        if len(data) > services.settings.max_video_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum {services.settings.max_video_bytes // (1024 * 1024)} MB",
            )
        return data, mime_type

    if body.video_path:
        try:
            return services.videos.read(user_id, body.video_path)
        except VideoStorageError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    raise HTTPException(status_code=400, detail="Either video_path or video_base64 is required")


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze_video(
    body: AnalyzeRequest,
    user_id: CurrentUserId,
    services: ServicesDep,
) -> AnalyzeResponse:
    video_bytes, mime_type = _load_video(body, user_id, services)
    service = services.analysis

    def work():
        return service.analyze(user_id, video_bytes, mime_type)

    try:
        outcome = await anyio.to_thread.run_sync(work)
    except RateLimitExceeded as exc:
        raise throttled(exc) from exc
    except AnalysisFailed as exc:
        logger.error("analysis failed for user %s: %s", user_id, exc)
        raise HTTPException(status_code=502, detail=f"Video analysis failed: {exc}") from exc

    return AnalyzeResponse(
        is_demo_mode=outcome.result.is_demo_mode,
        result=outcome.result,
        rate_limit=RateLimitStatus.from_status(outcome.rate_limit),
        error=outcome.error,
    )


@router.get("/rate-limit", response_model=RateLimitOverview)
def rate_limit(user_id: CurrentUserId, services: ServicesDep) -> RateLimitOverview:
    return RateLimitOverview(
        analysis=RateLimitStatus.from_status(services.analysis_limiter(user_id).get_status()),
        save=RateLimitStatus.from_status(services.save_limiter(user_id).get_status()),
    )
