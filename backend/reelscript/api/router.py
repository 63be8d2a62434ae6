"""API router: health check plus the video, analysis and script routes."""

from __future__ import annotations

from fastapi import APIRouter

from reelscript.api.analysis import router as analysis_router
from reelscript.api.scripts import router as scripts_router
from reelscript.api.videos import router as videos_router

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Public health check. Returns {"status": "ok"}."""
    return {"status": "ok"}


router.include_router(videos_router)
router.include_router(analysis_router)
router.include_router(scripts_router)
