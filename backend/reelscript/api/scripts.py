"""Saved script endpoints: save, list/search, copy text, delete."""

from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Body, HTTPException, Query

from reelscript.api.analysis import throttled
from reelscript.api.deps import ServicesDep
from reelscript.api.schemas import DeleteResponse, ScriptListResponse, ScriptTextResponse
from reelscript.auth.deps import CurrentUserId
from reelscript.core.models import SavedScript
from reelscript.core.ratelimit import RateLimitExceeded, enforce_limit
from reelscript.scripts.formatting import format_saved_script, format_scene_list, search_scripts
from reelscript.scripts.store import QUOTA_MESSAGE, ScriptQuotaExceeded

logger = logging.getLogger("reelscript.api.scripts")

router = APIRouter(tags=["scripts"])


def _get_or_404(services: ServicesDep, user_id: str, script_id: str) -> SavedScript:
    script = services.scripts.get(user_id, script_id)
    if script is None:
        raise HTTPException(status_code=404, detail="Script not found")
    return script


@router.post("/scripts", response_model=SavedScript)
def save_script(
    user_id: CurrentUserId,
    services: ServicesDep,
    body: dict[str, Any] = Body(...),
) -> SavedScript:
    """Sanitize and store an analysis result for the current user.

    A full account gets 409 without consuming a save-limit slot.
    """
    if not services.scripts.has_capacity(user_id):
        raise HTTPException(status_code=409, detail=QUOTA_MESSAGE.format(services.scripts.max_per_user))
    try:
        enforce_limit(services.save_limiter(user_id))
    except RateLimitExceeded as exc:
        logger.warning("script save throttled for user %s", user_id)
        raise throttled(exc) from exc
    try:
        return services.scripts.save(user_id, body)
    except ScriptQuotaExceeded as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


@router.get("/scripts", response_model=ScriptListResponse)
def list_scripts(
    user_id: CurrentUserId,
    services: ServicesDep,
    q: str | None = Query(default=None, max_length=200),
) -> ScriptListResponse:
    scripts = services.scripts.list(user_id)
    return ScriptListResponse(scripts=search_scripts(scripts, q), total=len(scripts))


@router.get("/scripts/{script_id}", response_model=SavedScript)
def get_script(script_id: str, user_id: CurrentUserId, services: ServicesDep) -> SavedScript:
    return _get_or_404(services, user_id, script_id)


@router.get("/scripts/{script_id}/text", response_model=ScriptTextResponse)
def script_text(
    script_id: str,
    user_id: CurrentUserId,
    services: ServicesDep,
    layout: Literal["full", "scenes"] = "full",
) -> ScriptTextResponse:
    """Plain text for clipboard copy, or for the manual-copy block when copying fails."""
    script = _get_or_404(services, user_id, script_id)
    text = format_scene_list(script) if layout == "scenes" else format_saved_script(script)
    return ScriptTextResponse(text=text)


@router.delete("/scripts/{script_id}", response_model=DeleteResponse)
def delete_script(script_id: str, user_id: CurrentUserId, services: ServicesDep) -> DeleteResponse:
    if not services.scripts.delete(user_id, script_id):
        raise HTTPException(status_code=404, detail="Script not found")
    return DeleteResponse()


@router.delete("/scripts", response_model=DeleteResponse)
def delete_all_scripts(user_id: CurrentUserId, services: ServicesDep) -> DeleteResponse:
    return DeleteResponse(deleted=services.scripts.delete_all(user_id))
