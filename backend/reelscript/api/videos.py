"""Video object storage endpoints."""

from __future__ import annotations

from typing import AsyncIterator

from fastapi import APIRouter, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import FileResponse

from reelscript.api.deps import ServicesDep
from reelscript.api.schemas import SignedUrlResponse, VideoListResponse, VideoResponse
from reelscript.auth.deps import CurrentUserId
from reelscript.storage.videos import VideoStorageError, guess_mime_type

router = APIRouter(tags=["videos"])

_CHUNK_BYTES = 1024 * 1024


def storage_http_error(exc: VideoStorageError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


async def _iter_upload(video: UploadFile) -> AsyncIterator[bytes]:
    while True:
        chunk = await video.read(_CHUNK_BYTES)
        if not chunk:
            break
        yield chunk


@router.post("/videos", response_model=VideoResponse)
async def upload_video(
    user_id: CurrentUserId,
    services: ServicesDep,
    video: UploadFile = File(...),
) -> VideoResponse:
    try:
        stored = await services.videos.upload(
            user_id,
            video.filename,
            video.content_type,
            _iter_upload(video),
        )
    except VideoStorageError as exc:
        raise storage_http_error(exc) from exc
    finally:
        await video.close()
    return VideoResponse.from_stored(stored)


@router.get("/videos", response_model=VideoListResponse)
def list_videos(user_id: CurrentUserId, services: ServicesDep) -> VideoListResponse:
    return VideoListResponse(
        videos=[VideoResponse.from_stored(v) for v in services.videos.list(user_id)]
    )


@router.delete("/videos")
def delete_video(
    user_id: CurrentUserId,
    services: ServicesDep,
    path: str = Query(...),
) -> dict[str, bool]:
    try:
        services.videos.delete(user_id, path)
    except VideoStorageError as exc:
        raise storage_http_error(exc) from exc
    return {"success": True}


@router.get("/videos/signed-url", response_model=SignedUrlResponse)
def signed_url(
    request: Request,
    user_id: CurrentUserId,
    services: ServicesDep,
    path: str = Query(...),
    expires_in: int | None = Query(default=None, gt=0),
) -> SignedUrlResponse:
    try:
        token = services.videos.create_signed_token(user_id, path, expires_in)
    except VideoStorageError as exc:
        raise storage_http_error(exc) from exc
    url = str(request.url_for("signed_video_file", token=token))
    return SignedUrlResponse(
        signed_url=url,
        expires_in=expires_in or services.settings.signed_url_expire_seconds,
    )


@router.get("/videos/signed/{token}", name="signed_video_file")
def signed_video_file(token: str, services: ServicesDep) -> FileResponse:
    try:
        target = services.videos.resolve_signed_token(token)
    except VideoStorageError as exc:
        raise storage_http_error(exc) from exc
    return FileResponse(
        path=target,
        media_type=guess_mime_type(target.name),
        headers={"Content-Disposition": f'inline; filename="{target.name}"'},
    )
