"""Per-user video object storage on the local filesystem.

Objects live at ``<root>/<user_id>/<name>`` and are addressed by the
relative path ``"<user_id>/<name>"``. Signed URLs carry a short-lived JWT
naming the path so a video can be fetched without the bearer token.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from errno import ENOSPC
from pathlib import Path
from typing import AsyncIterator

from jose import JWTError, jwt

from reelscript.core.config import Settings
from reelscript.core.sanitizer import sanitize_filename

logger = logging.getLogger("reelscript.storage")

_SIGNED_URL_SCOPE = "video"


class VideoStorageError(Exception):
    """Base class for storage failures. ``status_code`` maps to HTTP."""

    status_code = 400


class UnsupportedVideoType(VideoStorageError):
    status_code = 400


class VideoTooLarge(VideoStorageError):
    status_code = 413


class VideoNotFound(VideoStorageError):
    status_code = 404


class VideoAccessDenied(VideoStorageError):
    status_code = 403


class StorageFull(VideoStorageError):
    status_code = 507


@dataclass(frozen=True)
class StoredVideo:
    path: str
    size: int
    mime_type: str
    created_at: str


_EXT_TO_MIME = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".webm": "video/webm",
}
_MIME_TO_EXT = {v: k for k, v in _EXT_TO_MIME.items()}


def guess_mime_type(path: str) -> str:
    return _EXT_TO_MIME.get(Path(path).suffix.lower(), "application/octet-stream")


class VideoStorage:
    def __init__(self, settings: Settings) -> None:
        self.root = settings.videos_dir
        self.max_bytes = settings.max_video_bytes
        self.accepted_types = set(settings.accepted_video_types)
        self.secret_key = settings.secret_key
        self.algorithm = settings.jwt_algorithm
        self.signed_url_ttl = settings.signed_url_expire_seconds

    def _resolve(self, user_id: str, path: str) -> Path:
        """Map ``"<user_id>/<name>"`` to a file, refusing other users and traversal."""
        owner, _, name = (path or "").strip().partition("/")
        if not owner or not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise VideoNotFound("Video not found")
        if owner != user_id:
            raise VideoAccessDenied("Video belongs to another user")
        target = (self.root / owner / name).resolve()
        if self.root.resolve() not in target.parents:
            raise VideoNotFound("Video not found")
        return target

    async def upload(
        self,
        user_id: str,
        filename: str | None,
        content_type: str | None,
        chunks: AsyncIterator[bytes],
    ) -> StoredVideo:
        """Stream ``chunks`` to a new object under the user's folder.

        Raises:
            UnsupportedVideoType: content type outside the allow-list.
            VideoTooLarge: more than ``max_video_bytes`` received.
            StorageFull: disk full.
        """
        mime_type = (content_type or "").split(";")[0].strip().lower()
        if not mime_type or mime_type == "application/octet-stream":
            mime_type = guess_mime_type(filename or "")
        if mime_type not in self.accepted_types:
            raise UnsupportedVideoType(
                f"Unsupported format '{mime_type}'. Use MP4, MOV or WEBM."
            )

        safe_name = sanitize_filename(Path(filename or "").name) or "video"
        if Path(safe_name).suffix.lower() not in _EXT_TO_MIME:
            safe_name = f"{safe_name}{_MIME_TO_EXT.get(mime_type, '.mp4')}"
        name = f"{uuid.uuid4().hex}_{safe_name}"[:255]

        user_dir = self.root / user_id
        user_dir.mkdir(parents=True, exist_ok=True)
        target = user_dir / name

        total = 0
        try:
            with target.open("wb") as f:
                async for chunk in chunks:
                    if not chunk:
                        continue
                    total += len(chunk)
                    if total > self.max_bytes:
                        raise VideoTooLarge(
                            f"File too large. Maximum {self.max_bytes // (1024 * 1024)} MB"
                        )
                    f.write(chunk)
        except VideoStorageError:
            target.unlink(missing_ok=True)
            raise
        except OSError as exc:
            target.unlink(missing_ok=True)
            if getattr(exc, "errno", None) == ENOSPC:
                logger.error("disk full while saving upload to %s", target, exc_info=True)
                raise StorageFull("No disk space left to store the video") from exc
            logger.error("os error while saving upload to %s", target, exc_info=True)
            raise

        if total == 0:
            target.unlink(missing_ok=True)
            raise VideoStorageError("Uploaded file is empty")

        logger.info("video stored: %s/%s (%d bytes)", user_id, name, total)
        return StoredVideo(
            path=f"{user_id}/{name}",
            size=total,
            mime_type=mime_type,
            created_at=datetime.now(timezone.utc).isoformat(),
        )

    def list(self, user_id: str) -> list[StoredVideo]:
        user_dir = self.root / user_id
        if not user_dir.is_dir():
            return []
        videos: list[StoredVideo] = []
        for entry in user_dir.iterdir():
            if not entry.is_file():
                continue
            stat = entry.stat()
            videos.append(
                StoredVideo(
                    path=f"{user_id}/{entry.name}",
                    size=stat.st_size,
                    mime_type=guess_mime_type(entry.name),
                    created_at=datetime.fromtimestamp(stat.st_mtime, timezone.utc).isoformat(),
                )
            )
        return sorted(videos, key=lambda v: v.created_at, reverse=True)

    def read(self, user_id: str, path: str) -> tuple[bytes, str]:
        """Return the object's bytes and mime type."""
        target = self._resolve(user_id, path)
        if not target.is_file():
            raise VideoNotFound("Video not found")
        return target.read_bytes(), guess_mime_type(target.name)

    def delete(self, user_id: str, path: str) -> None:
        target = self._resolve(user_id, path)
        if not target.is_file():
            raise VideoNotFound("Video not found")
        target.unlink()
        logger.info("video deleted: %s", path)

    def create_signed_token(self, user_id: str, path: str, expires_in: int | None = None) -> str:
        target = self._resolve(user_id, path)
        if not target.is_file():
            raise VideoNotFound("Video not found")
        ttl = expires_in if expires_in and expires_in > 0 else self.signed_url_ttl
        expire = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        return jwt.encode(
            {"sub": path, "scope": _SIGNED_URL_SCOPE, "exp": int(expire.timestamp())},
            self.secret_key,
            algorithm=self.algorithm,
        )

    def resolve_signed_token(self, token: str) -> Path:
        """Return the file a signed token points to. Raises VideoAccessDenied if invalid."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as exc:
            raise VideoAccessDenied("Invalid or expired signed URL") from exc
        path = payload.get("sub")
        if payload.get("scope") != _SIGNED_URL_SCOPE or not isinstance(path, str):
            raise VideoAccessDenied("Invalid or expired signed URL")
        owner = path.partition("/")[0]
        target = self._resolve(owner, path)
        if not target.is_file():
            raise VideoNotFound("Video not found")
        return target
