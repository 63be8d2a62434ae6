"""Persistent saved-script store using a JSON file."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from reelscript.core.models import AnalysisResult, SavedScript
from reelscript.core.sanitizer import sanitize_analysis_result

logger = logging.getLogger("reelscript.scripts")


QUOTA_MESSAGE = "Saved script limit reached ({}). Delete scripts you no longer need."


class ScriptQuotaExceeded(Exception):
    """The user already keeps the maximum number of saved scripts."""


class ScriptStore:
    """Saved scripts per user, in one JSON file: {user_id: [script, ...]}."""

    def __init__(self, path: Path, max_per_user: int = 30) -> None:
        self.path = path
        self.max_per_user = max_per_user
        self._lock = threading.Lock()

    def _load(self) -> dict[str, list[dict[str, Any]]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            logger.error("failed to read %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, list)}

    def _save(self, data: dict[str, list[dict[str, Any]]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

    @staticmethod
    def _parse(raw: dict[str, Any]) -> SavedScript | None:
        try:
            return SavedScript.model_validate(raw)
        except ValidationError:
            logger.warning("skipping malformed saved script %r", raw.get("id"))
            return None

    def save(self, user_id: str, result: AnalysisResult | dict[str, Any]) -> SavedScript:
        """Sanitize and store ``result`` as a new saved script.

        Raises:
            MalformedAnalysisInput: ``result`` is not an object.
            ScriptQuotaExceeded: The user is at ``max_per_user`` scripts.
        """
        clean = sanitize_analysis_result(result)
        saved = SavedScript(
            **clean.model_dump(),
            id=str(uuid.uuid4()),
            saved_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            data = self._load()
            scripts = data.get(user_id, [])
            if len(scripts) >= self.max_per_user:
                raise ScriptQuotaExceeded(QUOTA_MESSAGE.format(self.max_per_user))
            scripts.insert(0, saved.model_dump())
            data[user_id] = scripts
            self._save(data)
        logger.info("script saved: %s for user %s", saved.id, user_id)
        return saved

    def has_capacity(self, user_id: str) -> bool:
        """True while the user is below ``max_per_user`` scripts."""
        with self._lock:
            return len(self._load().get(user_id, [])) < self.max_per_user

    def list(self, user_id: str) -> list[SavedScript]:
        """Return the user's scripts, newest first."""
        with self._lock:
            raw = self._load().get(user_id, [])
        scripts = [s for s in (self._parse(r) for r in raw if isinstance(r, dict)) if s is not None]
        return sorted(scripts, key=lambda s: s.saved_at, reverse=True)

    def get(self, user_id: str, script_id: str) -> SavedScript | None:
        for script in self.list(user_id):
            if script.id == script_id:
                return script
        return None

    def delete(self, user_id: str, script_id: str) -> bool:
        with self._lock:
            data = self._load()
            scripts = data.get(user_id, [])
            kept = [s for s in scripts if not (isinstance(s, dict) and s.get("id") == script_id)]
            if len(kept) == len(scripts):
                return False
            data[user_id] = kept
            self._save(data)
        logger.info("script deleted: %s for user %s", script_id, user_id)
        return True

    def delete_all(self, user_id: str) -> int:
        with self._lock:
            data = self._load()
            removed = len(data.pop(user_id, []))
            if removed:
                self._save(data)
        logger.info("all scripts deleted for user %s, count: %d", user_id, removed)
        return removed
