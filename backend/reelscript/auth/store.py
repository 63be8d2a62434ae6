"""Persistent user store using a JSON file."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


class UserExists(ValueError):
    pass


class UserStore:
    """Users keyed by lower-cased email, stored as a JSON list."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        # Reloaded on every call so several workers see each other's writes.
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError):
            return {}
        if not isinstance(data, list):
            return {}
        return {
            u["email"].strip().lower(): u
            for u in data
            if isinstance(u, dict) and isinstance(u.get("email"), str)
        }

    def _save(self, users: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(list(users.values()), f, indent=2)

    def get_by_email(self, email: str) -> dict[str, Any] | None:
        with self._lock:
            return self._load().get((email or "").strip().lower())

    def get_by_id(self, user_id: str) -> dict[str, Any] | None:
        with self._lock:
            users = self._load()
        for u in users.values():
            if u.get("id") == user_id:
                return u
        return None

    def create(self, user_id: str, email: str, hashed_password: str) -> dict[str, Any]:
        """Store user and return created user dict. Raises UserExists on duplicate email."""
        key = (email or "").strip().lower()
        with self._lock:
            users = self._load()
            if key in users:
                raise UserExists("User already exists")
            user = {
                "id": user_id,
                "email": email.strip(),
                "hashed_password": hashed_password,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            users[key] = user
            self._save(users)
        return user
