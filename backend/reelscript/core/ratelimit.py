"""Sliding-window rate limiting backed by a persisted timestamp log.

Each limiter owns one key in a key-value store. The value is a JSON array of
``{"timestamp": <epoch millis>}`` records in insertion order. Records older
than the window are dropped on every read, so the log shrinks as time passes.

The read-modify-write in ``record`` is not atomic: two writers sharing a key
can lose an update. This is advisory throttling, not a security boundary.
"""

from __future__ import annotations

import enum
import json
import logging
import math
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

logger = logging.getLogger("reelscript.ratelimit")

MS_PER_MINUTE = 60_000


def _now_ms() -> int:
    return int(time.time() * 1000)


# ---------------------------------------------------------------------------
# Key-value stores
# ---------------------------------------------------------------------------


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryKeyValueStore:
    """In-process store. Used by tests and as a throwaway fallback."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)


class JsonFileKeyValueStore:
    """Key-value store kept in a single JSON object file.

    The file is re-read on every access so several workers see each other's
    writes. A missing or corrupt file reads as empty.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._load()
            except (json.JSONDecodeError, ValueError):
                data = {}
            data[key] = value
            self._save(data)

    def remove(self, key: str) -> None:
        with self._lock:
            try:
                data = self._load()
            except (json.JSONDecodeError, ValueError):
                data = {}
            if data.pop(key, None) is not None:
                self._save(data)

    def keys(self) -> list[str]:
        with self._lock:
            try:
                return list(self._load())
            except (json.JSONDecodeError, ValueError):
                return []


# ---------------------------------------------------------------------------
# Limiter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimiterConfig:
    max_requests: int
    window_ms: int
    storage_key: str

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_ms <= 0:
            raise ValueError("window_ms must be positive")
        if not self.storage_key:
            raise ValueError("storage_key must not be empty")

    @property
    def window_minutes(self) -> float:
        minutes = self.window_ms / MS_PER_MINUTE
        return int(minutes) if minutes.is_integer() else minutes


@dataclass(frozen=True)
class RequestRecord:
    timestamp: int


@dataclass(frozen=True)
class LimitCheck:
    allowed: bool
    remaining_requests: int
    reset_time: int
    message: str | None = None


@dataclass(frozen=True)
class LimitStatus:
    current_requests: int
    max_requests: int
    remaining_requests: int
    window_ms: int
    reset_time: int


class RecordOutcome(enum.Enum):
    RECORDED = "recorded"
    RECORDED_UNPERSISTED = "recorded_unpersisted"
    """Allowed, but the updated log could not be written."""
    DENIED = "denied"

    @property
    def allowed(self) -> bool:
        return self is not RecordOutcome.DENIED


def _parse_history(raw: str) -> list[RequestRecord]:
    payload: Any = json.loads(raw)
    if not isinstance(payload, list):
        raise ValueError("rate limit history is not a JSON array")
    records: list[RequestRecord] = []
    for item in payload:
        if not isinstance(item, dict):
            raise ValueError("rate limit record is not an object")
        ts = item.get("timestamp")
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            raise ValueError("rate limit record has no numeric timestamp")
        records.append(RequestRecord(timestamp=int(ts)))
    return records


class RateLimiter:
    """At most ``max_requests`` operations per rolling ``window_ms``."""

    def __init__(
        self,
        config: RateLimiterConfig,
        store: KeyValueStore,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.config = config
        self._store = store
        self._clock = clock or _now_ms

    def now(self) -> int:
        """Current time in epoch millis, from the injected clock."""
        return self._clock()

    def _load_history(self) -> list[RequestRecord]:
        try:
            raw = self._store.get(self.config.storage_key)
            if not raw:
                return []
            return _parse_history(raw)
        except Exception as exc:
            logger.error("failed to read request history (key=%s): %s", self.config.storage_key, exc)
            return []

    def _save_history(self, history: list[RequestRecord]) -> bool:
        try:
            self._store.set(
                self.config.storage_key,
                json.dumps([{"timestamp": r.timestamp} for r in history]),
            )
            return True
        except Exception as exc:
            logger.error("failed to save request history (key=%s): %s", self.config.storage_key, exc)
            return False

    def _in_window(self, now: int) -> list[RequestRecord]:
        cutoff = now - self.config.window_ms
        return [r for r in self._load_history() if r.timestamp > cutoff]

    def _reset_time(self, history: list[RequestRecord], now: int) -> int:
        if history:
            return history[0].timestamp + self.config.window_ms
        return now + self.config.window_ms

    def _evaluate(self, now: int) -> tuple[LimitCheck, list[RequestRecord]]:
        history = self._in_window(now)
        count = len(history)
        allowed = count < self.config.max_requests
        reset_time = self._reset_time(history, now)
        message = None
        if not allowed:
            minutes_left = math.ceil((reset_time - now) / MS_PER_MINUTE)
            message = (
                f"Request limit exceeded ({self.config.max_requests} per "
                f"{self.config.window_minutes} min). Try again in {minutes_left} min."
            )
        check = LimitCheck(
            allowed=allowed,
            remaining_requests=max(0, self.config.max_requests - count),
            reset_time=reset_time,
            message=message,
        )
        return check, history

    def check_limit(self) -> LimitCheck:
        """Return whether one more request fits in the window. Does not write."""
        check, _ = self._evaluate(self._clock())
        return check

    def record(self) -> RecordOutcome:
        """Register a request if the limit allows it.

        Returns:
            DENIED without writing when the window is full; RECORDED when the
            appended log was persisted; RECORDED_UNPERSISTED when the write
            failed but the request was still allowed.
        """
        now = self._clock()
        check, history = self._evaluate(now)
        if not check.allowed:
            return RecordOutcome.DENIED
        history.append(RequestRecord(timestamp=now))
        if self._save_history(history):
            return RecordOutcome.RECORDED
        return RecordOutcome.RECORDED_UNPERSISTED

    def record_request(self) -> bool:
        return self.record().allowed

    def get_status(self) -> LimitStatus:
        now = self._clock()
        history = self._in_window(now)
        count = len(history)
        return LimitStatus(
            current_requests=count,
            max_requests=self.config.max_requests,
            remaining_requests=max(0, self.config.max_requests - count),
            window_ms=self.config.window_ms,
            reset_time=self._reset_time(history, now),
        )

    def reset(self) -> None:
        try:
            self._store.remove(self.config.storage_key)
        except Exception as exc:
            logger.error("failed to clear request history (key=%s): %s", self.config.storage_key, exc)


def scoped_limiter(
    base: RateLimiterConfig,
    scope: str,
    store: KeyValueStore,
    clock: Callable[[], int] | None = None,
) -> RateLimiter:
    """Return a limiter with the same numbers as ``base`` but its own log for ``scope``."""
    config = RateLimiterConfig(
        max_requests=base.max_requests,
        window_ms=base.window_ms,
        storage_key=f"{base.storage_key}:{scope}",
    )
    return RateLimiter(config, store, clock=clock)


def format_reset_time(reset_time: int, now: int | None = None) -> str:
    """Human-readable time left until ``reset_time`` (epoch millis)."""
    diff = reset_time - (_now_ms() if now is None else now)
    if diff <= 0:
        return "now"
    minutes = diff // MS_PER_MINUTE
    seconds = (diff % MS_PER_MINUTE) // 1000
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class RateLimitExceeded(Exception):
    """The caller used up the request window. Recoverable by waiting."""

    def __init__(self, message: str, reset_time: int, retry_after: int) -> None:
        super().__init__(message)
        self.message = message
        self.reset_time = reset_time
        self.retry_after = retry_after


def enforce_limit(limiter: RateLimiter) -> LimitStatus:
    """Record one request or raise RateLimitExceeded.

    Returns the limiter status after the request was counted.
    """
    if limiter.record() is RecordOutcome.DENIED:
        check = limiter.check_limit()
        retry_after = max(1, math.ceil((check.reset_time - limiter.now()) / 1000))
        raise RateLimitExceeded(
            check.message or "Request limit exceeded. Try again later.",
            check.reset_time,
            retry_after,
        )
    return limiter.get_status()


def sweep_expired(
    store: KeyValueStore,
    configs: Iterable[RateLimiterConfig],
    now: int | None = None,
) -> int:
    """Remove limiter logs whose every record has left the window.

    A key belongs to a config when it equals ``storage_key`` or starts with
    ``storage_key + ":"`` (see ``scoped_limiter``). Unparseable logs count as
    empty and are removed too. Returns the number of keys removed.
    """
    now = _now_ms() if now is None else now
    configs = tuple(configs)
    removed = 0
    for key in store.keys():
        config = next(
            (c for c in configs if key == c.storage_key or key.startswith(f"{c.storage_key}:")),
            None,
        )
        if config is None:
            continue
        raw = store.get(key)
        try:
            history = _parse_history(raw) if raw else []
        except ValueError:
            history = []
        cutoff = now - config.window_ms
        if all(r.timestamp <= cutoff for r in history):
            store.remove(key)
            removed += 1
    if removed:
        logger.info("removed %d expired rate limit logs", removed)
    return removed
