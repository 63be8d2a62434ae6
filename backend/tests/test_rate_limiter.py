"""Sliding-window limiter over a persisted timestamp log."""

from __future__ import annotations

import json
import re

import pytest

from reelscript.core.ratelimit import (
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    RateLimiter,
    RateLimiterConfig,
    RateLimitExceeded,
    RecordOutcome,
    enforce_limit,
    format_reset_time,
    scoped_limiter,
    sweep_expired,
)

CONFIG = RateLimiterConfig(max_requests=5, window_ms=900_000, storage_key="video_analysis_limit")


class Clock:
    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class BrokenWriteStore(MemoryKeyValueStore):
    def set(self, key: str, value: str) -> None:
        raise OSError("quota exceeded")


class BrokenStore:
    def get(self, key: str) -> str | None:
        raise OSError("storage unavailable")

    def set(self, key: str, value: str) -> None:
        raise OSError("storage unavailable")

    def remove(self, key: str) -> None:
        raise OSError("storage unavailable")


def make_limiter(store=None, now: int = 0) -> tuple[RateLimiter, Clock, MemoryKeyValueStore]:
    store = store if store is not None else MemoryKeyValueStore()
    clock = Clock(now)
    return RateLimiter(CONFIG, store, clock=clock), clock, store


def test_window_fills_then_slides():
    limiter, clock, _ = make_limiter()
    for t in (0, 1000, 2000, 3000, 4000):
        clock.now = t
        assert limiter.record_request() is True

    clock.now = 5000
    check = limiter.check_limit()
    assert check.allowed is False
    assert check.remaining_requests == 0
    assert check.reset_time == 900_000
    assert "5 per 15 min" in check.message
    assert limiter.record() is RecordOutcome.DENIED

    clock.now = 900_001
    check = limiter.check_limit()
    assert check.allowed is True
    assert check.remaining_requests == 1


def test_window_frees_every_slot_after_burst():
    limiter, clock, _ = make_limiter()
    for _ in range(5):
        assert limiter.record_request() is True

    check = limiter.check_limit()
    assert check.allowed is False
    assert "15" in check.message
    minutes_left = int(re.search(r"Try again in (\d+) min", check.message).group(1))
    assert minutes_left >= 1

    clock.now = 900_001
    check = limiter.check_limit()
    assert check.allowed is True
    assert check.remaining_requests == 5


def test_check_limit_does_not_write():
    limiter, _, store = make_limiter()
    limiter.check_limit()
    assert store.get(CONFIG.storage_key) is None


def test_record_persists_timestamp_log():
    limiter, clock, store = make_limiter(now=1234)
    assert limiter.record() is RecordOutcome.RECORDED
    assert json.loads(store.get(CONFIG.storage_key)) == [{"timestamp": 1234}]


def test_expired_entries_are_dropped_on_write():
    limiter, clock, store = make_limiter()
    limiter.record()
    clock.now = 900_000
    limiter.record()
    assert json.loads(store.get(CONFIG.storage_key)) == [{"timestamp": 900_000}]


def test_entry_exactly_at_window_edge_is_expired():
    limiter, clock, _ = make_limiter()
    limiter.record()
    clock.now = CONFIG.window_ms
    assert limiter.get_status().current_requests == 0


def test_empty_history_status():
    limiter, _, _ = make_limiter(now=10_000)
    status = limiter.get_status()
    assert status.current_requests == 0
    assert status.remaining_requests == 5
    assert status.max_requests == 5
    assert status.window_ms == 900_000
    assert status.reset_time == 910_000


@pytest.mark.parametrize(
    "stored",
    ["not json", '{"timestamp": 1}', '[{"time": 1}]', '["x"]', '[{"timestamp": "soon"}]'],
)
def test_malformed_history_reads_as_empty(stored):
    store = MemoryKeyValueStore()
    store.set(CONFIG.storage_key, stored)
    limiter, _, _ = make_limiter(store=store, now=1000)
    check = limiter.check_limit()
    assert check.allowed is True
    assert check.remaining_requests == 5


def test_unwritable_store_still_allows():
    limiter, _, _ = make_limiter(store=BrokenWriteStore())
    assert limiter.record() is RecordOutcome.RECORDED_UNPERSISTED
    assert limiter.record_request() is True


def test_unavailable_store_never_raises():
    limiter, _, _ = make_limiter(store=BrokenStore())
    assert limiter.check_limit().allowed is True
    assert limiter.get_status().current_requests == 0
    limiter.reset()


def test_reset_clears_history():
    limiter, _, store = make_limiter()
    for _ in range(5):
        limiter.record()
    limiter.reset()
    assert store.get(CONFIG.storage_key) is None
    assert limiter.check_limit().allowed is True


def test_scoped_limiters_do_not_share_history():
    store = MemoryKeyValueStore()
    clock = Clock(0)
    alice = scoped_limiter(CONFIG, "alice", store, clock=clock)
    bob = scoped_limiter(CONFIG, "bob", store, clock=clock)
    for _ in range(5):
        alice.record()
    assert alice.check_limit().allowed is False
    assert bob.check_limit().allowed is True
    assert alice.config.storage_key == "video_analysis_limit:alice"


def test_json_file_store_survives_new_instance(tmp_path):
    path = tmp_path / "limits.json"
    clock = Clock(0)
    first = RateLimiter(CONFIG, JsonFileKeyValueStore(path), clock=clock)
    for _ in range(5):
        first.record()
    second = RateLimiter(CONFIG, JsonFileKeyValueStore(path), clock=clock)
    assert second.check_limit().allowed is False


def test_enforce_limit_raises_with_retry_after():
    limiter, clock, _ = make_limiter()
    for _ in range(5):
        status = enforce_limit(limiter)
    assert status.current_requests == 5
    clock.now = 890_000
    with pytest.raises(RateLimitExceeded) as exc_info:
        enforce_limit(limiter)
    assert exc_info.value.retry_after == 10
    assert exc_info.value.reset_time == 900_000


def test_enforce_limit_trusts_denied_record_over_later_check():
    class RacingLimiter(RateLimiter):
        # The window looks open again right after record() was denied.
        def record(self) -> RecordOutcome:
            return RecordOutcome.DENIED

    limiter = RacingLimiter(CONFIG, MemoryKeyValueStore(), clock=Clock(0))
    assert limiter.check_limit().allowed is True
    with pytest.raises(RateLimitExceeded) as exc_info:
        enforce_limit(limiter)
    assert exc_info.value.retry_after >= 1


def test_sweep_removes_only_expired_logs():
    store = MemoryKeyValueStore()
    clock = Clock(0)
    scoped_limiter(CONFIG, "alice", store, clock=clock).record()
    clock.now = 800_000
    scoped_limiter(CONFIG, "bob", store, clock=clock).record()
    store.set("video_analysis_limit:carol", "not json")
    store.set("unrelated", "[]")

    assert sweep_expired(store, [CONFIG], now=900_000) == 2
    assert sorted(store.keys()) == ["unrelated", "video_analysis_limit:bob"]


def test_sweep_compacts_json_file(tmp_path):
    path = tmp_path / "limits.json"
    store = JsonFileKeyValueStore(path)
    for user in ("a", "b", "c"):
        scoped_limiter(CONFIG, user, store, clock=Clock(0)).record()

    assert sweep_expired(store, [CONFIG], now=CONFIG.window_ms + 1) == 3
    assert json.loads(path.read_text(encoding="utf-8")) == {}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_ms": 1000, "storage_key": "k"},
        {"max_requests": 1, "window_ms": 0, "storage_key": "k"},
        {"max_requests": 1, "window_ms": 1000, "storage_key": ""},
    ],
)
def test_config_rejects_invalid_values(kwargs):
    with pytest.raises(ValueError):
        RateLimiterConfig(**kwargs)


def test_format_reset_time():
    assert format_reset_time(1000, now=1000) == "now"
    assert format_reset_time(500, now=1000) == "now"
    assert format_reset_time(46_000, now=1000) == "45s"
    assert format_reset_time(1000 + 5 * 60_000 + 30_000, now=1000) == "5m 30s"
