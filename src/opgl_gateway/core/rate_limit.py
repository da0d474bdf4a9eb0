import enum
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from opgl_gateway.core.keys import hash_key
from opgl_gateway.core.last_used import LastUsedRecorder
from opgl_gateway.stores.api_keys import ApiKeyStore


class Outcome(str, enum.Enum):
    ALLOWED = "allowed"
    THROTTLED = "throttled"
    UNKNOWN_KEY = "unknown_key"


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_epoch: int
    outcome: Outcome
    # limiter clock reading the decision was made at
    checked_at: int

    @property
    def key_valid(self) -> bool:
        # limit == 0 only ever means "no such active key"
        return self.outcome is not Outcome.UNKNOWN_KEY


def window_start_for(now: float, window_seconds: int) -> int:
    now_s = int(now)
    return now_s - (now_s % window_seconds)


def epoch_to_datetime(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


class RateLimiter:
    """
    Fixed-window limiter keyed by API key.

    Counters live in the relational store; the per-request increment is a
    single atomic upsert, so no locking happens in this process.
    """

    def __init__(
        self,
        store: ApiKeyStore,
        logger: logging.Logger,
        last_used: LastUsedRecorder | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._logger = logger
        self._last_used = last_used
        self._clock = clock

    def check(self, raw_key: str) -> RateLimitResult:
        api_key = self._store.get_active_by_hash(hash_key(raw_key))
        now = self._clock()

        if api_key is None:
            return RateLimitResult(
                allowed=False,
                limit=0,
                remaining=0,
                reset_epoch=int(now),
                outcome=Outcome.UNKNOWN_KEY,
                checked_at=int(now),
            )

        window = int(api_key.rate_window_seconds)
        limit = int(api_key.rate_limit)
        window_start = window_start_for(now, window)

        count = self._store.increment_window(api_key.id, epoch_to_datetime(window_start))

        if self._last_used is not None:
            self._last_used.submit(api_key.id)

        allowed = count <= limit
        if not allowed:
            self._logger.info(
                "rate_limit_exceeded",
                extra={"api_key_id": str(api_key.id), "count": count, "limit": limit},
            )

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_epoch=window_start + window,
            outcome=Outcome.ALLOWED if allowed else Outcome.THROTTLED,
            checked_at=int(now),
        )

    def sweep_expired_windows(self, retain_windows: int) -> int:
        """
        Delete counter rows older than ``retain_windows`` windows for every key.

        The current window is always kept, whatever ``retain_windows`` is.
        """
        retain_windows = max(1, retain_windows)
        now = self._clock()
        deleted = 0
        for api_key in self._store.list():
            window = int(api_key.rate_window_seconds)
            current = window_start_for(now, window)
            cutoff = current - (retain_windows - 1) * window
            deleted += self._store.delete_windows_before(api_key.id, epoch_to_datetime(cutoff))

        self._logger.info("rate_limit_sweep", extra={"deleted": deleted, "retain_windows": retain_windows})
        return deleted
