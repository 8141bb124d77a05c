"""In-memory TTL cache for the latest observation and forecast per location."""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock
from typing import Any

from utils.logging import get_logger

log = get_logger("observation_cache")

DEFAULT_TTL = 300.0  # 5 min


class ObservationCache:
    """Single-writer map guarded by a lock.

    Entries are stored as (value, inserted_at) and never edited in place:
    writing a key replaces its entry. An entry is alive while its age is
    strictly below the TTL.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = Lock()
        # location key → (AggregatedObservation, inserted_at)
        self._observations: dict[str, tuple[Any, float]] = {}
        # location key → (forecast value, inserted_at)
        self._forecasts: dict[str, tuple[Any, float]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def get_observation(self, key: str) -> Any | None:
        return self._get(self._observations, key)

    def set_observation(self, key: str, value: Any) -> None:
        self._set(self._observations, key, value)

    def get_forecast(self, key: str) -> Any | None:
        return self._get(self._forecasts, key)

    def set_forecast(self, key: str, value: Any) -> None:
        self._set(self._forecasts, key, value)

    def clear(self) -> None:
        with self._lock:
            self._observations.clear()
            self._forecasts.clear()

    def clear_expired(self) -> int:
        """Drop expired entries from both slots. Returns how many were removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for store in (self._observations, self._forecasts):
                expired = [k for k, (_, ts) in store.items() if now - ts >= self._ttl]
                for k in expired:
                    del store[k]
                removed += len(expired)
        if removed:
            log.debug("cache_expired_cleared", removed=removed)
        return removed

    def _get(self, store: dict[str, tuple[Any, float]], key: str) -> Any | None:
        with self._lock:
            entry = store.get(key)
            if entry is None:
                return None
            value, ts = entry
            if self._clock() - ts < self._ttl:
                return value
            return None

    def _set(self, store: dict[str, tuple[Any, float]], key: str, value: Any) -> None:
        with self._lock:
            store[key] = (value, self._clock())
