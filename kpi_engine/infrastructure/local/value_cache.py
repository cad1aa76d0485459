"""
In-memory TTL cache for KPI values.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from kpi_engine.interfaces.value_cache import IValueCache
from kpi_engine.models.kpi import KpiValue


class InMemoryValueCache(IValueCache):
    """Lock-guarded dict cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._data: dict[str, tuple[float, KpiValue]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[KpiValue]:
        with self._lock:
            item = self._data.get(key)
            if item is None:
                return None
            expires_at, value = item
            if expires_at <= self._clock():
                self._data.pop(key, None)
                return None
            return value

    def set(self, key: str, value: KpiValue, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        with self._lock:
            self._data[key] = (self._clock() + ttl_seconds, value)

    def invalidate(self, key: str) -> None:
        prefix = f"{key}:"
        with self._lock:
            for existing in [k for k in self._data if k == key or k.startswith(prefix)]:
                del self._data[existing]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
