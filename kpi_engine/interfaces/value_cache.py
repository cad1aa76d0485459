"""
KPI value cache interface.

Implementations must be safe to share between concurrent KPI sweeps.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from kpi_engine.models.kpi import KpiValue


class IValueCache(ABC):
    """Abstract interface for a TTL-bounded KPI value cache."""

    @abstractmethod
    def get(self, key: str) -> Optional[KpiValue]:
        """Return the cached value, or None when absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: KpiValue, ttl_seconds: float) -> None:
        """Store a value for ``ttl_seconds``."""
        pass

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """Drop ``key`` and every ``key:*`` entry."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass
