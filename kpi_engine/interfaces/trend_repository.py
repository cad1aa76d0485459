"""
Trend analysis repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kpi_engine.models.trend import TrendAnalysis


class ITrendRepository(ABC):
    """Abstract interface for trend analysis snapshots."""

    @abstractmethod
    async def save(self, analysis: TrendAnalysis) -> TrendAnalysis:
        """Persist a freshly computed analysis."""
        pass

    @abstractmethod
    async def get_latest(self, kpi_id: UUID, lookback: Optional[str] = None) -> Optional[TrendAnalysis]:
        """Get the most recent analysis for a KPI."""
        pass
