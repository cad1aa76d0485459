"""
Business insight repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from kpi_engine.models.insight import BusinessInsight, BusinessInsightCreate, InsightFilters


class IInsightRepository(ABC):
    """Abstract interface for insight persistence."""

    @abstractmethod
    async def create(self, data: BusinessInsightCreate, generated_at: datetime) -> BusinessInsight:
        """Persist a generated insight."""
        pass

    @abstractmethod
    async def get(self, insight_id: UUID) -> Optional[BusinessInsight]:
        """Get an insight by ID."""
        pass

    @abstractmethod
    async def list(self, filters: InsightFilters, now: datetime) -> list[BusinessInsight]:
        """List insights matching filters, newest first."""
        pass

    @abstractmethod
    async def acknowledge(
        self, insight_id: UUID, acknowledged_by: str, acknowledged_at: datetime
    ) -> Optional[BusinessInsight]:
        """Mark an insight acknowledged. Returns None when missing."""
        pass
