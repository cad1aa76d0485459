"""
Dashboard repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kpi_engine.models.dashboard import Dashboard, DashboardCreate


class IDashboardRepository(ABC):
    """Abstract interface for dashboard definitions."""

    @abstractmethod
    async def create(self, data: DashboardCreate) -> Dashboard:
        """Create a new dashboard."""
        pass

    @abstractmethod
    async def get(self, dashboard_id: UUID) -> Optional[Dashboard]:
        """Get a dashboard by ID."""
        pass
