"""
KPI definition repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kpi_engine.models.enums import KpiCategory, KpiStatus
from kpi_engine.models.kpi import KpiDefinition, KpiDefinitionCreate, KpiDefinitionUpdate


class IKpiRepository(ABC):
    """Abstract interface for KPI definition persistence."""

    @abstractmethod
    async def create(self, data: KpiDefinitionCreate, refresh_interval: int) -> KpiDefinition:
        """Create a new KPI definition."""
        pass

    @abstractmethod
    async def get(self, kpi_id: UUID) -> Optional[KpiDefinition]:
        """Get a KPI definition by ID."""
        pass

    @abstractmethod
    async def list(
        self,
        category: Optional[KpiCategory] = None,
        status: Optional[KpiStatus] = None,
        created_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[KpiDefinition]:
        """List KPI definitions, oldest first. No limit returns every match."""
        pass

    @abstractmethod
    async def update(self, kpi_id: UUID, update: KpiDefinitionUpdate) -> KpiDefinition:
        """Update a KPI definition. Raises NotFoundError when missing."""
        pass

    @abstractmethod
    async def delete(self, kpi_id: UUID) -> bool:
        """Hard-delete a KPI definition."""
        pass
