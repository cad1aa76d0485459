"""
KPI value repository interface.

Values are append-only: there is no update operation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from kpi_engine.models.enums import Period
from kpi_engine.models.kpi import KpiValue


class IKpiValueRepository(ABC):
    """Abstract interface for KPI value history."""

    @abstractmethod
    async def append(self, value: KpiValue) -> KpiValue:
        """Persist a new value snapshot."""
        pass

    @abstractmethod
    async def get_latest(self, kpi_id: UUID, period: Optional[Period] = None) -> Optional[KpiValue]:
        """Get the most recent value, optionally for one period bucket."""
        pass

    @abstractmethod
    async def list_since(
        self, kpi_id: UUID, since: datetime, period: Optional[Period] = None
    ) -> list[KpiValue]:
        """List values calculated at or after ``since``, oldest first."""
        pass

    @abstractmethod
    async def count(self, kpi_id: UUID) -> int:
        """Count stored values for a KPI."""
        pass
