"""
Alert record repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kpi_engine.models.alert import Alert


class IAlertRepository(ABC):
    """Abstract interface for fired alert records."""

    @abstractmethod
    async def create(self, alert: Alert) -> Alert:
        """Persist a fired alert."""
        pass

    @abstractmethod
    async def list(
        self,
        kpi_id: Optional[UUID] = None,
        acknowledged: Optional[bool] = None,
        limit: int = 50,
    ) -> list[Alert]:
        """List alerts, newest first."""
        pass

    @abstractmethod
    async def acknowledge(self, alert_id: UUID) -> Optional[Alert]:
        """Mark an alert acknowledged. Returns None when missing."""
        pass
