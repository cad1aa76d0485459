"""
Alert rule repository interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from kpi_engine.models.alert import AlertRule, AlertRuleCreate


class IAlertRuleRepository(ABC):
    """Abstract interface for alert rule persistence."""

    @abstractmethod
    async def create(self, data: AlertRuleCreate) -> AlertRule:
        """Create a new alert rule."""
        pass

    @abstractmethod
    async def get(self, rule_id: UUID) -> Optional[AlertRule]:
        """Get an alert rule by ID."""
        pass

    @abstractmethod
    async def list_for_kpi(self, kpi_id: UUID, active_only: bool = True) -> list[AlertRule]:
        """List rules bound to a KPI."""
        pass

    @abstractmethod
    async def set_active(self, rule_id: UUID, active: bool) -> Optional[AlertRule]:
        """Enable or disable a rule."""
        pass
