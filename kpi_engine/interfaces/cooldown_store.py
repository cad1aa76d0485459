"""
Alert cooldown store interface.

Keeps per (rule, KPI) last-dispatch times and sustained-breach start times.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional


class ICooldownStore(ABC):
    """Abstract interface for alert de-duplication state."""

    @abstractmethod
    def get_last_dispatch(self, rule_id: str, kpi_id: str) -> Optional[datetime]:
        pass

    @abstractmethod
    def set_last_dispatch(self, rule_id: str, kpi_id: str, at: datetime) -> None:
        pass

    @abstractmethod
    def get_breach_start(self, rule_id: str, kpi_id: str) -> Optional[datetime]:
        pass

    @abstractmethod
    def mark_breach(self, rule_id: str, kpi_id: str, at: datetime) -> datetime:
        """Record ``at`` as breach start unless one is already recorded; return the start."""
        pass

    @abstractmethod
    def clear_breach(self, rule_id: str, kpi_id: str) -> None:
        pass
