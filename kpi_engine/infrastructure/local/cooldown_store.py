"""
In-memory alert cooldown store.

State is lost on restart; at most one duplicate notification per rule can
follow a restart.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional

from kpi_engine.interfaces.cooldown_store import ICooldownStore


class InMemoryCooldownStore(ICooldownStore):
    """Lock-guarded maps keyed by ``rule_id:kpi_id``."""

    def __init__(self):
        self._last_dispatch: dict[str, datetime] = {}
        self._breach_start: dict[str, datetime] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(rule_id: str, kpi_id: str) -> str:
        return f"{rule_id}:{kpi_id}"

    def get_last_dispatch(self, rule_id: str, kpi_id: str) -> Optional[datetime]:
        with self._lock:
            return self._last_dispatch.get(self._key(rule_id, kpi_id))

    def set_last_dispatch(self, rule_id: str, kpi_id: str, at: datetime) -> None:
        with self._lock:
            self._last_dispatch[self._key(rule_id, kpi_id)] = at

    def get_breach_start(self, rule_id: str, kpi_id: str) -> Optional[datetime]:
        with self._lock:
            return self._breach_start.get(self._key(rule_id, kpi_id))

    def mark_breach(self, rule_id: str, kpi_id: str, at: datetime) -> datetime:
        with self._lock:
            return self._breach_start.setdefault(self._key(rule_id, kpi_id), at)

    def clear_breach(self, rule_id: str, kpi_id: str) -> None:
        with self._lock:
            self._breach_start.pop(self._key(rule_id, kpi_id), None)
