"""
KPI registry.

Owns KPI definitions and their value history: validates definitions,
records new values (change, trend, status), keeps the value cache warm and
hands every new value to the alert evaluator.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID, uuid4

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import NotFoundError, ValidationError
from kpi_engine.core.logger import setup_logger
from kpi_engine.interfaces.kpi_repository import IKpiRepository
from kpi_engine.interfaces.kpi_value_repository import IKpiValueRepository
from kpi_engine.interfaces.value_cache import IValueCache
from kpi_engine.models.enums import (
    KpiCategory,
    KpiStatus,
    Period,
    TargetDirection,
    ValueStatus,
    ValueTrend,
)
from kpi_engine.models.kpi import KpiDefinition, KpiDefinitionCreate, KpiDefinitionUpdate, KpiValue
from kpi_engine.services.calculation_engine import CalculationEngine, validate_calculation
from kpi_engine.utils.datetime_utils import now_utc

if TYPE_CHECKING:
    from kpi_engine.services.alert_evaluator import AlertEvaluator

logger = setup_logger(__name__)

# Absolute change thresholds, in the KPI's own unit
VOLATILE_CHANGE = 50.0
TREND_CHANGE = 10.0


def classify_value_trend(change: Optional[float]) -> ValueTrend:
    """Single-step trend from the absolute change."""
    if change is None:
        return ValueTrend.STABLE
    if abs(change) > VOLATILE_CHANGE:
        return ValueTrend.VOLATILE
    if change > TREND_CHANGE:
        return ValueTrend.UP
    if change < -TREND_CHANGE:
        return ValueTrend.DOWN
    return ValueTrend.STABLE


def classify_status(achievement: Optional[float], direction: TargetDirection) -> ValueStatus:
    """Status from target achievement (value / target * 100)."""
    if achievement is None:
        return ValueStatus.NEUTRAL
    if direction == TargetDirection.HIGHER:
        if achievement >= 90:
            return ValueStatus.GOOD
        if achievement >= 70:
            return ValueStatus.WARNING
        return ValueStatus.CRITICAL
    if direction == TargetDirection.LOWER:
        if achievement <= 110:
            return ValueStatus.GOOD
        if achievement <= 130:
            return ValueStatus.WARNING
        return ValueStatus.CRITICAL
    deviation = abs(achievement - 100)
    if deviation <= 10:
        return ValueStatus.GOOD
    if deviation <= 20:
        return ValueStatus.WARNING
    return ValueStatus.CRITICAL


def cache_key(kpi_id: UUID, period: Optional[Period] = None) -> str:
    return f"{kpi_id}:{period.value}" if period is not None else str(kpi_id)


class KpiRegistry:
    """KPI definitions and value history."""

    def __init__(
        self,
        kpi_repo: IKpiRepository,
        value_repo: IKpiValueRepository,
        engine: CalculationEngine,
        cache: IValueCache,
        alert_evaluator: Optional["AlertEvaluator"] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._kpi_repo = kpi_repo
        self._value_repo = value_repo
        self._engine = engine
        self._cache = cache
        self._alert_evaluator = alert_evaluator
        self._clock = clock
        self._locks: dict[str, asyncio.Lock] = {}

    def set_alert_evaluator(self, alert_evaluator: "AlertEvaluator") -> None:
        self._alert_evaluator = alert_evaluator

    def _lock_for(self, kpi_id: UUID) -> asyncio.Lock:
        return self._locks.setdefault(str(kpi_id), asyncio.Lock())

    # ===========================================
    # Definitions
    # ===========================================

    async def create_kpi(self, data: KpiDefinitionCreate) -> KpiDefinition:
        """Validate and persist a new KPI definition."""
        validate_calculation(data.calculation)
        refresh_interval = data.refresh_interval
        if refresh_interval is None:
            refresh_interval = get_settings().DEFAULT_REFRESH_INTERVAL_SECONDS
        if refresh_interval <= 0:
            raise ValidationError("refresh_interval must be positive")

        definition = await self._kpi_repo.create(data, refresh_interval=refresh_interval)
        logger.info(f"Created KPI {definition.id} ({definition.name})")
        return definition

    async def get_kpi(self, kpi_id: UUID) -> KpiDefinition:
        definition = await self._kpi_repo.get(kpi_id)
        if definition is None:
            raise NotFoundError(f"KPI {kpi_id} not found")
        return definition

    async def list_kpis(
        self,
        category: Optional[KpiCategory] = None,
        status: Optional[KpiStatus] = None,
        created_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[KpiDefinition]:
        return await self._kpi_repo.list(
            category=category, status=status, created_by=created_by, limit=limit
        )

    async def update_kpi(self, kpi_id: UUID, update: KpiDefinitionUpdate) -> KpiDefinition:
        """Validate and apply an edit; cached values for the KPI are dropped."""
        await self.get_kpi(kpi_id)
        if update.calculation is not None:
            validate_calculation(update.calculation)
        if update.refresh_interval is not None and update.refresh_interval <= 0:
            raise ValidationError("refresh_interval must be positive")

        definition = await self._kpi_repo.update(kpi_id, update)
        self._cache.invalidate(str(kpi_id))
        return definition

    async def set_status(self, kpi_id: UUID, status: KpiStatus) -> KpiDefinition:
        """Soft-enable or soft-disable a KPI."""
        return await self.update_kpi(kpi_id, KpiDefinitionUpdate(status=status))

    async def delete_kpi(self, kpi_id: UUID) -> bool:
        """
        Hard-delete a KPI that has never produced a value.

        Raises:
            NotFoundError: If the KPI does not exist.
            ValidationError: If historical values exist; disable it instead.
        """
        await self.get_kpi(kpi_id)
        if await self._value_repo.count(kpi_id) > 0:
            raise ValidationError(
                f"KPI {kpi_id} has historical values; set its status to inactive instead"
            )
        deleted = await self._kpi_repo.delete(kpi_id)
        self._cache.invalidate(str(kpi_id))
        self._locks.pop(str(kpi_id), None)
        return deleted

    # ===========================================
    # Values
    # ===========================================

    async def record_value(self, kpi_id: UUID) -> KpiValue:
        """
        Compute, classify and append a new value, then run alert checks on it.

        Recording for one KPI is serialized. A failed computation persists
        nothing and raises CalculationError.
        """
        definition = await self.get_kpi(kpi_id)
        async with self._lock_for(definition.id):
            value = await self._engine.compute(definition)
            period = definition.calculation.time_range.period
            previous = await self._value_repo.get_latest(definition.id, period)

            previous_value = previous.value if previous else None
            change = value - previous_value if previous_value is not None else None
            change_percent = None
            if change is not None:
                change_percent = change / previous_value * 100 if previous_value != 0 else 0.0

            target = definition.target
            achievement = value / target * 100 if target else None

            kpi_value = KpiValue(
                id=uuid4(),
                kpi_id=definition.id,
                value=value,
                previous_value=previous_value,
                change=change,
                change_percent=change_percent,
                target=target,
                target_achievement=achievement,
                trend=classify_value_trend(change),
                status=classify_status(achievement, definition.target_direction),
                calculated_at=self._clock(),
                period=period,
            )
            saved = await self._value_repo.append(kpi_value)
            self._cache_value(definition, saved)
            logger.debug(f"Recorded KPI {definition.id} value {saved.value} ({saved.status.value})")

            if self._alert_evaluator is not None:
                await self._alert_evaluator.check(definition.id, saved, definition)
            return saved

    def _cache_value(self, definition: KpiDefinition, value: KpiValue) -> None:
        ttl = min(get_settings().VALUE_CACHE_TTL_SECONDS, definition.refresh_interval)
        self._cache.set(cache_key(definition.id), value, ttl)
        self._cache.set(cache_key(definition.id, value.period), value, ttl)

    async def get_kpi_value(self, kpi_id: UUID, period: Optional[Period] = None) -> Optional[KpiValue]:
        """
        Latest value of a KPI, cache first.

        Returns None when the KPI exists but has no value yet.

        Raises:
            NotFoundError: If the KPI does not exist.
        """
        definition = await self.get_kpi(kpi_id)
        cached = self._cache.get(cache_key(definition.id, period))
        if cached is not None:
            return cached

        latest = await self._value_repo.get_latest(definition.id, period)
        if latest is None:
            return None
        ttl = min(get_settings().VALUE_CACHE_TTL_SECONDS, definition.refresh_interval)
        self._cache.set(cache_key(definition.id, period), latest, ttl)
        return latest

    async def get_history(
        self, kpi_id: UUID, since: datetime, period: Optional[Period] = None
    ) -> list[KpiValue]:
        """Values calculated since ``since``, oldest first."""
        definition = await self.get_kpi(kpi_id)
        return await self._value_repo.list_since(definition.id, since, period)
