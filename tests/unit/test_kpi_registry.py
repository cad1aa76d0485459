"""
Unit tests for the KPI registry.

Runs against in-memory SQLite with a mocked aggregate executor.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from kpi_engine.core.exceptions import CalculationError, NotFoundError, ValidationError
from kpi_engine.models.enums import (
    CalculationType,
    KpiCategory,
    KpiStatus,
    Period,
    TargetDirection,
    ValueStatus,
    ValueTrend,
)
from kpi_engine.models.kpi import Calculation, KpiDefinitionCreate, KpiDefinitionUpdate
from kpi_engine.services.kpi_registry import cache_key, classify_status, classify_value_trend


def _make_kpi(
    name: str = "Revenue",
    target: float | None = 1000.0,
    direction: TargetDirection = TargetDirection.HIGHER,
    category: KpiCategory = KpiCategory.FINANCIAL,
    refresh_interval: int | None = None,
) -> KpiDefinitionCreate:
    return KpiDefinitionCreate(
        name=name,
        category=category,
        calculation=Calculation(type=CalculationType.SUM, fields=["total_amount"]),
        target=target,
        target_direction=direction,
        unit="EUR",
        refresh_interval=refresh_interval,
    )


# ============================================
# Classification helpers
# ============================================


class TestClassifyStatus:
    """Tests for target-achievement status."""

    @pytest.mark.parametrize(
        "achievement,expected",
        [(95.0, ValueStatus.GOOD), (90.0, ValueStatus.GOOD), (89.9, ValueStatus.WARNING), (70.0, ValueStatus.WARNING), (69.9, ValueStatus.CRITICAL)],
    )
    def test_higher_is_better(self, achievement, expected):
        assert classify_status(achievement, TargetDirection.HIGHER) == expected

    @pytest.mark.parametrize(
        "achievement,expected",
        [(100.0, ValueStatus.GOOD), (110.0, ValueStatus.GOOD), (120.0, ValueStatus.WARNING), (131.0, ValueStatus.CRITICAL)],
    )
    def test_lower_is_better(self, achievement, expected):
        assert classify_status(achievement, TargetDirection.LOWER) == expected

    @pytest.mark.parametrize(
        "achievement,expected",
        [(95.0, ValueStatus.GOOD), (115.0, ValueStatus.WARNING), (80.0, ValueStatus.WARNING), (75.0, ValueStatus.CRITICAL)],
    )
    def test_exact(self, achievement, expected):
        assert classify_status(achievement, TargetDirection.EXACT) == expected

    def test_no_target_is_neutral(self):
        assert classify_status(None, TargetDirection.HIGHER) == ValueStatus.NEUTRAL


class TestClassifyValueTrend:
    """Tests for single-step value trend."""

    @pytest.mark.parametrize(
        "change,expected",
        [
            (None, ValueTrend.STABLE),
            (0.0, ValueTrend.STABLE),
            (10.0, ValueTrend.STABLE),
            (10.5, ValueTrend.UP),
            (-11.0, ValueTrend.DOWN),
            (51.0, ValueTrend.VOLATILE),
            (-60.0, ValueTrend.VOLATILE),
        ],
    )
    def test_thresholds(self, change, expected):
        assert classify_value_trend(change) == expected


# ============================================
# Definitions
# ============================================


class TestDefinitions:
    """Tests for KPI definition management."""

    @pytest.mark.asyncio
    async def test_create_applies_default_refresh_interval(self, registry):
        definition = await registry.create_kpi(_make_kpi())

        assert definition.id is not None
        assert definition.refresh_interval == 300
        assert definition.status == KpiStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_create_rejects_invalid_calculation(self, registry):
        data = _make_kpi()
        data.calculation = Calculation(type=CalculationType.RATIO, fields=["total_amount"])

        with pytest.raises(ValidationError):
            await registry.create_kpi(data)
        assert await registry.list_kpis() == []

    @pytest.mark.asyncio
    async def test_create_rejects_non_positive_refresh_interval(self, registry):
        with pytest.raises(ValidationError, match="refresh_interval"):
            await registry.create_kpi(_make_kpi(refresh_interval=0))

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, registry):
        with pytest.raises(NotFoundError):
            await registry.get_kpi(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_by_category(self, registry):
        await registry.create_kpi(_make_kpi(name="Revenue"))
        await registry.create_kpi(_make_kpi(name="Signups", category=KpiCategory.MARKETING))

        result = await registry.list_kpis(category=KpiCategory.MARKETING)

        assert [d.name for d in result] == ["Signups"]

    @pytest.mark.asyncio
    async def test_update_changes_fields(self, registry):
        definition = await registry.create_kpi(_make_kpi())

        updated = await registry.update_kpi(definition.id, KpiDefinitionUpdate(name="Net revenue", target=2000.0))

        assert updated.name == "Net revenue"
        assert updated.target == 2000.0
        assert updated.unit == "EUR"

    @pytest.mark.asyncio
    async def test_update_invalidates_cached_value(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.return_value = 500.0
        await registry.record_value(definition.id)

        await registry.update_kpi(definition.id, KpiDefinitionUpdate(target=2000.0))

        assert registry._cache.get(cache_key(definition.id)) is None

    @pytest.mark.asyncio
    async def test_set_status_soft_disables(self, registry):
        definition = await registry.create_kpi(_make_kpi())

        await registry.set_status(definition.id, KpiStatus.INACTIVE)

        assert await registry.list_kpis(status=KpiStatus.ACTIVE) == []

    @pytest.mark.asyncio
    async def test_delete_without_history(self, registry):
        definition = await registry.create_kpi(_make_kpi())

        assert await registry.delete_kpi(definition.id) is True
        with pytest.raises(NotFoundError):
            await registry.get_kpi(definition.id)

    @pytest.mark.asyncio
    async def test_delete_with_history_is_refused(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.return_value = 10.0
        await registry.record_value(definition.id)

        with pytest.raises(ValidationError, match="historical values"):
            await registry.delete_kpi(definition.id)
        assert (await registry.get_kpi(definition.id)).id == definition.id

    @pytest.mark.asyncio
    async def test_delete_drops_record_lock(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.side_effect = RuntimeError("orders table locked")
        with pytest.raises(CalculationError):
            await registry.record_value(definition.id)
        assert str(definition.id) in registry._locks

        await registry.delete_kpi(definition.id)

        assert str(definition.id) not in registry._locks


# ============================================
# Values
# ============================================


class TestRecordValue:
    """Tests for value recording and retrieval."""

    @pytest.mark.asyncio
    async def test_first_value_has_no_previous(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi(target=1000.0))
        mock_executor.run_aggregate.return_value = 950.0

        value = await registry.record_value(definition.id)

        assert value.value == 950.0
        assert value.previous_value is None
        assert value.change is None
        assert value.change_percent is None
        assert value.trend == ValueTrend.STABLE
        assert value.target_achievement == pytest.approx(95.0)
        assert value.status == ValueStatus.GOOD
        assert value.period == Period.MONTH

    @pytest.mark.asyncio
    async def test_second_value_computes_change(self, registry, mock_executor, clock):
        definition = await registry.create_kpi(_make_kpi(target=1000.0))
        mock_executor.run_aggregate.return_value = 800.0
        await registry.record_value(definition.id)
        clock.advance(minutes=5)
        mock_executor.run_aggregate.return_value = 600.0

        value = await registry.record_value(definition.id)

        assert value.previous_value == 800.0
        assert value.change == -200.0
        assert value.change_percent == pytest.approx(-25.0)
        assert value.trend == ValueTrend.VOLATILE
        assert value.status == ValueStatus.CRITICAL

    @pytest.mark.asyncio
    async def test_previous_zero_gives_zero_change_percent(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.return_value = 0.0
        await registry.record_value(definition.id)
        mock_executor.run_aggregate.return_value = 5.0

        value = await registry.record_value(definition.id)

        assert value.change == 5.0
        assert value.change_percent == 0.0

    @pytest.mark.asyncio
    async def test_no_target_is_neutral(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi(target=None))
        mock_executor.run_aggregate.return_value = 42.0

        value = await registry.record_value(definition.id)

        assert value.target_achievement is None
        assert value.status == ValueStatus.NEUTRAL

    @pytest.mark.asyncio
    async def test_failed_calculation_persists_nothing(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.side_effect = RuntimeError("db down")

        with pytest.raises(CalculationError):
            await registry.record_value(definition.id)
        assert await registry.get_kpi_value(definition.id) is None

    @pytest.mark.asyncio
    async def test_record_then_get_round_trip(self, registry, mock_executor, value_cache):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.return_value = 321.0
        recorded = await registry.record_value(definition.id)

        cached = await registry.get_kpi_value(definition.id)
        value_cache.clear()
        stored = await registry.get_kpi_value(definition.id)

        assert cached.id == recorded.id
        assert stored.id == recorded.id
        assert stored.value == 321.0
        assert stored.calculated_at == recorded.calculated_at

    @pytest.mark.asyncio
    async def test_get_value_by_period(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        mock_executor.run_aggregate.return_value = 7.0
        await registry.record_value(definition.id)

        assert (await registry.get_kpi_value(definition.id, Period.MONTH)).value == 7.0
        assert await registry.get_kpi_value(definition.id, Period.DAY) is None

    @pytest.mark.asyncio
    async def test_get_value_unknown_kpi_raises(self, registry):
        with pytest.raises(NotFoundError):
            await registry.get_kpi_value(uuid4())

    @pytest.mark.asyncio
    async def test_history_is_oldest_first(self, registry, mock_executor, clock):
        definition = await registry.create_kpi(_make_kpi())
        start = clock.now
        for amount in (1.0, 2.0, 3.0):
            mock_executor.run_aggregate.return_value = amount
            await registry.record_value(definition.id)
            clock.advance(hours=1)

        history = await registry.get_history(definition.id, start - timedelta(minutes=1))

        assert [v.value for v in history] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_same_timestamp_keeps_insertion_order(self, registry, mock_executor):
        definition = await registry.create_kpi(_make_kpi())
        for amount in (5.0, 6.0):
            mock_executor.run_aggregate.return_value = amount
            await registry.record_value(definition.id)

        latest = await registry.get_kpi_value(definition.id)

        assert latest.value == 6.0
        assert latest.previous_value == 5.0
