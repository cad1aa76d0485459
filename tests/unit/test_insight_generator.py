"""
Unit tests for insight generation, listing and acknowledgement.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from kpi_engine.core.exceptions import NotFoundError, ValidationError
from kpi_engine.infrastructure.local.insight_repository import SqliteInsightRepository
from kpi_engine.models.enums import CalculationType, InsightSeverity, InsightType, TargetDirection
from kpi_engine.models.insight import InsightFilters
from kpi_engine.models.kpi import Calculation, KpiDefinition, KpiDefinitionCreate
from kpi_engine.services.insight_generator import InsightGenerator, build_insights, delta_percent
from kpi_engine.utils.datetime_utils import UTC


def _make_definition(direction: TargetDirection = TargetDirection.HIGHER) -> KpiDefinition:
    now = datetime(2026, 3, 1, tzinfo=UTC)
    return KpiDefinition(
        id=uuid4(),
        name="Revenue",
        calculation=Calculation(type=CalculationType.SUM, fields=["total_amount"]),
        target_direction=direction,
        refresh_interval=300,
        created_at=now,
        updated_at=now,
    )


# ============================================
# build_insights
# ============================================


class TestBuildInsights:
    """Tests for the change-percent insight rules."""

    def test_growth_is_opportunity(self):
        definition = _make_definition()

        insights = build_insights(definition, 100.0, 120.0)

        assert len(insights) == 1
        insight = insights[0]
        assert insight.type == InsightType.OPPORTUNITY
        assert insight.severity == InsightSeverity.POSITIVE
        assert insight.kpi_ids == [definition.id]
        assert insight.data["change_percent"] == pytest.approx(20.0)
        assert insight.data["current_value"] == 120.0
        assert insight.data["previous_value"] == 100.0
        assert len(insight.recommendations) == 3
        assert insight.actionable is True

    def test_decline_is_risk(self):
        insights = build_insights(_make_definition(), 100.0, 80.0)

        assert len(insights) == 1
        assert insights[0].type == InsightType.RISK
        assert insights[0].severity == InsightSeverity.CRITICAL
        assert insights[0].data["change_percent"] == pytest.approx(-20.0)

    @pytest.mark.parametrize("current", [115.0, 100.0, 85.0])
    def test_small_moves_produce_nothing(self, current):
        assert build_insights(_make_definition(), 100.0, current) == []

    def test_lower_is_better_mirrors_rules(self):
        definition = _make_definition(TargetDirection.LOWER)

        drop = build_insights(definition, 100.0, 70.0)
        rise = build_insights(definition, 100.0, 130.0)

        assert drop[0].type == InsightType.OPPORTUNITY
        assert rise[0].type == InsightType.RISK

    def test_exact_direction_produces_nothing(self):
        assert build_insights(_make_definition(TargetDirection.EXACT), 100.0, 200.0) == []

    def test_previous_zero(self):
        assert delta_percent(0.0, 50.0) == 0.0
        assert build_insights(_make_definition(), 0.0, 50.0) == []

    def test_negative_previous_uses_magnitude(self):
        assert delta_percent(-100.0, -50.0) == pytest.approx(50.0)


# ============================================
# InsightGenerator service
# ============================================


@pytest.fixture
def generator(registry, session_factory, clock):
    return InsightGenerator(registry, SqliteInsightRepository(session_factory), clock=clock)


async def _record_series(registry, mock_executor, clock, values):
    definition = await registry.create_kpi(
        KpiDefinitionCreate(
            name="Revenue",
            calculation=Calculation(type=CalculationType.SUM, fields=["total_amount"]),
        )
    )
    for amount in values:
        mock_executor.run_aggregate.return_value = amount
        await registry.record_value(definition.id)
        clock.advance(hours=1)
    return definition


class TestInsightGenerator:
    """Tests for generating and managing persisted insights."""

    @pytest.mark.asyncio
    async def test_generate_uses_last_two_values(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [50.0, 100.0, 120.0])

        insights = await generator.generate([definition.id])

        assert len(insights) == 1
        assert insights[0].type == InsightType.OPPORTUNITY
        assert insights[0].generated_at == clock.now
        assert insights[0].expires_at == clock.now + timedelta(hours=168)

    @pytest.mark.asyncio
    async def test_generate_needs_two_values(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0])

        assert await generator.generate([definition.id]) == []

    @pytest.mark.asyncio
    async def test_unknown_kpi_is_skipped(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0, 60.0])

        insights = await generator.generate([uuid4(), definition.id])

        assert [i.type for i in insights] == [InsightType.RISK]

    @pytest.mark.asyncio
    async def test_failing_kpi_does_not_stop_others(self, generator, registry, mock_executor, clock):
        first = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        broken = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        last = await _record_series(registry, mock_executor, clock, [100.0, 50.0])
        get_history = registry.get_history

        async def _get_history(kpi_id, since):
            if kpi_id == broken.id:
                raise RuntimeError("database is locked")
            return await get_history(kpi_id, since)

        registry.get_history = _get_history

        insights = await generator.generate([first.id, broken.id, last.id])

        assert [i.kpi_ids for i in insights] == [[first.id], [last.id]]

    @pytest.mark.asyncio
    async def test_unchanged_move_is_not_reported_twice(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0, 130.0])

        first = await generator.generate([definition.id])
        clock.advance(hours=2)
        second = await generator.generate([definition.id])

        assert len(first) == 1
        assert second == []
        assert len(await generator.list_insights()) == 1

    @pytest.mark.asyncio
    async def test_new_move_is_reported_again(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        await generator.generate([definition.id])

        mock_executor.run_aggregate.return_value = 170.0
        await registry.record_value(definition.id)
        insights = await generator.generate([definition.id])

        assert [i.data["current_value"] for i in insights] == [170.0]

    @pytest.mark.asyncio
    async def test_bad_lookback_raises(self, generator):
        with pytest.raises(ValidationError):
            await generator.generate([], lookback="forever")

    @pytest.mark.asyncio
    async def test_list_filters(self, generator, registry, mock_executor, clock):
        up = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        down = await _record_series(registry, mock_executor, clock, [100.0, 50.0])
        await generator.generate([up.id, down.id])

        risks = await generator.list_insights(InsightFilters(type=InsightType.RISK))
        for_up = await generator.list_insights(InsightFilters(kpi_id=up.id))

        assert [i.kpi_ids for i in risks] == [[down.id]]
        assert [i.type for i in for_up] == [InsightType.OPPORTUNITY]

    @pytest.mark.asyncio
    async def test_expired_insights_are_hidden(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        await generator.generate([definition.id])

        clock.advance(hours=169)

        assert await generator.list_insights() == []
        assert len(await generator.list_insights(InsightFilters(include_expired=True))) == 1

    @pytest.mark.asyncio
    async def test_acknowledge_is_idempotent(self, generator, registry, mock_executor, clock):
        definition = await _record_series(registry, mock_executor, clock, [100.0, 130.0])
        insight = (await generator.generate([definition.id]))[0]

        first = await generator.acknowledge_insight(insight.id, "alice")
        clock.advance(minutes=5)
        second = await generator.acknowledge_insight(insight.id, "bob")

        assert first.acknowledged is True
        assert second.acknowledged_by == "alice"
        assert second.acknowledged_at == first.acknowledged_at
        unacknowledged = await generator.list_insights(InsightFilters(acknowledged=False))
        assert unacknowledged == []

    @pytest.mark.asyncio
    async def test_acknowledge_unknown_raises(self, generator):
        with pytest.raises(NotFoundError):
            await generator.acknowledge_insight(uuid4(), "alice")
