"""
Unit tests for the KPI scheduler.

Ticks are driven manually with ``run_due_jobs(now)``; APScheduler is only
started outside the test environment.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from kpi_engine.core.exceptions import CalculationError
from kpi_engine.infrastructure.local.insight_repository import SqliteInsightRepository
from kpi_engine.infrastructure.local.trend_repository import SqliteTrendRepository
from kpi_engine.models.enums import CalculationType, KpiStatus
from kpi_engine.models.kpi import Calculation, KpiDefinitionCreate
from kpi_engine.services.insight_generator import InsightGenerator
from kpi_engine.services.scheduler import KpiScheduler, ScheduledJob
from kpi_engine.services.trend_analyzer import TrendAnalyzer

ALL_JOBS = ["kpi_values", "trend_analysis", "alert_sweep", "insights"]


@pytest.fixture
def scheduler(registry, alert_evaluator, session_factory, clock):
    return KpiScheduler(
        registry=registry,
        trend_analyzer=TrendAnalyzer(registry, SqliteTrendRepository(session_factory), clock=clock),
        alert_evaluator=alert_evaluator,
        insight_generator=InsightGenerator(registry, SqliteInsightRepository(session_factory), clock=clock),
        clock=clock,
    )


async def _create_kpi(registry, field: str = "total_amount", refresh_interval: int = 60):
    return await registry.create_kpi(
        KpiDefinitionCreate(
            name=f"Sum of {field}",
            calculation=Calculation(type=CalculationType.SUM, fields=[field]),
            refresh_interval=refresh_interval,
        )
    )


class TestScheduledJob:
    """Tests for job due-ness."""

    def test_new_job_is_due(self, clock):
        job = ScheduledJob("j", timedelta(seconds=30), AsyncMock())
        assert job.is_due(clock.now) is True

    def test_running_job_is_not_due(self, clock):
        job = ScheduledJob("j", timedelta(seconds=30), AsyncMock(), running=True)
        assert job.is_due(clock.now) is False

    def test_due_after_next_run(self, clock):
        job = ScheduledJob("j", timedelta(seconds=30), AsyncMock(), next_run=clock.now + timedelta(seconds=30))
        assert job.is_due(clock.now) is False
        assert job.is_due(clock.now + timedelta(seconds=30)) is True


class TestRunDueJobs:
    """Tests for tick execution."""

    @pytest.mark.asyncio
    async def test_first_tick_runs_every_job(self, scheduler, clock):
        ran = await scheduler.run_due_jobs(clock.now)

        assert sorted(ran) == sorted(ALL_JOBS)
        status = scheduler.status()
        assert status["running"] is False
        assert all(job["last_error"] is None for job in status["jobs"])

    @pytest.mark.asyncio
    async def test_jobs_follow_their_intervals(self, scheduler, clock):
        await scheduler.run_due_jobs(clock.now)

        assert await scheduler.run_due_jobs(clock.now + timedelta(seconds=10)) == []
        assert await scheduler.run_due_jobs(clock.now + timedelta(seconds=30)) == ["kpi_values"]
        ran = await scheduler.run_due_jobs(clock.now + timedelta(seconds=60))
        assert sorted(ran) == ["alert_sweep", "kpi_values"]

    @pytest.mark.asyncio
    async def test_records_values_per_refresh_interval(self, scheduler, registry, mock_executor, clock):
        definition = await _create_kpi(registry, refresh_interval=60)
        mock_executor.run_aggregate.return_value = 5.0

        await scheduler.run_due_jobs(clock.now)
        await scheduler.run_due_jobs(clock.now + timedelta(seconds=30))
        await scheduler.run_due_jobs(clock.now + timedelta(seconds=60))

        history = await registry.get_history(definition.id, clock.now - timedelta(days=1))
        assert len(history) == 2

    @pytest.mark.asyncio
    async def test_failing_kpi_does_not_stop_others(self, scheduler, registry, mock_executor, clock):
        good = await _create_kpi(registry, "total_amount")
        bad = await _create_kpi(registry, "tax_amount")

        async def _aggregate(query):
            if query.field == "tax_amount":
                raise CalculationError("source table missing", kpi_id=query.kpi_id)
            return 42.0

        mock_executor.run_aggregate.side_effect = _aggregate

        await scheduler.run_due_jobs(clock.now)

        assert (await registry.get_kpi_value(good.id)).value == 42.0
        assert await registry.get_kpi_value(bad.id) is None
        assert scheduler.jobs["kpi_values"].last_error is None

    @pytest.mark.asyncio
    async def test_recomputes_every_active_kpi(self, scheduler, registry, mock_executor, clock):
        definitions = [await _create_kpi(registry) for _ in range(505)]
        mock_executor.run_aggregate.return_value = 7.0

        await scheduler.jobs["kpi_values"].handler(clock.now)

        assert mock_executor.run_aggregate.await_count == 505
        assert (await registry.get_kpi_value(definitions[-1].id)).value == 7.0

    @pytest.mark.asyncio
    async def test_insight_failure_for_one_kpi_does_not_stop_others(
        self, scheduler, registry, mock_executor, clock
    ):
        definitions = []
        for _ in range(3):
            definition = await _create_kpi(registry)
            definitions.append(definition)
            for amount in (100.0, 150.0):
                mock_executor.run_aggregate.return_value = amount
                await registry.record_value(definition.id)
        broken = definitions[1].id
        get_history = registry.get_history

        async def _get_history(kpi_id, since):
            if kpi_id == broken:
                raise RuntimeError("database is locked")
            return await get_history(kpi_id, since)

        registry.get_history = _get_history

        await scheduler.jobs["insights"].handler(clock.now)

        insights = await scheduler._insight_generator.list_insights()
        assert sorted(str(i.kpi_ids[0]) for i in insights) == sorted(
            str(d.id) for d in (definitions[0], definitions[2])
        )

    @pytest.mark.asyncio
    async def test_inactive_kpis_are_skipped(self, scheduler, registry, mock_executor, clock):
        definition = await _create_kpi(registry)
        await registry.set_status(definition.id, KpiStatus.INACTIVE)

        await scheduler.run_due_jobs(clock.now)

        mock_executor.run_aggregate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_job_failure_is_recorded_and_rescheduled(self, scheduler, clock):
        failing = ScheduledJob("broken", timedelta(minutes=5), AsyncMock(side_effect=RuntimeError("boom")))
        scheduler.jobs["broken"] = failing

        await scheduler.run_due_jobs(clock.now)

        assert failing.last_error == "boom"
        assert failing.running is False
        assert failing.next_run == clock.now + timedelta(minutes=5)
        assert scheduler.jobs["kpi_values"].last_error is None

    @pytest.mark.asyncio
    async def test_running_job_is_not_started_twice(self, scheduler, clock):
        scheduler.jobs["trend_analysis"].running = True

        ran = await scheduler.run_due_jobs(clock.now)

        assert "trend_analysis" not in ran


class TestLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_is_disabled_in_test_environment(self, scheduler, monkeypatch):
        factory = MagicMock()
        monkeypatch.setattr("kpi_engine.services.scheduler.AsyncIOScheduler", factory)

        await scheduler.start()

        factory.assert_not_called()
        assert scheduler.status()["running"] is False

    @pytest.mark.asyncio
    async def test_stop_without_start(self, scheduler):
        await scheduler.stop()
        assert scheduler.status()["running"] is False
