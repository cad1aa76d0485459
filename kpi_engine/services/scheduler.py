"""
KPI scheduler.

Drives four periodic jobs over all active KPIs:

- kpi_values: recompute each KPI once its own refresh interval has elapsed
- trend_analysis: hourly trend snapshots
- alert_sweep: re-check the latest value of every KPI against its rules
- insights: generate insights every two hours

Jobs are plain ``ScheduledJob`` records so tests can drive ticks with
``run_due_jobs(now)``. In a running process a single APScheduler interval
job calls the same tick.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import CalculationError
from kpi_engine.core.logger import logger
from kpi_engine.models.enums import KpiStatus
from kpi_engine.models.kpi import KpiDefinition
from kpi_engine.services.alert_evaluator import AlertEvaluator
from kpi_engine.services.insight_generator import InsightGenerator
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.services.trend_analyzer import TrendAnalyzer
from kpi_engine.utils.datetime_utils import now_utc

JobHandler = Callable[[datetime], Awaitable[None]]


@dataclass
class ScheduledJob:
    """A named periodic job and its run bookkeeping."""

    name: str
    interval: timedelta
    handler: JobHandler
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    running: bool = False
    last_error: Optional[str] = None

    def is_due(self, now: datetime) -> bool:
        if self.running:
            return False
        return self.next_run is None or now >= self.next_run


class KpiScheduler:
    """Periodic driver for value, trend, alert and insight work."""

    def __init__(
        self,
        registry: KpiRegistry,
        trend_analyzer: TrendAnalyzer,
        alert_evaluator: AlertEvaluator,
        insight_generator: InsightGenerator,
        clock: Callable[[], datetime] = now_utc,
    ):
        settings = get_settings()
        self._registry = registry
        self._trend_analyzer = trend_analyzer
        self._alert_evaluator = alert_evaluator
        self._insight_generator = insight_generator
        self._clock = clock
        self._semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_KPIS)
        self._last_recompute: dict[str, datetime] = {}
        self._pending: set[asyncio.Task] = set()
        self._scheduler: Optional[AsyncIOScheduler] = None

        tick = timedelta(seconds=settings.SCHEDULER_TICK_SECONDS)
        self._jobs: dict[str, ScheduledJob] = {
            job.name: job
            for job in (
                ScheduledJob("kpi_values", tick, self._recompute_values),
                ScheduledJob(
                    "trend_analysis",
                    timedelta(seconds=settings.TREND_INTERVAL_SECONDS),
                    self._analyze_trends,
                ),
                ScheduledJob(
                    "alert_sweep",
                    timedelta(seconds=settings.ALERT_SWEEP_INTERVAL_SECONDS),
                    self._sweep_alerts,
                ),
                ScheduledJob(
                    "insights",
                    timedelta(seconds=settings.INSIGHT_INTERVAL_SECONDS),
                    self._generate_insights,
                ),
            )
        }

    @property
    def jobs(self) -> dict[str, ScheduledJob]:
        return self._jobs

    # ===========================================
    # Tick
    # ===========================================

    async def run_due_jobs(self, now: Optional[datetime] = None, wait: bool = True) -> list[str]:
        """
        Start every job that is due at ``now``.

        Due jobs run concurrently with each other. A job still running from
        an earlier tick is skipped. With ``wait=False`` the jobs keep running
        in the background and this returns immediately.
        """
        now = now or self._clock()
        due = [job for job in self._jobs.values() if job.is_due(now)]
        for job in due:
            job.running = True

        tasks = [asyncio.create_task(self._run_job(job, now)) for job in due]
        if wait:
            await asyncio.gather(*tasks)
        else:
            for task in tasks:
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
        return [job.name for job in due]

    async def _run_job(self, job: ScheduledJob, now: datetime) -> None:
        try:
            await job.handler(now)
            job.last_error = None
        except Exception as exc:
            job.last_error = str(exc)
            logger.error(f"Scheduled job '{job.name}' failed: {exc}")
        finally:
            job.running = False
            job.last_run = now
            job.next_run = now + job.interval

    async def _tick(self) -> None:
        await self.run_due_jobs(wait=False)

    async def _for_each_kpi(
        self,
        job_name: str,
        definitions: Sequence[KpiDefinition],
        work: Callable[[KpiDefinition], Awaitable[Any]],
    ) -> int:
        """Run ``work`` per KPI with bounded parallelism; returns the success count."""

        async def _bounded(definition: KpiDefinition) -> bool:
            async with self._semaphore:
                try:
                    await work(definition)
                    return True
                except CalculationError as exc:
                    logger.error(f"[{job_name}] KPI {definition.id} calculation failed: {exc.message}")
                except Exception as exc:
                    logger.error(f"[{job_name}] KPI {definition.id} failed: {exc}")
                return False

        results = await asyncio.gather(*(_bounded(d) for d in definitions))
        succeeded = sum(1 for ok in results if ok)
        logger.info(f"[{job_name}] processed {succeeded}/{len(definitions)} KPI(s)")
        return succeeded

    async def _active_kpis(self) -> list[KpiDefinition]:
        return await self._registry.list_kpis(status=KpiStatus.ACTIVE)

    # ===========================================
    # Jobs
    # ===========================================

    async def _recompute_values(self, now: datetime) -> None:
        due = []
        for definition in await self._active_kpis():
            last = self._last_recompute.get(str(definition.id))
            if last is None or now - last >= timedelta(seconds=definition.refresh_interval):
                due.append(definition)
        if not due:
            return

        async def _record(definition: KpiDefinition) -> None:
            self._last_recompute[str(definition.id)] = now
            await self._registry.record_value(definition.id)

        await self._for_each_kpi("kpi_values", due, _record)

    async def _analyze_trends(self, now: datetime) -> None:
        definitions = await self._active_kpis()
        await self._for_each_kpi(
            "trend_analysis", definitions, lambda d: self._trend_analyzer.analyze(d.id)
        )

    async def _sweep_alerts(self, now: datetime) -> None:
        async def _check(definition: KpiDefinition) -> None:
            latest = await self._registry.get_kpi_value(definition.id)
            if latest is not None:
                await self._alert_evaluator.check(definition.id, latest, definition)

        await self._for_each_kpi("alert_sweep", await self._active_kpis(), _check)

    async def _generate_insights(self, now: datetime) -> None:
        definitions = await self._active_kpis()
        if definitions:
            await self._insight_generator.generate([d.id for d in definitions])

    # ===========================================
    # Lifecycle
    # ===========================================

    async def start(self) -> None:
        """Register the tick with APScheduler and start it."""
        settings = get_settings()
        if settings.is_test:
            logger.info("KPI scheduler disabled in test environment")
            return

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._tick,
            IntervalTrigger(seconds=settings.SCHEDULER_TICK_SECONDS),
            id="kpi_engine_tick",
            name="KPI Engine Tick",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=now_utc(),
        )
        self._scheduler.start()
        logger.info(
            "KPI scheduler started:\n"
            f"  - Tick: every {settings.SCHEDULER_TICK_SECONDS}s\n"
            + "\n".join(
                f"  - {job.name}: every {int(job.interval.total_seconds())}s"
                for job in self._jobs.values()
            )
        )

    async def stop(self) -> None:
        """Stop future ticks and wait for jobs already started."""
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("KPI scheduler stopped")
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def status(self) -> dict[str, Any]:
        """Current scheduler state and per-job bookkeeping."""
        return {
            "running": bool(self._scheduler and self._scheduler.running),
            "jobs": [
                {
                    "name": job.name,
                    "interval_seconds": int(job.interval.total_seconds()),
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "next_run": job.next_run.isoformat() if job.next_run else None,
                    "running": job.running,
                    "last_error": job.last_error,
                }
                for job in self._jobs.values()
            ],
        }
