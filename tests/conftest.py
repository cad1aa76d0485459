"""
Shared fixtures for KPI engine tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kpi_engine.infrastructure.local.alert_repository import SqliteAlertRepository
from kpi_engine.infrastructure.local.alert_rule_repository import SqliteAlertRuleRepository
from kpi_engine.infrastructure.local.cooldown_store import InMemoryCooldownStore
from kpi_engine.infrastructure.local.database import init_db
from kpi_engine.infrastructure.local.kpi_repository import SqliteKpiRepository
from kpi_engine.infrastructure.local.kpi_value_repository import SqliteKpiValueRepository
from kpi_engine.infrastructure.local.value_cache import InMemoryValueCache
from kpi_engine.interfaces.aggregate_query_executor import IAggregateQueryExecutor
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.services.alert_evaluator import AlertEvaluator
from kpi_engine.services.calculation_engine import CalculationEngine
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.utils.datetime_utils import UTC


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'kpi_engine_test.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_executor():
    executor = AsyncMock(spec=IAggregateQueryExecutor)
    executor.run_aggregate.return_value = 0.0
    return executor


@pytest.fixture
def mock_notifier():
    return AsyncMock(spec=INotifier)


# ===========================================
# Wired services over in-memory SQLite
# ===========================================


@pytest.fixture
def value_cache():
    return InMemoryValueCache()


@pytest.fixture
def registry(session_factory, mock_executor, value_cache, clock):
    return KpiRegistry(
        kpi_repo=SqliteKpiRepository(session_factory),
        value_repo=SqliteKpiValueRepository(session_factory),
        engine=CalculationEngine(mock_executor, query_timeout=1.0, clock=clock),
        cache=value_cache,
        clock=clock,
    )


@pytest.fixture
def alert_evaluator(session_factory, mock_notifier, clock, registry):
    """Alert evaluator hooked into the registry's record path."""
    evaluator = AlertEvaluator(
        kpi_repo=SqliteKpiRepository(session_factory),
        rule_repo=SqliteAlertRuleRepository(session_factory),
        alert_repo=SqliteAlertRepository(session_factory),
        notifier=mock_notifier,
        cooldowns=InMemoryCooldownStore(),
        notify_timeout=1.0,
        clock=clock,
    )
    registry.set_alert_evaluator(evaluator)
    return evaluator
