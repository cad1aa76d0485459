"""
Dependency wiring.

Each factory is cached so the process shares one instance of every
repository, store and service.
"""

from functools import lru_cache

from kpi_engine.core.config import get_settings
from kpi_engine.infrastructure.local.aggregate_query_executor import SqlAlchemyAggregateQueryExecutor
from kpi_engine.infrastructure.local.alert_repository import SqliteAlertRepository
from kpi_engine.infrastructure.local.alert_rule_repository import SqliteAlertRuleRepository
from kpi_engine.infrastructure.local.channel_notifier import ChannelRouterNotifier
from kpi_engine.infrastructure.local.cooldown_store import InMemoryCooldownStore
from kpi_engine.infrastructure.local.dashboard_repository import SqliteDashboardRepository
from kpi_engine.infrastructure.local.database import get_session_factory
from kpi_engine.infrastructure.local.insight_repository import SqliteInsightRepository
from kpi_engine.infrastructure.local.kpi_repository import SqliteKpiRepository
from kpi_engine.infrastructure.local.kpi_value_repository import SqliteKpiValueRepository
from kpi_engine.infrastructure.local.log_notifier import LogNotifier
from kpi_engine.infrastructure.local.trend_repository import SqliteTrendRepository
from kpi_engine.infrastructure.local.value_cache import InMemoryValueCache
from kpi_engine.infrastructure.local.webhook_notifier import WebhookNotifier
from kpi_engine.interfaces.aggregate_query_executor import IAggregateQueryExecutor
from kpi_engine.interfaces.cooldown_store import ICooldownStore
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.interfaces.value_cache import IValueCache
from kpi_engine.services.alert_evaluator import AlertEvaluator
from kpi_engine.services.analytics_service import AnalyticsService
from kpi_engine.services.calculation_engine import CalculationEngine
from kpi_engine.services.dashboard_service import DashboardService
from kpi_engine.services.insight_generator import InsightGenerator
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.services.scheduler import KpiScheduler
from kpi_engine.services.trend_analyzer import TrendAnalyzer


@lru_cache()
def get_db_session_factory():
    """Get the shared session factory for engine state."""
    return get_session_factory()


@lru_cache()
def get_aggregate_query_executor() -> IAggregateQueryExecutor:
    """Get aggregate query executor instance."""
    return SqlAlchemyAggregateQueryExecutor()


@lru_cache()
def get_notifier() -> INotifier:
    """Get notifier routing alert channels to configured transports."""
    settings = get_settings()
    transports: dict[str, INotifier] = {"log": LogNotifier()}
    if settings.WEBHOOK_URL:
        transports["webhook"] = WebhookNotifier(
            url=settings.WEBHOOK_URL,
            secret=settings.WEBHOOK_SECRET,
            timeout=settings.NOTIFY_TIMEOUT_SECONDS,
        )
    return ChannelRouterNotifier(transports)


@lru_cache()
def get_value_cache() -> IValueCache:
    """Get KPI value cache instance."""
    return InMemoryValueCache()


@lru_cache()
def get_cooldown_store() -> ICooldownStore:
    """Get alert cooldown store instance."""
    return InMemoryCooldownStore()


@lru_cache()
def get_alert_evaluator() -> AlertEvaluator:
    """Get alert evaluator instance."""
    session_factory = get_db_session_factory()
    return AlertEvaluator(
        kpi_repo=SqliteKpiRepository(session_factory),
        rule_repo=SqliteAlertRuleRepository(session_factory),
        alert_repo=SqliteAlertRepository(session_factory),
        notifier=get_notifier(),
        cooldowns=get_cooldown_store(),
    )


@lru_cache()
def get_kpi_registry() -> KpiRegistry:
    """Get KPI registry instance."""
    session_factory = get_db_session_factory()
    return KpiRegistry(
        kpi_repo=SqliteKpiRepository(session_factory),
        value_repo=SqliteKpiValueRepository(session_factory),
        engine=CalculationEngine(get_aggregate_query_executor()),
        cache=get_value_cache(),
        alert_evaluator=get_alert_evaluator(),
    )


@lru_cache()
def get_trend_analyzer() -> TrendAnalyzer:
    """Get trend analyzer instance."""
    return TrendAnalyzer(get_kpi_registry(), SqliteTrendRepository(get_db_session_factory()))


@lru_cache()
def get_insight_generator() -> InsightGenerator:
    """Get insight generator instance."""
    return InsightGenerator(get_kpi_registry(), SqliteInsightRepository(get_db_session_factory()))


@lru_cache()
def get_dashboard_service() -> DashboardService:
    """Get dashboard composer instance."""
    return DashboardService(get_kpi_registry(), SqliteDashboardRepository(get_db_session_factory()))


@lru_cache()
def get_analytics_service() -> AnalyticsService:
    """Get analytics facade instance."""
    return AnalyticsService(
        registry=get_kpi_registry(),
        trend_analyzer=get_trend_analyzer(),
        alert_evaluator=get_alert_evaluator(),
        insight_generator=get_insight_generator(),
        dashboard_service=get_dashboard_service(),
    )


@lru_cache()
def get_kpi_scheduler() -> KpiScheduler:
    """Get KPI scheduler instance."""
    return KpiScheduler(
        registry=get_kpi_registry(),
        trend_analyzer=get_trend_analyzer(),
        alert_evaluator=get_alert_evaluator(),
        insight_generator=get_insight_generator(),
    )
