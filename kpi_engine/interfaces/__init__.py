"""Abstract interfaces for infrastructure abstraction."""

from kpi_engine.interfaces.aggregate_query_executor import IAggregateQueryExecutor
from kpi_engine.interfaces.alert_repository import IAlertRepository
from kpi_engine.interfaces.alert_rule_repository import IAlertRuleRepository
from kpi_engine.interfaces.cooldown_store import ICooldownStore
from kpi_engine.interfaces.dashboard_repository import IDashboardRepository
from kpi_engine.interfaces.insight_repository import IInsightRepository
from kpi_engine.interfaces.kpi_repository import IKpiRepository
from kpi_engine.interfaces.kpi_value_repository import IKpiValueRepository
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.interfaces.trend_repository import ITrendRepository
from kpi_engine.interfaces.value_cache import IValueCache

__all__ = [
    "IAggregateQueryExecutor",
    "INotifier",
    "IKpiRepository",
    "IKpiValueRepository",
    "ITrendRepository",
    "IAlertRuleRepository",
    "IAlertRepository",
    "IInsightRepository",
    "IDashboardRepository",
    "IValueCache",
    "ICooldownStore",
]
