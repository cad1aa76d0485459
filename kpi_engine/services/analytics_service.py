"""
Analytics facade.

The single entry point an API layer would call. Accepts either pydantic
models or plain dicts; malformed input surfaces as ValidationError.
"""

from __future__ import annotations

from typing import Any, Optional, Type, TypeVar, Union
from uuid import UUID

import pydantic

from kpi_engine.core.exceptions import ValidationError
from kpi_engine.models.alert import Alert, AlertRuleCreate
from kpi_engine.models.dashboard import DashboardCreate, DashboardData
from kpi_engine.models.enums import KpiCategory, KpiStatus, Period
from kpi_engine.models.insight import BusinessInsight, InsightFilters
from kpi_engine.models.kpi import KpiDefinition, KpiDefinitionCreate, KpiDefinitionUpdate, KpiValue
from kpi_engine.models.trend import TrendAnalysis
from kpi_engine.services.alert_evaluator import AlertEvaluator
from kpi_engine.services.dashboard_service import DashboardService
from kpi_engine.services.insight_generator import InsightGenerator
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.services.trend_analyzer import TrendAnalyzer

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)


def _coerce(model: Type[ModelT], spec: Union[ModelT, dict[str, Any], None]) -> ModelT:
    if isinstance(spec, model):
        return spec
    try:
        return model.model_validate(spec or {})
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid {model.__name__}", details=exc.errors(include_url=False)
        ) from exc


class AnalyticsService:
    """Facade over registry, trends, alerts, insights and dashboards."""

    def __init__(
        self,
        registry: KpiRegistry,
        trend_analyzer: TrendAnalyzer,
        alert_evaluator: AlertEvaluator,
        insight_generator: InsightGenerator,
        dashboard_service: DashboardService,
    ):
        self._registry = registry
        self._trend_analyzer = trend_analyzer
        self._alert_evaluator = alert_evaluator
        self._insight_generator = insight_generator
        self._dashboard_service = dashboard_service

    # KPIs

    async def create_kpi(self, spec: Union[KpiDefinitionCreate, dict[str, Any]]) -> UUID:
        definition = await self._registry.create_kpi(_coerce(KpiDefinitionCreate, spec))
        return definition.id

    async def update_kpi(
        self, kpi_id: UUID, spec: Union[KpiDefinitionUpdate, dict[str, Any]]
    ) -> KpiDefinition:
        return await self._registry.update_kpi(kpi_id, _coerce(KpiDefinitionUpdate, spec))

    async def get_kpi(self, kpi_id: UUID) -> KpiDefinition:
        return await self._registry.get_kpi(kpi_id)

    async def list_kpis(
        self,
        category: Optional[KpiCategory] = None,
        status: Optional[KpiStatus] = None,
        created_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[KpiDefinition]:
        return await self._registry.list_kpis(
            category=category, status=status, created_by=created_by, limit=limit
        )

    async def record_value(self, kpi_id: UUID) -> KpiValue:
        return await self._registry.record_value(kpi_id)

    async def get_kpi_value(self, kpi_id: UUID, period: Optional[Period] = None) -> Optional[KpiValue]:
        return await self._registry.get_kpi_value(kpi_id, period)

    # Trends

    async def get_trend_analysis(
        self, kpi_id: UUID, lookback: Optional[str] = None, refresh: bool = False
    ) -> TrendAnalysis:
        """Latest persisted analysis, or a fresh one when forced or missing."""
        if not refresh:
            latest = await self._trend_analyzer.get_latest(kpi_id, lookback)
            if latest is not None:
                return latest
        return await self._trend_analyzer.analyze(kpi_id, lookback)

    # Alerts

    async def create_alert_rule(self, spec: Union[AlertRuleCreate, dict[str, Any]]) -> UUID:
        rule = await self._alert_evaluator.create_rule(_coerce(AlertRuleCreate, spec))
        return rule.id

    async def list_alerts(self, kpi_id: Optional[UUID] = None, limit: int = 50) -> list[Alert]:
        return await self._alert_evaluator.list_alerts(kpi_id=kpi_id, limit=limit)

    async def acknowledge_alert(self, alert_id: UUID) -> Alert:
        return await self._alert_evaluator.acknowledge_alert(alert_id)

    # Insights

    async def generate_insights(
        self, kpi_ids: list[UUID], lookback: Optional[str] = None
    ) -> list[BusinessInsight]:
        return await self._insight_generator.generate(kpi_ids, lookback)

    async def list_insights(
        self, filters: Union[InsightFilters, dict[str, Any], None] = None
    ) -> list[BusinessInsight]:
        return await self._insight_generator.list_insights(_coerce(InsightFilters, filters))

    async def acknowledge_insight(self, insight_id: UUID, who: str) -> BusinessInsight:
        return await self._insight_generator.acknowledge_insight(insight_id, who)

    # Dashboards

    async def create_dashboard(self, spec: Union[DashboardCreate, dict[str, Any]]) -> UUID:
        dashboard = await self._dashboard_service.create_dashboard(_coerce(DashboardCreate, spec))
        return dashboard.id

    async def get_dashboard_data(self, dashboard_id: UUID) -> DashboardData:
        return await self._dashboard_service.get_dashboard_data(dashboard_id)
