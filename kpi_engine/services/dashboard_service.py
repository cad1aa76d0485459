"""
Dashboard composer.

Resolves dashboard widgets into KPI values (cache first) or their raw
configuration. A widget that cannot be resolved carries its own error and
never fails the whole dashboard.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from uuid import UUID

from kpi_engine.core.exceptions import KpiEngineError, NotFoundError, ValidationError
from kpi_engine.core.logger import logger
from kpi_engine.interfaces.dashboard_repository import IDashboardRepository
from kpi_engine.models.dashboard import (
    Dashboard,
    DashboardCreate,
    DashboardData,
    SectionData,
    Widget,
    WidgetData,
)
from kpi_engine.models.enums import WidgetType
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.utils.datetime_utils import now_utc


class DashboardService:
    """Dashboard definitions and widget data."""

    def __init__(
        self,
        registry: KpiRegistry,
        dashboard_repo: IDashboardRepository,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._registry = registry
        self._dashboard_repo = dashboard_repo
        self._clock = clock

    async def create_dashboard(self, data: DashboardCreate) -> Dashboard:
        if data.refresh_interval <= 0:
            raise ValidationError("refresh_interval must be positive")
        for section in data.sections:
            for widget in section.widgets:
                if widget.type == WidgetType.KPI and widget.kpi_id is None:
                    raise ValidationError(f"KPI widget {widget.id} has no kpi_id")
        return await self._dashboard_repo.create(data)

    async def get_dashboard(self, dashboard_id: UUID) -> Dashboard:
        dashboard = await self._dashboard_repo.get(dashboard_id)
        if dashboard is None:
            raise NotFoundError(f"Dashboard {dashboard_id} not found")
        return dashboard

    async def get_dashboard_data(self, dashboard_id: UUID) -> DashboardData:
        """
        Resolve every widget of a dashboard.

        Raises:
            NotFoundError: If the dashboard itself does not exist.
        """
        dashboard = await self.get_dashboard(dashboard_id)
        sections = []
        for section in dashboard.sections:
            widgets = [await self._resolve_widget(widget) for widget in section.widgets]
            sections.append(
                SectionData(
                    id=section.id,
                    title=section.title,
                    position=section.position,
                    widgets=widgets,
                )
            )
        return DashboardData(dashboard=dashboard, sections=sections, generated_at=self._clock())

    async def _resolve_widget(self, widget: Widget) -> WidgetData:
        if widget.type != WidgetType.KPI:
            return WidgetData(id=widget.id, type=widget.type, data=dict(widget.configuration))
        try:
            if widget.kpi_id is None:
                raise ValidationError("KPI widget has no kpi_id")
            value = await self._registry.get_kpi_value(widget.kpi_id)
            return WidgetData(
                id=widget.id,
                type=widget.type,
                kpi_value=value,
                data=dict(widget.configuration) or None,
            )
        except KpiEngineError as exc:
            logger.warning(f"Widget {widget.id} could not be resolved: {exc.message}")
            return WidgetData(id=widget.id, type=widget.type, error=exc.message)
        except Exception as exc:
            logger.exception(f"Unexpected error resolving widget {widget.id}")
            return WidgetData(id=widget.id, type=widget.type, error=str(exc) or type(exc).__name__)
