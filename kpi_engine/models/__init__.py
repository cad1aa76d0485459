"""Pydantic models (schemas) for the KPI engine."""

from kpi_engine.models.enums import (
    AggregateFunction,
    AlertOperator,
    AlertSeverity,
    AnomalyType,
    CalculationType,
    ChartType,
    FilterOperator,
    InsightSeverity,
    InsightType,
    KpiCategory,
    KpiStatus,
    Period,
    TargetDirection,
    TrendDirection,
    TrendStrength,
    ValueStatus,
    ValueTrend,
    WidgetType,
)
from kpi_engine.models.query import AggregateQuery, FilterSpec
from kpi_engine.models.kpi import (
    Calculation,
    FormulaVariable,
    KpiDefinition,
    KpiDefinitionCreate,
    KpiDefinitionUpdate,
    KpiValue,
    TimeRangeSpec,
    Visualization,
)
from kpi_engine.models.trend import Anomaly, DataPoint, Forecast, ForecastPoint, TrendAnalysis
from kpi_engine.models.alert import (
    Alert,
    AlertCondition,
    AlertPayload,
    AlertRule,
    AlertRuleCreate,
)
from kpi_engine.models.insight import BusinessInsight, BusinessInsightCreate, InsightFilters
from kpi_engine.models.dashboard import (
    Dashboard,
    DashboardCreate,
    DashboardData,
    DashboardSection,
    SectionData,
    Widget,
    WidgetData,
    WidgetPosition,
)

__all__ = [
    # Enums
    "AggregateFunction",
    "AlertOperator",
    "AlertSeverity",
    "AnomalyType",
    "CalculationType",
    "ChartType",
    "FilterOperator",
    "InsightSeverity",
    "InsightType",
    "KpiCategory",
    "KpiStatus",
    "Period",
    "TargetDirection",
    "TrendDirection",
    "TrendStrength",
    "ValueStatus",
    "ValueTrend",
    "WidgetType",
    # Queries
    "AggregateQuery",
    "FilterSpec",
    # KPI
    "Calculation",
    "FormulaVariable",
    "KpiDefinition",
    "KpiDefinitionCreate",
    "KpiDefinitionUpdate",
    "KpiValue",
    "TimeRangeSpec",
    "Visualization",
    # Trend
    "Anomaly",
    "DataPoint",
    "Forecast",
    "ForecastPoint",
    "TrendAnalysis",
    # Alerts
    "Alert",
    "AlertCondition",
    "AlertPayload",
    "AlertRule",
    "AlertRuleCreate",
    # Insights
    "BusinessInsight",
    "BusinessInsightCreate",
    "InsightFilters",
    # Dashboards
    "Dashboard",
    "DashboardCreate",
    "DashboardData",
    "DashboardSection",
    "SectionData",
    "Widget",
    "WidgetData",
    "WidgetPosition",
]
