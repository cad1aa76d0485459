"""
Enum definitions for the KPI engine.

These enums are used across models and provide type-safe status values.
"""

from enum import Enum


class KpiCategory(str, Enum):
    """Business area a KPI belongs to."""

    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    CUSTOMER = "customer"
    MARKETING = "marketing"
    INVENTORY = "inventory"
    CUSTOM = "custom"


class CalculationType(str, Enum):
    """How a KPI value is computed from the data source."""

    SUM = "sum"
    AVERAGE = "average"
    COUNT = "count"
    PERCENTAGE = "percentage"
    RATIO = "ratio"
    FORMULA = "formula"


class AggregateFunction(str, Enum):
    """Aggregate functions the query executor must support."""

    SUM = "sum"
    AVERAGE = "average"
    COUNT = "count"


class FilterOperator(str, Enum):
    """Comparison operators allowed in typed filters."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"


class Period(str, Enum):
    """Time bucket a KPI is computed over."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


class TargetDirection(str, Enum):
    """Which side of the target is desirable."""

    HIGHER = "higher"
    LOWER = "lower"
    EXACT = "exact"


class KpiStatus(str, Enum):
    """KPI definition lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class ChartType(str, Enum):
    """Visualization hint for dashboards."""

    NUMBER = "number"
    GAUGE = "gauge"
    PROGRESS = "progress"
    SPARKLINE = "sparkline"
    TREND = "trend"


class ValueTrend(str, Enum):
    """Single-step movement of a KPI value."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    VOLATILE = "volatile"


class ValueStatus(str, Enum):
    """Health of a KPI value relative to its target."""

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"
    NEUTRAL = "neutral"


class TrendDirection(str, Enum):
    """Windowed-series movement of a KPI."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    VOLATILE = "volatile"


class TrendStrength(str, Enum):
    """Magnitude of a series trend."""

    WEAK = "weak"
    MODERATE = "moderate"
    STRONG = "strong"


class AnomalyType(str, Enum):
    """Kind of anomalous point in a series."""

    SPIKE = "spike"
    DROP = "drop"
    OUTLIER = "outlier"


class AlertOperator(str, Enum):
    """Alert rule comparison operators."""

    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    EQ = "="
    NE = "!="
    BETWEEN = "between"
    NOT_BETWEEN = "not_between"


class AlertSeverity(str, Enum):
    """Alert rule severity."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class InsightType(str, Enum):
    """Category of a generated insight."""

    TREND = "trend"
    ANOMALY = "anomaly"
    OPPORTUNITY = "opportunity"
    RISK = "risk"
    ACHIEVEMENT = "achievement"


class InsightSeverity(str, Enum):
    """Insight severity; positive marks good news."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    POSITIVE = "positive"


class WidgetType(str, Enum):
    """Dashboard widget kinds."""

    KPI = "kpi"
    CHART = "chart"
    TABLE = "table"
    TREND = "trend"
    ALERT = "alert"
