"""
KPI definition and value models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from kpi_engine.models.enums import (
    AggregateFunction,
    CalculationType,
    ChartType,
    KpiCategory,
    KpiStatus,
    Period,
    TargetDirection,
    ValueStatus,
    ValueTrend,
)
from kpi_engine.models.query import FilterSpec


class TimeRangeSpec(BaseModel):
    """Time window a KPI aggregates over."""

    field: str = "created_at"
    period: Period = Period.MONTH
    start: Optional[datetime] = Field(None, description="Required for CUSTOM period")
    end: Optional[datetime] = Field(None, description="Required for CUSTOM period")


class FormulaVariable(BaseModel):
    """Named sub-metric referenced by a formula."""

    aggregate: AggregateFunction = AggregateFunction.SUM
    field: str
    filters: list[FilterSpec] = Field(
        default_factory=list, description="Extra filters on top of the KPI filters"
    )


class Calculation(BaseModel):
    """How a KPI value is derived from a data source."""

    type: CalculationType
    data_source: str = "orders"
    fields: list[str] = Field(default_factory=list)
    filters: list[FilterSpec] = Field(default_factory=list)
    time_range: TimeRangeSpec = Field(default_factory=TimeRangeSpec)
    formula: Optional[str] = None
    variables: dict[str, FormulaVariable] = Field(default_factory=dict)


class Visualization(BaseModel):
    """Rendering hints for dashboards."""

    chart_type: ChartType = ChartType.NUMBER
    color: Optional[str] = None
    show_target: bool = True
    show_change: bool = True


class KpiDefinitionBase(BaseModel):
    """Base fields for KPI definitions."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: KpiCategory = KpiCategory.CUSTOM
    calculation: Calculation
    target: Optional[float] = None
    target_direction: TargetDirection = TargetDirection.HIGHER
    unit: str = ""
    visualization: Visualization = Field(default_factory=Visualization)
    status: KpiStatus = KpiStatus.ACTIVE
    created_by: str = "system"


class KpiDefinitionCreate(KpiDefinitionBase):
    """Create a new KPI definition."""

    refresh_interval: Optional[int] = Field(
        None, description="Seconds between recomputations; defaults from settings"
    )


class KpiDefinitionUpdate(BaseModel):
    """Update KPI definition fields."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[KpiCategory] = None
    calculation: Optional[Calculation] = None
    target: Optional[float] = None
    target_direction: Optional[TargetDirection] = None
    unit: Optional[str] = None
    visualization: Optional[Visualization] = None
    refresh_interval: Optional[int] = None
    status: Optional[KpiStatus] = None


class KpiDefinition(KpiDefinitionBase):
    """KPI definition with metadata."""

    id: UUID
    refresh_interval: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class KpiValue(BaseModel):
    """One computed, immutable KPI snapshot."""

    id: UUID
    kpi_id: UUID
    value: float
    previous_value: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    target: Optional[float] = None
    target_achievement: Optional[float] = None
    trend: ValueTrend = ValueTrend.STABLE
    status: ValueStatus = ValueStatus.NEUTRAL
    calculated_at: datetime
    period: Period

    class Config:
        from_attributes = True
