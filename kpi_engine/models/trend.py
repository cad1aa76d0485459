"""
Trend analysis models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from kpi_engine.models.enums import AnomalyType, TrendDirection, TrendStrength


class DataPoint(BaseModel):
    """A single (time, value) sample."""

    date: datetime
    value: float


class Anomaly(BaseModel):
    """A point that deviates from the series mean."""

    date: datetime
    value: float
    deviation: float = Field(..., description="Absolute z-score")
    type: AnomalyType


class ForecastPoint(BaseModel):
    date: datetime
    value: float
    confidence: float = Field(..., ge=0, le=1)


class Forecast(BaseModel):
    periods: int
    predictions: list[ForecastPoint] = Field(default_factory=list)


class TrendAnalysis(BaseModel):
    """Windowed-series state of one KPI, recomputed wholesale."""

    id: UUID
    kpi_id: UUID
    metric: str
    lookback: str
    data_points: list[DataPoint] = Field(default_factory=list)
    direction: TrendDirection = TrendDirection.STABLE
    strength: TrendStrength = TrendStrength.WEAK
    confidence: float = Field(0.0, ge=0, le=1)
    change_percent: float = 0.0
    # Not computed; always None
    seasonality: Optional[dict[str, Any]] = None
    anomalies: list[Anomaly] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    forecast: Optional[Forecast] = None
    generated_at: datetime

    class Config:
        from_attributes = True
