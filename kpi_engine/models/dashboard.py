"""
Dashboard definition and resolved-data models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from kpi_engine.models.enums import WidgetType
from kpi_engine.models.kpi import KpiValue


class WidgetPosition(BaseModel):
    x: int = 0
    y: int = 0
    w: int = Field(4, ge=1)
    h: int = Field(2, ge=1)


class Widget(BaseModel):
    """A single dashboard widget."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: WidgetType
    kpi_id: Optional[UUID] = None
    configuration: dict[str, Any] = Field(default_factory=dict)


class DashboardSection(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str = ""
    position: WidgetPosition = Field(default_factory=WidgetPosition)
    widgets: list[Widget] = Field(default_factory=list)


class DashboardCreate(BaseModel):
    """Create a new dashboard."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    sections: list[DashboardSection] = Field(default_factory=list)
    refresh_interval: int = 300
    auto_refresh: bool = True
    created_by: str = "system"


class Dashboard(DashboardCreate):
    """Dashboard definition with metadata."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WidgetData(BaseModel):
    """Resolved widget: a KPI value, raw configuration, or an error."""

    id: str
    type: WidgetType
    kpi_value: Optional[KpiValue] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class SectionData(BaseModel):
    id: str
    title: str
    position: WidgetPosition
    widgets: list[WidgetData] = Field(default_factory=list)


class DashboardData(BaseModel):
    """Dashboard definition plus per-widget data."""

    dashboard: Dashboard
    sections: list[SectionData] = Field(default_factory=list)
    generated_at: datetime
