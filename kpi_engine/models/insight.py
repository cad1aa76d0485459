"""
Business insight models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from kpi_engine.models.enums import InsightSeverity, InsightType


class BusinessInsightCreate(BaseModel):
    """Insight produced by the generator, before persistence."""

    type: InsightType
    title: str
    description: str
    severity: InsightSeverity
    kpi_ids: list[UUID] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    actionable: bool = True
    recommendations: list[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None


class BusinessInsight(BusinessInsightCreate):
    """Persisted insight with acknowledgement state."""

    id: UUID
    acknowledged: bool = False
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    generated_at: datetime

    class Config:
        from_attributes = True


class InsightFilters(BaseModel):
    """Filters for listing insights."""

    type: Optional[InsightType] = None
    severity: Optional[InsightSeverity] = None
    acknowledged: Optional[bool] = None
    kpi_id: Optional[UUID] = None
    include_expired: bool = False
    limit: int = Field(50, ge=1, le=500)
