"""
Alert rule and alert record models.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from kpi_engine.models.enums import AlertOperator, AlertSeverity

RANGE_OPERATORS = (AlertOperator.BETWEEN, AlertOperator.NOT_BETWEEN)


class AlertCondition(BaseModel):
    """Threshold condition evaluated against a KPI value."""

    operator: AlertOperator
    value: Union[float, list[float]]
    duration_minutes: Optional[int] = Field(
        None, description="Condition must hold continuously this long before firing"
    )


class AlertRuleBase(BaseModel):
    """Base fields for alert rules."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    kpi_id: UUID
    condition: AlertCondition
    severity: AlertSeverity = AlertSeverity.WARNING
    channels: list[str] = Field(default_factory=list)
    recipients: list[str] = Field(default_factory=list)
    cooldown_minutes: int = 15
    active: bool = True
    created_by: str = "system"


class AlertRuleCreate(AlertRuleBase):
    """Create a new alert rule."""

    pass


class AlertRule(AlertRuleBase):
    """Alert rule with metadata."""

    id: UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Alert(BaseModel):
    """A fired alert, persisted whether or not every channel delivered."""

    id: UUID
    rule_id: UUID
    kpi_id: UUID
    metric: str
    severity: AlertSeverity
    message: str
    value: float
    data: dict[str, Any] = Field(default_factory=dict)
    delivered_channels: list[str] = Field(default_factory=list)
    failed_channels: list[str] = Field(default_factory=list)
    acknowledged: bool = False
    created_at: datetime

    class Config:
        from_attributes = True


class AlertPayload(BaseModel):
    """Channel-agnostic notification body."""

    title: str
    message: str
    severity: AlertSeverity
    data: dict[str, Any] = Field(default_factory=dict)
