"""
Aggregate query models.

Typed filters and the query shape handed to the aggregate query executor.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field

from kpi_engine.models.enums import AggregateFunction, FilterOperator

Scalar = Union[bool, int, float, str]


class FilterSpec(BaseModel):
    """A single typed filter on an allowlisted field."""

    field: str = Field(..., min_length=1, max_length=100)
    operator: FilterOperator = FilterOperator.EQ
    value: Union[Scalar, list[Scalar]]


class AggregateQuery(BaseModel):
    """Time-bounded, filtered aggregate over one data source."""

    data_source: str
    function: AggregateFunction
    field: str
    time_field: str = "created_at"
    start: datetime
    end: datetime
    filters: list[FilterSpec] = Field(default_factory=list)
    kpi_id: Optional[str] = Field(None, description="Calling KPI, for logging only")
