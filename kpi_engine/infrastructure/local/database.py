"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models for engine state and the
async engine/session helpers shared by every local repository.
"""

from functools import lru_cache
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from kpi_engine.core.config import get_settings
from kpi_engine.utils.datetime_utils import now_utc


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ===========================================
# ORM Models
# ===========================================


class KpiDefinitionORM(Base):
    """KPI definition ORM model."""

    __tablename__ = "kpi_definitions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(20), nullable=False, index=True)
    calculation = Column(JSON, nullable=False)
    target = Column(Float, nullable=True)
    target_direction = Column(String(10), default="higher")
    unit = Column(String(50), default="")
    visualization = Column(JSON, nullable=True)
    refresh_interval = Column(Integer, nullable=False, default=300)
    status = Column(String(20), default="active", index=True)
    created_by = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime, default=now_utc)
    updated_at = Column(DateTime, default=now_utc, onupdate=now_utc)


class KpiValueORM(Base):
    """KPI value ORM model (append-only)."""

    __tablename__ = "kpi_values"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    kpi_id = Column(String(36), nullable=False, index=True)
    value = Column(Float, nullable=False)
    previous_value = Column(Float, nullable=True)
    change = Column(Float, nullable=True)
    change_percent = Column(Float, nullable=True)
    target = Column(Float, nullable=True)
    target_achievement = Column(Float, nullable=True)
    trend = Column(String(10), default="stable")
    status = Column(String(10), default="neutral")
    period = Column(String(10), nullable=False, index=True)
    calculated_at = Column(DateTime, nullable=False, index=True)
    # Insertion order breaks ties between values sharing a timestamp
    seq = Column(Integer, nullable=False, default=0, index=True)


class TrendAnalysisORM(Base):
    """Trend analysis snapshot ORM model."""

    __tablename__ = "kpi_trend_analyses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    kpi_id = Column(String(36), nullable=False, index=True)
    metric = Column(String(200), nullable=False)
    lookback = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False)
    generated_at = Column(DateTime, nullable=False, index=True)


class AlertRuleORM(Base):
    """Alert rule ORM model."""

    __tablename__ = "kpi_alert_rules"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    kpi_id = Column(String(36), nullable=False, index=True)
    condition = Column(JSON, nullable=False)
    severity = Column(String(10), default="warning")
    channels = Column(JSON, nullable=True, default=list)
    recipients = Column(JSON, nullable=True, default=list)
    cooldown_minutes = Column(Integer, default=15)
    active = Column(Boolean, default=True, index=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=now_utc)
    updated_at = Column(DateTime, default=now_utc, onupdate=now_utc)


class AlertORM(Base):
    """Fired alert ORM model."""

    __tablename__ = "kpi_alerts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    rule_id = Column(String(36), nullable=False, index=True)
    kpi_id = Column(String(36), nullable=False, index=True)
    metric = Column(String(200), nullable=False)
    severity = Column(String(10), nullable=False)
    message = Column(Text, nullable=False)
    value = Column(Float, nullable=False)
    data = Column(JSON, nullable=True, default=dict)
    delivered_channels = Column(JSON, nullable=True, default=list)
    failed_channels = Column(JSON, nullable=True, default=list)
    acknowledged = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=now_utc, index=True)


class BusinessInsightORM(Base):
    """Business insight ORM model."""

    __tablename__ = "business_insights"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    type = Column(String(20), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(String(10), nullable=False, index=True)
    kpi_ids = Column(JSON, nullable=False, default=list)
    data = Column(JSON, nullable=True, default=dict)
    actionable = Column(Boolean, default=True)
    recommendations = Column(JSON, nullable=True, default=list)
    expires_at = Column(DateTime, nullable=True, index=True)
    acknowledged = Column(Boolean, default=False, index=True)
    acknowledged_by = Column(String(255), nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)
    generated_at = Column(DateTime, default=now_utc, index=True)


class DashboardORM(Base):
    """Dashboard definition ORM model."""

    __tablename__ = "dashboards"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sections = Column(JSON, nullable=False, default=list)
    refresh_interval = Column(Integer, default=300)
    auto_refresh = Column(Boolean, default=True)
    created_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=now_utc)
    updated_at = Column(DateTime, default=now_utc, onupdate=now_utc)


# ===========================================
# Engine / session helpers
# ===========================================


@lru_cache()
def get_engine(url: Optional[str] = None) -> AsyncEngine:
    """Get async engine instance (one per URL)."""
    settings = get_settings()
    return create_async_engine(url or settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory(engine: Optional[AsyncEngine] = None):
    """Get async session factory."""
    return async_sessionmaker(engine or get_engine(), class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: Optional[AsyncEngine] = None):
    """Initialize database tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
