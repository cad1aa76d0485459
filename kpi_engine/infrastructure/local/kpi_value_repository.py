"""
SQLite implementation of KPI value repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import and_, func, select

from kpi_engine.infrastructure.local.database import KpiValueORM, get_session_factory
from kpi_engine.interfaces.kpi_value_repository import IKpiValueRepository
from kpi_engine.models.enums import Period
from kpi_engine.models.kpi import KpiValue
from kpi_engine.utils.datetime_utils import ensure_utc


class SqliteKpiValueRepository(IKpiValueRepository):
    """SQLite implementation of the append-only KPI value history."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: KpiValueORM) -> KpiValue:
        """Convert ORM object to Pydantic model."""
        return KpiValue(
            id=UUID(orm.id),
            kpi_id=UUID(orm.kpi_id),
            value=orm.value,
            previous_value=orm.previous_value,
            change=orm.change,
            change_percent=orm.change_percent,
            target=orm.target,
            target_achievement=orm.target_achievement,
            trend=orm.trend,
            status=orm.status,
            calculated_at=ensure_utc(orm.calculated_at),
            period=orm.period,
        )

    async def append(self, value: KpiValue) -> KpiValue:
        """Persist a new value snapshot."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.max(KpiValueORM.seq)).where(KpiValueORM.kpi_id == str(value.kpi_id))
            )
            last_seq = result.scalar() or 0
            orm = KpiValueORM(
                id=str(value.id),
                kpi_id=str(value.kpi_id),
                value=value.value,
                previous_value=value.previous_value,
                change=value.change,
                change_percent=value.change_percent,
                target=value.target,
                target_achievement=value.target_achievement,
                trend=value.trend.value,
                status=value.status.value,
                period=value.period.value,
                calculated_at=value.calculated_at,
                seq=last_seq + 1,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get_latest(self, kpi_id: UUID, period: Optional[Period] = None) -> Optional[KpiValue]:
        """Get the most recent value, optionally for one period bucket."""
        async with self._session_factory() as session:
            conditions = [KpiValueORM.kpi_id == str(kpi_id)]
            if period is not None:
                conditions.append(KpiValueORM.period == period.value)
            query = (
                select(KpiValueORM)
                .where(and_(*conditions))
                .order_by(KpiValueORM.calculated_at.desc(), KpiValueORM.seq.desc())
                .limit(1)
            )
            result = await session.execute(query)
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_since(
        self, kpi_id: UUID, since: datetime, period: Optional[Period] = None
    ) -> list[KpiValue]:
        """List values calculated at or after ``since``, oldest first."""
        async with self._session_factory() as session:
            conditions = [
                KpiValueORM.kpi_id == str(kpi_id),
                KpiValueORM.calculated_at >= since,
            ]
            if period is not None:
                conditions.append(KpiValueORM.period == period.value)
            query = (
                select(KpiValueORM)
                .where(and_(*conditions))
                .order_by(KpiValueORM.calculated_at.asc(), KpiValueORM.seq.asc())
            )
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def count(self, kpi_id: UUID) -> int:
        """Count stored values for a KPI."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(KpiValueORM).where(KpiValueORM.kpi_id == str(kpi_id))
            )
            return int(result.scalar() or 0)
