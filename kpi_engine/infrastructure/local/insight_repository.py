"""
SQLite implementation of business insight repository.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, or_, select

from kpi_engine.infrastructure.local.database import BusinessInsightORM, get_session_factory
from kpi_engine.interfaces.insight_repository import IInsightRepository
from kpi_engine.models.insight import BusinessInsight, BusinessInsightCreate, InsightFilters
from kpi_engine.utils.datetime_utils import ensure_utc


class SqliteInsightRepository(IInsightRepository):
    """SQLite implementation of business insight repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: BusinessInsightORM) -> BusinessInsight:
        """Convert ORM object to Pydantic model."""
        return BusinessInsight(
            id=UUID(orm.id),
            type=orm.type,
            title=orm.title,
            description=orm.description,
            severity=orm.severity,
            kpi_ids=[UUID(k) for k in orm.kpi_ids or []],
            data=orm.data or {},
            actionable=bool(orm.actionable),
            recommendations=orm.recommendations or [],
            expires_at=ensure_utc(orm.expires_at) if orm.expires_at else None,
            acknowledged=bool(orm.acknowledged),
            acknowledged_by=orm.acknowledged_by,
            acknowledged_at=ensure_utc(orm.acknowledged_at) if orm.acknowledged_at else None,
            generated_at=ensure_utc(orm.generated_at),
        )

    async def create(self, data: BusinessInsightCreate, generated_at: datetime) -> BusinessInsight:
        """Persist a generated insight."""
        async with self._session_factory() as session:
            orm = BusinessInsightORM(
                id=str(uuid4()),
                type=data.type.value,
                title=data.title,
                description=data.description,
                severity=data.severity.value,
                kpi_ids=[str(k) for k in data.kpi_ids],
                data=data.data,
                actionable=data.actionable,
                recommendations=list(data.recommendations),
                expires_at=data.expires_at,
                acknowledged=False,
                generated_at=generated_at,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, insight_id: UUID) -> Optional[BusinessInsight]:
        """Get an insight by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(BusinessInsightORM).where(BusinessInsightORM.id == str(insight_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list(self, filters: InsightFilters, now: datetime) -> list[BusinessInsight]:
        """List insights matching filters, newest first."""
        async with self._session_factory() as session:
            conditions = []
            if filters.type is not None:
                conditions.append(BusinessInsightORM.type == filters.type.value)
            if filters.severity is not None:
                conditions.append(BusinessInsightORM.severity == filters.severity.value)
            if filters.acknowledged is not None:
                conditions.append(BusinessInsightORM.acknowledged.is_(filters.acknowledged))
            if not filters.include_expired:
                conditions.append(
                    or_(BusinessInsightORM.expires_at.is_(None), BusinessInsightORM.expires_at > now)
                )

            query = select(BusinessInsightORM)
            if conditions:
                query = query.where(and_(*conditions))
            query = query.order_by(BusinessInsightORM.generated_at.desc())
            result = await session.execute(query)
            insights = [self._orm_to_model(orm) for orm in result.scalars().all()]

        # kpi_ids is a JSON list; membership is filtered in Python
        if filters.kpi_id is not None:
            insights = [i for i in insights if filters.kpi_id in i.kpi_ids]
        return insights[: filters.limit]

    async def acknowledge(
        self, insight_id: UUID, acknowledged_by: str, acknowledged_at: datetime
    ) -> Optional[BusinessInsight]:
        """Mark an insight acknowledged."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(BusinessInsightORM).where(BusinessInsightORM.id == str(insight_id))
            )
            orm = result.scalar_one_or_none()
            if not orm:
                return None
            if not orm.acknowledged:
                orm.acknowledged = True
                orm.acknowledged_by = acknowledged_by
                orm.acknowledged_at = acknowledged_at
                await session.commit()
                await session.refresh(orm)
            return self._orm_to_model(orm)
