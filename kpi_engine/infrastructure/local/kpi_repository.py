"""
SQLite implementation of KPI definition repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from kpi_engine.core.exceptions import NotFoundError
from kpi_engine.infrastructure.local.database import KpiDefinitionORM, get_session_factory
from kpi_engine.interfaces.kpi_repository import IKpiRepository
from kpi_engine.models.enums import KpiCategory, KpiStatus
from kpi_engine.models.kpi import KpiDefinition, KpiDefinitionCreate, KpiDefinitionUpdate
from kpi_engine.utils.datetime_utils import ensure_utc, now_utc


class SqliteKpiRepository(IKpiRepository):
    """SQLite implementation of KPI definition repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: KpiDefinitionORM) -> KpiDefinition:
        """Convert ORM object to Pydantic model."""
        return KpiDefinition(
            id=UUID(orm.id),
            name=orm.name,
            description=orm.description,
            category=orm.category,
            calculation=orm.calculation,
            target=orm.target,
            target_direction=orm.target_direction,
            unit=orm.unit or "",
            visualization=orm.visualization or {},
            refresh_interval=orm.refresh_interval,
            status=orm.status,
            created_by=orm.created_by,
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def create(self, data: KpiDefinitionCreate, refresh_interval: int) -> KpiDefinition:
        """Create a new KPI definition."""
        async with self._session_factory() as session:
            now = now_utc()
            orm = KpiDefinitionORM(
                id=str(uuid4()),
                name=data.name,
                description=data.description,
                category=data.category.value,
                calculation=data.calculation.model_dump(mode="json"),
                target=data.target,
                target_direction=data.target_direction.value,
                unit=data.unit,
                visualization=data.visualization.model_dump(mode="json"),
                refresh_interval=refresh_interval,
                status=data.status.value,
                created_by=data.created_by,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, kpi_id: UUID) -> Optional[KpiDefinition]:
        """Get a KPI definition by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KpiDefinitionORM).where(KpiDefinitionORM.id == str(kpi_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list(
        self,
        category: Optional[KpiCategory] = None,
        status: Optional[KpiStatus] = None,
        created_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[KpiDefinition]:
        """List KPI definitions, oldest first. No limit returns every match."""
        async with self._session_factory() as session:
            conditions = []
            if category is not None:
                conditions.append(KpiDefinitionORM.category == category.value)
            if status is not None:
                conditions.append(KpiDefinitionORM.status == status.value)
            if created_by is not None:
                conditions.append(KpiDefinitionORM.created_by == created_by)

            query = select(KpiDefinitionORM)
            if conditions:
                query = query.where(and_(*conditions))
            query = query.order_by(KpiDefinitionORM.created_at.asc())
            if limit is not None:
                query = query.limit(limit)
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def update(self, kpi_id: UUID, update: KpiDefinitionUpdate) -> KpiDefinition:
        """Update a KPI definition."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KpiDefinitionORM).where(KpiDefinitionORM.id == str(kpi_id))
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"KPI {kpi_id} not found")

            for field in update.model_fields_set:
                value = getattr(update, field)
                if value is None and field != "target":
                    continue
                if field in ("calculation", "visualization"):
                    value = value.model_dump(mode="json")
                elif field in ("category", "target_direction", "status"):
                    value = value.value
                setattr(orm, field, value)

            orm.updated_at = now_utc()
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def delete(self, kpi_id: UUID) -> bool:
        """Delete a KPI definition."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(KpiDefinitionORM).where(KpiDefinitionORM.id == str(kpi_id))
            )
            orm = result.scalar_one_or_none()
            if not orm:
                return False

            await session.delete(orm)
            await session.commit()
            return True
