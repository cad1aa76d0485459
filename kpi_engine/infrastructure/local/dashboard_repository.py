"""
SQLite implementation of dashboard repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select

from kpi_engine.infrastructure.local.database import DashboardORM, get_session_factory
from kpi_engine.interfaces.dashboard_repository import IDashboardRepository
from kpi_engine.models.dashboard import Dashboard, DashboardCreate
from kpi_engine.utils.datetime_utils import ensure_utc, now_utc


class SqliteDashboardRepository(IDashboardRepository):
    """SQLite implementation of dashboard repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: DashboardORM) -> Dashboard:
        """Convert ORM object to Pydantic model."""
        return Dashboard(
            id=UUID(orm.id),
            name=orm.name,
            description=orm.description,
            sections=orm.sections or [],
            refresh_interval=orm.refresh_interval,
            auto_refresh=bool(orm.auto_refresh),
            created_by=orm.created_by,
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def create(self, data: DashboardCreate) -> Dashboard:
        """Create a new dashboard."""
        async with self._session_factory() as session:
            now = now_utc()
            orm = DashboardORM(
                id=str(uuid4()),
                name=data.name,
                description=data.description,
                sections=[section.model_dump(mode="json") for section in data.sections],
                refresh_interval=data.refresh_interval,
                auto_refresh=data.auto_refresh,
                created_by=data.created_by,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, dashboard_id: UUID) -> Optional[Dashboard]:
        """Get a dashboard by ID."""
        async with self._session_factory() as session:
            result = await session.execute(select(DashboardORM).where(DashboardORM.id == str(dashboard_id)))
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None
