"""
SQLite implementation of fired-alert repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, select

from kpi_engine.infrastructure.local.database import AlertORM, get_session_factory
from kpi_engine.interfaces.alert_repository import IAlertRepository
from kpi_engine.models.alert import Alert
from kpi_engine.utils.datetime_utils import ensure_utc


class SqliteAlertRepository(IAlertRepository):
    """SQLite implementation of fired-alert repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: AlertORM) -> Alert:
        """Convert ORM object to Pydantic model."""
        return Alert(
            id=UUID(orm.id),
            rule_id=UUID(orm.rule_id),
            kpi_id=UUID(orm.kpi_id),
            metric=orm.metric,
            severity=orm.severity,
            message=orm.message,
            value=orm.value,
            data=orm.data or {},
            delivered_channels=orm.delivered_channels or [],
            failed_channels=orm.failed_channels or [],
            acknowledged=bool(orm.acknowledged),
            created_at=ensure_utc(orm.created_at),
        )

    async def create(self, alert: Alert) -> Alert:
        """Persist a fired alert."""
        async with self._session_factory() as session:
            orm = AlertORM(
                id=str(alert.id),
                rule_id=str(alert.rule_id),
                kpi_id=str(alert.kpi_id),
                metric=alert.metric,
                severity=alert.severity.value,
                message=alert.message,
                value=alert.value,
                data=alert.data,
                delivered_channels=list(alert.delivered_channels),
                failed_channels=list(alert.failed_channels),
                acknowledged=alert.acknowledged,
                created_at=alert.created_at,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def list(
        self,
        kpi_id: Optional[UUID] = None,
        acknowledged: Optional[bool] = None,
        limit: int = 50,
    ) -> list[Alert]:
        """List alerts, newest first."""
        async with self._session_factory() as session:
            conditions = []
            if kpi_id is not None:
                conditions.append(AlertORM.kpi_id == str(kpi_id))
            if acknowledged is not None:
                conditions.append(AlertORM.acknowledged.is_(acknowledged))
            query = select(AlertORM)
            if conditions:
                query = query.where(and_(*conditions))
            query = query.order_by(AlertORM.created_at.desc()).limit(limit)
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def acknowledge(self, alert_id: UUID) -> Optional[Alert]:
        """Mark an alert acknowledged."""
        async with self._session_factory() as session:
            result = await session.execute(select(AlertORM).where(AlertORM.id == str(alert_id)))
            orm = result.scalar_one_or_none()
            if not orm:
                return None
            orm.acknowledged = True
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
