"""
SQLite implementation of alert rule repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, select

from kpi_engine.infrastructure.local.database import AlertRuleORM, get_session_factory
from kpi_engine.interfaces.alert_rule_repository import IAlertRuleRepository
from kpi_engine.models.alert import AlertRule, AlertRuleCreate
from kpi_engine.utils.datetime_utils import ensure_utc, now_utc


class SqliteAlertRuleRepository(IAlertRuleRepository):
    """SQLite implementation of alert rule repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: AlertRuleORM) -> AlertRule:
        """Convert ORM object to Pydantic model."""
        return AlertRule(
            id=UUID(orm.id),
            name=orm.name,
            description=orm.description,
            kpi_id=UUID(orm.kpi_id),
            condition=orm.condition,
            severity=orm.severity,
            channels=orm.channels or [],
            recipients=orm.recipients or [],
            cooldown_minutes=orm.cooldown_minutes,
            active=bool(orm.active),
            created_by=orm.created_by,
            created_at=ensure_utc(orm.created_at),
            updated_at=ensure_utc(orm.updated_at),
        )

    async def create(self, data: AlertRuleCreate) -> AlertRule:
        """Create a new alert rule."""
        async with self._session_factory() as session:
            now = now_utc()
            orm = AlertRuleORM(
                id=str(uuid4()),
                name=data.name,
                description=data.description,
                kpi_id=str(data.kpi_id),
                condition=data.condition.model_dump(mode="json"),
                severity=data.severity.value,
                channels=list(data.channels),
                recipients=list(data.recipients),
                cooldown_minutes=data.cooldown_minutes,
                active=data.active,
                created_by=data.created_by,
                created_at=now,
                updated_at=now,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, rule_id: UUID) -> Optional[AlertRule]:
        """Get an alert rule by ID."""
        async with self._session_factory() as session:
            result = await session.execute(select(AlertRuleORM).where(AlertRuleORM.id == str(rule_id)))
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_for_kpi(self, kpi_id: UUID, active_only: bool = True) -> list[AlertRule]:
        """List rules bound to a KPI."""
        async with self._session_factory() as session:
            conditions = [AlertRuleORM.kpi_id == str(kpi_id)]
            if active_only:
                conditions.append(AlertRuleORM.active.is_(True))
            result = await session.execute(
                select(AlertRuleORM).where(and_(*conditions)).order_by(AlertRuleORM.created_at.asc())
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def set_active(self, rule_id: UUID, active: bool) -> Optional[AlertRule]:
        """Enable or disable a rule."""
        async with self._session_factory() as session:
            result = await session.execute(select(AlertRuleORM).where(AlertRuleORM.id == str(rule_id)))
            orm = result.scalar_one_or_none()
            if not orm:
                return None
            orm.active = active
            orm.updated_at = now_utc()
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
