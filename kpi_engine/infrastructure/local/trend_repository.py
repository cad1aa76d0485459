"""
SQLite implementation of trend analysis repository.

Each analysis is stored whole as a JSON payload; analyses are never updated.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import and_, select

from kpi_engine.infrastructure.local.database import TrendAnalysisORM, get_session_factory
from kpi_engine.interfaces.trend_repository import ITrendRepository
from kpi_engine.models.trend import TrendAnalysis


class SqliteTrendRepository(ITrendRepository):
    """SQLite implementation of trend analysis repository."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: TrendAnalysisORM) -> TrendAnalysis:
        """Convert ORM object to Pydantic model."""
        return TrendAnalysis.model_validate(orm.payload)

    async def save(self, analysis: TrendAnalysis) -> TrendAnalysis:
        """Persist a freshly computed analysis."""
        async with self._session_factory() as session:
            orm = TrendAnalysisORM(
                id=str(analysis.id),
                kpi_id=str(analysis.kpi_id),
                metric=analysis.metric,
                lookback=analysis.lookback,
                payload=analysis.model_dump(mode="json"),
                generated_at=analysis.generated_at,
            )
            session.add(orm)
            await session.commit()
            return analysis

    async def get_latest(self, kpi_id: UUID, lookback: Optional[str] = None) -> Optional[TrendAnalysis]:
        """Get the most recent analysis for a KPI."""
        async with self._session_factory() as session:
            conditions = [TrendAnalysisORM.kpi_id == str(kpi_id)]
            if lookback is not None:
                conditions.append(TrendAnalysisORM.lookback == lookback)
            result = await session.execute(
                select(TrendAnalysisORM)
                .where(and_(*conditions))
                .order_by(TrendAnalysisORM.generated_at.desc())
                .limit(1)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None
