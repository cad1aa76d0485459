"""
Insight generator.

Scans the last two values of each KPI inside a lookback window and turns
large moves into opportunity or risk insights.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional
from uuid import UUID

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import NotFoundError, ValidationError
from kpi_engine.core.logger import logger
from kpi_engine.interfaces.insight_repository import IInsightRepository
from kpi_engine.models.enums import InsightSeverity, InsightType, TargetDirection
from kpi_engine.models.insight import BusinessInsight, BusinessInsightCreate, InsightFilters
from kpi_engine.models.kpi import KpiDefinition
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.utils.datetime_utils import now_utc, parse_lookback

INSIGHT_CHANGE_PERCENT = 15.0

GROWTH_RECOMMENDATIONS = [
    "Increase investment in the channels driving this growth",
    "Run a customer satisfaction survey to understand what is working",
    "Apply the same strategy to related areas",
]
DECLINE_RECOMMENDATIONS = [
    "Run a root-cause analysis immediately",
    "Collect customer feedback on recent changes",
    "Review current marketing and sales strategies",
]
REDUCTION_RECOMMENDATIONS = [
    "Document the changes that drove this improvement",
    "Check that the reduction is sustainable and not a data gap",
    "Roll the same process changes out to related areas",
]
INCREASE_RISK_RECOMMENDATIONS = [
    "Investigate what caused the increase",
    "Review operational processes feeding this metric",
    "Set up an alert rule to catch further increases early",
]


def delta_percent(previous: float, current: float) -> float:
    """Percent change between two points; 0 when the previous value is 0."""
    if previous == 0:
        return 0.0
    return (current - previous) / abs(previous) * 100


def build_insights(
    definition: KpiDefinition,
    previous: float,
    current: float,
    expires_at: Optional[datetime] = None,
) -> list[BusinessInsightCreate]:
    """Opportunity/risk insights for one KPI move; pure."""
    change_percent = delta_percent(previous, current)
    data = {
        "change_percent": round(change_percent, 4),
        "current_value": current,
        "previous_value": previous,
    }
    direction = definition.target_direction

    if direction == TargetDirection.HIGHER:
        if change_percent > INSIGHT_CHANGE_PERCENT:
            kind, title, severity, recommendations = (
                InsightType.OPPORTUNITY,
                "Growth opportunity",
                InsightSeverity.POSITIVE,
                GROWTH_RECOMMENDATIONS,
            )
            description = f"Significant growth detected in {definition.name} ({change_percent:+.1f}%)"
        elif change_percent < -INSIGHT_CHANGE_PERCENT:
            kind, title, severity, recommendations = (
                InsightType.RISK,
                "Decline risk",
                InsightSeverity.CRITICAL,
                DECLINE_RECOMMENDATIONS,
            )
            description = f"Significant decline detected in {definition.name} ({change_percent:+.1f}%)"
        else:
            return []
    elif direction == TargetDirection.LOWER:
        if change_percent < -INSIGHT_CHANGE_PERCENT:
            kind, title, severity, recommendations = (
                InsightType.OPPORTUNITY,
                "Improvement opportunity",
                InsightSeverity.POSITIVE,
                REDUCTION_RECOMMENDATIONS,
            )
            description = f"Significant reduction detected in {definition.name} ({change_percent:+.1f}%)"
        elif change_percent > INSIGHT_CHANGE_PERCENT:
            kind, title, severity, recommendations = (
                InsightType.RISK,
                "Increase risk",
                InsightSeverity.CRITICAL,
                INCREASE_RISK_RECOMMENDATIONS,
            )
            description = f"Significant increase detected in {definition.name} ({change_percent:+.1f}%)"
        else:
            return []
    else:
        return []

    return [
        BusinessInsightCreate(
            type=kind,
            title=title,
            description=description,
            severity=severity,
            kpi_ids=[definition.id],
            data=data,
            actionable=True,
            recommendations=list(recommendations),
            expires_at=expires_at,
        )
    ]


class InsightGenerator:
    """Generates, lists and acknowledges business insights."""

    def __init__(
        self,
        registry: KpiRegistry,
        insight_repo: IInsightRepository,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._registry = registry
        self._insight_repo = insight_repo
        self._clock = clock

    async def generate(self, kpi_ids: Iterable[UUID], lookback: Optional[str] = None) -> list[BusinessInsight]:
        """
        Generate and persist insights for the given KPIs.

        Unknown KPI ids are skipped. A failure for one KPI is logged and the
        remaining KPIs are still processed. A move that already has an
        unexpired insight of the same type is not reported again.
        """
        settings = get_settings()
        try:
            window = parse_lookback(lookback or settings.INSIGHT_LOOKBACK)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        now = self._clock()
        expires_at = now + timedelta(hours=settings.INSIGHT_TTL_HOURS)
        generated: list[BusinessInsight] = []

        for kpi_id in kpi_ids:
            try:
                generated.extend(await self._generate_for_kpi(kpi_id, now - window, now, expires_at))
            except NotFoundError:
                logger.warning(f"Skipping insights for unknown KPI {kpi_id}")
            except Exception as exc:
                logger.error(f"Insight generation failed for KPI {kpi_id}: {exc}")

        if generated:
            logger.info(f"Generated {len(generated)} insight(s)")
        return generated

    async def _generate_for_kpi(
        self, kpi_id: UUID, since: datetime, now: datetime, expires_at: datetime
    ) -> list[BusinessInsight]:
        definition = await self._registry.get_kpi(kpi_id)
        history = await self._registry.get_history(definition.id, since)
        if len(history) < 2:
            return []

        previous, latest = history[-2], history[-1]
        created = []
        for draft in build_insights(definition, previous.value, latest.value, expires_at):
            if await self._already_reported(definition.id, draft, now):
                continue
            created.append(await self._insight_repo.create(draft, generated_at=now))
        return created

    async def _already_reported(self, kpi_id: UUID, draft: BusinessInsightCreate, now: datetime) -> bool:
        existing = await self._insight_repo.list(
            InsightFilters(type=draft.type, kpi_id=kpi_id, limit=500), now=now
        )
        return any(
            insight.data.get("current_value") == draft.data["current_value"]
            and insight.data.get("previous_value") == draft.data["previous_value"]
            for insight in existing
        )

    async def list_insights(self, filters: Optional[InsightFilters] = None) -> list[BusinessInsight]:
        return await self._insight_repo.list(filters or InsightFilters(), now=self._clock())

    async def acknowledge_insight(self, insight_id: UUID, who: str) -> BusinessInsight:
        """
        Acknowledge an insight; acknowledging twice keeps the first record.

        Raises:
            NotFoundError: If the insight does not exist.
        """
        insight = await self._insight_repo.acknowledge(insight_id, who, self._clock())
        if insight is None:
            raise NotFoundError(f"Insight {insight_id} not found")
        return insight
