"""
Trend analyzer.

Classifies a KPI's recent value series (direction, strength, volatility),
fits a least-squares line for confidence and a short linear forecast, and
flags z-score anomalies. Seasonality is not computed.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence
from uuid import UUID, uuid4

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import ValidationError
from kpi_engine.core.logger import setup_logger
from kpi_engine.interfaces.trend_repository import ITrendRepository
from kpi_engine.models.enums import AnomalyType, TrendDirection, TrendStrength
from kpi_engine.models.trend import Anomaly, DataPoint, Forecast, ForecastPoint, TrendAnalysis
from kpi_engine.services.kpi_registry import KpiRegistry
from kpi_engine.utils.datetime_utils import now_utc, parse_lookback

logger = setup_logger(__name__)

STABLE_PERCENT = 5.0
MODERATE_PERCENT = 10.0
STRONG_PERCENT = 20.0
VOLATILITY_RATIO = 0.3
OUTLIER_Z = 3.0


# ---------------------------------------------------------------------------
# Series statistics
# ---------------------------------------------------------------------------


def mean_and_stddev(values: Sequence[float]) -> tuple[float, float]:
    """Population mean and standard deviation."""
    if not values:
        return 0.0, 0.0
    mean = sum(values) / len(values)
    variance = sum((v - mean) ** 2 for v in values) / len(values)
    return mean, math.sqrt(variance)


def linear_fit(values: Sequence[float]) -> tuple[float, float, float]:
    """Least-squares line over index positions: (slope, intercept, r_squared)."""
    n = len(values)
    if n < 2:
        return 0.0, (values[0] if values else 0.0), 0.0

    x_mean = (n - 1) / 2
    y_mean = sum(values) / n
    ss_xy = sum((x - x_mean) * (y - y_mean) for x, y in enumerate(values))
    ss_xx = sum((x - x_mean) ** 2 for x in range(n))
    ss_yy = sum((y - y_mean) ** 2 for y in values)

    slope = ss_xy / ss_xx
    intercept = y_mean - slope * x_mean
    r_squared = (ss_xy**2 / (ss_xx * ss_yy)) if ss_yy != 0 else 0.0
    return slope, intercept, r_squared


def detect_anomalies(points: Sequence[DataPoint], threshold: float) -> list[Anomaly]:
    """Points whose population z-score reaches ``threshold`` (needs 3+ points)."""
    if len(points) < 3:
        return []
    mean, std_dev = mean_and_stddev([p.value for p in points])
    if std_dev == 0:
        return []

    anomalies: list[Anomaly] = []
    for point in points:
        z_score = abs(point.value - mean) / std_dev
        if z_score < threshold:
            continue
        if z_score >= OUTLIER_Z:
            kind = AnomalyType.OUTLIER
        elif point.value > mean:
            kind = AnomalyType.SPIKE
        else:
            kind = AnomalyType.DROP
        anomalies.append(
            Anomaly(date=point.date, value=point.value, deviation=round(z_score, 4), type=kind)
        )
    return anomalies


def linear_forecast(points: Sequence[DataPoint], periods: int) -> Optional[Forecast]:
    """Project ``periods`` points along the fitted line (needs 3+ points)."""
    if periods <= 0 or len(points) < 3:
        return None
    values = [p.value for p in points]
    slope, intercept, r_squared = linear_fit(values)
    n = len(points)
    step = (points[-1].date - points[0].date) / (n - 1)
    if step <= timedelta(0):
        step = timedelta(days=1)

    predictions = []
    for i in range(periods):
        confidence = max(0.0, r_squared * (1 - 0.1 * (i + 1)))
        predictions.append(
            ForecastPoint(
                date=points[-1].date + step * (i + 1),
                value=round(intercept + slope * (n + i), 4),
                confidence=round(confidence, 4),
            )
        )
    return Forecast(periods=periods, predictions=predictions)


def trend_insights(metric: str, change_percent: float, direction: TrendDirection) -> list[str]:
    """Human-readable summary lines using the direction/strength thresholds."""
    insights: list[str] = []
    if abs(change_percent) > STRONG_PERCENT:
        if change_percent > 0:
            insights.append(f"{metric} increased {change_percent:.1f}% - strong growth trend")
        else:
            insights.append(f"{metric} decreased {abs(change_percent):.1f}% - needs attention")
    elif abs(change_percent) > STABLE_PERCENT:
        if change_percent > 0:
            insights.append(f"{metric} shows a slight increase - positive trend")
        else:
            insights.append(f"{metric} shows a slight decrease - keep monitoring")
    else:
        insights.append(f"{metric} is stable - normal behaviour")

    if direction == TrendDirection.VOLATILE:
        insights.append(f"{metric} is volatile - values fluctuate widely around the mean")
    return insights


@dataclass
class SeriesAnalysis:
    direction: TrendDirection = TrendDirection.STABLE
    strength: TrendStrength = TrendStrength.WEAK
    confidence: float = 0.0
    change_percent: float = 0.0
    anomalies: list[Anomaly] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    forecast: Optional[Forecast] = None


def analyze_series(
    points: Sequence[DataPoint],
    metric: str,
    anomaly_threshold: float = 2.0,
    forecast_periods: int = 3,
) -> SeriesAnalysis:
    """Classify an ordered series; pure and deterministic."""
    if not points:
        return SeriesAnalysis(insights=[f"{metric}: not enough data for trend analysis"])

    values = [p.value for p in points]
    first, last = values[0], values[-1]
    change_percent = (last - first) / abs(first) * 100 if first != 0 else 0.0

    if abs(change_percent) <= STABLE_PERCENT:
        direction = TrendDirection.STABLE
    elif change_percent > 0:
        direction = TrendDirection.INCREASING
    else:
        direction = TrendDirection.DECREASING

    if abs(change_percent) > STRONG_PERCENT:
        strength = TrendStrength.STRONG
    elif abs(change_percent) > MODERATE_PERCENT:
        strength = TrendStrength.MODERATE
    else:
        strength = TrendStrength.WEAK

    mean, std_dev = mean_and_stddev(values)
    if mean != 0 and std_dev / abs(mean) > VOLATILITY_RATIO:
        direction = TrendDirection.VOLATILE

    n = len(values)
    confidence = 0.0
    if n >= 2:
        _, _, r_squared = linear_fit(values)
        confidence = r_squared * min(1.0, (n - 1) / 10)

    return SeriesAnalysis(
        direction=direction,
        strength=strength,
        confidence=round(min(max(confidence, 0.0), 1.0), 4),
        change_percent=round(change_percent, 4),
        anomalies=detect_anomalies(points, anomaly_threshold),
        insights=trend_insights(metric, change_percent, direction),
        forecast=linear_forecast(points, forecast_periods),
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TrendAnalyzer:
    """Builds and persists TrendAnalysis snapshots from value history."""

    def __init__(
        self,
        registry: KpiRegistry,
        trend_repo: ITrendRepository,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._registry = registry
        self._trend_repo = trend_repo
        self._clock = clock

    async def analyze(self, kpi_id: UUID, lookback: Optional[str] = None) -> TrendAnalysis:
        """
        Recompute the trend for a KPI over ``lookback`` and persist it.

        Raises:
            NotFoundError: If the KPI does not exist.
            ValidationError: If the lookback string is malformed.
        """
        settings = get_settings()
        lookback = lookback or settings.TREND_LOOKBACK
        try:
            window = parse_lookback(lookback)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        definition = await self._registry.get_kpi(kpi_id)
        now = self._clock()
        history = await self._registry.get_history(definition.id, now - window)
        points = [DataPoint(date=v.calculated_at, value=v.value) for v in history]

        series = analyze_series(
            points,
            definition.name,
            anomaly_threshold=settings.ANOMALY_Z_THRESHOLD,
            forecast_periods=settings.FORECAST_PERIODS,
        )
        analysis = TrendAnalysis(
            id=uuid4(),
            kpi_id=definition.id,
            metric=definition.name,
            lookback=lookback,
            data_points=points,
            direction=series.direction,
            strength=series.strength,
            confidence=series.confidence,
            change_percent=series.change_percent,
            anomalies=series.anomalies,
            insights=series.insights,
            forecast=series.forecast,
            generated_at=now,
        )
        saved = await self._trend_repo.save(analysis)
        logger.debug(
            f"Trend for KPI {definition.id}: {series.direction.value}/{series.strength.value} "
            f"over {len(points)} points"
        )
        return saved

    async def get_latest(self, kpi_id: UUID, lookback: Optional[str] = None) -> Optional[TrendAnalysis]:
        """Last persisted analysis, if any."""
        await self._registry.get_kpi(kpi_id)
        return await self._trend_repo.get_latest(kpi_id, lookback)
