"""
Alert evaluator.

Matches KPI values against alert rules, de-duplicates notifications with a
per (rule, KPI) cooldown, and fans alerts out to the notifier channel by
channel. One failing channel never blocks the others or the alert record.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID, uuid4

from kpi_engine.core.config import get_settings
from kpi_engine.core.exceptions import NotFoundError, NotificationDispatchError, ValidationError
from kpi_engine.core.logger import logger
from kpi_engine.interfaces.alert_repository import IAlertRepository
from kpi_engine.interfaces.alert_rule_repository import IAlertRuleRepository
from kpi_engine.interfaces.cooldown_store import ICooldownStore
from kpi_engine.interfaces.kpi_repository import IKpiRepository
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.models.alert import (
    RANGE_OPERATORS,
    Alert,
    AlertCondition,
    AlertPayload,
    AlertRule,
    AlertRuleCreate,
)
from kpi_engine.models.enums import AlertOperator
from kpi_engine.models.kpi import KpiDefinition, KpiValue
from kpi_engine.utils.datetime_utils import now_utc


def evaluate_condition(condition: AlertCondition, value: float) -> bool:
    """Exact comparison of a value against a condition (no epsilon)."""
    op = condition.operator
    if op in RANGE_OPERATORS:
        low, high = condition.value
        inside = low <= value <= high
        return inside if op == AlertOperator.BETWEEN else not inside

    threshold = condition.value
    if op == AlertOperator.GT:
        return value > threshold
    if op == AlertOperator.LT:
        return value < threshold
    if op == AlertOperator.GTE:
        return value >= threshold
    if op == AlertOperator.LTE:
        return value <= threshold
    if op == AlertOperator.EQ:
        return value == threshold
    return value != threshold


def validate_alert_rule(data: AlertRuleCreate) -> None:
    """Raises ValidationError for a malformed condition or cooldown."""
    condition = data.condition
    if condition.operator in RANGE_OPERATORS:
        if not isinstance(condition.value, list) or len(condition.value) != 2:
            raise ValidationError(f"Operator '{condition.operator.value}' requires a [low, high] pair")
        low, high = condition.value
        if low > high:
            raise ValidationError("Range condition requires low <= high", details=condition.value)
    elif isinstance(condition.value, list):
        raise ValidationError(f"Operator '{condition.operator.value}' requires a single number")
    if data.cooldown_minutes < 0:
        raise ValidationError("cooldown_minutes must be >= 0")
    if condition.duration_minutes is not None and condition.duration_minutes < 0:
        raise ValidationError("duration_minutes must be >= 0")


def _describe(condition: AlertCondition) -> str:
    if condition.operator in RANGE_OPERATORS:
        low, high = condition.value
        return f"{condition.operator.value} [{low}, {high}]"
    return f"{condition.operator.value} {condition.value}"


class AlertEvaluator:
    """Evaluates alert rules and dispatches notifications."""

    def __init__(
        self,
        kpi_repo: IKpiRepository,
        rule_repo: IAlertRuleRepository,
        alert_repo: IAlertRepository,
        notifier: INotifier,
        cooldowns: ICooldownStore,
        notify_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._kpi_repo = kpi_repo
        self._rule_repo = rule_repo
        self._alert_repo = alert_repo
        self._notifier = notifier
        self._cooldowns = cooldowns
        self._notify_timeout = notify_timeout or get_settings().NOTIFY_TIMEOUT_SECONDS
        self._clock = clock

    # ===========================================
    # Rules
    # ===========================================

    async def create_rule(self, data: AlertRuleCreate) -> AlertRule:
        """
        Validate and persist an alert rule.

        Raises:
            ValidationError: Malformed condition or cooldown.
            NotFoundError: The referenced KPI does not exist.
        """
        validate_alert_rule(data)
        if await self._kpi_repo.get(data.kpi_id) is None:
            raise NotFoundError(f"KPI {data.kpi_id} not found")
        rule = await self._rule_repo.create(data)
        logger.info(f"Created alert rule {rule.id} ({rule.name}) for KPI {rule.kpi_id}")
        return rule

    async def list_rules(self, kpi_id: UUID, active_only: bool = True) -> list[AlertRule]:
        return await self._rule_repo.list_for_kpi(kpi_id, active_only=active_only)

    async def set_rule_active(self, rule_id: UUID, active: bool) -> AlertRule:
        rule = await self._rule_repo.set_active(rule_id, active)
        if rule is None:
            raise NotFoundError(f"Alert rule {rule_id} not found")
        if not active:
            self._cooldowns.clear_breach(str(rule.id), str(rule.kpi_id))
        return rule

    # ===========================================
    # Evaluation
    # ===========================================

    async def check(
        self, kpi_id: UUID, value: KpiValue, definition: Optional[KpiDefinition] = None
    ) -> list[Alert]:
        """
        Evaluate every active rule of a KPI against ``value``.

        Returns the alerts that fired (suppressed ones are not returned).
        """
        rules = await self._rule_repo.list_for_kpi(kpi_id, active_only=True)
        if not rules:
            return []
        if definition is None:
            definition = await self._kpi_repo.get(kpi_id)
            if definition is None:
                raise NotFoundError(f"KPI {kpi_id} not found")

        fired: list[Alert] = []
        for rule in rules:
            alert = await self._check_rule(rule, definition, value)
            if alert is not None:
                fired.append(alert)
        return fired

    async def _check_rule(
        self, rule: AlertRule, definition: KpiDefinition, value: KpiValue
    ) -> Optional[Alert]:
        rule_key, kpi_key = str(rule.id), str(definition.id)
        now = self._clock()

        if not evaluate_condition(rule.condition, value.value):
            self._cooldowns.clear_breach(rule_key, kpi_key)
            return None

        duration = rule.condition.duration_minutes
        if duration:
            breach_start = self._cooldowns.mark_breach(rule_key, kpi_key, now)
            if now - breach_start < timedelta(minutes=duration):
                logger.debug(f"Alert rule {rule.id} breached but not yet sustained for {duration}m")
                return None

        last_dispatch = self._cooldowns.get_last_dispatch(rule_key, kpi_key)
        if last_dispatch is not None and now - last_dispatch < timedelta(minutes=rule.cooldown_minutes):
            logger.debug(f"Alert rule {rule.id} suppressed for KPI {definition.id} (cooldown)")
            return None

        # Claimed before the first await so concurrent checks see the cooldown
        self._cooldowns.set_last_dispatch(rule_key, kpi_key, now)
        return await self._fire(rule, definition, value, now)

    async def _fire(
        self, rule: AlertRule, definition: KpiDefinition, value: KpiValue, now: datetime
    ) -> Alert:
        message = (
            f"{definition.name} alert '{rule.name}': value {value.value:g} {definition.unit}".rstrip()
            + f" ({_describe(rule.condition)})"
        )
        data = {
            "kpi_id": str(definition.id),
            "rule_id": str(rule.id),
            "value": value.value,
            "period": value.period.value,
            "condition": rule.condition.model_dump(mode="json"),
            "unit": definition.unit,
        }
        payload = AlertPayload(
            title=f"[{rule.severity.value.upper()}] {definition.name}",
            message=message,
            severity=rule.severity,
            data=data,
        )

        delivered, failed = await self._dispatch_all(rule, payload)
        alert = Alert(
            id=uuid4(),
            rule_id=rule.id,
            kpi_id=definition.id,
            metric=definition.name,
            severity=rule.severity,
            message=message,
            value=value.value,
            data=data,
            delivered_channels=delivered,
            failed_channels=failed,
            created_at=now,
        )
        saved = await self._alert_repo.create(alert)
        logger.info(
            f"KPI alert triggered: {saved.id} for {definition.name} "
            f"(delivered={delivered}, failed={failed})"
        )
        return saved

    async def _dispatch_all(self, rule: AlertRule, payload: AlertPayload) -> tuple[list[str], list[str]]:
        delivered: list[str] = []
        failed: list[str] = []
        for channel in rule.channels:
            try:
                await asyncio.wait_for(
                    self._notifier.dispatch(channel, list(rule.recipients), payload),
                    timeout=self._notify_timeout,
                )
                delivered.append(channel)
            except NotificationDispatchError as exc:
                logger.error(f"Alert dispatch failed on channel '{channel}': {exc.message}")
                failed.append(channel)
            except asyncio.TimeoutError:
                logger.error(f"Alert dispatch timed out on channel '{channel}' after {self._notify_timeout}s")
                failed.append(channel)
            except Exception as exc:
                logger.exception(f"Unexpected error dispatching alert on channel '{channel}': {exc}")
                failed.append(channel)
        return delivered, failed

    # ===========================================
    # Alert records
    # ===========================================

    async def list_alerts(
        self, kpi_id: Optional[UUID] = None, acknowledged: Optional[bool] = None, limit: int = 50
    ) -> list[Alert]:
        return await self._alert_repo.list(kpi_id=kpi_id, acknowledged=acknowledged, limit=limit)

    async def acknowledge_alert(self, alert_id: UUID) -> Alert:
        alert = await self._alert_repo.acknowledge(alert_id)
        if alert is None:
            raise NotFoundError(f"Alert {alert_id} not found")
        return alert
