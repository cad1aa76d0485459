"""
Notifier that writes alerts to the application log.
"""

from __future__ import annotations

from kpi_engine.core.logger import logger
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.models.alert import AlertPayload
from kpi_engine.models.enums import AlertSeverity

_LEVELS = {
    AlertSeverity.INFO: logger.info,
    AlertSeverity.WARNING: logger.warning,
    AlertSeverity.CRITICAL: logger.error,
}


class LogNotifier(INotifier):
    """Delivers every alert as a log line. Never fails."""

    async def dispatch(self, channel: str, recipients: list[str], payload: AlertPayload) -> None:
        _LEVELS.get(payload.severity, logger.info)(
            f"[alert:{channel}] {payload.title}: {payload.message} (recipients={recipients})"
        )
