"""
Custom exceptions for the KPI engine.
"""

from typing import Any, Optional


class KpiEngineError(Exception):
    """Base exception for the KPI engine."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(KpiEngineError):
    """Unknown KPI, rule, alert, insight or dashboard id."""

    pass


class ValidationError(KpiEngineError):
    """Malformed KPI, alert rule or dashboard spec."""

    pass


class CalculationError(KpiEngineError):
    """Aggregate query failure or malformed formula."""

    def __init__(self, message: str, kpi_id: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.kpi_id = kpi_id


class NotificationDispatchError(KpiEngineError):
    """A notification could not be delivered on one channel."""

    def __init__(self, message: str, channel: str, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.channel = channel


class InfrastructureError(KpiEngineError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass
