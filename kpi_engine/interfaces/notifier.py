"""
Notifier interface.

Channels are opaque strings (email, sms, webhook, websocket, ...).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from kpi_engine.models.alert import AlertPayload


class INotifier(ABC):
    """Abstract interface for alert delivery."""

    @abstractmethod
    async def dispatch(self, channel: str, recipients: list[str], payload: AlertPayload) -> None:
        """
        Deliver a payload on one channel.

        Raises:
            NotificationDispatchError: If delivery on this channel failed.
        """
        pass
