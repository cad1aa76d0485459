"""
Routes opaque channel names to concrete notifier transports.
"""

from __future__ import annotations

from typing import Mapping

from kpi_engine.core.exceptions import NotificationDispatchError
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.models.alert import AlertPayload


class ChannelRouterNotifier(INotifier):
    """
    Dispatches each channel to its registered transport.

    Channels without a transport (e.g. ``email`` or ``sms`` until one is
    configured) fail with NotificationDispatchError instead of pretending
    to deliver.
    """

    def __init__(self, transports: Mapping[str, INotifier]):
        self._transports = dict(transports)

    @property
    def channels(self) -> list[str]:
        return sorted(self._transports)

    async def dispatch(self, channel: str, recipients: list[str], payload: AlertPayload) -> None:
        transport = self._transports.get(channel)
        if transport is None:
            raise NotificationDispatchError(
                f"No transport configured for channel '{channel}'", channel=channel
            )
        await transport.dispatch(channel, recipients, payload)
