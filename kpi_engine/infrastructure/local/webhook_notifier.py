"""
Webhook notifier.

POSTs the alert payload as JSON, optionally signed with HMAC-SHA256 in the
``X-KPI-Signature`` header.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from typing import Optional

import httpx

from kpi_engine.core.exceptions import NotificationDispatchError
from kpi_engine.core.logger import logger
from kpi_engine.interfaces.notifier import INotifier
from kpi_engine.models.alert import AlertPayload
from kpi_engine.utils.datetime_utils import now_utc

SIGNATURE_HEADER = "X-KPI-Signature"


def sign_body(secret: str, body: bytes) -> str:
    """Return the ``sha256=<hex>`` signature for a request body."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookNotifier(INotifier):
    """Delivers alerts to one webhook URL."""

    def __init__(
        self,
        url: str,
        secret: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._url = url
        self._secret = secret
        self._timeout = timeout
        self._client = client

    def _build_body(self, channel: str, recipients: list[str], payload: AlertPayload) -> bytes:
        body = {
            "event": "kpi.alert.triggered",
            "channel": channel,
            "recipients": recipients,
            "alert": payload.model_dump(mode="json"),
            "timestamp": now_utc().isoformat(),
        }
        return json.dumps(body, sort_keys=True).encode()

    async def dispatch(self, channel: str, recipients: list[str], payload: AlertPayload) -> None:
        body = self._build_body(channel, recipients, payload)
        headers = {"Content-Type": "application/json", "User-Agent": "kpi-engine/1.0"}
        if self._secret:
            headers[SIGNATURE_HEADER] = sign_body(self._secret, body)

        try:
            if self._client is not None:
                resp = await self._client.post(self._url, content=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.post(self._url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationDispatchError(
                f"Webhook delivery to {self._url} failed: {exc}", channel=channel
            ) from exc

        if resp.status_code >= 300:
            raise NotificationDispatchError(
                f"Webhook {self._url} returned {resp.status_code}",
                channel=channel,
                details={"status_code": resp.status_code},
            )
        logger.info(f"Webhook delivered to {self._url} (status {resp.status_code})")
