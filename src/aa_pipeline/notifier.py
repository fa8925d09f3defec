"""Best-effort webhook fan-out of pipeline outcomes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

import requests

from .config import NotifierConfig
from .exceptions import NotificationError
from .types import NotificationPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EndpointDelivery:
    url: str
    delivered: bool
    status_code: int | None = None
    error: str | None = None


@dataclass
class NotificationReport:
    """Per-endpoint outcome of one fan-out; partial failure is still complete."""

    deliveries: list[EndpointDelivery] = field(default_factory=list)

    @property
    def delivered(self) -> int:
        return sum(1 for item in self.deliveries if item.delivered)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.deliveries if not item.delivered)


class WebhookNotifier:
    """POST a JSON payload to every configured endpoint concurrently."""

    def __init__(self, config: NotifierConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self._config.webhook_urls)

    async def notify(self, payload: NotificationPayload) -> NotificationReport:
        """Deliver *payload*; never raises for endpoint failures."""

        if not self.enabled:
            logger.debug("No webhook endpoints configured; skipping notification")
            return NotificationReport()

        body = payload.to_json()
        deliveries = await asyncio.gather(
            *(self._deliver(url, body) for url in self._config.webhook_urls)
        )
        report = NotificationReport(deliveries=list(deliveries))
        logger.info(
            "Notification fan-out complete: %d delivered, %d failed",
            report.delivered,
            report.failed,
        )
        return report

    async def _deliver(self, url: str, body: dict) -> EndpointDelivery:
        try:
            status_code = await asyncio.to_thread(self._post, url, body)
        except NotificationError as exc:
            logger.warning("Webhook delivery to %s failed: %s", url, exc)
            return EndpointDelivery(
                url=url, delivered=False, status_code=exc.status_code, error=str(exc)
            )

        logger.info("Webhook delivered to %s (status=%s)", url, status_code)
        return EndpointDelivery(url=url, delivered=True, status_code=status_code)

    def _post(self, url: str, body: dict) -> int:
        try:
            response = self._session.post(url, json=body, timeout=self._config.request_timeout)
        except requests.RequestException as exc:
            raise NotificationError(
                f"Request error: {exc}", endpoint=url, details={"error": str(exc)}
            ) from exc
        except Exception as exc:  # pragma: no cover
            raise NotificationError(
                f"Unexpected delivery error: {exc}", endpoint=url, details={"error": str(exc)}
            ) from exc

        if not (200 <= response.status_code < 300):
            raise NotificationError(
                f"Endpoint responded with status {response.status_code}",
                endpoint=url,
                status_code=response.status_code,
            )
        return response.status_code
