"""
Slack Breach Escalation
=======================

Optional webhook escalation for SLA breaches, behind a circuit breaker with
exponential backoff between attempts. Disabled when no webhook URL is set.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx

from facilityops.config import settings
from facilityops.shared.infrastructure.logging import get_logger
from facilityops.sla.domain import SLABreach

logger = get_logger(__name__)


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a failing webhook for a while.

    - CLOSED: calls pass through
    - OPEN: after `failure_threshold` failed sends, calls are skipped
    - HALF_OPEN: after `recovery_timeout` seconds one trial send is allowed
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._opened_at = None
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker opened",
                extra={"failure_count": self._failure_count, "recovery_timeout": self.recovery_timeout}
            )


class SlackClient:
    """Posts breach alerts as Block Kit messages to a webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_delay: float = 1.0,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.slack_webhook_url
        self._channel = channel or settings.slack_channel
        self._timeout = timeout_seconds or settings.slack_timeout_seconds
        self._circuit_breaker = circuit_breaker or CircuitBreaker()
        self._transport = transport
        self._base_delay = base_delay
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self._webhook_url)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    def _build_message(self, breach: SLABreach) -> Dict[str, Any]:
        overdue_minutes = int(breach.overdue_seconds // 60)
        threshold_hours = breach.threshold_seconds / 3600
        return {
            "channel": self._channel,
            "text": f"SLA breached: {breach.display_code}",
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": "SLA Breach", "emoji": True}
                },
                {
                    "type": "section",
                    "fields": [
                        {"type": "mrkdwn", "text": f"*Ticket:*\n{breach.display_code}"},
                        {"type": "mrkdwn", "text": f"*Property:*\n{breach.property_id}"},
                        {"type": "mrkdwn", "text": f"*Priority:*\n{breach.priority.title()}"},
                        {"type": "mrkdwn", "text": f"*Category:*\n{breach.category.title()}"},
                        {"type": "mrkdwn", "text": f"*Threshold:*\n{threshold_hours:g}h"},
                        {"type": "mrkdwn", "text": f"*Overdue:*\n{overdue_minutes} min"},
                    ]
                },
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f"Detected {breach.detected_at.isoformat()}"}
                    ]
                },
            ],
        }

    async def send_breach(self, breach: SLABreach, max_retries: int = 3) -> bool:
        """Returns True once the webhook accepted the message."""
        if not self.enabled:
            logger.debug("Slack webhook not configured, skipping escalation")
            return False

        if not self._circuit_breaker.allow_request():
            logger.warning("Circuit breaker open, skipping Slack escalation", extra={"ticket_id": breach.ticket_id})
            return False

        message = self._build_message(breach)

        for attempt in range(max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=message)
                if response.status_code == 200:
                    self._circuit_breaker.record_success()
                    logger.info("Slack escalation sent", extra={"ticket_id": breach.ticket_id})
                    return True
                logger.warning(
                    "Slack webhook returned non-200",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )
            except httpx.HTTPError as exc:
                logger.error(
                    "Slack escalation failed",
                    extra={"error": str(exc), "attempt": attempt + 1, "ticket_id": breach.ticket_id}
                )

            if attempt < max_retries - 1:
                await asyncio.sleep(self._base_delay * (2 ** attempt))

        self._circuit_breaker.record_failure()
        return False

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
