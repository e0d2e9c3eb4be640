"""Conflict webhook client with exponential backoff retry logic"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from booking_gateway.config import settings
from booking_gateway.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class ConflictWebhookClient:
    """Client for pushing booking conflict signals to the remediation service"""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url if webhook_url is not None else settings.conflict_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def send_conflict_event(self, payload: Dict[str, Any]) -> bool:
        """
        Send one conflict signal with retry logic.

        Retry strategy:
        - Exponential backoff: base * 2^(attempt-1)
        - Retries on 4xx/5xx responses and network failures
        - Tracks latency histogram and failure counter

        Returns:
            False when no webhook is configured, True once delivered

        Raises:
            httpx.HTTPError: after the last failed attempt
        """
        if not self.webhook_url:
            logging.debug("Conflict webhook not configured, skipping delivery")
            return False

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError):
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logging.error(
                            "Conflict webhook delivery failed",
                            extra={"booking_id": payload.get("bookingId"), "attempts": attempt},
                        )
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
