"""Transactional email channel backed by the Resend API."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from stackpulse.alerter.channels.base import (
    RateLimiter,
    backoff_delay,
    response_json,
    retry_after_seconds,
)
from stackpulse.alerter.formatter import NotificationFormatter

if TYPE_CHECKING:
    from stackpulse.alerter.models import NotificationPayload

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
DEFAULT_FROM_ADDRESS = "StackPulse <alerts@stackpulse.app>"


class EmailChannel:
    """Email channel sending one HTML message per recipient."""

    def __init__(
        self,
        api_key: str,
        *,
        from_address: str = DEFAULT_FROM_ADDRESS,
        formatter: NotificationFormatter | None = None,
        rate_limit_per_second: int = 2,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 5.0,
        api_url: str = RESEND_API_URL,
    ) -> None:
        """Initialize email channel.

        Args:
            api_key: Resend API key.
            from_address: Sender shown on every message.
            formatter: Formatter used to build the HTML body.
            rate_limit_per_second: Maximum messages per second.
            max_retries: Maximum attempts per message.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
            api_url: Email API endpoint.
        """
        self.api_key = api_key
        self.from_address = from_address
        self.formatter = formatter or NotificationFormatter()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.api_url = api_url
        self.name = "email"

        self._rate_limiter = RateLimiter(rate_limit_per_second, 1.0, name="Email")

    def build_message(self, payload: NotificationPayload, to_email: str) -> dict[str, object]:
        """Build the API request body for one recipient."""
        return {
            "from": self.from_address,
            "to": [to_email],
            "subject": self.formatter.email_subject(payload),
            "html": self.formatter.email_html(payload),
        }

    async def send(self, payload: NotificationPayload, to_email: str) -> bool:
        """Send a notification email.

        Args:
            payload: Notification to deliver.
            to_email: Recipient email address.

        Returns:
            True if the API accepted the message, False otherwise.
        """
        body = self.build_message(payload, to_email)
        headers = {"Authorization": f"Bearer {self.api_key}"}

        await self._rate_limiter.wait()

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=body, headers=headers)

                    if 200 <= response.status_code < 300:
                        logger.info(
                            f"Email notification sent: [{payload.category.value}] "
                            f"{payload.title} -> {to_email}"
                        )
                        return True

                    if response.status_code == 429:
                        retry_after = retry_after_seconds(response.headers.get("retry-after"))
                        logger.warning(f"Email API rate limited, retry after {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                    message = response_json(response).get("message", response.text)
                    logger.error(f"Email API error: {response.status_code} - {message}")
                    if response.status_code < 500:
                        break

            except httpx.TimeoutException:
                logger.warning(f"Email API timeout (attempt {attempt + 1})")
            except httpx.HTTPError as e:
                logger.error(f"Email API error: {type(e).__name__}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(backoff_delay(self.retry_delay, attempt))

        logger.error(
            f"Email delivery failed: [{payload.category.value}] "
            f"{payload.title} -> {to_email}"
        )
        return False
