"""Discord webhook channel implementation."""

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
from stackpulse.alerter.formatter import APP_NAME, LOGO_URL, NotificationFormatter

if TYPE_CHECKING:
    from stackpulse.alerter.models import NotificationPayload

logger = logging.getLogger(__name__)


class DiscordChannel:
    """Discord webhook channel for sending notifications.

    Posts a rich embed to a fixed webhook URL with rate limiting and retry
    support. The webhook URL is a credential and is never logged.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        formatter: NotificationFormatter | None = None,
        rate_limit_per_minute: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 5.0,
    ) -> None:
        """Initialize Discord channel.

        Args:
            webhook_url: Discord webhook URL.
            formatter: Formatter used to build embeds.
            rate_limit_per_minute: Maximum messages per minute (Discord limit is 30).
            max_retries: Maximum attempts per notification.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.webhook_url = webhook_url
        self.formatter = formatter or NotificationFormatter()
        self.rate_limit_per_minute = rate_limit_per_minute
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.name = "discord"

        self._rate_limiter = RateLimiter(rate_limit_per_minute, 60.0, name="Discord")

    def build_message(
        self, payload: NotificationPayload, recipient: str | None = None
    ) -> dict[str, object]:
        """Build the webhook request body."""
        message: dict[str, object] = {
            "username": APP_NAME,
            "avatar_url": LOGO_URL,
            "embeds": [self.formatter.discord_embed(payload)],
            # Subscriber handles are user input; never let them ping anyone
            "allowed_mentions": {"parse": []},
        }
        if recipient:
            message["content"] = f"Alert for {recipient}"
        return message

    async def send(self, payload: NotificationPayload, recipient: str | None = None) -> bool:
        """Send a notification to the Discord webhook.

        Args:
            payload: Notification to deliver.
            recipient: Optional subscriber handle the message is addressed to.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        destination = recipient or "operator webhook"
        body = self.build_message(payload, recipient)

        await self._rate_limiter.wait()

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.webhook_url, json=body)

                    if 200 <= response.status_code < 300:
                        logger.info(
                            f"Discord notification sent: [{payload.category.value}] "
                            f"{payload.title} -> {destination}"
                        )
                        return True

                    if response.status_code == 429:
                        body_json = response_json(response)
                        retry_after = retry_after_seconds(body_json.get("retry_after"))
                        logger.warning(f"Discord rate limited, retry after {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                    logger.error(
                        f"Discord webhook failed: {response.status_code} {response.text}"
                    )
                    if response.status_code < 500:
                        break

            except httpx.TimeoutException:
                logger.warning(f"Discord webhook timeout (attempt {attempt + 1})")
            except httpx.HTTPError as e:
                logger.error(f"Discord webhook error: {type(e).__name__}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(backoff_delay(self.retry_delay, attempt))

        logger.error(
            f"Discord delivery failed: [{payload.category.value}] "
            f"{payload.title} -> {destination}"
        )
        return False
