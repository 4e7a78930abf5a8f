"""Telegram Bot API channel implementation."""

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

TELEGRAM_API_BASE = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramChannel:
    """Telegram Bot API channel for sending notifications.

    One bot serves every subscriber; the chat id is supplied per send. The
    bot token is part of the API URL and is never logged.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        formatter: NotificationFormatter | None = None,
        rate_limit_per_second: int = 30,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 5.0,
    ) -> None:
        """Initialize Telegram channel.

        Args:
            bot_token: Telegram bot token.
            formatter: Formatter used to build messages.
            rate_limit_per_second: Maximum messages per second across all chats.
            max_retries: Maximum attempts per notification.
            retry_delay: Base delay between retries (exponential backoff).
            timeout: HTTP request timeout in seconds.
        """
        self.bot_token = bot_token
        self.formatter = formatter or NotificationFormatter()
        self.rate_limit_per_second = rate_limit_per_second
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.name = "telegram"

        self._api_url = TELEGRAM_API_BASE.format(token=bot_token)
        self._rate_limiter = RateLimiter(rate_limit_per_second, 1.0, name="Telegram")

    async def send(self, payload: NotificationPayload, chat_id: str) -> bool:
        """Send a notification to a Telegram chat.

        Args:
            payload: Notification to deliver.
            chat_id: Target chat identifier.

        Returns:
            True if delivery succeeded, False otherwise.
        """
        body = {
            "chat_id": chat_id,
            "text": self.formatter.telegram_markdown(payload),
            "parse_mode": "MarkdownV2",
            "disable_web_page_preview": False,
        }

        await self._rate_limiter.wait()

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self._api_url, json=body)

                    result = response_json(response)

                    if result.get("ok"):
                        logger.info(
                            f"Telegram notification sent: [{payload.category.value}] "
                            f"{payload.title} -> chat {chat_id}"
                        )
                        return True

                    error_code = result.get("error_code", response.status_code)
                    description = result.get("description", "Unknown error")

                    if error_code == 429:
                        parameters = result.get("parameters") or {}
                        retry_after = retry_after_seconds(parameters.get("retry_after"))
                        logger.warning(f"Telegram rate limited, retry after {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                    logger.error(f"Telegram API error: {error_code} - {description}")
                    if isinstance(error_code, int) and 400 <= error_code < 500:
                        break

            except httpx.TimeoutException:
                logger.warning(f"Telegram API timeout (attempt {attempt + 1})")
            except httpx.HTTPError as e:
                logger.error(f"Telegram API error: {type(e).__name__}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(backoff_delay(self.retry_delay, attempt))

        logger.error(
            f"Telegram delivery failed: [{payload.category.value}] "
            f"{payload.title} -> chat {chat_id}"
        )
        return False
