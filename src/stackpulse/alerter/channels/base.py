"""Shared helpers for channel implementations."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter shared by all sends of one channel."""

    def __init__(self, max_requests: int, period: float, *, name: str = "channel") -> None:
        """Initialize the limiter.

        Args:
            max_requests: Maximum requests allowed within ``period``.
            period: Window length in seconds.
            name: Channel name used in log messages.
        """
        self.max_requests = max_requests
        self.period = period
        self.name = name

        self._request_times: list[float] = []
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait until another request fits in the window, then record it."""
        async with self._lock:
            now = asyncio.get_running_loop().time()
            self._request_times = [t for t in self._request_times if now - t < self.period]

            if len(self._request_times) >= self.max_requests:
                # Wait until the oldest request expires
                wait_time = self.period - (now - self._request_times[0])
                if wait_time > 0:
                    logger.debug(f"{self.name} rate limit hit, waiting {wait_time:.2f}s")
                    await asyncio.sleep(wait_time)
                now = asyncio.get_running_loop().time()

            self._request_times.append(now)


def backoff_delay(retry_delay: float, attempt: int) -> float:
    """Exponential backoff delay for a zero-based attempt number."""
    return retry_delay * (2**attempt)


def retry_after_seconds(value: Any, default: float = 1.0) -> float:
    """Parse a ``retry_after`` value from a header or response body."""
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return default


def response_json(response: Any) -> dict[str, Any]:
    """Return the JSON object body of a response, or an empty dict."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
