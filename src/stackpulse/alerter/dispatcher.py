"""Broadcast orchestrator for multi-channel, multi-recipient delivery."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from prometheus_client import Counter

if TYPE_CHECKING:
    from stackpulse.alerter.models import NotificationPayload
    from stackpulse.storage.models import UserPreferences
    from stackpulse.storage.repos import PreferenceStore

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT = 8.0

NOTIFICATIONS_TOTAL = Counter(
    "stackpulse_notifications_total",
    "Notification dispatch attempts",
    ["channel", "outcome"],
)


class NotificationChannel(Protocol):
    """Protocol for notification delivery channels."""

    name: str

    async def send(self, payload: NotificationPayload, destination: str | None) -> bool:
        """Send a notification to a destination. Returns True on success."""
        ...


@dataclass
class BroadcastResult:
    """Outcome of one broadcast.

    ``sent`` and ``failed`` count per-user dispatch attempts only. The
    operator webhook send is reported in ``operator_delivered`` (None when
    no operator webhook is configured).
    """

    sent: int = 0
    failed: int = 0
    operator_delivered: bool | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def attempted(self) -> int:
        """Total per-user dispatch attempts."""
        return self.sent + self.failed


@dataclass(frozen=True)
class _Dispatch:
    channel: str
    destination: str
    call: Callable[[], Awaitable[bool]]


class NotificationBroadcaster:
    """Fans a notification out to every opted-in user's channels.

    Each dispatch runs concurrently and is bounded by its own timeout, so a
    slow channel cannot stall its siblings. A failing or raising channel is
    counted as a failure and never aborts the broadcast.
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        *,
        discord: NotificationChannel | None = None,
        telegram: NotificationChannel | None = None,
        email: NotificationChannel | None = None,
        dispatch_timeout: float = DEFAULT_DISPATCH_TIMEOUT,
    ) -> None:
        """Initialize the broadcaster.

        Args:
            preferences: Store used to resolve recipients.
            discord: Discord webhook channel; also the operator channel.
            telegram: Telegram bot channel.
            email: Email channel.
            dispatch_timeout: Seconds allowed for each individual dispatch.
        """
        self.preferences = preferences
        self.discord = discord
        self.telegram = telegram
        self.email = email
        self.dispatch_timeout = dispatch_timeout

    @property
    def configured_channels(self) -> list[str]:
        """Names of the channels available at process level."""
        return [ch.name for ch in (self.discord, self.telegram, self.email) if ch is not None]

    async def _resolve_recipients(
        self, recipients: Iterable[str] | None
    ) -> list[UserPreferences]:
        if recipients is None:
            return await self.preferences.list_all()

        resolved = []
        for address in recipients:
            prefs = await self.preferences.get(address)
            if prefs is None:
                logger.debug(f"Skipping unknown recipient {address}")
                continue
            resolved.append(prefs)
        return resolved

    def _user_dispatches(
        self, payload: NotificationPayload, prefs: UserPreferences
    ) -> list[_Dispatch]:
        dispatches = []
        for channel, destination in (
            (self.email, prefs.email),
            (self.discord, prefs.discord),
            (self.telegram, prefs.telegram),
        ):
            if channel is None or not destination:
                continue
            dispatches.append(
                _Dispatch(
                    channel=channel.name,
                    destination=destination,
                    call=lambda ch=channel, dest=destination: ch.send(payload, dest),
                )
            )
        return dispatches

    async def _run(self, dispatch: _Dispatch) -> bool:
        try:
            return bool(await asyncio.wait_for(dispatch.call(), timeout=self.dispatch_timeout))
        except TimeoutError:
            logger.warning(
                f"Dispatch to {dispatch.channel} ({dispatch.destination}) timed out "
                f"after {self.dispatch_timeout}s"
            )
        except Exception as e:
            logger.error(f"Error sending to {dispatch.channel} ({dispatch.destination}): {e}")
        return False

    async def _send_operator(self, payload: NotificationPayload) -> bool | None:
        if self.discord is None:
            return None
        discord = self.discord
        dispatch = _Dispatch(
            channel=discord.name,
            destination="operator",
            call=lambda: discord.send(payload, None),
        )
        return await self._run(dispatch)

    async def broadcast(
        self,
        payload: NotificationPayload,
        recipients: Iterable[str] | None = None,
    ) -> BroadcastResult:
        """Broadcast a notification.

        Args:
            payload: Notification to deliver.
            recipients: Addresses to notify; every stored user when None.
                Unknown addresses are skipped.

        Returns:
            BroadcastResult with per-user sent/failed counts.
        """
        dispatches: list[_Dispatch] = []
        for prefs in await self._resolve_recipients(recipients):
            if not prefs.wants(payload.category):
                continue
            dispatches.extend(self._user_dispatches(payload, prefs))

        results = await asyncio.gather(
            *(self._run(d) for d in dispatches),
            self._send_operator(payload),
        )
        *user_results, operator_delivered = results

        result = BroadcastResult(operator_delivered=operator_delivered)
        for dispatch, success in zip(dispatches, user_results, strict=True):
            outcome = "sent" if success else "failed"
            NOTIFICATIONS_TOTAL.labels(channel=dispatch.channel, outcome=outcome).inc()
            if success:
                result.sent += 1
            else:
                result.failed += 1

        if operator_delivered is not None:
            NOTIFICATIONS_TOTAL.labels(
                channel="operator", outcome="sent" if operator_delivered else "failed"
            ).inc()

        logger.info(
            f"Broadcast [{payload.category.value}] {payload.title}: "
            f"{result.sent} sent, {result.failed} failed"
        )
        return result
