"""Alerting layer - notification formatting, delivery and fan-out."""

from stackpulse.alerter.channels import DiscordChannel, EmailChannel, TelegramChannel
from stackpulse.alerter.dispatcher import (
    BroadcastResult,
    NotificationBroadcaster,
    NotificationChannel,
)
from stackpulse.alerter.formatter import NotificationFormatter
from stackpulse.alerter.models import ALL_CATEGORIES, Category, NotificationPayload

__all__ = [
    "ALL_CATEGORIES",
    "BroadcastResult",
    "Category",
    "DiscordChannel",
    "EmailChannel",
    "NotificationBroadcaster",
    "NotificationChannel",
    "NotificationFormatter",
    "NotificationPayload",
    "TelegramChannel",
]
