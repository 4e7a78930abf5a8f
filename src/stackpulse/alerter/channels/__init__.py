"""Notification channel implementations for various platforms."""

from stackpulse.alerter.channels.discord import DiscordChannel
from stackpulse.alerter.channels.email import EmailChannel
from stackpulse.alerter.channels.telegram import TelegramChannel

__all__ = [
    "DiscordChannel",
    "EmailChannel",
    "TelegramChannel",
]
