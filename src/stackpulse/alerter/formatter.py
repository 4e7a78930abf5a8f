"""Notification formatter for multi-channel delivery.

This module renders a NotificationPayload into the wire format of each
channel: a Discord embed, a Telegram MarkdownV2 message and an HTML email.
"""

from __future__ import annotations

import html
import re
from datetime import UTC, datetime
from typing import Literal

from stackpulse.alerter.models import Category, NotificationPayload

APP_NAME = "StackPulse"
APP_URL = "https://stackpulse.vercel.app"
LOGO_URL = f"{APP_URL}/logo.svg"
EXPLORER_TX_URL = "https://explorer.stacks.co/txid/{tx_hash}?chain={network}"

# Discord embed colors (decimal values)
CATEGORY_COLORS: dict[Category, int] = {
    Category.WHALE: 0x3B82F6,  # Blue
    Category.CONTRACT: 0x8B5CF6,  # Purple
    Category.NFT: 0xEC4899,  # Pink
    Category.TOKEN: 0x10B981,  # Green
    Category.SWAP: 0xF59E0B,  # Yellow
    Category.SUBSCRIPTION: 0x6366F1,  # Indigo
    Category.ALERT: 0xEF4444,  # Red
    Category.FEE: 0x14B8A6,  # Teal
    Category.BADGE: 0xFBBF24,  # Gold
}
DEFAULT_COLOR = 0x6B7280  # Gray

CATEGORY_EMOJIS: dict[Category, str] = {
    Category.WHALE: "🐋",
    Category.CONTRACT: "📜",
    Category.NFT: "🎨",
    Category.TOKEN: "🚀",
    Category.SWAP: "💱",
    Category.SUBSCRIPTION: "⭐",
    Category.ALERT: "🔔",
    Category.FEE: "💰",
    Category.BADGE: "🏆",
}
DEFAULT_EMOJI = "📡"

# Telegram MarkdownV2 metacharacters, plus the backslash itself
_MARKDOWN_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_LINK_URL_SPECIAL = re.compile(r"([)\\])")

Network = Literal["mainnet", "testnet"]


def category_color(category: Category) -> int:
    """Get Discord embed color for a category."""
    return CATEGORY_COLORS.get(category, DEFAULT_COLOR)


def category_emoji(category: Category) -> str:
    """Get the emoji shown next to a category's notifications."""
    return CATEGORY_EMOJIS.get(category, DEFAULT_EMOJI)


def escape_markdown(text: str) -> str:
    """Escape Telegram MarkdownV2 metacharacters."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


def short_address(address: str, chars: int = 8) -> str:
    """Shorten an address to its first characters, e.g. ``SP2J6ZY4...``."""
    if len(address) <= chars:
        return address
    return f"{address[:chars]}..."


class NotificationFormatter:
    """Formats NotificationPayloads for Discord, Telegram and email."""

    def __init__(self, network: Network = "mainnet") -> None:
        """Initialize the formatter.

        Args:
            network: Stacks network used for explorer links.
        """
        self.network = network

    def explorer_url(self, tx_hash: str) -> str:
        """Build the explorer link for a transaction."""
        return EXPLORER_TX_URL.format(tx_hash=tx_hash, network=self.network)

    def discord_embed(self, payload: NotificationPayload) -> dict[str, object]:
        """Build Discord embed format."""
        fields: list[dict[str, object]] = [
            {"name": str(label), "value": str(value), "inline": True}
            for label, value in payload.data.items()
        ]

        if payload.tx_hash:
            fields.append(
                {
                    "name": "Transaction",
                    "value": f"[View on Explorer]({self.explorer_url(payload.tx_hash)})",
                    "inline": False,
                }
            )

        block = payload.block_height if payload.block_height is not None else "N/A"
        return {
            "title": f"{category_emoji(payload.category)} {payload.title}",
            "description": payload.message,
            "color": category_color(payload.category),
            "fields": fields,
            "footer": {"text": f"{APP_NAME} Alert • Block {block}"},
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def telegram_markdown(self, payload: NotificationPayload) -> str:
        """Build Telegram MarkdownV2 format.

        Every interpolated piece of text is escaped; only the markup added
        here is left unescaped.
        """
        lines = [
            f"{category_emoji(payload.category)} *{escape_markdown(payload.title)}*",
            "",
            escape_markdown(payload.message),
            "",
        ]

        for label, value in payload.data.items():
            lines.append(f"*{escape_markdown(str(label))}:* {escape_markdown(str(value))}")

        if payload.tx_hash:
            url = _LINK_URL_SPECIAL.sub(r"\\\1", self.explorer_url(payload.tx_hash))
            lines.append("")
            lines.append(f"[View Transaction]({url})")

        if payload.block_height is not None:
            lines.append(f"_Block: {escape_markdown(str(payload.block_height))}_")

        return "\n".join(lines)

    def email_subject(self, payload: NotificationPayload) -> str:
        """Build the email subject line."""
        return f"{category_emoji(payload.category)} {payload.title}"

    def email_html(self, payload: NotificationPayload) -> str:
        """Build the HTML email document."""
        emoji = category_emoji(payload.category)
        parts = [
            '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; '
            'background: #1a1a2e; color: #fff; padding: 20px; border-radius: 12px;">',
            '<div style="text-align: center; margin-bottom: 20px;">',
            f'<h1 style="color: #a855f7; margin: 0;">{emoji} {APP_NAME} Alert</h1>',
            "</div>",
            '<div style="background: #16213e; padding: 20px; border-radius: 8px; '
            'margin-bottom: 20px;">',
            f'<h2 style="color: #fff; margin-top: 0;">{html.escape(payload.title)}</h2>',
            f'<p style="color: #94a3b8; line-height: 1.6;">{html.escape(payload.message)}</p>',
            "</div>",
        ]

        if payload.data:
            parts.append(
                '<div style="background: #16213e; padding: 20px; border-radius: 8px; '
                'margin-bottom: 20px;">'
            )
            parts.append('<h3 style="color: #a855f7; margin-top: 0;">Details</h3>')
            parts.append('<table style="width: 100%; color: #fff;">')
            for label, value in payload.data.items():
                parts.append(
                    "<tr>"
                    f'<td style="padding: 8px 0; color: #94a3b8;">{html.escape(str(label))}</td>'
                    f'<td style="padding: 8px 0; text-align: right;">{html.escape(str(value))}</td>'
                    "</tr>"
                )
            parts.append("</table></div>")

        if payload.tx_hash:
            url = html.escape(self.explorer_url(payload.tx_hash), quote=True)
            parts.append(
                '<div style="text-align: center; margin-top: 20px;">'
                f'<a href="{url}" style="display: inline-block; '
                "background: linear-gradient(to right, #a855f7, #3b82f6); color: #fff; "
                "padding: 12px 24px; border-radius: 8px; "
                'text-decoration: none; font-weight: bold;">'
                "View Transaction</a></div>"
            )

        if payload.block_height is not None:
            parts.append(
                '<p style="text-align: center; color: #6b7280; font-size: 12px;">'
                f"Block {payload.block_height}</p>"
            )

        parts.append(
            '<div style="text-align: center; margin-top: 30px; padding-top: 20px; '
            'border-top: 1px solid #374151;">'
            '<p style="color: #6b7280; font-size: 12px;">'
            f"You received this alert from {APP_NAME}.<br>"
            f'<a href="{APP_URL}" style="color: #a855f7;">Manage your alerts</a>'
            "</p></div>"
        )
        parts.append("</div>")
        return "\n".join(parts)
