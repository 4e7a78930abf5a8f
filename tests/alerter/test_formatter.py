"""Tests for the notification formatter."""

import pytest

from stackpulse.alerter.formatter import (
    CATEGORY_COLORS,
    DEFAULT_COLOR,
    NotificationFormatter,
    category_color,
    category_emoji,
    escape_markdown,
    short_address,
)
from stackpulse.alerter.models import ALL_CATEGORIES, Category, NotificationPayload


@pytest.fixture
def formatter() -> NotificationFormatter:
    """Create a mainnet formatter."""
    return NotificationFormatter()


@pytest.fixture
def payload() -> NotificationPayload:
    """Create a sample NFT notification."""
    return NotificationPayload(
        title="NFT Minted",
        message="punks #42 minted to SP2J6ZY4...",
        category=Category.NFT,
        data={"Collection": "punks", "Token ID": "42"},
        tx_hash="0xdeadbeef",
        block_height=150001,
    )


class TestHelpers:
    """Tests for module-level helpers."""

    def test_every_category_has_color_and_emoji(self) -> None:
        """Test all categories are styled."""
        for category in ALL_CATEGORIES:
            assert category in CATEGORY_COLORS
            assert category_emoji(category)

    def test_category_color(self) -> None:
        """Test known colors."""
        assert category_color(Category.WHALE) == 0x3B82F6
        assert category_color(Category.ALERT) != DEFAULT_COLOR

    @pytest.mark.parametrize("char", list("_*[]()~`>#+-=|{}.!\\"))
    def test_escape_markdown_metacharacters(self, char: str) -> None:
        """Test every MarkdownV2 metacharacter is escaped."""
        assert escape_markdown(f"a{char}b") == f"a\\{char}b"

    def test_escape_markdown_plain_text(self) -> None:
        """Test text without metacharacters is unchanged."""
        assert escape_markdown("Whale Transfer 250 STX") == "Whale Transfer 250 STX"

    def test_short_address(self) -> None:
        """Test address shortening."""
        assert short_address("SP2J6ZY48GV1EZ5V2V5RB9MP66SW86PYKKNRV9EJ7") == "SP2J6ZY4..."
        assert short_address("SP2J") == "SP2J"


class TestNotificationPayload:
    """Tests for NotificationPayload."""

    def test_data_is_read_only(self, payload: NotificationPayload) -> None:
        """Test the data mapping cannot be mutated."""
        with pytest.raises(TypeError):
            payload.data["Collection"] = "other"  # type: ignore[index]

    def test_data_keeps_order(self, payload: NotificationPayload) -> None:
        """Test label order is preserved."""
        assert list(payload.data) == ["Collection", "Token ID"]


class TestDiscordEmbed:
    """Tests for Discord embed formatting."""

    def test_embed_fields(
        self, formatter: NotificationFormatter, payload: NotificationPayload
    ) -> None:
        """Test title, color, fields and footer."""
        embed = formatter.discord_embed(payload)

        assert embed["title"] == f"{category_emoji(Category.NFT)} NFT Minted"
        assert embed["description"] == payload.message
        assert embed["color"] == CATEGORY_COLORS[Category.NFT]
        assert embed["fields"][0] == {"name": "Collection", "value": "punks", "inline": True}
        assert embed["fields"][-1]["name"] == "Transaction"
        assert "0xdeadbeef" in embed["fields"][-1]["value"]
        assert embed["footer"]["text"].endswith("Block 150001")
        assert "timestamp" in embed

    def test_embed_without_tx(self, formatter: NotificationFormatter) -> None:
        """Test no link field and an N/A block when absent."""
        embed = formatter.discord_embed(
            NotificationPayload(title="Fee Collected", message="m", category=Category.FEE)
        )

        assert embed["fields"] == []
        assert embed["footer"]["text"].endswith("Block N/A")


class TestTelegramMarkdown:
    """Tests for Telegram MarkdownV2 formatting."""

    def test_escapes_interpolated_text(self, formatter: NotificationFormatter) -> None:
        """Test user-supplied text cannot inject markup."""
        text = formatter.telegram_markdown(
            NotificationPayload(
                title="Badge *earned*",
                message='You earned the "[x](y)" badge.',
                category=Category.BADGE,
                data={"Badge": "top_1%"},
            )
        )

        assert "Badge \\*earned\\*" in text
        assert "\\[x\\]\\(y\\)" in text
        assert "badge\\." in text
        assert "*Badge:* top\\_1%" in text

    def test_explorer_link(
        self, formatter: NotificationFormatter, payload: NotificationPayload
    ) -> None:
        """Test the explorer link and block line."""
        text = formatter.telegram_markdown(payload)

        link = "[View Transaction](https://explorer.stacks.co/txid/0xdeadbeef?chain=mainnet)"
        assert link in text
        assert "_Block: 150001_" in text


class TestEmail:
    """Tests for email formatting."""

    def test_subject(self, formatter: NotificationFormatter, payload: NotificationPayload) -> None:
        """Test the subject carries the emoji and title."""
        assert formatter.email_subject(payload) == f"{category_emoji(Category.NFT)} NFT Minted"

    def test_html_escapes_values(self, formatter: NotificationFormatter) -> None:
        """Test values are HTML-escaped."""
        html = formatter.email_html(
            NotificationPayload(
                title="<script>alert(1)</script>",
                message="a & b",
                category=Category.ALERT,
                data={"Type": "<b>"},
            )
        )

        assert "<script>" not in html
        assert "&lt;script&gt;" in html
        assert "a &amp; b" in html
        assert "&lt;b&gt;" in html

    def test_html_details_and_link(
        self, formatter: NotificationFormatter, payload: NotificationPayload
    ) -> None:
        """Test the details table, call to action and footer."""
        html = formatter.email_html(payload)

        assert "Details" in html
        assert "punks" in html
        assert "View Transaction" in html
        assert "https://explorer.stacks.co/txid/0xdeadbeef?chain=mainnet" in html
        assert "Block 150001" in html
        assert "Manage your alerts" in html

    def test_testnet_links(self, payload: NotificationPayload) -> None:
        """Test the network is reflected in explorer links."""
        formatter = NotificationFormatter(network="testnet")
        assert formatter.explorer_url("0x1") == "https://explorer.stacks.co/txid/0x1?chain=testnet"
