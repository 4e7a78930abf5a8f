"""Chainhook webhook handlers.

Each handler walks the applied blocks of a delivery, runs its parser over
the transactions or events, and for every match broadcasts a notification
and increments the category statistic. Rolled-back blocks are parsed and
logged but never retracted.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from stackpulse.alerter.formatter import short_address
from stackpulse.alerter.models import Category, NotificationPayload
from stackpulse.chain.parsers import (
    format_stx,
    parse_contract_deployment,
    parse_large_swap,
    parse_nft_mint,
    parse_print_event,
    parse_token_launch,
    parse_whale_transfer,
)

if TYPE_CHECKING:
    from stackpulse.alerter.dispatcher import NotificationBroadcaster
    from stackpulse.chain.models import (
        ChainhookBlock,
        ChainhookPayload,
        ChainhookTransaction,
        PrintEventRecord,
    )
    from stackpulse.ingestor.stats import EventStatistics

logger = logging.getLogger(__name__)


class UnknownHookError(LookupError):
    """Raised when a delivery names a hook that is not registered."""


@dataclass(frozen=True)
class HookDefinition:
    """A registered chainhook: URL slug, registered name and category."""

    slug: str
    name: str
    category: Category


HOOKS: tuple[HookDefinition, ...] = (
    HookDefinition("whale-transfer", "whale-transfer-alert", Category.WHALE),
    HookDefinition("contract-deployed", "new-contract-deployed", Category.CONTRACT),
    HookDefinition("nft-mint", "nft-mint-tracker", Category.NFT),
    HookDefinition("token-launch", "token-launch-detector", Category.TOKEN),
    HookDefinition("large-swap", "large-swap-alert", Category.SWAP),
    HookDefinition("subscription-created", "user-subscription-created", Category.SUBSCRIPTION),
    HookDefinition("alert-triggered", "alert-triggered", Category.ALERT),
    HookDefinition("fee-collected", "fee-collected", Category.FEE),
    HookDefinition("badge-earned", "badge-earned", Category.BADGE),
)

Handler = Callable[["ChainhookPayload"], Awaitable[int]]


def _transactions(
    blocks: tuple[ChainhookBlock, ...],
) -> Iterator[tuple[ChainhookBlock, ChainhookTransaction]]:
    for block in blocks:
        for tx in block.transactions:
            yield block, tx


def _events(
    blocks: tuple[ChainhookBlock, ...],
) -> Iterator[tuple[ChainhookBlock, ChainhookTransaction, Any]]:
    for block, tx in _transactions(blocks):
        for raw_event in tx.events:
            yield block, tx, raw_event


def _field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _stx_field(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return "N/A" if value is None else format_stx(value)


class WebhookProcessor:
    """Routes chainhook deliveries to the handler for their slug."""

    def __init__(self, broadcaster: NotificationBroadcaster, stats: EventStatistics) -> None:
        """Initialize the processor.

        Args:
            broadcaster: Broadcaster used for every notification.
            stats: Statistics incremented once per processed event.
        """
        self.broadcaster = broadcaster
        self.stats = stats
        self._handlers: dict[str, Handler] = {
            "whale-transfer": self.handle_whale_transfer,
            "contract-deployed": self.handle_contract_deployed,
            "nft-mint": self.handle_nft_mint,
            "token-launch": self.handle_token_launch,
            "large-swap": self.handle_large_swap,
            "subscription-created": self.handle_subscription_created,
            "alert-triggered": self.handle_alert_triggered,
            "fee-collected": self.handle_fee_collected,
            "badge-earned": self.handle_badge_earned,
        }

    @property
    def slugs(self) -> list[str]:
        """Registered hook slugs."""
        return list(self._handlers)

    def has_hook(self, slug: str) -> bool:
        return slug in self._handlers

    async def process(self, slug: str, payload: ChainhookPayload) -> int:
        """Process one delivery.

        Args:
            slug: Hook slug from the request path.
            payload: Parsed delivery.

        Returns:
            Number of events that produced a notification.

        Raises:
            UnknownHookError: If no handler is registered for ``slug``.
        """
        handler = self._handlers.get(slug)
        if handler is None:
            raise UnknownHookError(slug)

        if payload.rollback:
            rolled_back = sum(len(b.transactions) for b in payload.rollback)
            logger.warning(
                f"[{slug}] {len(payload.rollback)} block(s) rolled back "
                f"({rolled_back} transactions); notifications already sent are not retracted"
            )

        processed = await handler(payload)
        logger.debug(f"[{slug}] processed {processed} event(s) from {len(payload.apply)} block(s)")
        return processed

    async def _emit(
        self,
        notification: NotificationPayload,
        recipients: list[str] | None = None,
    ) -> None:
        await self.broadcaster.broadcast(notification, recipients)
        self.stats.increment(notification.category)

    # ------------------------------------------------------------------
    # Chain activity
    # ------------------------------------------------------------------

    async def handle_whale_transfer(self, payload: ChainhookPayload) -> int:
        count = 0
        for block, tx, raw_event in _events(payload.apply):
            transfer = parse_whale_transfer(raw_event)
            if transfer is None:
                continue

            amount = format_stx(transfer.amount_micro)
            logger.info(
                f"Whale transfer: {amount} {transfer.sender} -> {transfer.recipient} "
                f"(tx {tx.hash}, block {block.index})"
            )
            await self._emit(
                NotificationPayload(
                    title="Whale Transfer Detected",
                    message=(
                        f"{amount} transferred from {short_address(transfer.sender)} "
                        f"to {short_address(transfer.recipient)}"
                    ),
                    category=Category.WHALE,
                    data={
                        "Amount": amount,
                        "Sender": transfer.sender,
                        "Recipient": transfer.recipient,
                    },
                    tx_hash=tx.hash,
                    block_height=block.index,
                )
            )
            count += 1
        return count

    async def handle_contract_deployed(self, payload: ChainhookPayload) -> int:
        count = 0
        for block, tx in _transactions(payload.apply):
            deployment = parse_contract_deployment(tx)
            if deployment is None:
                continue

            logger.info(f"Contract deployed: {deployment.contract_id} (tx {tx.hash})")
            await self._emit(
                NotificationPayload(
                    title="New Contract Deployed",
                    message=(
                        f"New contract {deployment.contract_name} deployed by "
                        f"{short_address(deployment.deployer)}"
                    ),
                    category=Category.CONTRACT,
                    data={
                        "Contract": deployment.contract_name,
                        "Contract ID": deployment.contract_id,
                        "Deployer": deployment.deployer,
                    },
                    tx_hash=tx.hash,
                    block_height=block.index,
                )
            )
            count += 1
        return count

    async def handle_nft_mint(self, payload: ChainhookPayload) -> int:
        count = 0
        for block, tx, raw_event in _events(payload.apply):
            mint = parse_nft_mint(raw_event)
            if mint is None:
                continue

            logger.info(f"NFT minted: {mint.asset_identifier} #{mint.token_id} (tx {tx.hash})")
            await self._emit(
                NotificationPayload(
                    title="NFT Minted",
                    message=(
                        f"{mint.asset_name} #{mint.token_id} minted to "
                        f"{short_address(mint.recipient)}"
                    ),
                    category=Category.NFT,
                    data={
                        "Collection": mint.asset_name,
                        "Token ID": mint.token_id,
                        "Recipient": mint.recipient,
                    },
                    tx_hash=tx.hash,
                    block_height=block.index,
                )
            )
            count += 1
        return count

    async def handle_token_launch(self, payload: ChainhookPayload) -> int:
        count = 0
        for block, tx in _transactions(payload.apply):
            launch = parse_token_launch(tx)
            if launch is None:
                continue

            contract_id = launch.contract_id or "unknown"
            logger.info(f"Token launched: {contract_id} (tx {tx.hash})")
            await self._emit(
                NotificationPayload(
                    title="New Token Launched",
                    message=f"New token contract deployed: {contract_id}",
                    category=Category.TOKEN,
                    data={"Contract": contract_id, "Deployer": launch.deployer},
                    tx_hash=tx.hash,
                    block_height=block.index,
                )
            )
            count += 1
        return count

    async def handle_large_swap(self, payload: ChainhookPayload) -> int:
        count = 0
        for block, tx in _transactions(payload.apply):
            swap = parse_large_swap(tx)
            if swap is None:
                continue

            logger.info(
                f"Large swap: {swap.ft_transfer_count} token transfers by {swap.swapper} "
                f"(tx {tx.hash})"
            )
            await self._emit(
                NotificationPayload(
                    title="Large Swap Detected",
                    message=f"Large swap executed by {short_address(swap.swapper)}",
                    category=Category.SWAP,
                    data={"Swapper": swap.swapper, "Events": swap.ft_transfer_count},
                    tx_hash=tx.hash,
                    block_height=block.index,
                )
            )
            count += 1
        return count

    # ------------------------------------------------------------------
    # Application print events
    # ------------------------------------------------------------------

    async def _handle_print(
        self,
        payload: ChainhookPayload,
        event_tag: str,
        build: Callable[[PrintEventRecord], tuple[str, str, dict[str, object]]],
        category: Category,
        route_field: str | None = None,
    ) -> int:
        count = 0
        for block, tx, raw_event in _events(payload.apply):
            record = parse_print_event(raw_event)
            if record is None or record.event_type != event_tag:
                continue

            recipients: list[str] | None = None
            if route_field is not None:
                target = _field(record.data, route_field)
                if target:
                    recipients = [target]
                else:
                    logger.warning(
                        f"{event_tag} event without '{route_field}' (tx {tx.hash}); "
                        "sending to operator channel only"
                    )
                    recipients = []

            title, message, data = build(record)
            logger.info(f"Print event {event_tag} from {record.contract_identifier} (tx {tx.hash})")
            await self._emit(
                NotificationPayload(
                    title=title,
                    message=message,
                    category=category,
                    data=data,
                    tx_hash=tx.hash,
                    block_height=block.index,
                ),
                recipients,
            )
            count += 1
        return count

    async def handle_subscription_created(self, payload: ChainhookPayload) -> int:
        def build(record: PrintEventRecord) -> tuple[str, str, dict[str, object]]:
            tier = _field(record.data, "tier")
            return (
                "Subscription Activated",
                f"Welcome to StackPulse! Your tier {tier} subscription is now active.",
                {"Tier": tier, "Price": _stx_field(record.data, "price")},
            )

        return await self._handle_print(
            payload, "subscription-created", build, Category.SUBSCRIPTION, route_field="user"
        )

    async def handle_alert_triggered(self, payload: ChainhookPayload) -> int:
        def build(record: PrintEventRecord) -> tuple[str, str, dict[str, object]]:
            alert_id = _field(record.data, "alert-id")
            alert_type = _field(record.data, "alert-type")
            return (
                "Your Alert Was Triggered!",
                f"Alert #{alert_id} ({alert_type}) has been triggered.",
                {"Alert ID": alert_id, "Type": alert_type},
            )

        return await self._handle_print(
            payload, "alert-triggered", build, Category.ALERT, route_field="owner"
        )

    async def handle_fee_collected(self, payload: ChainhookPayload) -> int:
        def build(record: PrintEventRecord) -> tuple[str, str, dict[str, object]]:
            amount = _stx_field(record.data, "amount")
            source = _field(record.data, "source")
            return (
                "Fee Collected",
                f"{amount} collected from {source}",
                {"Source": source, "Amount": amount},
            )

        return await self._handle_print(payload, "fee-collected", build, Category.FEE)

    async def handle_badge_earned(self, payload: ChainhookPayload) -> int:
        def build(record: PrintEventRecord) -> tuple[str, str, dict[str, object]]:
            badge_name = _field(record.data, "badge-name")
            return (
                "You Earned a Badge!",
                f'Congratulations! You earned the "{badge_name}" badge.',
                {
                    "Badge": badge_name,
                    "Type": _field(record.data, "badge-type"),
                    "Token ID": _field(record.data, "token-id"),
                },
            )

        return await self._handle_print(
            payload, "badge-minted", build, Category.BADGE, route_field="recipient"
        )
