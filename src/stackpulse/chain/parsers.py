"""Event parsers for chainhook payloads.

Each parser takes one raw event (or one transaction) and returns a domain
record, or None when the input is not something the parser handles. Parsers
never raise: malformed inner fields are logged and treated as not
applicable, so a handler can run every parser over a heterogeneous event
list without pre-filtering.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from stackpulse.chain.clarity import decode_print_payload
from stackpulse.chain.models import (
    ChainhookTransaction,
    ContractDeploymentRecord,
    LargeSwapRecord,
    NFTMintEvent,
    NFTMintRecord,
    PrintEventRecord,
    SmartContractEvent,
    STXTransferEvent,
    TokenLaunchRecord,
    WhaleTransferRecord,
    decode_event,
    event_type,
    parse_micro_amount,
)

logger = logging.getLogger(__name__)

MICRO_PER_STX = 1_000_000
CONTRACT_DEPLOYMENT_KIND = "ContractDeployment"
UNKNOWN_NAME = "unknown"

# A transaction moving two or more fungible tokens is treated as a swap.
# This is a heuristic on transaction shape, not a protocol-level signal.
LARGE_SWAP_MIN_FT_TRANSFERS = 2

__all__ = [
    "LARGE_SWAP_MIN_FT_TRANSFERS",
    "MICRO_PER_STX",
    "count_ft_transfers",
    "format_stx",
    "micro_to_major",
    "parse_contract_deployment",
    "parse_large_swap",
    "parse_micro_amount",
    "parse_nft_mint",
    "parse_print_event",
    "parse_token_launch",
    "parse_whale_transfer",
]


def micro_to_major(amount_micro: int) -> Decimal:
    """Convert microSTX to STX without floating point loss."""
    return Decimal(amount_micro) / MICRO_PER_STX


def format_stx(amount: Any) -> str:
    """Format a microSTX amount for display, e.g. ``1,250.50 STX``.

    Shows at least two and at most six decimal places. Values that cannot be
    parsed as an amount are returned as-is.
    """
    try:
        major = micro_to_major(parse_micro_amount(amount))
    except (TypeError, ValueError):
        return str(amount)

    text = f"{major:,.6f}"
    whole, _, fraction = text.partition(".")
    fraction = fraction.rstrip("0").ljust(2, "0")
    return f"{whole}.{fraction} STX"


def parse_whale_transfer(raw_event: Any) -> WhaleTransferRecord | None:
    """Parse an ``STXTransferEvent`` into a WhaleTransferRecord."""
    event = decode_event(raw_event)
    if not isinstance(event, STXTransferEvent):
        return None

    return WhaleTransferRecord(
        sender=event.sender,
        recipient=event.recipient,
        amount_micro=event.amount,
        amount_major=micro_to_major(event.amount),
    )


def parse_contract_deployment(tx: ChainhookTransaction) -> ContractDeploymentRecord | None:
    """Parse a ``ContractDeployment`` transaction.

    The contract identifier is ``<deployer>.<name>``. Without a separator the
    name becomes ``unknown`` and the deployer falls back to the transaction
    sender.
    """
    try:
        if tx.kind_type != CONTRACT_DEPLOYMENT_KIND:
            return None

        data = tx.kind.get("data")
        contract_id = ""
        if isinstance(data, Mapping):
            contract_id = str(data.get("contract_identifier") or "")

        deployer, _, contract_name = contract_id.partition(".")
        return ContractDeploymentRecord(
            contract_id=contract_id,
            deployer=deployer or tx.sender,
            contract_name=contract_name or UNKNOWN_NAME,
        )
    except (AttributeError, TypeError) as e:
        logger.warning("Failed to parse contract deployment: %s", e)
        return None


def parse_nft_mint(raw_event: Any) -> NFTMintRecord | None:
    """Parse an ``NFTMintEvent``.

    The asset identifier is ``<contract>::<asset-name>``. Without a separator
    the asset name becomes ``unknown`` and the contract address is empty.
    """
    event = decode_event(raw_event)
    if not isinstance(event, NFTMintEvent):
        return None

    contract_address, separator, asset_name = event.asset_identifier.partition("::")
    if not separator:
        contract_address = ""

    return NFTMintRecord(
        asset_identifier=event.asset_identifier,
        contract_address=contract_address,
        asset_name=asset_name or UNKNOWN_NAME,
        token_id=event.token_id,
        recipient=event.recipient,
    )


def parse_token_launch(tx: ChainhookTransaction) -> TokenLaunchRecord | None:
    """Detect a token launch from the transaction kind tag alone."""
    if tx.kind_type != CONTRACT_DEPLOYMENT_KIND:
        return None

    data = tx.kind.get("data")
    contract_id = data.get("contract_identifier") if isinstance(data, Mapping) else None
    return TokenLaunchRecord(
        contract_id=str(contract_id) if contract_id else None,
        deployer=tx.sender,
    )


def count_ft_transfers(tx: ChainhookTransaction) -> int:
    """Count the ``FTTransferEvent``s in a transaction."""
    return sum(1 for raw in tx.events if event_type(raw) == "FTTransferEvent")


def parse_large_swap(tx: ChainhookTransaction) -> LargeSwapRecord | None:
    """Classify a transaction as a large swap by its fungible transfer count."""
    count = count_ft_transfers(tx)
    if count < LARGE_SWAP_MIN_FT_TRANSFERS:
        return None
    return LargeSwapRecord(swapper=tx.sender, ft_transfer_count=count)


def parse_print_event(raw_event: Any) -> PrintEventRecord | None:
    """Parse a contract ``print`` event carrying an ``event`` tag.

    Uses the indexer's decoded ``value`` when present, otherwise decodes the
    hex ``raw_value``.
    """
    event = decode_event(raw_event)
    if not isinstance(event, SmartContractEvent):
        return None

    payload: Any = event.value
    if not isinstance(payload, Mapping) and event.raw_value:
        payload = decode_print_payload(event.raw_value)

    if not isinstance(payload, Mapping):
        return None

    tag = payload.get("event")
    if not isinstance(tag, str) or not tag:
        return None

    return PrintEventRecord(
        event_type=tag,
        data=dict(payload),
        contract_identifier=event.contract_identifier,
    )
