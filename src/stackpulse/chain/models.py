"""Data models for chainhook payloads and the domain records parsed from them."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

logger = logging.getLogger(__name__)

# Raw chain events are kept as received; fields may be absent.
RawEvent = Mapping[str, Any]


def parse_micro_amount(value: Any) -> int:
    """Parse an unsigned base-unit amount (int, digit string or ``u123``)."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        amount = value
    else:
        text = str(value).strip()
        if text.startswith("u"):
            text = text[1:]
        amount = int(text)
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {value!r}")
    return amount


# ============================================================================
# Chain event variants
# ============================================================================


@dataclass(frozen=True)
class STXTransferEvent:
    """Native STX transfer between two principals."""

    sender: str
    recipient: str
    amount: int  # microSTX

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> STXTransferEvent:
        return cls(
            sender=str(data["sender"]),
            recipient=str(data["recipient"]),
            amount=parse_micro_amount(data["amount"]),
        )


@dataclass(frozen=True)
class FTTransferEvent:
    """Fungible token (SIP-010) transfer."""

    asset_identifier: str
    sender: str
    recipient: str
    amount: int

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> FTTransferEvent:
        return cls(
            asset_identifier=str(data.get("asset_identifier", "")),
            sender=str(data.get("sender", "")),
            recipient=str(data.get("recipient", "")),
            amount=parse_micro_amount(data.get("amount", 0)),
        )


@dataclass(frozen=True)
class NFTMintEvent:
    """Non-fungible token (SIP-009) mint."""

    asset_identifier: str
    recipient: str
    token_id: str

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> NFTMintEvent:
        value = data.get("value")
        return cls(
            asset_identifier=str(data.get("asset_identifier") or ""),
            recipient=str(data["recipient"]),
            token_id=str(value) if value is not None else "0",
        )


@dataclass(frozen=True)
class SmartContractEvent:
    """Contract log event, usually a ``print``.

    ``value`` is the already-decoded print payload when the indexer supplies
    one; ``raw_value`` is the hex-serialized Clarity value.
    """

    contract_identifier: str
    topic: str
    value: Any = None
    raw_value: str | None = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> SmartContractEvent:
        raw_value = data.get("raw_value")
        return cls(
            contract_identifier=str(data.get("contract_identifier", "")),
            topic=str(data.get("topic", "print")),
            value=data.get("value"),
            raw_value=str(raw_value) if raw_value else None,
        )


ChainEvent = STXTransferEvent | FTTransferEvent | NFTMintEvent | SmartContractEvent

EVENT_TYPES: dict[str, Callable[[Mapping[str, Any]], ChainEvent]] = {
    "STXTransferEvent": STXTransferEvent.from_data,
    "FTTransferEvent": FTTransferEvent.from_data,
    "NFTMintEvent": NFTMintEvent.from_data,
    "SmartContractEvent": SmartContractEvent.from_data,
}


def event_type(raw: Any) -> str | None:
    """Return the discriminant tag of a raw event, if it has one."""
    if not isinstance(raw, Mapping):
        return None
    tag = raw.get("type")
    return tag if isinstance(tag, str) else None


def decode_event(raw: Any) -> ChainEvent | None:
    """Decode a raw chainhook event into its tagged variant.

    Returns:
        The matching variant, or None for unknown tags and malformed data.
    """
    factory = EVENT_TYPES.get(event_type(raw) or "")
    if factory is None:
        return None

    data = raw.get("data")
    if not isinstance(data, Mapping):
        logger.debug("Event %s has no data mapping", raw.get("type"))
        return None

    try:
        return factory(data)
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("Malformed %s event: %s", raw.get("type"), e)
        return None


# ============================================================================
# Chainhook payload
# ============================================================================


@dataclass(frozen=True)
class ChainhookTransaction:
    """A transaction within an applied or rolled-back block."""

    hash: str
    success: bool
    sender: str
    fee: int
    kind: Mapping[str, Any]
    events: tuple[RawEvent, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChainhookTransaction:
        identifier = data.get("transaction_identifier") or {}
        metadata = data.get("metadata") or {}
        receipt = metadata.get("receipt") or {}
        kind = metadata.get("kind")

        return cls(
            hash=str(identifier.get("hash", "")),
            success=bool(metadata.get("success", True)),
            sender=str(metadata.get("sender", "")),
            fee=int(metadata.get("fee") or 0),
            kind=kind if isinstance(kind, Mapping) else {},
            events=tuple(receipt.get("events") or ()),
        )

    @property
    def kind_type(self) -> str | None:
        """Return the transaction kind tag, e.g. ``ContractDeployment``."""
        tag = self.kind.get("type")
        return tag if isinstance(tag, str) else None


@dataclass(frozen=True)
class ChainhookBlock:
    """A block with its transactions."""

    index: int
    hash: str
    transactions: tuple[ChainhookTransaction, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChainhookBlock:
        identifier = data.get("block_identifier") or {}
        return cls(
            index=int(identifier.get("index", 0)),
            hash=str(identifier.get("hash", "")),
            transactions=tuple(
                ChainhookTransaction.from_dict(tx) for tx in data.get("transactions") or ()
            ),
        )


@dataclass(frozen=True)
class ChainhookInfo:
    """Identity of the chainhook that produced a delivery."""

    uuid: str
    predicate: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ChainhookInfo:
        data = data or {}
        return cls(uuid=str(data.get("uuid", "")), predicate=data.get("predicate"))


@dataclass(frozen=True)
class ChainhookPayload:
    """A webhook batch: newly applied blocks plus optional rollbacks."""

    apply: tuple[ChainhookBlock, ...]
    rollback: tuple[ChainhookBlock, ...] = ()
    chainhook: ChainhookInfo = field(default_factory=lambda: ChainhookInfo(uuid=""))

    @classmethod
    def from_dict(cls, data: Any) -> ChainhookPayload:
        """Create a payload from a decoded JSON body.

        Raises:
            TypeError: If the body is not a JSON object.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Chainhook payload must be an object, got {type(data).__name__}")

        return cls(
            apply=tuple(ChainhookBlock.from_dict(b) for b in data.get("apply") or ()),
            rollback=tuple(ChainhookBlock.from_dict(b) for b in data.get("rollback") or ()),
            chainhook=ChainhookInfo.from_dict(data.get("chainhook")),
        )


# ============================================================================
# Domain records
# ============================================================================


@dataclass(frozen=True)
class WhaleTransferRecord:
    """A native STX transfer selected by the whale-transfer chainhook."""

    sender: str
    recipient: str
    amount_micro: int
    amount_major: Decimal


@dataclass(frozen=True)
class ContractDeploymentRecord:
    """A contract deployment transaction."""

    contract_id: str
    deployer: str
    contract_name: str


@dataclass(frozen=True)
class NFTMintRecord:
    """An NFT mint, with the asset identifier split into its parts."""

    asset_identifier: str
    contract_address: str
    asset_name: str
    token_id: str
    recipient: str


@dataclass(frozen=True)
class TokenLaunchRecord:
    """A deployment seen by the token-launch chainhook."""

    contract_id: str | None
    deployer: str


@dataclass(frozen=True)
class LargeSwapRecord:
    """A transaction classified as a large swap."""

    swapper: str
    ft_transfer_count: int


@dataclass(frozen=True)
class PrintEventRecord:
    """An application event emitted by a contract ``print``."""

    event_type: str
    data: Mapping[str, Any]
    contract_identifier: str = ""
