"""Data models for the alerter module."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class Category(Enum):
    """Alert category, used for statistics and per-user opt-in."""

    WHALE = "whale"
    CONTRACT = "contract"
    NFT = "nft"
    TOKEN = "token"
    SWAP = "swap"
    SUBSCRIPTION = "subscription"
    ALERT = "alert"
    FEE = "fee"
    BADGE = "badge"


ALL_CATEGORIES: frozenset[Category] = frozenset(Category)


@dataclass(frozen=True)
class NotificationPayload:
    """A notification ready for delivery to any channel.

    Attributes:
        title: Short headline.
        message: One-line description.
        category: Alert category.
        data: Ordered label -> value pairs shown as details.
        tx_hash: Transaction id for explorer links.
        block_height: Block the event was included in.
    """

    title: str
    message: str
    category: Category
    data: Mapping[str, object] = field(default_factory=dict)
    tx_hash: str | None = None
    block_height: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", MappingProxyType(dict(self.data)))
