"""Process-lifetime event statistics."""

from __future__ import annotations

from dataclasses import dataclass, field

from prometheus_client import Counter

from stackpulse.alerter.models import Category

EVENTS_TOTAL = Counter(
    "stackpulse_events_total",
    "Chain events processed, by category",
    ["category"],
)

# camelCase keys served by /api/stats
STAT_KEYS: dict[Category, str] = {
    Category.WHALE: "whaleTransfers",
    Category.CONTRACT: "contractDeployments",
    Category.NFT: "nftMints",
    Category.TOKEN: "tokenLaunches",
    Category.SWAP: "largeSwaps",
    Category.SUBSCRIPTION: "subscriptions",
    Category.ALERT: "alertsTriggered",
    Category.FEE: "feesCollected",
    Category.BADGE: "badgesEarned",
}


@dataclass
class EventStatistics:
    """One counter per category, reset only by a process restart.

    Increments are synchronous so concurrent handlers never interleave a
    read and a write.
    """

    counts: dict[Category, int] = field(default_factory=lambda: dict.fromkeys(Category, 0))

    def increment(self, category: Category, amount: int = 1) -> None:
        """Record ``amount`` processed events of ``category``."""
        self.counts[category] = self.counts.get(category, 0) + amount
        EVENTS_TOTAL.labels(category=category.value).inc(amount)

    def get(self, category: Category) -> int:
        return self.counts.get(category, 0)

    def to_dict(self) -> dict[str, int]:
        """Serialize with the camelCase keys of the stats endpoint."""
        return {key: self.counts.get(category, 0) for category, key in STAT_KEYS.items()}
