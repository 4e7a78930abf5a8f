"""Stored records for user preferences and alert rules.

Records are immutable dataclasses. ``to_dict`` produces the camelCase
form served by the HTTP API and persisted by the Redis stores;
``from_dict`` reads it back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from stackpulse.alerter.models import ALL_CATEGORIES, Category

DEFAULT_ALERT_THRESHOLD = Decimal(10000)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return _utcnow()


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def parse_categories(values: Any) -> frozenset[Category]:
    """Convert category tags to a set of Category, ignoring unknown tags."""
    categories = set()
    for value in values or ():
        try:
            categories.add(Category(value))
        except ValueError:
            continue
    return frozenset(categories)


def _format_decimal(value: Decimal | None) -> str | None:
    return None if value is None else format(value.normalize(), "f")


@dataclass(frozen=True)
class UserPreferences:
    """Notification settings for one wallet address.

    Attributes:
        address: Stacks address, the unique key.
        username: Optional display name.
        email: Email destination.
        discord: Discord handle; enables the Discord channel for this user.
        telegram: Telegram chat id.
        enabled_categories: Categories the user has opted in to.
        created_at: When the record was first saved.
        updated_at: When the record was last saved.
    """

    address: str
    username: str | None = None
    email: str | None = None
    discord: str | None = None
    telegram: str | None = None
    enabled_categories: frozenset[Category] = ALL_CATEGORIES
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def wants(self, category: Category) -> bool:
        """Return True if the user opted in to ``category``."""
        return category in self.enabled_categories

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the API/storage form."""
        return {
            "address": self.address,
            "username": self.username,
            "email": self.email,
            "discord": self.discord,
            "telegram": self.telegram,
            "enabledAlerts": sorted(c.value for c in self.enabled_categories),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserPreferences:
        """Deserialize from the API/storage form."""
        enabled = data.get("enabledAlerts")
        return cls(
            address=data["address"],
            username=data.get("username"),
            email=data.get("email"),
            discord=data.get("discord"),
            telegram=data.get("telegram"),
            enabled_categories=(
                ALL_CATEGORIES if enabled is None else parse_categories(enabled)
            ),
            created_at=_parse_datetime(data.get("createdAt")),
            updated_at=_parse_datetime(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class PreferencesUpdate:
    """A partial preferences save.

    ``None`` fields keep the stored value. An empty ``enabled_categories``
    set is an explicit opt-out of everything and is kept as given.
    """

    address: str
    username: str | None = None
    email: str | None = None
    discord: str | None = None
    telegram: str | None = None
    enabled_categories: frozenset[Category] | None = None

    def apply(self, existing: UserPreferences | None) -> UserPreferences:
        """Merge this update over ``existing`` (or over nothing)."""
        now = _utcnow()
        base = existing or UserPreferences(address=self.address, created_at=now)

        def keep(new: str | None, old: str | None) -> str | None:
            return new if new else old

        return UserPreferences(
            address=self.address,
            username=keep(self.username, base.username),
            email=keep(self.email, base.email),
            discord=keep(self.discord, base.discord),
            telegram=keep(self.telegram, base.telegram),
            enabled_categories=(
                base.enabled_categories
                if self.enabled_categories is None
                else frozenset(self.enabled_categories)
            ),
            created_at=base.created_at,
            updated_at=now,
        )


@dataclass(frozen=True)
class AlertRule:
    """A user-defined alert rule.

    ``trigger_count`` is only ever changed through an explicit update; the
    store never increments it on its own.
    """

    id: int
    owner_address: str
    category: str
    name: str
    threshold: Decimal | None = DEFAULT_ALERT_THRESHOLD
    target_address: str | None = None
    enabled: bool = True
    trigger_count: int = 0
    tx_id: str | None = None
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the API/storage form."""
        return {
            "id": self.id,
            "ownerAddress": self.owner_address,
            "type": self.category,
            "name": self.name,
            "threshold": _format_decimal(self.threshold),
            "targetAddress": self.target_address,
            "enabled": self.enabled,
            "triggerCount": self.trigger_count,
            "txId": self.tx_id,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AlertRule:
        """Deserialize from the API/storage form."""
        return cls(
            id=int(data["id"]),
            owner_address=data["ownerAddress"],
            category=data["type"],
            name=data["name"],
            threshold=_parse_decimal(data.get("threshold")),
            target_address=data.get("targetAddress"),
            enabled=bool(data.get("enabled", True)),
            trigger_count=int(data.get("triggerCount", 0)),
            tx_id=data.get("txId"),
            created_at=_parse_datetime(data.get("createdAt")),
        )


@dataclass(frozen=True)
class AlertRuleChanges:
    """A partial alert rule edit; ``None`` fields are left unchanged."""

    category: str | None = None
    name: str | None = None
    threshold: Decimal | None = None
    target_address: str | None = None
    enabled: bool | None = None
    trigger_count: int | None = None
    tx_id: str | None = None

    def apply(self, rule: AlertRule) -> AlertRule:
        """Return ``rule`` with these changes applied."""
        return AlertRule(
            id=rule.id,
            owner_address=rule.owner_address,
            category=self.category if self.category is not None else rule.category,
            name=self.name if self.name is not None else rule.name,
            threshold=self.threshold if self.threshold is not None else rule.threshold,
            target_address=(
                self.target_address if self.target_address is not None else rule.target_address
            ),
            enabled=self.enabled if self.enabled is not None else rule.enabled,
            trigger_count=(
                self.trigger_count if self.trigger_count is not None else rule.trigger_count
            ),
            tx_id=self.tx_id if self.tx_id is not None else rule.tx_id,
            created_at=rule.created_at,
        )
