"""Repository implementations for user preferences and alert rules.

Two interchangeable backends are provided behind async Protocols: an
in-memory one (the default, lost on restart) and a Redis one selected when
a Redis URL is configured. Read-modify-write operations are serialized
with an ``asyncio.Lock`` per store.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from decimal import Decimal
from typing import Any, Protocol

from stackpulse.storage.models import (
    DEFAULT_ALERT_THRESHOLD,
    AlertRule,
    AlertRuleChanges,
    PreferencesUpdate,
    UserPreferences,
)

logger = logging.getLogger(__name__)


class NotFoundError(LookupError):
    """Raised when a stored record does not exist."""


def _now_ms() -> int:
    return int(time.time() * 1000)


class PreferenceStore(Protocol):
    """Address-keyed store of notification preferences."""

    async def upsert(self, update: PreferencesUpdate) -> UserPreferences:
        """Merge a partial save over the stored record and return the result."""
        ...

    async def get(self, address: str) -> UserPreferences | None:
        """Return the stored record, or None."""
        ...

    async def list_all(self) -> list[UserPreferences]:
        """Return every stored record."""
        ...

    async def delete(self, address: str) -> bool:
        """Delete a record. Returns True if one existed."""
        ...


class AlertRuleStore(Protocol):
    """Owner-keyed store of alert rules."""

    async def create(
        self,
        owner: str,
        *,
        category: str,
        name: str,
        threshold: Decimal | None = None,
        target_address: str | None = None,
        enabled: bool = True,
        tx_id: str | None = None,
    ) -> AlertRule:
        """Create and return a new rule."""
        ...

    async def list(self, owner: str) -> list[AlertRule]:
        """Return the owner's rules ordered by id."""
        ...

    async def update(self, owner: str, alert_id: int, changes: AlertRuleChanges) -> AlertRule:
        """Apply changes to a rule. Raises NotFoundError if absent."""
        ...

    async def delete(self, owner: str, alert_id: int) -> None:
        """Delete a rule. Raises NotFoundError if absent."""
        ...


def _new_rule(
    alert_id: int,
    owner: str,
    *,
    category: str,
    name: str,
    threshold: Decimal | None,
    target_address: str | None,
    enabled: bool,
    tx_id: str | None,
) -> AlertRule:
    return AlertRule(
        id=alert_id,
        owner_address=owner,
        category=category,
        name=name,
        threshold=DEFAULT_ALERT_THRESHOLD if threshold is None else threshold,
        target_address=target_address or None,
        enabled=enabled,
        tx_id=tx_id,
    )


# ============================================================================
# In-memory backend
# ============================================================================


class InMemoryPreferenceStore:
    """Dict-backed preference store."""

    def __init__(self) -> None:
        self._records: dict[str, UserPreferences] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, update: PreferencesUpdate) -> UserPreferences:
        async with self._lock:
            merged = update.apply(self._records.get(update.address))
            self._records[update.address] = merged
        logger.debug(f"Saved preferences for {update.address}")
        return merged

    async def get(self, address: str) -> UserPreferences | None:
        return self._records.get(address)

    async def list_all(self) -> list[UserPreferences]:
        return list(self._records.values())

    async def delete(self, address: str) -> bool:
        async with self._lock:
            return self._records.pop(address, None) is not None


class InMemoryAlertRuleStore:
    """Dict-backed alert rule store."""

    def __init__(self) -> None:
        self._rules: dict[str, dict[int, AlertRule]] = {}
        self._last_id = 0
        self._lock = asyncio.Lock()

    def _next_id(self) -> int:
        self._last_id = max(_now_ms(), self._last_id + 1)
        return self._last_id

    async def create(
        self,
        owner: str,
        *,
        category: str,
        name: str,
        threshold: Decimal | None = None,
        target_address: str | None = None,
        enabled: bool = True,
        tx_id: str | None = None,
    ) -> AlertRule:
        async with self._lock:
            rule = _new_rule(
                self._next_id(),
                owner,
                category=category,
                name=name,
                threshold=threshold,
                target_address=target_address,
                enabled=enabled,
                tx_id=tx_id,
            )
            self._rules.setdefault(owner, {})[rule.id] = rule
        logger.info(f"Created alert {rule.id} for {owner}")
        return rule

    async def list(self, owner: str) -> list[AlertRule]:
        return sorted(self._rules.get(owner, {}).values(), key=lambda r: r.id)

    async def update(self, owner: str, alert_id: int, changes: AlertRuleChanges) -> AlertRule:
        async with self._lock:
            rules = self._rules.get(owner, {})
            if alert_id not in rules:
                raise NotFoundError(f"Alert {alert_id} not found for {owner}")
            rule = changes.apply(rules[alert_id])
            rules[alert_id] = rule
        return rule

    async def delete(self, owner: str, alert_id: int) -> None:
        async with self._lock:
            rules = self._rules.get(owner, {})
            if rules.pop(alert_id, None) is None:
                raise NotFoundError(f"Alert {alert_id} not found for {owner}")
        logger.info(f"Deleted alert {alert_id} for {owner}")


# ============================================================================
# Redis backend
# ============================================================================


class RedisPreferenceStore:
    """Preference store keeping one JSON document per address in a Redis hash."""

    KEY_PREFERENCES = "stackpulse:prefs"

    def __init__(self, redis: Any) -> None:
        """Initialize the store.

        Args:
            redis: Redis client (async).
        """
        self.redis = redis
        self._lock = asyncio.Lock()

    async def upsert(self, update: PreferencesUpdate) -> UserPreferences:
        async with self._lock:
            existing = await self.get(update.address)
            merged = update.apply(existing)
            await self.redis.hset(
                self.KEY_PREFERENCES, update.address, json.dumps(merged.to_dict())
            )
        logger.debug(f"Saved preferences for {update.address}")
        return merged

    async def get(self, address: str) -> UserPreferences | None:
        data = await self.redis.hget(self.KEY_PREFERENCES, address)
        if not data:
            return None
        return UserPreferences.from_dict(json.loads(data))

    async def list_all(self) -> list[UserPreferences]:
        values = await self.redis.hvals(self.KEY_PREFERENCES)
        return [UserPreferences.from_dict(json.loads(v)) for v in values]

    async def delete(self, address: str) -> bool:
        async with self._lock:
            removed = await self.redis.hdel(self.KEY_PREFERENCES, address)
        return bool(removed)


class RedisAlertRuleStore:
    """Alert rule store keeping one Redis hash of JSON documents per owner."""

    KEY_PREFIX_RULES = "stackpulse:alerts:"
    KEY_SEQUENCE = "stackpulse:alerts:seq"

    def __init__(self, redis: Any) -> None:
        """Initialize the store.

        Args:
            redis: Redis client (async).
        """
        self.redis = redis
        self._lock = asyncio.Lock()

    def _key(self, owner: str) -> str:
        return f"{self.KEY_PREFIX_RULES}{owner}"

    async def _next_id(self) -> int:
        # Seed the sequence with the current time so ids stay creation-time tokens
        await self.redis.set(self.KEY_SEQUENCE, _now_ms(), nx=True)
        return int(await self.redis.incr(self.KEY_SEQUENCE))

    async def _get(self, owner: str, alert_id: int) -> AlertRule:
        data = await self.redis.hget(self._key(owner), str(alert_id))
        if not data:
            raise NotFoundError(f"Alert {alert_id} not found for {owner}")
        return AlertRule.from_dict(json.loads(data))

    async def create(
        self,
        owner: str,
        *,
        category: str,
        name: str,
        threshold: Decimal | None = None,
        target_address: str | None = None,
        enabled: bool = True,
        tx_id: str | None = None,
    ) -> AlertRule:
        async with self._lock:
            rule = _new_rule(
                await self._next_id(),
                owner,
                category=category,
                name=name,
                threshold=threshold,
                target_address=target_address,
                enabled=enabled,
                tx_id=tx_id,
            )
            await self.redis.hset(self._key(owner), str(rule.id), json.dumps(rule.to_dict()))
        logger.info(f"Created alert {rule.id} for {owner}")
        return rule

    async def list(self, owner: str) -> list[AlertRule]:
        values = await self.redis.hvals(self._key(owner))
        rules = [AlertRule.from_dict(json.loads(v)) for v in values]
        return sorted(rules, key=lambda r: r.id)

    async def update(self, owner: str, alert_id: int, changes: AlertRuleChanges) -> AlertRule:
        async with self._lock:
            rule = changes.apply(await self._get(owner, alert_id))
            await self.redis.hset(self._key(owner), str(alert_id), json.dumps(rule.to_dict()))
        return rule

    async def delete(self, owner: str, alert_id: int) -> None:
        async with self._lock:
            removed = await self.redis.hdel(self._key(owner), str(alert_id))
        if not removed:
            raise NotFoundError(f"Alert {alert_id} not found for {owner}")
        logger.info(f"Deleted alert {alert_id} for {owner}")
