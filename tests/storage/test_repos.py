"""Tests for the preference and alert rule stores."""

import json
from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from stackpulse.alerter.models import ALL_CATEGORIES, Category
from stackpulse.storage.models import AlertRuleChanges, PreferencesUpdate
from stackpulse.storage.repos import (
    InMemoryAlertRuleStore,
    InMemoryPreferenceStore,
    NotFoundError,
    RedisAlertRuleStore,
    RedisPreferenceStore,
)

ALICE = "SP1ALICE"
BOB = "SP2BOB"

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client whose hash commands act on a dict."""
    hashes: dict[str, dict[str, str]] = {}
    strings: dict[str, int] = {}

    async def hset(key: str, field: str, value: str) -> int:
        created = field not in hashes.setdefault(key, {})
        hashes[key][field] = value
        return int(created)

    async def hget(key: str, field: str) -> str | None:
        return hashes.get(key, {}).get(field)

    async def hvals(key: str) -> list[str]:
        return list(hashes.get(key, {}).values())

    async def hdel(key: str, field: str) -> int:
        return int(hashes.get(key, {}).pop(field, None) is not None)

    async def set_(key: str, value: int, nx: bool = False) -> bool | None:
        if nx and key in strings:
            return None
        strings[key] = int(value)
        return True

    async def incr(key: str) -> int:
        strings[key] = strings.get(key, 0) + 1
        return strings[key]

    redis = MagicMock()
    redis.hset = AsyncMock(side_effect=hset)
    redis.hget = AsyncMock(side_effect=hget)
    redis.hvals = AsyncMock(side_effect=hvals)
    redis.hdel = AsyncMock(side_effect=hdel)
    redis.set = AsyncMock(side_effect=set_)
    redis.incr = AsyncMock(side_effect=incr)
    redis.hashes = hashes
    return redis


@pytest.fixture(params=["memory", "redis"])
def preference_store(request: pytest.FixtureRequest, mock_redis: MagicMock) -> Any:
    """Create each preference store backend."""
    if request.param == "memory":
        return InMemoryPreferenceStore()
    return RedisPreferenceStore(mock_redis)


@pytest.fixture(params=["memory", "redis"])
def alert_store(request: pytest.FixtureRequest, mock_redis: MagicMock) -> Any:
    """Create each alert rule store backend."""
    if request.param == "memory":
        return InMemoryAlertRuleStore()
    return RedisAlertRuleStore(mock_redis)


# ============================================================================
# Preference store tests
# ============================================================================


class TestPreferenceStore:
    """Behaviour shared by every preference store."""

    async def test_first_save_enables_every_category(self, preference_store: Any) -> None:
        """Test a first save without categories opts in to all of them."""
        saved = await preference_store.upsert(PreferencesUpdate(address=ALICE, email="a@x.io"))

        assert saved.enabled_categories == ALL_CATEGORIES
        assert saved.email == "a@x.io"

    async def test_merge_keeps_unsent_fields(self, preference_store: Any) -> None:
        """Test a later partial save does not erase earlier values."""
        first = await preference_store.upsert(PreferencesUpdate(address=ALICE, email="a@x.io"))
        await preference_store.upsert(PreferencesUpdate(address=ALICE, telegram="111"))

        stored = await preference_store.get(ALICE)

        assert stored is not None
        assert stored.email == "a@x.io"
        assert stored.telegram == "111"
        assert stored.created_at == first.created_at

    async def test_empty_string_keeps_prior_value(self, preference_store: Any) -> None:
        """Test blank fields do not clear stored ones."""
        await preference_store.upsert(PreferencesUpdate(address=ALICE, email="a@x.io"))
        await preference_store.upsert(PreferencesUpdate(address=ALICE, email=""))

        stored = await preference_store.get(ALICE)

        assert stored is not None
        assert stored.email == "a@x.io"

    async def test_explicit_empty_categories(self, preference_store: Any) -> None:
        """Test an empty category set opts out of everything."""
        await preference_store.upsert(PreferencesUpdate(address=ALICE))
        await preference_store.upsert(
            PreferencesUpdate(address=ALICE, enabled_categories=frozenset())
        )

        stored = await preference_store.get(ALICE)

        assert stored is not None
        assert stored.enabled_categories == frozenset()
        assert not stored.wants(Category.WHALE)

    async def test_categories_replaced(self, preference_store: Any) -> None:
        """Test a category list replaces the stored one."""
        await preference_store.upsert(
            PreferencesUpdate(address=ALICE, enabled_categories=frozenset({Category.NFT}))
        )

        stored = await preference_store.get(ALICE)

        assert stored is not None
        assert stored.enabled_categories == frozenset({Category.NFT})

    async def test_get_missing(self, preference_store: Any) -> None:
        """Test unknown addresses return None."""
        assert await preference_store.get("SPNOBODY") is None

    async def test_list_all(self, preference_store: Any) -> None:
        """Test every saved address is listed."""
        await preference_store.upsert(PreferencesUpdate(address=ALICE))
        await preference_store.upsert(PreferencesUpdate(address=BOB))

        users = await preference_store.list_all()

        assert {u.address for u in users} == {ALICE, BOB}

    async def test_delete(self, preference_store: Any) -> None:
        """Test delete reports whether a record existed."""
        await preference_store.upsert(PreferencesUpdate(address=ALICE))

        assert await preference_store.delete(ALICE) is True
        assert await preference_store.get(ALICE) is None
        assert await preference_store.delete(ALICE) is False


class TestRedisPreferenceStore:
    """Tests specific to the Redis preference store."""

    async def test_stored_as_json_in_hash(self, mock_redis: MagicMock) -> None:
        """Test records are camelCase JSON under the address field."""
        store = RedisPreferenceStore(mock_redis)

        await store.upsert(PreferencesUpdate(address=ALICE, discord="alice#1"))

        raw = mock_redis.hashes[RedisPreferenceStore.KEY_PREFERENCES][ALICE]
        document = json.loads(raw)
        assert document["discord"] == "alice#1"
        assert len(document["enabledAlerts"]) == len(ALL_CATEGORIES)


# ============================================================================
# Alert rule store tests
# ============================================================================


class TestAlertRuleStore:
    """Behaviour shared by every alert rule store."""

    async def test_create_defaults(self, alert_store: Any) -> None:
        """Test the default threshold and enabled flag."""
        rule = await alert_store.create(ALICE, category="whale", name="Big moves")

        assert rule.threshold == Decimal(10000)
        assert rule.enabled is True
        assert rule.trigger_count == 0
        assert rule.owner_address == ALICE

    async def test_explicit_zero_threshold_kept(self, alert_store: Any) -> None:
        """Test a zero threshold is not replaced by the default."""
        rule = await alert_store.create(
            ALICE, category="whale", name="Everything", threshold=Decimal(0)
        )
        assert rule.threshold == Decimal(0)

    async def test_ids_increase(self, alert_store: Any) -> None:
        """Test ids are unique and increasing."""
        first = await alert_store.create(ALICE, category="whale", name="a")
        second = await alert_store.create(ALICE, category="nft", name="b")

        assert second.id > first.id
        assert [r.id for r in await alert_store.list(ALICE)] == [first.id, second.id]

    async def test_rules_scoped_to_owner(self, alert_store: Any) -> None:
        """Test one owner never sees another's rules."""
        await alert_store.create(ALICE, category="whale", name="a")

        assert await alert_store.list(BOB) == []

    async def test_update(self, alert_store: Any) -> None:
        """Test changes apply and untouched fields survive."""
        rule = await alert_store.create(ALICE, category="whale", name="a", tx_id="0x1")

        updated = await alert_store.update(
            ALICE, rule.id, AlertRuleChanges(enabled=False, trigger_count=3)
        )

        assert updated.enabled is False
        assert updated.trigger_count == 3
        assert updated.name == "a"
        assert updated.tx_id == "0x1"
        assert (await alert_store.list(ALICE))[0].enabled is False

    async def test_update_missing(self, alert_store: Any) -> None:
        """Test updating an unknown rule raises NotFoundError."""
        with pytest.raises(NotFoundError):
            await alert_store.update(ALICE, 1, AlertRuleChanges(name="x"))

    async def test_update_other_owner(self, alert_store: Any) -> None:
        """Test a rule cannot be updated through another owner."""
        rule = await alert_store.create(ALICE, category="whale", name="a")

        with pytest.raises(NotFoundError):
            await alert_store.update(BOB, rule.id, AlertRuleChanges(name="x"))

    async def test_delete(self, alert_store: Any) -> None:
        """Test delete removes the rule and a second delete fails."""
        rule = await alert_store.create(ALICE, category="whale", name="a")

        await alert_store.delete(ALICE, rule.id)

        assert await alert_store.list(ALICE) == []
        with pytest.raises(NotFoundError):
            await alert_store.delete(ALICE, rule.id)


class TestRedisAlertRuleStore:
    """Tests specific to the Redis alert rule store."""

    async def test_sequence_seeded_once(self, mock_redis: MagicMock) -> None:
        """Test the id sequence is seeded with NX before incrementing."""
        store = RedisAlertRuleStore(mock_redis)

        await store.create(ALICE, category="whale", name="a")
        await store.create(ALICE, category="whale", name="b")

        for call in mock_redis.set.call_args_list:
            assert call.kwargs == {"nx": True}
        assert mock_redis.incr.call_count == 2

    async def test_threshold_stored_as_string(self, mock_redis: MagicMock) -> None:
        """Test thresholds survive JSON as decimal strings."""
        store = RedisAlertRuleStore(mock_redis)

        rule = await store.create(ALICE, category="whale", name="a", threshold=Decimal("2.5"))

        raw = mock_redis.hashes[f"{RedisAlertRuleStore.KEY_PREFIX_RULES}{ALICE}"][str(rule.id)]
        assert json.loads(raw)["threshold"] == "2.5"
        assert (await store.list(ALICE))[0].threshold == Decimal("2.5")
