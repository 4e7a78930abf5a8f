"""Storage layer - user preferences and alert rules."""

from stackpulse.storage.models import (
    AlertRule,
    AlertRuleChanges,
    PreferencesUpdate,
    UserPreferences,
)
from stackpulse.storage.repos import (
    AlertRuleStore,
    InMemoryAlertRuleStore,
    InMemoryPreferenceStore,
    NotFoundError,
    PreferenceStore,
    RedisAlertRuleStore,
    RedisPreferenceStore,
)

__all__ = [
    "AlertRule",
    "AlertRuleChanges",
    "AlertRuleStore",
    "InMemoryAlertRuleStore",
    "InMemoryPreferenceStore",
    "NotFoundError",
    "PreferenceStore",
    "PreferencesUpdate",
    "RedisAlertRuleStore",
    "RedisPreferenceStore",
    "UserPreferences",
]
