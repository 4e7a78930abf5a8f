"""Ingestion layer - chainhook webhook handling and event statistics."""

from stackpulse.ingestor.handlers import (
    HOOKS,
    HookDefinition,
    UnknownHookError,
    WebhookProcessor,
)
from stackpulse.ingestor.stats import EventStatistics

__all__ = [
    "HOOKS",
    "EventStatistics",
    "HookDefinition",
    "UnknownHookError",
    "WebhookProcessor",
]
