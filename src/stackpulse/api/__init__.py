"""HTTP surface - chainhook webhooks, health, stats and user CRUD."""

from stackpulse.api.server import StackPulseServer
from stackpulse.api.users import UserRoutes

__all__ = [
    "StackPulseServer",
    "UserRoutes",
]
