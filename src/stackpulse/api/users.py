"""User preference and alert rule endpoints."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from aiohttp import web
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from stackpulse.alerter.models import Category
from stackpulse.storage.models import AlertRuleChanges, PreferencesUpdate
from stackpulse.storage.repos import NotFoundError

if TYPE_CHECKING:
    from stackpulse.storage.repos import AlertRuleStore, PreferenceStore

logger = logging.getLogger(__name__)


# ============================================================================
# Request bodies
# ============================================================================


class PreferencesRequest(BaseModel):
    """Body of a preferences save."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address: str | None = None
    username: str | None = None
    email: str | None = None
    discord: str | None = None
    telegram: str | None = None
    enabled_alerts: list[Category] | None = Field(default=None, alias="enabledAlerts")

    def to_update(self, address: str) -> PreferencesUpdate:
        return PreferencesUpdate(
            address=address,
            username=self.username,
            email=self.email,
            discord=self.discord,
            telegram=self.telegram,
            enabled_categories=(
                None if self.enabled_alerts is None else frozenset(self.enabled_alerts)
            ),
        )


class AlertCreateRequest(BaseModel):
    """Body of an alert rule creation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str = Field(min_length=1)
    name: str = Field(min_length=1)
    threshold: Decimal | None = Field(default=None, ge=0)
    target_address: str | None = Field(default=None, alias="targetAddress")
    enabled: bool = True
    tx_id: str | None = Field(default=None, alias="txId")


class AlertUpdateRequest(BaseModel):
    """Body of an alert rule edit; omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str | None = Field(default=None, min_length=1)
    name: str | None = Field(default=None, min_length=1)
    threshold: Decimal | None = Field(default=None, ge=0)
    target_address: str | None = Field(default=None, alias="targetAddress")
    enabled: bool | None = None
    trigger_count: int | None = Field(default=None, alias="triggerCount", ge=0)
    tx_id: str | None = Field(default=None, alias="txId")

    def to_changes(self) -> AlertRuleChanges:
        return AlertRuleChanges(
            category=self.type,
            name=self.name,
            threshold=self.threshold,
            target_address=self.target_address,
            enabled=self.enabled,
            trigger_count=self.trigger_count,
            tx_id=self.tx_id,
        )


def _validation_response(error: ValidationError) -> web.Response:
    details = [
        {"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]}
        for e in error.errors()
    ]
    return web.json_response({"error": "Invalid request", "details": details}, status=400)


async def _read_json(request: web.Request) -> Any:
    if not request.can_read_body:
        return {}
    try:
        return await request.json()
    except ValueError:
        raise web.HTTPBadRequest(
            text='{"error": "Invalid JSON body"}', content_type="application/json"
        ) from None


def _alert_id(request: web.Request) -> int | None:
    try:
        return int(request.match_info["alert_id"])
    except ValueError:
        return None


# ============================================================================
# Routes
# ============================================================================


class UserRoutes:
    """CRUD routes over the preference and alert rule stores."""

    def __init__(self, preferences: PreferenceStore, alerts: AlertRuleStore) -> None:
        self.preferences = preferences
        self.alerts = alerts

    def register(self, app: web.Application) -> None:
        """Add the routes to an application."""
        app.router.add_post("/api/users", self.create_user)
        app.router.add_get("/api/users", self.list_users)
        app.router.add_get("/api/users/{address}", self.get_user)
        app.router.add_put("/api/users/{address}", self.update_user)
        app.router.add_delete("/api/users/{address}", self.delete_user)
        app.router.add_get("/api/users/{address}/alerts", self.list_alerts)
        app.router.add_post("/api/users/{address}/alerts", self.create_alert)
        app.router.add_put("/api/users/{address}/alerts/{alert_id}", self.update_alert)
        app.router.add_delete("/api/users/{address}/alerts/{alert_id}", self.delete_alert)

    # Preferences

    async def create_user(self, request: web.Request) -> web.Response:
        try:
            body = PreferencesRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            return _validation_response(e)

        if not body.address:
            return web.json_response({"error": "Address is required"}, status=400)

        prefs = await self.preferences.upsert(body.to_update(body.address))
        logger.info(f"User preferences saved for {body.address}")
        return web.json_response({"success": True, "user": prefs.to_dict()})

    async def list_users(self, _request: web.Request) -> web.Response:
        users = [p.to_dict() for p in await self.preferences.list_all()]
        return web.json_response({"users": users, "count": len(users)})

    async def get_user(self, request: web.Request) -> web.Response:
        prefs = await self.preferences.get(request.match_info["address"])
        if prefs is None:
            return web.json_response({"error": "User not found"}, status=404)
        return web.json_response({"user": prefs.to_dict()})

    async def update_user(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        try:
            body = PreferencesRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            return _validation_response(e)

        prefs = await self.preferences.upsert(body.to_update(address))
        logger.info(f"User preferences updated for {address}")
        return web.json_response({"success": True, "user": prefs.to_dict()})

    async def delete_user(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        if not await self.preferences.delete(address):
            return web.json_response({"error": "User not found"}, status=404)
        logger.info(f"User {address} deleted")
        return web.json_response({"success": True})

    # Alert rules

    async def list_alerts(self, request: web.Request) -> web.Response:
        rules = [r.to_dict() for r in await self.alerts.list(request.match_info["address"])]
        return web.json_response({"alerts": rules, "count": len(rules)})

    async def create_alert(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        try:
            body = AlertCreateRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            return _validation_response(e)

        rule = await self.alerts.create(
            address,
            category=body.type,
            name=body.name,
            threshold=body.threshold,
            target_address=body.target_address,
            enabled=body.enabled,
            tx_id=body.tx_id,
        )
        return web.json_response({"success": True, "alert": rule.to_dict()})

    async def update_alert(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        alert_id = _alert_id(request)
        try:
            body = AlertUpdateRequest.model_validate(await _read_json(request))
        except ValidationError as e:
            return _validation_response(e)

        if alert_id is None:
            return web.json_response({"error": "Alert not found"}, status=404)
        try:
            rule = await self.alerts.update(address, alert_id, body.to_changes())
        except NotFoundError:
            return web.json_response({"error": "Alert not found"}, status=404)

        logger.info(f"Alert {alert_id} updated for {address}")
        return web.json_response({"success": True, "alert": rule.to_dict()})

    async def delete_alert(self, request: web.Request) -> web.Response:
        address = request.match_info["address"]
        alert_id = _alert_id(request)
        if alert_id is None:
            return web.json_response({"error": "Alert not found"}, status=404)
        try:
            await self.alerts.delete(address, alert_id)
        except NotFoundError:
            return web.json_response({"error": "Alert not found"}, status=404)
        return web.json_response({"success": True})
