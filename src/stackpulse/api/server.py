"""HTTP server: chainhook webhooks, health, statistics and metrics.

Only the chainhook delivery routes are authenticated. The bearer token is
compared in constant time and the server refuses every delivery when no
token is configured.
"""

from __future__ import annotations

import hmac
import logging
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from aiohttp import web
from prometheus_client import generate_latest

from stackpulse import __version__
from stackpulse.api.users import UserRoutes
from stackpulse.chain.models import ChainhookPayload
from stackpulse.ingestor.handlers import HOOKS

if TYPE_CHECKING:
    from stackpulse.ingestor.handlers import WebhookProcessor
    from stackpulse.ingestor.stats import EventStatistics
    from stackpulse.storage.repos import AlertRuleStore, PreferenceStore

logger = logging.getLogger(__name__)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# Chainhook batches can carry many blocks
MAX_BODY_SIZE = 10 * 1024 * 1024


def _utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


class StackPulseServer:
    """aiohttp application wrapping the webhook processor and the stores."""

    def __init__(
        self,
        processor: WebhookProcessor,
        stats: EventStatistics,
        preferences: PreferenceStore,
        alerts: AlertRuleStore,
        *,
        auth_token: str | None,
    ) -> None:
        """Initialize the server.

        Args:
            processor: Processor handling chainhook deliveries.
            stats: Statistics served by ``/api/stats``.
            preferences: Preference store for the user routes.
            alerts: Alert rule store for the user routes.
            auth_token: Shared bearer token; deliveries are rejected when unset.
        """
        self.processor = processor
        self.stats = stats
        self.user_routes = UserRoutes(preferences, alerts)
        self._auth_token = auth_token or ""
        self._start_time = time.monotonic()

        self._runner: web.AppRunner | None = None

        if not self._auth_token:
            logger.warning("No chainhook auth token configured; all deliveries will be rejected")

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    def is_authorized(self, request: web.Request) -> bool:
        """Check the bearer token of a delivery."""
        if not self._auth_token:
            return False
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme != "Bearer" or not token:
            return False
        return hmac.compare_digest(token.encode(), self._auth_token.encode())

    # Handlers

    async def _handle_chainhook(self, request: web.Request) -> web.Response:
        """Handle POST /api/chainhooks/{slug}."""
        slug = request.match_info["slug"]

        if not self.is_authorized(request):
            logger.warning(f"Unauthorized chainhook delivery for {slug} from {request.remote}")
            return web.json_response({"error": "Unauthorized"}, status=401)

        if not self.processor.has_hook(slug):
            return web.json_response({"error": f"Unknown chainhook: {slug}"}, status=404)

        try:
            payload = ChainhookPayload.from_dict(await request.json())
            await self.processor.process(slug, payload)
        except Exception:
            logger.exception(f"Error processing {slug} delivery")
            return web.json_response({"error": "Processing failed"}, status=500)

        return web.json_response({"success": True, "processed": slug})

    async def _handle_chainhook_status(self, _request: web.Request) -> web.Response:
        """Handle GET /api/chainhooks/status."""
        active = [hook.name for hook in HOOKS if self.processor.has_hook(hook.slug)]
        return web.json_response(
            {"registered": len(HOOKS), "active": len(active), "chainhooks": active}
        )

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle /health endpoint."""
        return web.json_response(
            {"status": "healthy", "timestamp": _utc_timestamp(), "version": __version__}
        )

    async def _handle_stats(self, _request: web.Request) -> web.Response:
        """Handle /api/stats endpoint."""
        return web.json_response(
            {
                "stats": self.stats.to_dict(),
                "uptime": round(time.monotonic() - self._start_time, 3),
                "timestamp": _utc_timestamp(),
            }
        )

    async def _handle_metrics(self, _request: web.Request) -> web.Response:
        """Handle /metrics endpoint (Prometheus format)."""
        return web.Response(
            body=generate_latest(),
            content_type="text/plain",
            charset="utf-8",
        )

    def create_app(self) -> web.Application:
        """Create the aiohttp application."""
        app = web.Application(client_max_size=MAX_BODY_SIZE)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        app.router.add_get("/api/stats", self._handle_stats)
        app.router.add_get("/api/chainhooks/status", self._handle_chainhook_status)
        app.router.add_post("/api/chainhooks/{slug}", self._handle_chainhook)
        self.user_routes.register(app)
        return app

    async def start(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        """Start serving.

        Args:
            host: Interface to bind.
            port: Port to listen on.
        """
        if self._runner:
            logger.warning("HTTP server already running")
            return

        # A client that disconnects cancels its in-flight handler
        self._runner = web.AppRunner(self.create_app(), handler_cancellation=True)
        await self._runner.setup()

        site = web.TCPSite(self._runner, host, port)
        await site.start()

        logger.info(f"HTTP server started on {host}:{port}")

    async def stop(self) -> None:
        """Stop serving."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("HTTP server stopped")
