"""CLI entry point for StackPulse.

This module provides the main entry point for running the webhook
server from the command line.

Usage:
    python -m stackpulse [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.config
import sys
from dataclasses import dataclass
from typing import NoReturn

from pydantic import ValidationError
from redis.asyncio import Redis

from stackpulse import __version__
from stackpulse.alerter.channels import DiscordChannel, EmailChannel, TelegramChannel
from stackpulse.alerter.dispatcher import NotificationBroadcaster
from stackpulse.alerter.formatter import NotificationFormatter
from stackpulse.api.server import StackPulseServer
from stackpulse.config import Settings, clear_settings_cache, get_settings
from stackpulse.ingestor.handlers import WebhookProcessor
from stackpulse.ingestor.stats import EventStatistics
from stackpulse.shutdown import GracefulShutdown, ShutdownTimeoutError
from stackpulse.storage.repos import (
    AlertRuleStore,
    InMemoryAlertRuleStore,
    InMemoryPreferenceStore,
    PreferenceStore,
    RedisAlertRuleStore,
    RedisPreferenceStore,
)

# Application info
APP_NAME = "StackPulse"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="stackpulse",
        description="Receive Stacks chainhook webhooks and fan out notifications.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stackpulse                     Run the webhook server
  python -m stackpulse --config-check      Validate config and exit
  python -m stackpulse --dry-run           Run without sending notifications
  python -m stackpulse --port 8080         Listen on another port
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit without starting the server",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Process webhooks but don't send notifications",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Override HTTP port (default: from settings)",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
            "aiohttp.access": {"level": "WARNING"},
            "redis": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_banner() -> None:
    """Print the application startup banner."""
    banner = f"""
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║   {APP_NAME:^56}   ║
║   {"v" + APP_VERSION:^56}   ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
"""
    print(banner)


def _enabled(flag: str) -> str:
    return "enabled" if flag == "True" else "disabled"


def print_config_summary(settings: Settings, dry_run: bool) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
        dry_run: Whether dry-run mode is enabled.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Listen: {summary['host']}:{summary['port']}")
    print(f"  Chainhook Auth: {summary['chainhook_auth']}")
    print(f"  Storage: {summary['redis_url']}")
    print(f"  Network: {summary['stacks_network']}")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Dispatch Timeout: {summary['dispatch_timeout']}s")
    print(f"  Dry Run: {dry_run}")
    print(f"  Discord: {_enabled(summary['discord_enabled'])}")
    print(f"  Telegram: {_enabled(summary['telegram_enabled'])}")
    print(f"  Email: {_enabled(summary['email_enabled'])}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        clear_settings_cache()
        return get_settings()
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Run configuration check and exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings, dry_run=settings.dry_run)

    print("Checking component availability...")
    for name, enabled in (
        ("Chainhook auth", settings.chainhook.enabled),
        ("Discord", settings.discord.enabled),
        ("Telegram", settings.telegram.enabled),
        ("Email", settings.email.enabled),
        ("Redis", settings.redis.enabled),
    ):
        print(f"  {name}: {'configured' if enabled else 'not configured'}")

    if not settings.chainhook.enabled:
        print()
        print("Warning: CHAINHOOK_AUTH_TOKEN is not set; every delivery will be rejected.")

    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


@dataclass
class Components:
    """Objects constructed once at startup and shared by every request."""

    server: StackPulseServer
    broadcaster: NotificationBroadcaster
    stats: EventStatistics
    redis: Redis | None = None


def create_stores(redis: Redis | None) -> tuple[PreferenceStore, AlertRuleStore]:
    """Create the preference and alert rule stores, Redis-backed when a client is given."""
    if redis is not None:
        return RedisPreferenceStore(redis), RedisAlertRuleStore(redis)
    return InMemoryPreferenceStore(), InMemoryAlertRuleStore()


def create_broadcaster(
    settings: Settings, preferences: PreferenceStore, *, dry_run: bool
) -> NotificationBroadcaster:
    """Create the broadcaster with every configured channel.

    In dry-run mode no channel is attached, so broadcasts are resolved and
    logged but nothing is sent.
    """
    formatter = NotificationFormatter(network=settings.stacks_network)
    discord = telegram = email = None

    if not dry_run:
        if settings.discord.webhook_url is not None:
            discord = DiscordChannel(
                settings.discord.webhook_url.get_secret_value(), formatter=formatter
            )
        if settings.telegram.bot_token is not None:
            telegram = TelegramChannel(
                settings.telegram.bot_token.get_secret_value(), formatter=formatter
            )
        if settings.email.api_key is not None:
            email = EmailChannel(
                settings.email.api_key.get_secret_value(),
                from_address=settings.email.from_address,
                formatter=formatter,
            )

    return NotificationBroadcaster(
        preferences,
        discord=discord,
        telegram=telegram,
        email=email,
        dispatch_timeout=settings.dispatch_timeout,
    )


def build_components(settings: Settings, *, dry_run: bool = False) -> Components:
    """Wire stores, channels, processor and server together."""
    redis = Redis.from_url(settings.redis.url) if settings.redis.url else None
    preferences, alerts = create_stores(redis)
    broadcaster = create_broadcaster(settings, preferences, dry_run=dry_run)
    stats = EventStatistics()
    processor = WebhookProcessor(broadcaster, stats)

    auth_token = (
        settings.chainhook.auth_token.get_secret_value()
        if settings.chainhook.auth_token is not None
        else None
    )
    server = StackPulseServer(processor, stats, preferences, alerts, auth_token=auth_token)
    return Components(server=server, broadcaster=broadcaster, stats=stats, redis=redis)


async def run_server(
    settings: Settings,
    dry_run: bool,
    port: int | None = None,
    shutdown_timeout: float = 30.0,
) -> int:
    """Run the HTTP server with graceful shutdown handling.

    Args:
        settings: Application settings.
        dry_run: Whether to skip sending notifications.
        port: Port override.
        shutdown_timeout: Maximum time to wait for graceful shutdown.

    Returns:
        Exit code.
    """
    components = build_components(settings, dry_run=dry_run)
    shutdown = GracefulShutdown(timeout=shutdown_timeout)

    try:
        async with shutdown:
            if components.redis is not None:
                shutdown.register_cleanup(components.redis.aclose)
            shutdown.register_cleanup(components.server.stop)

            await components.server.start(settings.host, port or settings.port)
            logger.info(
                "Channels: %s", ", ".join(components.broadcaster.configured_channels) or "none"
            )
            logger.info("Ready to receive chainhook events. Press Ctrl+C to stop.")

            await shutdown.wait()
            logger.info("Shutdown signal received, stopping server...")

        return EXIT_SUCCESS
    except ShutdownTimeoutError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.exception("Server failed: %s", e)
        return EXIT_ERROR


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    print_banner()

    if args.config_check:
        sys.exit(run_config_check(settings))

    dry_run = args.dry_run or settings.dry_run

    print_config_summary(settings, dry_run)

    exit_code = asyncio.run(run_server(settings, dry_run, port=args.port))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
