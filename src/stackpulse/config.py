"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for StackPulse,
loading and validating environment variables at startup. Every channel
credential is optional; a missing one disables only that channel.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EMAIL_FROM = "StackPulse <alerts@stackpulse.app>"


class ChainhookSettings(BaseSettings):
    """Inbound webhook settings."""

    model_config = SettingsConfigDict(env_prefix="CHAINHOOK_")

    auth_token: SecretStr | None = Field(
        default=None,
        alias="CHAINHOOK_AUTH_TOKEN",
        description="Shared bearer token expected on chainhook deliveries",
    )

    @property
    def enabled(self) -> bool:
        """Check if deliveries can be authenticated."""
        return bool(self.auth_token and self.auth_token.get_secret_value())


class DiscordSettings(BaseSettings):
    """Discord notification settings."""

    model_config = SettingsConfigDict(env_prefix="DISCORD_")

    webhook_url: SecretStr | None = Field(
        default=None,
        alias="DISCORD_WEBHOOK_URL",
        description="Discord webhook URL for alerts",
    )

    @field_validator("webhook_url")
    @classmethod
    def validate_url(cls, v: SecretStr | None) -> SecretStr | None:
        """Validate webhook URL format."""
        if v is None:
            return v
        if not v.get_secret_value().startswith(("http://", "https://")):
            raise ValueError("DISCORD_WEBHOOK_URL must be an HTTP(S) URL")
        return v

    @property
    def enabled(self) -> bool:
        """Check if Discord notifications are enabled."""
        return self.webhook_url is not None


class TelegramSettings(BaseSettings):
    """Telegram notification settings."""

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")

    bot_token: SecretStr | None = Field(
        default=None,
        alias="TELEGRAM_BOT_TOKEN",
        description="Telegram bot token",
    )

    @property
    def enabled(self) -> bool:
        """Check if Telegram notifications are enabled."""
        return self.bot_token is not None


class EmailSettings(BaseSettings):
    """Transactional email settings."""

    model_config = SettingsConfigDict(env_prefix="EMAIL_")

    api_key: SecretStr | None = Field(
        default=None,
        alias="EMAIL_API_KEY",
        description="Resend API key",
    )
    from_address: str = Field(
        default=DEFAULT_EMAIL_FROM,
        alias="EMAIL_FROM",
        description="Sender of notification emails",
    )

    @property
    def enabled(self) -> bool:
        """Check if email notifications are enabled."""
        return self.api_key is not None


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; in-memory stores are used when unset",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        """Check if the Redis stores should be used."""
        return self.url is not None


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from stackpulse.config import get_settings

        settings = get_settings()
        print(settings.port)
        print(settings.discord.enabled)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    chainhook: ChainhookSettings = Field(default_factory=ChainhookSettings)
    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    telegram: TelegramSettings = Field(default_factory=TelegramSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    host: str = Field(
        default="0.0.0.0",
        alias="HOST",
        description="Interface the HTTP server binds to",
    )
    port: int = Field(
        default=3000,
        alias="PORT",
        description="HTTP port for webhooks and the API",
        ge=1,
        le=65535,
    )
    dispatch_timeout: float = Field(
        default=8.0,
        alias="DISPATCH_TIMEOUT",
        description="Seconds allowed for each notification dispatch",
        gt=0,
    )
    stacks_network: Literal["mainnet", "testnet"] = Field(
        default="mainnet",
        alias="STACKS_NETWORK",
        description="Network used for explorer links",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Run without sending actual notifications",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "chainhook_auth": "(set)" if self.chainhook.enabled else "(not set)",
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(in-memory)",
            "discord_enabled": str(self.discord.enabled),
            "telegram_enabled": str(self.telegram.enabled),
            "email_enabled": str(self.email.enabled),
            "email_from": self.email.from_address,
            "log_level": self.log_level,
            "host": self.host,
            "port": str(self.port),
            "dispatch_timeout": str(self.dispatch_timeout),
            "stacks_network": self.stacks_network,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.rindex("@")
            creds_part = url[protocol_end:at_pos]
            username = creds_part.split(":")[0]
            return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
