"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
Nested groups are addressed with a double underscore, e.g. ``BOT__TOKEN``
or ``OUTBOUND__MAX_ATTEMPTS``.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SNOWFLAKE_RE = re.compile(r"^\d{17,19}$")


def is_snowflake(value: str | None) -> bool:
    """Return True if value looks like a Discord snowflake (17-19 decimal digits)."""
    return bool(value) and SNOWFLAKE_RE.match(value) is not None


class BotSettings(BaseSettings):
    """Discord bot configuration."""

    token: str = Field(default="", description="Discord bot token")
    application_id: str | None = Field(
        default=None, description="Discord application ID (snowflake)"
    )
    default_guild_id: str | None = Field(
        default=None,
        description="If set, slash commands are registered to this guild instantly. "
                    "If None, they are registered globally (up to 1 hour propagation).",
    )
    default_channel_id: str | None = Field(
        default=None,
        description="Channel that POST /send delivers to. Callers cannot pick a channel.",
    )
    sync_commands: bool = Field(
        default=True, description="Push the slash-command set to Discord on ready"
    )
    login_attempts: int = Field(default=3, ge=1, description="Gateway login attempts")
    login_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for READY per login attempt"
    )
    login_retry_delay: float = Field(
        default=5.0, ge=0, description="Seconds between failed login attempts"
    )

    model_config = SettingsConfigDict(env_prefix="BOT_")

    @field_validator("application_id", "default_guild_id", "default_channel_id")
    @classmethod
    def _check_snowflake(cls, value: str | None) -> str | None:
        if value in (None, ""):
            return None
        value = value.strip()
        if not is_snowflake(value):
            raise ValueError("must be a valid Discord snowflake (17-19 digits)")
        return value


class DispatchSettings(BaseSettings):
    """Inbound interaction dispatch configuration."""

    response_deadline_ms: int = Field(
        default=3000,
        gt=0,
        description="Milliseconds a handler may run before the invoker gets a timeout reply",
    )
    dedupe_window: int = Field(
        default=1024,
        ge=1,
        description="How many recent interaction IDs are remembered to drop redeliveries",
    )

    model_config = SettingsConfigDict(env_prefix="DISPATCH_")

    @property
    def response_deadline(self) -> float:
        """Deadline in seconds."""
        return self.response_deadline_ms / 1000


class OutboundSettings(BaseSettings):
    """Outbound send retry budget."""

    max_attempts: int = Field(default=5, ge=1, description="Attempts per outbound call")
    base_delay: float = Field(default=1.0, ge=0, description="First backoff delay (seconds)")
    max_delay: float = Field(default=30.0, ge=0, description="Backoff ceiling (seconds)")
    backoff_multiplier: float = Field(default=2.0, ge=1, description="Exponential base")
    max_retry_after: float = Field(
        default=30.0,
        ge=0,
        description="Longest platform retry-after waited out before a send gives up (seconds)",
    )
    max_ratelimit_timeout: float = Field(
        default=30.0,
        ge=30.0,
        description="Rate limits longer than this are raised by discord.py instead of "
                    "being slept through inside the library",
    )

    model_config = SettingsConfigDict(env_prefix="OUTBOUND_")


class ApiSettings(BaseSettings):
    """REST API configuration."""

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Bind port")
    api_key: str = Field(default="", description="Bearer token required by /api/discord/*")
    allow_anonymous: bool = Field(
        default=False, description="Serve /api/discord/* without a bearer token"
    )
    requests_per_window: int = Field(default=30, ge=1, description="Per-caller request limit")
    window_seconds: float = Field(default=60.0, gt=0, description="Request limit window")

    model_config = SettingsConfigDict(env_prefix="API_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    bot: BotSettings = Field(default_factory=BotSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    outbound: OutboundSettings = Field(default_factory=OutboundSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


@dataclass
class ConfigReport:
    """Result of check_settings(): blocking errors and advisory warnings."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def check_settings(settings: Settings) -> ConfigReport:
    """
    Check that the settings are complete enough to start the bridge.

    Format problems are already rejected when Settings is constructed; this
    only looks for values that are missing.
    """
    report = ConfigReport()

    if not settings.bot.token:
        report.errors.append("BOT__TOKEN is required and must be set to a valid Discord bot token")
    if not settings.bot.application_id:
        report.errors.append("BOT__APPLICATION_ID is required and must be set to your application ID")
    if not settings.api.api_key and not settings.api.allow_anonymous:
        report.errors.append(
            "API__API_KEY is not set. Set it, or set API__ALLOW_ANONYMOUS=true to serve "
            "the Discord endpoints without authentication"
        )

    if not settings.bot.default_guild_id:
        report.warnings.append(
            "BOT__DEFAULT_GUILD_ID is not set - commands will be registered globally "
            "(may take up to 1 hour to appear)"
        )
    if not settings.bot.default_channel_id:
        report.warnings.append(
            "BOT__DEFAULT_CHANNEL_ID is not set - POST /send will answer MISSING_DEFAULT_CHANNEL"
        )
    if settings.api.allow_anonymous:
        report.warnings.append("API__ALLOW_ANONYMOUS is enabled - Discord endpoints are unauthenticated")

    return report


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    if env_file:
        return Settings(_env_file=env_file)
    return Settings()
