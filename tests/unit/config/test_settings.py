"""
Tests for settings loading and the startup configuration report.
"""

import pytest
from pydantic import ValidationError

from gatebridge.config.settings import (
    ApiSettings,
    BotSettings,
    DispatchSettings,
    OutboundSettings,
    Settings,
    check_settings,
    is_snowflake,
    load_settings,
)

GUILD = "123456789012345678"
CHANNEL = "223456789012345678"
APP = "323456789012345678"


def _complete_settings(**api) -> Settings:
    return Settings(
        bot=BotSettings(
            token="token",
            application_id=APP,
            default_guild_id=GUILD,
            default_channel_id=CHANNEL,
        ),
        api=ApiSettings(api_key="secret", **api),
    )


class TestDefaults:
    def test_dispatch_defaults(self):
        settings = DispatchSettings()
        assert settings.response_deadline_ms == 3000
        assert settings.response_deadline == 3.0

    def test_outbound_defaults(self):
        settings = OutboundSettings()
        assert settings.max_attempts == 5
        assert settings.base_delay == 1.0
        assert settings.max_delay == 30.0
        assert settings.backoff_multiplier == 2.0

    def test_api_defaults(self):
        settings = ApiSettings()
        assert settings.port == 3000
        assert settings.requests_per_window == 30
        assert settings.window_seconds == 60.0
        assert settings.allow_anonymous is False

    def test_deadline_must_be_positive(self):
        with pytest.raises(ValidationError):
            DispatchSettings(response_deadline_ms=0)

    def test_ratelimit_timeout_floor(self):
        with pytest.raises(ValidationError):
            OutboundSettings(max_ratelimit_timeout=5)


class TestSnowflakes:
    @pytest.mark.parametrize("value", ["12345678901234567", GUILD, "1234567890123456789"])
    def test_valid(self, value):
        assert is_snowflake(value)

    @pytest.mark.parametrize("value", [None, "", "abc", "1234", "12345678901234567890"])
    def test_invalid(self, value):
        assert not is_snowflake(value)

    def test_bad_channel_id_rejected(self):
        with pytest.raises(ValidationError):
            BotSettings(default_channel_id="not-a-channel")

    def test_empty_id_means_unset(self):
        assert BotSettings(default_guild_id="").default_guild_id is None


class TestEnvironment:
    def test_nested_env_vars(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("BOT__TOKEN", "abc")
        monkeypatch.setenv("BOT__DEFAULT_CHANNEL_ID", CHANNEL)
        monkeypatch.setenv("OUTBOUND__MAX_ATTEMPTS", "7")
        monkeypatch.setenv("DISPATCH__RESPONSE_DEADLINE_MS", "1500")

        settings = Settings()

        assert settings.bot.token == "abc"
        assert settings.bot.default_channel_id == CHANNEL
        assert settings.outbound.max_attempts == 7
        assert settings.dispatch.response_deadline == 1.5

    def test_env_file(self, tmp_path):
        env_file = tmp_path / "bridge.env"
        env_file.write_text(f"BOT__TOKEN=from-file\nAPI__PORT=8080\nBOT__DEFAULT_GUILD_ID={GUILD}\n")

        settings = load_settings(env_file)

        assert settings.bot.token == "from-file"
        assert settings.api.port == 8080
        assert settings.bot.default_guild_id == GUILD


class TestCheckSettings:
    def test_complete_settings_are_ok(self):
        report = check_settings(_complete_settings())
        assert report.ok
        assert report.errors == []
        assert report.warnings == []

    def test_missing_token_and_app_id_are_errors(self):
        report = check_settings(Settings(bot=BotSettings(), api=ApiSettings(api_key="k")))
        assert not report.ok
        assert any("BOT__TOKEN" in e for e in report.errors)
        assert any("BOT__APPLICATION_ID" in e for e in report.errors)

    def test_missing_api_key_is_error_unless_anonymous(self):
        settings = _complete_settings()
        settings.api.api_key = ""
        assert any("API__API_KEY" in e for e in check_settings(settings).errors)

        settings.api.allow_anonymous = True
        report = check_settings(settings)
        assert report.ok
        assert any("ALLOW_ANONYMOUS" in w for w in report.warnings)

    def test_missing_guild_and_channel_are_warnings(self):
        settings = _complete_settings()
        settings.bot.default_guild_id = None
        settings.bot.default_channel_id = None

        report = check_settings(settings)

        assert report.ok
        assert any("globally" in w for w in report.warnings)
        assert any("MISSING_DEFAULT_CHANNEL" in w for w in report.warnings)
