"""
Tests for the built-in slash commands and button handlers.
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from gatebridge.commands.builtin import MAX_ECHO_LENGTH, builtin_commands, format_uptime
from gatebridge.commands.context import InteractionContext, InteractionKind
from gatebridge.commands.dispatcher import DispatchOutcome, InteractionDispatcher
from gatebridge.commands.models import CommandKind
from gatebridge.commands.registry import CommandRegistry
from gatebridge.gateway.base import BotSummary, GuildSummary
from gatebridge.messages.models import Button, ButtonStyle

GUILD_ID = "123456789012345678"


class RecordingContext(InteractionContext):
    def __init__(self, name, kind=InteractionKind.COMMAND, options=None, guild_id=None, buttons=None):
        super().__init__(
            interaction_id=f"{name}-1",
            kind=kind,
            command_name=name,
            raw_options=options,
            user_id="42",
            user_tag="tester",
            guild_id=guild_id,
            source_buttons=buttons,
        )
        self.sent = []

    async def _send_response(self, message, ephemeral):
        self.sent.append(("response", message, ephemeral))

    async def _send_defer(self, ephemeral):
        self.sent.append(("defer", None, ephemeral))

    async def _send_followup(self, message, ephemeral):
        self.sent.append(("followup", message, ephemeral))

    async def _edit_response(self, message):
        self.sent.append(("edit", message, False))

    async def _update_message(self, message):
        self.sent.append(("update", message, False))


def _make_gateway(guild=True):
    gateway = MagicMock()
    gateway.describe_bot.return_value = BotSummary(
        id="999999999999999999",
        name="Bridge#0001",
        avatar_url="https://cdn.example.com/avatar.png",
        uptime_seconds=3725,
        guild_count=2,
        user_count=40,
        latency_ms=42,
    )
    gateway.describe_guild.return_value = (
        GuildSummary(
            id=GUILD_ID,
            name="Test Guild",
            member_count=12,
            owner_id="111111111111111111",
            channel_count=5,
            role_count=3,
            created_at=datetime(2020, 1, 1, tzinfo=UTC),
        )
        if guild
        else None
    )
    return gateway


def _make_dispatcher(gateway):
    return InteractionDispatcher(CommandRegistry(builtin_commands(gateway)))


class TestCommandSet:
    def test_slash_and_component_split(self):
        descriptors = builtin_commands(_make_gateway())
        slash = {d.name for d in descriptors if d.kind is CommandKind.SLASH}
        buttons = {d.name for d in descriptors if d.kind is CommandKind.COMPONENT}

        assert slash == {"ping", "echo", "info"}
        assert buttons == {"confirm_action", "cancel_action", "info_button", "counter_button"}

    def test_slash_definitions_are_deployable(self):
        for descriptor in builtin_commands(_make_gateway()):
            if descriptor.kind is CommandKind.SLASH:
                descriptor.to_discord_payload()

    @pytest.mark.parametrize(
        "seconds,expected",
        [(5, "5s"), (65, "1m 5s"), (3725, "1h 2m 5s"), (90061, "1d 1h 1m")],
    )
    def test_format_uptime(self, seconds, expected):
        assert format_uptime(seconds) == expected


class TestSlashCommands:
    @pytest.mark.asyncio
    async def test_ping_edits_in_latency(self):
        ctx = RecordingContext("ping")

        outcome = await _make_dispatcher(_make_gateway()).dispatch(ctx)

        assert outcome is DispatchOutcome.REPLIED
        assert ctx.sent[0][1].content == "Pinging..."
        action, message, _ = ctx.sent[1]
        assert action == "edit"
        assert "Pong!" in message.content
        assert "API Latency: 42ms" in message.content

    @pytest.mark.asyncio
    async def test_echo(self):
        ctx = RecordingContext("echo", options=[{"name": "message", "type": 3, "value": "hello"}])

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        assert ctx.sent[0][1].content == "🔄 **Echo:** hello"
        assert ctx.sent[0][2] is False

    @pytest.mark.asyncio
    async def test_echo_too_long_is_ephemeral(self):
        text = "x" * (MAX_ECHO_LENGTH + 1)
        ctx = RecordingContext("echo", options=[{"name": "message", "type": 3, "value": text}])

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        _, message, ephemeral = ctx.sent[0]
        assert ephemeral is True
        assert "too long" in message.content

    @pytest.mark.asyncio
    async def test_echo_requires_message(self):
        ctx = RecordingContext("echo", options=[])

        outcome = await _make_dispatcher(_make_gateway()).dispatch(ctx)

        assert outcome is DispatchOutcome.ERRORED
        assert ctx.sent[0][2] is True

    @pytest.mark.asyncio
    async def test_info_in_guild(self):
        gateway = _make_gateway()
        ctx = RecordingContext("info", guild_id=GUILD_ID)

        await _make_dispatcher(gateway).dispatch(ctx)

        gateway.describe_guild.assert_called_once_with(GUILD_ID)
        embed = ctx.sent[0][1].embeds[0]
        names = [f.name for f in embed.fields]
        assert names == ["🤖 Bot Information", "🏠 Server Information", "⚙️ System Information"]
        assert "**Uptime:** 1h 2m 5s" in embed.fields[0].value
        assert "Test Guild" in embed.fields[1].value

    @pytest.mark.asyncio
    async def test_info_in_dm_has_no_server_section(self):
        gateway = _make_gateway(guild=False)
        ctx = RecordingContext("info")

        await _make_dispatcher(gateway).dispatch(ctx)

        gateway.describe_guild.assert_not_called()
        embed = ctx.sent[0][1].embeds[0]
        assert len(embed.fields) == 2
        assert embed.thumbnail.url == "https://cdn.example.com/avatar.png"


class TestButtonHandlers:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "custom_id,text",
        [("confirm_action", "✅ Action confirmed!"), ("cancel_action", "❌ Action cancelled.")],
    )
    async def test_confirm_and_cancel(self, custom_id, text):
        ctx = RecordingContext(custom_id, kind=InteractionKind.COMPONENT)

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        assert ctx.sent == [("response", ctx.sent[0][1], True)]
        assert ctx.sent[0][1].content == text

    @pytest.mark.asyncio
    async def test_info_button(self):
        ctx = RecordingContext("info_button", kind=InteractionKind.COMPONENT)

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        _, message, ephemeral = ctx.sent[0]
        assert ephemeral is True
        assert message.embeds[0].title == "ℹ️ Information"

    @pytest.mark.asyncio
    async def test_counter_increments_label(self):
        buttons = [
            Button(label="Clicked 2 times", custom_id="counter_button"),
            Button(label="Docs", style=ButtonStyle.LINK, url="https://example.com"),
        ]
        ctx = RecordingContext("counter_button", kind=InteractionKind.COMPONENT, buttons=buttons)

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        action, message, _ = ctx.sent[0]
        assert action == "update"
        assert [b.label for b in message.buttons] == ["Clicked 3 times", "Docs"]
        assert buttons[0].label == "Clicked 2 times"

    @pytest.mark.asyncio
    async def test_counter_starts_from_zero(self):
        buttons = [Button(label="Count me", custom_id="counter_button")]
        ctx = RecordingContext("counter_button", kind=InteractionKind.COMPONENT, buttons=buttons)

        await _make_dispatcher(_make_gateway()).dispatch(ctx)

        assert ctx.sent[0][1].buttons[0].label == "Clicked 1 times"
