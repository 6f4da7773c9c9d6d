"""
Built-in commands.

Slash commands:
- /ping: round-trip and gateway latency
- /echo message:<text>: repeats the message back
- /info: bot, server and runtime information

Button handlers (routed by custom_id, never deployed):
- confirm_action / cancel_action: ephemeral acknowledgement
- info_button: ephemeral info card
- counter_button: counts clicks in the button's own label
"""

from __future__ import annotations

import platform
import re
import sys
from datetime import UTC, datetime

import discord

from gatebridge.commands.context import InteractionContext
from gatebridge.commands.models import (
    CommandDescriptor,
    CommandKind,
    CommandParameter,
    ParameterType,
)
from gatebridge.config.logging import get_logger
from gatebridge.gateway.base import GatewaySession
from gatebridge.messages.models import Embed, EmbedMedia

logger = get_logger(__name__)

MAX_ECHO_LENGTH = 1900
_COUNT_RE = re.compile(r"\d+")


def format_uptime(seconds: float) -> str:
    """Human readable uptime: 3d 4h 5m, 4h 5m 6s, 5m 6s or 6s."""
    seconds = int(seconds)
    minutes, secs = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


class BuiltinCommands:
    """
    Handlers for the built-in command set.

    Args:
        gateway: Session the handlers read bot and guild details from
    """

    def __init__(self, gateway: GatewaySession) -> None:
        self.gateway = gateway

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------

    async def ping(self, ctx: InteractionContext) -> None:
        await ctx.reply("Pinging...")
        latency = round((datetime.now(UTC) - ctx.created_at).total_seconds() * 1000)
        api_latency = self.gateway.describe_bot().latency_ms
        api_text = f"{api_latency}ms" if api_latency is not None else "n/a"
        await ctx.edit_reply(
            f"🏓 Pong!\n📡 Latency: {latency}ms\n💓 API Latency: {api_text}"
        )

    async def echo(self, ctx: InteractionContext) -> None:
        message = ctx.option("message", "")
        if len(message) > MAX_ECHO_LENGTH:
            await ctx.reply(
                f"❌ Message is too long! Please keep it under {MAX_ECHO_LENGTH} characters.",
                ephemeral=True,
            )
            return
        await ctx.reply(f"🔄 **Echo:** {message}")

    async def info(self, ctx: InteractionContext) -> None:
        bot = self.gateway.describe_bot()
        embed = Embed(
            title="🤖 Bot & Server Information",
            color=0x0099FF,
            timestamp=datetime.now(UTC),
        )
        if bot.avatar_url:
            embed.thumbnail = EmbedMedia(url=bot.avatar_url)

        ping = f"{bot.latency_ms}ms" if bot.latency_ms is not None else "n/a"
        embed.add_field(
            "🤖 Bot Information",
            "\n".join([
                f"**Name:** {bot.name}",
                f"**ID:** {bot.id}",
                f"**Uptime:** {format_uptime(bot.uptime_seconds)}",
                f"**Servers:** {bot.guild_count}",
                f"**Users:** {bot.user_count}",
                f"**Ping:** {ping}",
            ]),
            inline=True,
        )

        guild = self.gateway.describe_guild(ctx.guild_id) if ctx.guild_id else None
        if guild is not None:
            lines = [
                f"**Name:** {guild.name}",
                f"**ID:** {guild.id}",
            ]
            if guild.owner_id:
                lines.append(f"**Owner:** <@{guild.owner_id}>")
            lines += [
                f"**Members:** {guild.member_count if guild.member_count is not None else 'n/a'}",
                f"**Channels:** {guild.channel_count}",
                f"**Roles:** {guild.role_count}",
            ]
            if guild.created_at:
                lines.append(f"**Created:** <t:{int(guild.created_at.timestamp())}:R>")
            embed.add_field("🏠 Server Information", "\n".join(lines), inline=True)
            if guild.icon_url:
                embed.thumbnail = EmbedMedia(url=guild.icon_url)

        embed.add_field(
            "⚙️ System Information",
            "\n".join([
                f"**Python:** {platform.python_version()}",
                f"**discord.py:** {discord.__version__}",
                f"**Platform:** {sys.platform}",
            ]),
        )
        await ctx.reply(embeds=[embed])

    # ------------------------------------------------------------------
    # Button handlers
    # ------------------------------------------------------------------

    async def confirm_action(self, ctx: InteractionContext) -> None:
        await ctx.reply("✅ Action confirmed!", ephemeral=True)

    async def cancel_action(self, ctx: InteractionContext) -> None:
        await ctx.reply("❌ Action cancelled.", ephemeral=True)

    async def info_button(self, ctx: InteractionContext) -> None:
        embed = Embed(
            title="ℹ️ Information",
            description="This is additional information requested via button click.",
            color=3447003,
            timestamp=datetime.now(UTC),
        )
        await ctx.reply(embeds=[embed], ephemeral=True)

    async def counter_button(self, ctx: InteractionContext) -> None:
        buttons = [b.model_copy() for b in ctx.source_buttons]
        for button in buttons:
            if button.custom_id == ctx.command_name:
                match = _COUNT_RE.search(button.label)
                count = int(match.group()) if match else 0
                button.label = f"Clicked {count + 1} times"
                logger.debug(f"Counter on interaction {ctx.interaction_id} now {count + 1}")
                break
        await ctx.update(buttons=buttons)

    def descriptors(self) -> list[CommandDescriptor]:
        return [
            CommandDescriptor(
                name="ping",
                description="Replies with Pong! and shows bot latency",
                handler=self.ping,
            ),
            CommandDescriptor(
                name="echo",
                description="Repeats the message you provide",
                parameters=(
                    CommandParameter(
                        name="message",
                        description="The message to echo back",
                        type=ParameterType.STRING,
                        required=True,
                    ),
                ),
                handler=self.echo,
            ),
            CommandDescriptor(
                name="info",
                description="Shows bot and server information",
                handler=self.info,
            ),
            CommandDescriptor(
                name="confirm_action",
                description="Confirm button",
                handler=self.confirm_action,
                kind=CommandKind.COMPONENT,
            ),
            CommandDescriptor(
                name="cancel_action",
                description="Cancel button",
                handler=self.cancel_action,
                kind=CommandKind.COMPONENT,
            ),
            CommandDescriptor(
                name="info_button",
                description="Info button",
                handler=self.info_button,
                kind=CommandKind.COMPONENT,
            ),
            CommandDescriptor(
                name="counter_button",
                description="Click counter button",
                handler=self.counter_button,
                kind=CommandKind.COMPONENT,
            ),
        ]


def builtin_commands(gateway: GatewaySession) -> list[CommandDescriptor]:
    """The built-in slash commands and button handlers, bound to a gateway session."""
    return BuiltinCommands(gateway).descriptors()
