"""
DiscordGatewaySession - discord.py implementation of the gateway boundary.

Manages the bot's gateway lifecycle:
- Logs in with a bounded number of attempts, each bounded by a READY timeout
- Tracks readiness (ready/resumed -> connected, disconnect -> not connected)
- Turns every inbound interaction into a DiscordInteractionContext on the
  event queue; no command logic runs here
- Translates discord.py / aiohttp failures into gatebridge.errors so the
  outbound pipeline can decide what to retry
"""

from __future__ import annotations

import asyncio
import math
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import aiohttp
import discord

from gatebridge.commands.models import CommandDescriptor
from gatebridge.config.logging import get_logger
from gatebridge.config.settings import Settings
from gatebridge.errors import (
    BotNotReady,
    BridgeError,
    ChannelNotFound,
    GatewayUnavailable,
    GuildNotFound,
    InvalidChannelType,
    PermissionDenied,
    RateLimitSignal,
    TransportError,
    ValidationError,
)
from gatebridge.gateway.base import (
    BotSummary,
    ChannelSummary,
    DisconnectEvent,
    GatewayErrorEvent,
    GatewaySession,
    GuildSummary,
    InteractionCreateEvent,
    ReadyEvent,
)
from gatebridge.gateway.discord_interaction import DiscordInteractionContext
from gatebridge.messages.models import OutboundMessageRequest, SentMessage
from gatebridge.messages.render import build_embed, build_view

logger = get_logger(__name__)


def translate_error(error: BaseException, *, not_found: type[BridgeError] = ChannelNotFound) -> BridgeError:
    """
    Map a discord.py / network exception onto the gatebridge error taxonomy.

    Args:
        error: What discord.py raised
        not_found: Error class to use for 404 responses (channel or guild)
    """
    if isinstance(error, BridgeError):
        return error
    if isinstance(error, discord.RateLimited):
        return RateLimitSignal(retry_after=error.retry_after)
    if isinstance(error, discord.HTTPException):
        if error.status == 429:
            retry_after = 1.0
            headers = getattr(error.response, "headers", None) or {}
            try:
                retry_after = float(headers.get("Retry-After", retry_after))
            except (TypeError, ValueError):
                pass
            return RateLimitSignal(retry_after=retry_after)
        if isinstance(error, discord.NotFound):
            return not_found(details={"discordCode": error.code})
        if isinstance(error, discord.Forbidden):
            return PermissionDenied(details={"discordCode": error.code})
        if isinstance(error, discord.DiscordServerError) or error.status >= 500:
            return TransportError(f"Discord returned {error.status}", details={"status": error.status})
        return ValidationError(
            f"Discord rejected the request: {error.text or error.status}",
            code="INVALID_FORM_BODY",
            details={"discordCode": error.code},
        )
    if isinstance(
        error,
        (aiohttp.ClientError, asyncio.TimeoutError, OSError, discord.ConnectionClosed, discord.GatewayNotFound),
    ):
        return TransportError(str(error) or type(error).__name__)
    return BridgeError(str(error) or type(error).__name__)


class DiscordGatewaySession(discord.Client, GatewaySession):
    """
    Gateway session backed by a discord.py Client.

    Args:
        settings: Full application settings (bot token, application ID, rate-limit cap)
        events: Queue to publish gateway events on (a new one if omitted)
    """

    def __init__(self, settings: Settings, events: asyncio.Queue | None = None) -> None:
        intents = discord.Intents.default()
        super().__init__(
            intents=intents,
            application_id=int(settings.bot.application_id) if settings.bot.application_id else None,
            max_ratelimit_timeout=settings.outbound.max_ratelimit_timeout,
        )
        self.settings = settings
        self.events = events if events is not None else asyncio.Queue()
        self._ready_flag = False
        self._started_at: datetime | None = None
        self._runner: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self._ready_flag and self.is_ready() and not self.is_closed()

    async def start_session(self) -> None:
        bot = self.settings.bot
        last_error: BaseException | None = None

        for attempt in range(1, bot.login_attempts + 1):
            logger.info(f"Connecting to Discord (attempt {attempt}/{bot.login_attempts})...")
            try:
                await self.login(bot.token)
                self._runner = asyncio.create_task(self.connect(reconnect=True), name="discord-gateway")
                ready = asyncio.create_task(self.wait_until_ready())
                done, _ = await asyncio.wait(
                    {self._runner, ready},
                    timeout=bot.login_timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if ready in done:
                    return
                ready.cancel()
                if self._runner in done:
                    self._runner.result()
                raise asyncio.TimeoutError(
                    f"Discord bot login timeout after {bot.login_timeout:.0f} seconds"
                )
            except discord.LoginFailure:
                # A bad token will not get better by retrying
                await self._reset()
                raise
            except (asyncio.TimeoutError, OSError, aiohttp.ClientError, discord.DiscordException) as e:
                last_error = e
                logger.error(f"Login attempt {attempt} failed: {e}")
                await self._reset()
                if attempt < bot.login_attempts:
                    await asyncio.sleep(bot.login_retry_delay)

        raise GatewayUnavailable(
            f"Discord bot failed to connect after {bot.login_attempts} attempts",
            details={"lastError": str(last_error)},
        )

    async def close_session(self) -> None:
        logger.info("Closing Discord gateway session...")
        self._ready_flag = False
        await self.close()
        if self._runner is not None:
            await asyncio.gather(self._runner, return_exceptions=True)
            self._runner = None

    async def _reset(self) -> None:
        self._ready_flag = False
        if self._runner is not None:
            self._runner.cancel()
            await asyncio.gather(self._runner, return_exceptions=True)
            self._runner = None
        await self.close()
        self.clear()

    # ------------------------------------------------------------------
    # discord.py events
    # ------------------------------------------------------------------

    async def on_ready(self) -> None:
        self._ready_flag = True
        if self._started_at is None:
            self._started_at = datetime.now(UTC)
        logger.info(f"Logged in as {self.user} (id: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")
        await self.events.put(ReadyEvent(user=str(self.user)))

    async def on_resumed(self) -> None:
        self._ready_flag = True
        logger.info("Discord gateway session resumed")

    async def on_disconnect(self) -> None:
        if self._ready_flag:
            logger.warning("Discord bot disconnected")
        self._ready_flag = False
        await self.events.put(DisconnectEvent())

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        """Publish an exception raised inside an event handler.

        The websocket is still up when this fires, so readiness is left alone;
        connection loss arrives through on_disconnect.
        """
        error = sys.exc_info()[1]
        await self.events.put(GatewayErrorEvent(source=event_method, error=error))

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        await self.events.put(InteractionCreateEvent(context=DiscordInteractionContext(interaction)))

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _require_ready(self) -> None:
        if not self.connected:
            raise BotNotReady()

    async def resolve_channel(self, channel_id: str) -> discord.abc.Messageable:
        self._require_ready()
        channel = self.get_channel(int(channel_id))
        if channel is None:
            try:
                channel = await self.fetch_channel(int(channel_id))
            except Exception as e:
                raise translate_error(e) from e
        if not isinstance(channel, discord.abc.Messageable):
            raise InvalidChannelType(
                f"Channel {channel_id} is not a text-based channel",
                details={"channelId": channel_id},
            )
        return channel

    async def can_send(self, channel: Any) -> bool:
        guild = getattr(channel, "guild", None)
        if guild is None:
            # DM channel: no permission model
            return True
        member = guild.me
        if member is None:
            try:
                member = await guild.fetch_member(self.user.id)
            except Exception as e:
                raise translate_error(e) from e
        permissions = channel.permissions_for(member)
        return permissions.view_channel and permissions.send_messages

    async def send_to_channel(self, channel: Any, message: OutboundMessageRequest) -> SentMessage:
        self._require_ready()
        kwargs: dict[str, Any] = {}
        if message.content:
            kwargs["content"] = message.content
        if message.embeds:
            kwargs["embeds"] = [build_embed(e) for e in message.embeds]
        view = build_view(message.buttons)
        if view is not None:
            kwargs["view"] = view

        try:
            sent = await channel.send(**kwargs)
        except Exception as e:
            raise translate_error(e) from e
        finally:
            if view is not None:
                view.stop()

        return SentMessage(
            message_id=str(sent.id),
            channel_id=str(channel.id),
            timestamp=sent.created_at,
            content=sent.content or None,
        )

    async def register_commands(
        self, descriptors: Sequence[CommandDescriptor], guild_id: str | None = None
    ) -> int:
        self._require_ready()
        payload = [d.to_discord_payload() for d in descriptors]
        try:
            if guild_id:
                result = await self.http.bulk_upsert_guild_commands(
                    self.application_id, int(guild_id), payload
                )
            else:
                result = await self.http.bulk_upsert_global_commands(self.application_id, payload)
        except Exception as e:
            raise translate_error(e, not_found=GuildNotFound) from e
        return len(result)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def list_guilds(self) -> list[GuildSummary]:
        self._require_ready()
        return [self._guild_summary(g) for g in self.guilds]

    async def list_channels(self, guild_id: str) -> tuple[GuildSummary, list[ChannelSummary]]:
        self._require_ready()
        guild = self.get_guild(int(guild_id))
        if guild is None:
            raise GuildNotFound(details={"guildId": guild_id})
        member = guild.me
        if member is None:
            raise PermissionDenied(
                "Bot lacks permission to access this guild", details={"guildId": guild_id}
            )

        channels = []
        for channel in guild.channels:
            if not isinstance(channel, discord.abc.Messageable):
                continue
            permissions = channel.permissions_for(member)
            if not permissions.view_channel:
                continue
            channels.append(
                ChannelSummary(
                    id=str(channel.id),
                    name=channel.name,
                    type=str(channel.type),
                    position=channel.position,
                    parent_id=str(channel.category_id) if channel.category_id else None,
                    topic=getattr(channel, "topic", None),
                    can_send=permissions.send_messages,
                    can_view=permissions.view_channel,
                    can_manage=permissions.manage_channels,
                )
            )
        channels.sort(key=lambda c: c.position)
        return self._guild_summary(guild), channels

    def describe_bot(self) -> BotSummary:
        user = self.user
        uptime = 0.0
        if self._started_at is not None:
            uptime = (datetime.now(UTC) - self._started_at).total_seconds()
        latency = self.latency
        return BotSummary(
            id=str(user.id) if user else "",
            name=str(user) if user else "",
            avatar_url=user.display_avatar.url if user else None,
            uptime_seconds=uptime,
            guild_count=len(self.guilds),
            user_count=len(self.users),
            latency_ms=None if math.isnan(latency) or math.isinf(latency) else round(latency * 1000),
        )

    def describe_guild(self, guild_id: str) -> GuildSummary | None:
        guild = self.get_guild(int(guild_id))
        return self._guild_summary(guild) if guild else None

    def _guild_summary(self, guild: discord.Guild) -> GuildSummary:
        return GuildSummary(
            id=str(guild.id),
            name=guild.name,
            member_count=guild.member_count,
            icon_url=guild.icon.url if guild.icon else None,
            owner_id=str(guild.owner_id) if guild.owner_id else None,
            bot_is_owner=self.user is not None and guild.owner_id == self.user.id,
            channel_count=len(guild.channels),
            role_count=len(guild.roles),
            created_at=guild.created_at,
        )
