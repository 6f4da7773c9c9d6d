"""
Gateway session boundary.

The gateway session owns the live connection to Discord. Instead of invoking
callbacks, it puts typed events on an asyncio.Queue that a single consumer
(gatebridge.gateway.loop.GatewayEventLoop) drains. Outbound operations are
plain coroutines that raise errors from gatebridge.errors:

    ChannelNotFound, InvalidChannelType, GuildNotFound  - target does not exist / is wrong
    PermissionDenied                                    - bot lacks a capability
    RateLimitSignal                                     - slow down, retry after N seconds
    TransportError                                      - connectivity problem, retry
    BotNotReady                                         - session is not connected
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from gatebridge.commands.context import InteractionContext
from gatebridge.commands.models import CommandDescriptor
from gatebridge.messages.models import OutboundMessageRequest, SentMessage


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayEvent:
    pass


@dataclass(frozen=True)
class ReadyEvent(GatewayEvent):
    user: str


@dataclass(frozen=True)
class InteractionCreateEvent(GatewayEvent):
    context: InteractionContext


@dataclass(frozen=True)
class GatewayErrorEvent(GatewayEvent):
    source: str
    error: BaseException | None = None


@dataclass(frozen=True)
class DisconnectEvent(GatewayEvent):
    pass


# ---------------------------------------------------------------------------
# Introspection models
# ---------------------------------------------------------------------------

class BotSummary(BaseModel):
    id: str
    name: str
    avatar_url: str | None = None
    uptime_seconds: float = 0.0
    guild_count: int = 0
    user_count: int = 0
    latency_ms: int | None = None


class GuildSummary(BaseModel):
    id: str
    name: str
    member_count: int | None = None
    icon_url: str | None = None
    owner_id: str | None = None
    bot_is_owner: bool = False
    channel_count: int = 0
    role_count: int = 0
    created_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "memberCount": self.member_count,
            "icon": self.icon_url,
            "owner": self.bot_is_owner,
        }


class ChannelSummary(BaseModel):
    id: str
    name: str
    type: str
    position: int = 0
    parent_id: str | None = None
    topic: str | None = None
    can_send: bool = False
    can_view: bool = False
    can_manage: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "position": self.position,
            "parentId": self.parent_id,
            "topic": self.topic,
            "permissions": {
                "canSend": self.can_send,
                "canView": self.can_view,
                "canManage": self.can_manage,
            },
        }


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class GatewaySession(ABC):
    """
    Abstract gateway session.

    Implementations push GatewayEvents onto ``events`` and implement the
    outbound operations below.
    """

    events: asyncio.Queue

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True while the session is logged in and has received READY."""

    @abstractmethod
    async def start_session(self) -> None:
        """
        Log in and wait for READY.

        Raises:
            GatewayUnavailable: If the session could not be established
        """

    @abstractmethod
    async def close_session(self) -> None:
        """Disconnect and release the connection."""

    @abstractmethod
    async def resolve_channel(self, channel_id: str) -> Any:
        """Return a sendable channel handle for channel_id."""

    @abstractmethod
    async def can_send(self, channel: Any) -> bool:
        """Whether the bot may view and post in the channel."""

    @abstractmethod
    async def send_to_channel(self, channel: Any, message: OutboundMessageRequest) -> SentMessage:
        """Post one message to a resolved channel."""

    @abstractmethod
    async def register_commands(
        self, descriptors: Sequence[CommandDescriptor], guild_id: str | None = None
    ) -> int:
        """
        Publish slash-command definitions.

        Guild-scoped registration shows up almost immediately; global
        registration can take up to an hour to propagate.

        Returns:
            Number of commands Discord accepted
        """

    @abstractmethod
    async def list_guilds(self) -> list[GuildSummary]:
        """Guilds the bot is a member of."""

    @abstractmethod
    async def list_channels(self, guild_id: str) -> tuple[GuildSummary, list[ChannelSummary]]:
        """Text channels in a guild that the bot can view, ordered by position."""

    @abstractmethod
    def describe_bot(self) -> BotSummary:
        """Identity and health figures of the connected bot user."""

    @abstractmethod
    def describe_guild(self, guild_id: str) -> GuildSummary | None:
        """Summary of a cached guild, or None if the bot does not see it."""
