"""
Gateway Layer.

Owns the live Discord connection. The session publishes typed events on a
queue; GatewayEventLoop is the single consumer that hands interactions to the
dispatcher.
"""

from gatebridge.gateway.base import (
    BotSummary,
    ChannelSummary,
    DisconnectEvent,
    GatewayErrorEvent,
    GatewayEvent,
    GatewaySession,
    GuildSummary,
    InteractionCreateEvent,
    ReadyEvent,
)
from gatebridge.gateway.loop import GatewayEventLoop

__all__ = [
    "BotSummary",
    "ChannelSummary",
    "DisconnectEvent",
    "GatewayErrorEvent",
    "GatewayEvent",
    "GatewayEventLoop",
    "GatewaySession",
    "GuildSummary",
    "InteractionCreateEvent",
    "ReadyEvent",
]
