"""
Outbound message layer.

Models for text/embed/button messages, the payload validator that checks them
against Discord's limits, and the renderer that turns them into discord.py
objects.
"""

from gatebridge.messages.models import (
    Button,
    ButtonStyle,
    Embed,
    EmbedField,
    OutboundMessageRequest,
    SentMessage,
)
from gatebridge.messages.validator import parse_message, validate_guild_id, validate_message

__all__ = [
    "Button",
    "ButtonStyle",
    "Embed",
    "EmbedField",
    "OutboundMessageRequest",
    "SentMessage",
    "parse_message",
    "validate_guild_id",
    "validate_message",
]
