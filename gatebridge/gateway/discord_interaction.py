"""
InteractionContext backed by a discord.py Interaction.
"""

from __future__ import annotations

from typing import Any

import discord

from gatebridge.commands.context import InteractionContext, InteractionKind
from gatebridge.messages.models import OutboundMessageRequest
from gatebridge.messages.render import build_embed, build_view, buttons_from_components

_CHAT_INPUT = 1
_BUTTON = 2


def interaction_kind(interaction: discord.Interaction) -> InteractionKind:
    """Classify an interaction. Only slash commands and button clicks are dispatched."""
    data = interaction.data or {}
    if interaction.type is discord.InteractionType.application_command:
        if data.get("type", _CHAT_INPUT) == _CHAT_INPUT:
            return InteractionKind.COMMAND
    elif interaction.type is discord.InteractionType.component:
        if data.get("component_type") == _BUTTON:
            return InteractionKind.COMPONENT
    return InteractionKind.OTHER


class DiscordInteractionContext(InteractionContext):
    """Wraps one discord.Interaction for the dispatcher."""

    def __init__(self, interaction: discord.Interaction) -> None:
        data = interaction.data or {}
        kind = interaction_kind(interaction)
        if kind is InteractionKind.COMPONENT:
            name = data.get("custom_id", "")
            message = interaction.message
            source_buttons = buttons_from_components(message.components) if message else []
        else:
            name = data.get("name", "")
            source_buttons = []

        super().__init__(
            interaction_id=str(interaction.id),
            kind=kind,
            command_name=name,
            raw_options=data.get("options") if kind is InteractionKind.COMMAND else None,
            user_id=str(interaction.user.id),
            user_tag=str(interaction.user),
            created_at=interaction.created_at,
            guild_id=str(interaction.guild_id) if interaction.guild_id else None,
            channel_id=str(interaction.channel_id) if interaction.channel_id else None,
            source_buttons=source_buttons,
        )
        self.interaction = interaction

    @staticmethod
    def _kwargs(message: OutboundMessageRequest) -> tuple[dict[str, Any], discord.ui.View | None]:
        """Only include parts that are set, so edits don't blank out the rest."""
        kwargs: dict[str, Any] = {}
        if message.content is not None:
            kwargs["content"] = message.content
        if message.embeds:
            kwargs["embeds"] = [build_embed(e) for e in message.embeds]
        view = build_view(message.buttons)
        if view is not None:
            kwargs["view"] = view
        return kwargs, view

    async def _send_response(self, message: OutboundMessageRequest, ephemeral: bool) -> None:
        kwargs, view = self._kwargs(message)
        try:
            await self.interaction.response.send_message(ephemeral=ephemeral, **kwargs)
        finally:
            _release(view)

    async def _send_defer(self, ephemeral: bool) -> None:
        await self.interaction.response.defer(ephemeral=ephemeral)

    async def _send_followup(self, message: OutboundMessageRequest, ephemeral: bool) -> None:
        kwargs, view = self._kwargs(message)
        try:
            await self.interaction.followup.send(ephemeral=ephemeral, **kwargs)
        finally:
            _release(view)

    async def _edit_response(self, message: OutboundMessageRequest) -> None:
        kwargs, view = self._kwargs(message)
        try:
            await self.interaction.edit_original_response(**kwargs)
        finally:
            _release(view)

    async def _update_message(self, message: OutboundMessageRequest) -> None:
        kwargs, view = self._kwargs(message)
        try:
            await self.interaction.response.edit_message(**kwargs)
        finally:
            _release(view)


def _release(view: discord.ui.View | None) -> None:
    # Clicks are routed by the dispatcher, not by discord.py's view store
    if view is not None:
        view.stop()
