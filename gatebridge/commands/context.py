"""
InteractionContext - one inbound slash command or button click.

The gateway session creates a context per inbound interaction and hands it to
the dispatcher, which claims it exactly once. Handlers answer through the
reply/defer/followup/edit/update methods; subclasses implement the transport
hooks (the _send_* methods) for a concrete gateway.

A context accepts replies until it is closed. The dispatcher closes it when
the handler finishes, fails or runs out of time, after which any further
reply raises InteractionExpired. Discord enforces its own deadline on top of
this regardless of what we do here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from gatebridge.commands.models import ParameterValue
from gatebridge.errors import InteractionExpired
from gatebridge.messages.models import Button, Embed, OutboundMessageRequest


class InteractionKind(str, Enum):
    COMMAND = "command"  # slash command invocation
    COMPONENT = "component"  # button click
    OTHER = "other"  # autocomplete, modal submit, ping: not dispatched


class InteractionContext(ABC):
    """
    Base class for a single inbound interaction.

    Args:
        interaction_id: Platform ID of the interaction (unique per inbound event)
        kind: What sort of interaction this is
        command_name: Slash command name, or the custom_id of the clicked button
        raw_options: Option values as received, before schema checks
        user_id: Invoker's snowflake
        user_tag: Invoker's display tag, for logging
        created_at: When the platform created the interaction
        guild_id: Guild the interaction came from (None in DMs)
        channel_id: Channel the interaction came from
        source_buttons: For button clicks, the buttons on the clicked message
    """

    def __init__(
        self,
        *,
        interaction_id: str,
        kind: InteractionKind,
        command_name: str,
        raw_options: Any = None,
        user_id: str = "",
        user_tag: str = "",
        created_at: datetime | None = None,
        guild_id: str | None = None,
        channel_id: str | None = None,
        source_buttons: list[Button] | None = None,
    ):
        self.interaction_id = interaction_id
        self.kind = kind
        self.command_name = command_name
        self.raw_options = raw_options
        self.user_id = user_id
        self.user_tag = user_tag or user_id
        self.created_at = created_at or datetime.now(UTC)
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.source_buttons = list(source_buttons or [])
        self.params: dict[str, ParameterValue] = {}
        # set by the dispatcher when the interaction ends without a normal reply
        self.error: BaseException | None = None

        self._claimed = False
        self._closed = False
        self._responded = False
        self._deferred = False

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self.interaction_id!r}, kind={self.kind.value}, "
            f"command={self.command_name!r}, user={self.user_tag!r})"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def claim(self) -> bool:
        """Mark the context as taken by a dispatch. Returns False if it already was."""
        if self._claimed:
            return False
        self._claimed = True
        return True

    def close(self) -> None:
        """Stop accepting replies."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def responded(self) -> bool:
        """True once the initial response (reply, defer or update) has been sent."""
        return self._responded

    @property
    def deferred(self) -> bool:
        return self._deferred

    def option(self, name: str, default: Any = None) -> Any:
        """Value of a resolved option, or default when it was not supplied."""
        param = self.params.get(name)
        return param.value if param is not None else default

    def _ensure_open(self) -> None:
        if self._closed:
            raise InteractionExpired(
                f"Interaction {self.interaction_id} for {self.command_name!r} is no longer open"
            )

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    async def reply(
        self,
        content: str | None = None,
        *,
        embeds: list[Embed] | None = None,
        buttons: list[Button] | None = None,
        ephemeral: bool = False,
    ) -> None:
        """
        Answer the interaction.

        The first answer is the interaction response; once something has been
        sent (including a defer) further replies go out as followups.
        """
        self._ensure_open()
        await self._deliver(_message(content, embeds, buttons), ephemeral)

    async def defer(self, *, ephemeral: bool = False) -> None:
        """Acknowledge now, answer later with followup()."""
        self._ensure_open()
        if self._responded:
            return
        self._responded = True
        try:
            await self._send_defer(ephemeral)
        except Exception:
            self._responded = False
            raise
        self._deferred = True

    async def followup(
        self,
        content: str | None = None,
        *,
        embeds: list[Embed] | None = None,
        buttons: list[Button] | None = None,
        ephemeral: bool = False,
    ) -> None:
        self._ensure_open()
        await self._send_followup(_message(content, embeds, buttons), ephemeral)

    async def edit_reply(
        self,
        content: str | None = None,
        *,
        embeds: list[Embed] | None = None,
        buttons: list[Button] | None = None,
    ) -> None:
        """Replace the content of the interaction response sent earlier."""
        self._ensure_open()
        await self._edit_response(_message(content, embeds, buttons))

    async def update(
        self,
        content: str | None = None,
        *,
        embeds: list[Embed] | None = None,
        buttons: list[Button] | None = None,
    ) -> None:
        """Edit the message a clicked button belongs to, as the interaction response."""
        self._ensure_open()
        if self.kind is not InteractionKind.COMPONENT:
            raise TypeError("update() is only available for button interactions")
        self._responded = True
        try:
            await self._update_message(_message(content, embeds, buttons))
        except Exception:
            self._responded = False
            raise

    async def send_terminal(self, content: str) -> None:
        """
        Send the dispatcher's final ephemeral notice, then close the context.

        Used for unknown-command, timeout and error notices. Works even if the
        handler already answered (it becomes a followup then).
        """
        try:
            await self._deliver(_message(content, None, None), ephemeral=True)
        finally:
            self._closed = True

    async def _deliver(self, message: OutboundMessageRequest, ephemeral: bool) -> None:
        if self._responded:
            await self._send_followup(message, ephemeral)
            return
        # Flag before awaiting so a concurrent terminal notice goes out as a followup
        self._responded = True
        try:
            await self._send_response(message, ephemeral)
        except Exception:
            self._responded = False
            raise

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _send_response(self, message: OutboundMessageRequest, ephemeral: bool) -> None:
        """Send the initial interaction response."""

    @abstractmethod
    async def _send_defer(self, ephemeral: bool) -> None:
        """Acknowledge the interaction without content."""

    @abstractmethod
    async def _send_followup(self, message: OutboundMessageRequest, ephemeral: bool) -> None:
        """Send an additional message after the initial response."""

    @abstractmethod
    async def _edit_response(self, message: OutboundMessageRequest) -> None:
        """Edit the initial interaction response."""

    @abstractmethod
    async def _update_message(self, message: OutboundMessageRequest) -> None:
        """Edit the message a button belongs to, as the interaction response."""


def _message(
    content: str | None, embeds: list[Embed] | None, buttons: list[Button] | None
) -> OutboundMessageRequest:
    return OutboundMessageRequest(
        content=content, embeds=list(embeds or []), buttons=list(buttons or [])
    )
