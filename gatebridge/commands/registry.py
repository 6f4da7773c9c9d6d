"""
CommandRegistry - name -> CommandDescriptor mapping.

Created once at startup and handed to the dispatcher (and anything else that
needs it). Registration happens before the gateway starts delivering events;
after that the mapping is only read, so lookups need no locking on the single
event loop.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, ValuesView
from typing import TYPE_CHECKING

from gatebridge.commands.models import CommandDescriptor, CommandKind
from gatebridge.config.logging import get_logger

if TYPE_CHECKING:
    from gatebridge.gateway.base import GatewaySession

logger = get_logger(__name__)


class CommandRegistry:
    """In-memory command table. Last registration for a name wins."""

    def __init__(self, descriptors: Iterable[CommandDescriptor] = ()) -> None:
        self._commands: dict[str, CommandDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: CommandDescriptor) -> None:
        """Add a descriptor, replacing any existing one with the same name."""
        previous = self._commands.get(descriptor.name)
        self._commands[descriptor.name] = descriptor
        if previous is not None:
            logger.info(f"Replaced command: {descriptor.name}")
        else:
            logger.debug(f"Registered {descriptor.kind.value} command: {descriptor.name}")

    def register_many(self, descriptors: Iterable[CommandDescriptor]) -> None:
        for descriptor in descriptors:
            self.register(descriptor)

    def unregister(self, name: str) -> bool:
        """Remove a command. Returns True if it was registered."""
        removed = self._commands.pop(name, None) is not None
        if removed:
            logger.info(f"Unregistered command: {name}")
        return removed

    def lookup(self, name: str) -> CommandDescriptor | None:
        return self._commands.get(name)

    def list(self) -> ValuesView[CommandDescriptor]:
        """All descriptors. The view is lazy and can be iterated any number of times."""
        return self._commands.values()

    def slash_commands(self) -> list[CommandDescriptor]:
        """Descriptors that are deployed to Discord (component handlers are not)."""
        return [d for d in self._commands.values() if d.kind is CommandKind.SLASH]

    def clear(self) -> None:
        self._commands.clear()
        logger.info("All commands cleared from registry")

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)


async def register_and_deploy(
    registry: CommandRegistry,
    gateway: GatewaySession,
    descriptors: Iterable[CommandDescriptor],
    guild_id: str | None = None,
) -> int:
    """
    Register descriptors and push the registry's slash commands to Discord.

    Every slash definition is checked before anything is sent, so a bad
    descriptor never results in a partial deployment.

    Args:
        registry: Registry to add the descriptors to
        gateway: Connected gateway session
        descriptors: Commands to add (may be empty to just redeploy)
        guild_id: Deploy to this guild (near-instant) or globally if None

    Returns:
        Number of commands Discord accepted

    Raises:
        CommandDefinitionError: A slash descriptor Discord would reject
    """
    descriptors = list(descriptors)
    for descriptor in descriptors:
        if descriptor.kind is CommandKind.SLASH:
            descriptor.to_discord_payload()
    registry.register_many(descriptors)

    slash = registry.slash_commands()
    scope = f"guild {guild_id}" if guild_id else "global"
    logger.info(f"Deploying {len(slash)} slash command(s) ({scope})...")
    count = await gateway.register_commands(slash, guild_id=guild_id)
    if guild_id:
        logger.info(f"Registered {count} command(s) to guild {guild_id}")
    else:
        logger.info(f"Registered {count} command(s) globally (may take up to 1 hour to appear)")
    return count
