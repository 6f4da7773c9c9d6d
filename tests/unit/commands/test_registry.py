"""
Tests for CommandRegistry and register_and_deploy.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from gatebridge.commands.models import CommandDescriptor, CommandKind
from gatebridge.commands.registry import CommandRegistry, register_and_deploy
from gatebridge.errors import CommandDefinitionError


async def _noop(ctx) -> None:
    return None


async def _other(ctx) -> None:
    return None


def _make_descriptor(name="ping", handler=_noop, kind=CommandKind.SLASH, description="Test command"):
    return CommandDescriptor(name=name, description=description, handler=handler, kind=kind)


def _make_gateway(accepted=0):
    gateway = MagicMock()
    gateway.register_commands = AsyncMock(return_value=accepted)
    return gateway


class TestCommandRegistry:
    def test_register_and_lookup(self):
        registry = CommandRegistry()
        descriptor = _make_descriptor()

        registry.register(descriptor)

        assert registry.lookup("ping") is descriptor
        assert "ping" in registry
        assert len(registry) == 1

    def test_lookup_missing_returns_none(self):
        assert CommandRegistry().lookup("doesnotexist") is None

    def test_re_register_replaces(self):
        """Last registration for a name wins."""
        registry = CommandRegistry()
        registry.register(_make_descriptor(handler=_noop))
        replacement = _make_descriptor(handler=_other)

        registry.register(replacement)

        assert registry.lookup("ping") is replacement
        assert registry.lookup("ping").handler is _other
        assert len(registry) == 1

    def test_unregister(self):
        registry = CommandRegistry([_make_descriptor()])

        assert registry.unregister("ping") is True
        assert registry.unregister("ping") is False
        assert registry.lookup("ping") is None

    def test_list_is_restartable(self):
        registry = CommandRegistry([_make_descriptor("a"), _make_descriptor("b")])
        listing = registry.list()

        assert [d.name for d in listing] == ["a", "b"]
        assert [d.name for d in listing] == ["a", "b"]

    def test_list_reflects_later_registrations(self):
        registry = CommandRegistry()
        listing = registry.list()
        registry.register(_make_descriptor("late"))

        assert [d.name for d in listing] == ["late"]

    def test_slash_commands_excludes_component_handlers(self):
        registry = CommandRegistry(
            [
                _make_descriptor("ping"),
                _make_descriptor("confirm_action", kind=CommandKind.COMPONENT),
            ]
        )

        assert [d.name for d in registry.slash_commands()] == ["ping"]

    def test_clear(self):
        registry = CommandRegistry([_make_descriptor()])
        registry.clear()
        assert len(registry) == 0


class TestRegisterAndDeploy:
    @pytest.mark.asyncio
    async def test_guild_deployment(self):
        registry = CommandRegistry([_make_descriptor("confirm_action", kind=CommandKind.COMPONENT)])
        gateway = _make_gateway(accepted=1)

        count = await register_and_deploy(
            registry, gateway, [_make_descriptor("ping")], guild_id="123456789012345678"
        )

        assert count == 1
        assert "ping" in registry
        deployed, = gateway.register_commands.call_args[0]
        assert [d.name for d in deployed] == ["ping"]
        assert gateway.register_commands.call_args[1] == {"guild_id": "123456789012345678"}

    @pytest.mark.asyncio
    async def test_global_deployment(self):
        registry = CommandRegistry()
        gateway = _make_gateway(accepted=1)

        await register_and_deploy(registry, gateway, [_make_descriptor("ping")])

        assert gateway.register_commands.call_args[1] == {"guild_id": None}

    @pytest.mark.asyncio
    async def test_invalid_definition_is_not_registered_or_sent(self):
        registry = CommandRegistry()
        gateway = _make_gateway()

        with pytest.raises(CommandDefinitionError):
            await register_and_deploy(registry, gateway, [_make_descriptor("bad name!")])

        assert len(registry) == 0
        gateway.register_commands.assert_not_called()

    @pytest.mark.asyncio
    async def test_mixed_case_name_is_not_deployed(self):
        """Discord would lowercase "Greet", leaving the registry entry unreachable."""
        registry = CommandRegistry()
        gateway = _make_gateway()

        with pytest.raises(CommandDefinitionError):
            await register_and_deploy(registry, gateway, [_make_descriptor("Greet")])

        assert "Greet" not in registry
        gateway.register_commands.assert_not_called()
