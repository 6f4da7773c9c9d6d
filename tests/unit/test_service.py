"""
Tests for BridgeService wiring and lifecycle.

The gateway is a MagicMock with a real event queue; uvicorn is never started.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from gatebridge.config.settings import BotSettings, Settings
from gatebridge.errors import GatewayUnavailable, PermissionDenied
from gatebridge.gateway.base import ReadyEvent
from gatebridge.service import BridgeService

GUILD_ID = "123456789012345678"


def _make_gateway():
    gateway = MagicMock()
    gateway.events = asyncio.Queue()
    gateway.connected = True
    gateway.start_session = AsyncMock()
    gateway.close_session = AsyncMock()
    gateway.register_commands = AsyncMock(return_value=3)
    return gateway


def _make_service(gateway, **bot):
    settings = Settings(bot=BotSettings(token="x", default_guild_id=GUILD_ID, **bot))
    return BridgeService(settings, gateway=gateway)


async def _ready(service, gateway):
    gateway.events.put_nowait(ReadyEvent(user="Bridge#0001"))
    await gateway.events.join()


class TestWiring:
    def test_builtins_registered(self):
        service = _make_service(_make_gateway())
        assert {d.name for d in service.registry.slash_commands()} == {"ping", "echo", "info"}
        assert "counter_button" in service.registry

    def test_dispatch_deadline_from_settings(self):
        service = _make_service(_make_gateway())
        assert service.dispatcher.deadline == 3.0


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_connects_and_close_disconnects(self):
        gateway = _make_gateway()
        service = _make_service(gateway)

        async with service:
            await asyncio.sleep(0)
            gateway.start_session.assert_awaited_once()
            assert service.event_loop.running

        gateway.close_session.assert_awaited_once()
        assert not service.event_loop.running

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [GatewayUnavailable("no route"), discord.LoginFailure("bad token")]
    )
    async def test_connect_failure_keeps_service_up(self, error):
        gateway = _make_gateway()
        gateway.start_session.side_effect = error
        service = _make_service(gateway)

        async with service:
            for _ in range(3):
                await asyncio.sleep(0)
            assert service.event_loop.running


class TestCommandDeployment:
    @pytest.mark.asyncio
    async def test_deploys_once_on_first_ready(self):
        gateway = _make_gateway()
        service = _make_service(gateway)

        async with service:
            await _ready(service, gateway)
            await _ready(service, gateway)

        gateway.register_commands.assert_awaited_once()
        descriptors = gateway.register_commands.await_args.args[0]
        assert sorted(d.name for d in descriptors) == ["echo", "info", "ping"]
        assert gateway.register_commands.await_args.kwargs["guild_id"] == GUILD_ID

    @pytest.mark.asyncio
    async def test_sync_disabled(self):
        gateway = _make_gateway()
        service = _make_service(gateway, sync_commands=False)

        async with service:
            await _ready(service, gateway)

        gateway.register_commands.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_scope_retried_on_next_ready(self):
        gateway = _make_gateway()
        gateway.register_commands.side_effect = [PermissionDenied(), 3]
        service = _make_service(gateway)

        async with service:
            await _ready(service, gateway)
            await _ready(service, gateway)
            await _ready(service, gateway)

        assert gateway.register_commands.await_count == 2
