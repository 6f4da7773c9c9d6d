"""
BridgeService - wires the bridge together and runs it on one event loop.

Construction order (leaf first):
- CommandRegistry with the built-in commands
- DiscordGatewaySession (owns the connection and the event queue)
- InteractionDispatcher + GatewayEventLoop (inbound)
- OutboundDispatchPipeline + FastAPI app (outbound)

The REST server and the gateway login run side by side: if Discord cannot be
reached the API stays up and answers BOT_NOT_READY. Everything started is
registered on an AsyncExitStack and torn down in reverse order on shutdown.
"""

from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack

import discord
import uvicorn

from gatebridge.api.app import create_app
from gatebridge.commands.builtin import builtin_commands
from gatebridge.commands.dispatcher import InteractionDispatcher
from gatebridge.commands.registry import CommandRegistry, register_and_deploy
from gatebridge.config.logging import get_logger
from gatebridge.config.settings import Settings
from gatebridge.errors import BridgeError, GatewayUnavailable, PermissionDenied
from gatebridge.gateway.base import GatewaySession, ReadyEvent
from gatebridge.gateway.discord_session import DiscordGatewaySession
from gatebridge.gateway.loop import GatewayEventLoop
from gatebridge.outbound.pipeline import OutboundDispatchPipeline

logger = get_logger(__name__)

SHUTDOWN_GRACE = 5.0


class BridgeService:
    """
    Owns every long-lived component of a running bridge.

    Args:
        settings: Full application settings
        gateway: Gateway session to use (a DiscordGatewaySession if omitted)
        registry: Command registry to use (a fresh one if omitted)
    """

    def __init__(
        self,
        settings: Settings,
        gateway: GatewaySession | None = None,
        registry: CommandRegistry | None = None,
    ) -> None:
        if gateway is None:
            gateway = DiscordGatewaySession(settings)

        self.settings = settings
        self.gateway = gateway
        self.registry = registry if registry is not None else CommandRegistry()
        self.registry.register_many(builtin_commands(gateway))

        self.dispatcher = InteractionDispatcher.from_settings(self.registry, settings.dispatch)
        self.event_loop = GatewayEventLoop(
            gateway.events, self.dispatcher, on_ready=self._deploy_commands
        )
        self.pipeline = OutboundDispatchPipeline(gateway, settings.outbound)
        self.app = create_app(settings, gateway, self.pipeline)

        self._deployed = False
        self._exit_stack = AsyncExitStack()

    async def __aenter__(self) -> BridgeService:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        """Start the inbound event loop and begin connecting to Discord."""
        logger.info(f"Starting GateBridge with {len(self.registry)} command(s) registered")

        self._exit_stack.push_async_callback(self._close_gateway)
        self._exit_stack.push_async_callback(self.dispatcher.drain, SHUTDOWN_GRACE)

        loop_task = asyncio.create_task(self.event_loop.run(), name="gateway-event-loop")
        self._exit_stack.push_async_callback(self._stop_event_loop, loop_task)

        connect_task = asyncio.create_task(self._connect(), name="gateway-connect")
        self._exit_stack.push_async_callback(self._cancel, connect_task)

    async def serve(self) -> None:
        """Run the REST server until it is asked to exit (SIGINT / SIGTERM)."""
        config = uvicorn.Config(
            self.app,
            host=self.settings.api.host,
            port=self.settings.api.port,
            log_config=None,
        )
        server = uvicorn.Server(config)
        logger.info(f"REST API listening on http://{self.settings.api.host}:{self.settings.api.port}")
        await server.serve()

    async def run(self) -> None:
        async with self:
            await self.serve()

    async def close(self) -> None:
        logger.info("Shutting down GateBridge...")
        await self._exit_stack.aclose()

    async def _connect(self) -> None:
        try:
            await self.gateway.start_session()
        except discord.LoginFailure as e:
            logger.error(f"Discord rejected the bot token: {e}")
        except GatewayUnavailable as e:
            logger.error(f"{e.message}. The REST API keeps running and answers BOT_NOT_READY.")

    async def _deploy_commands(self, event: ReadyEvent) -> None:
        """Push slash commands once, on the first READY."""
        if self._deployed or not self.settings.bot.sync_commands:
            return
        guild_id = self.settings.bot.default_guild_id
        try:
            await register_and_deploy(self.registry, self.gateway, (), guild_id=guild_id)
        except PermissionDenied:
            logger.warning(
                "Could not register slash commands (403 Forbidden). "
                "The bot is missing the 'applications.commands' OAuth2 scope. "
                "Re-invite the bot with both 'bot' and 'applications.commands' scopes."
            )
            return
        except BridgeError as e:
            logger.warning(f"Slash command registration failed: {e.message}. The bot will still run.")
            return
        self._deployed = True

    async def _stop_event_loop(self, task: asyncio.Task) -> None:
        await self.event_loop.close(timeout=SHUTDOWN_GRACE)
        await self._cancel(task)

    async def _close_gateway(self) -> None:
        await self.gateway.close_session()

    @staticmethod
    async def _cancel(task: asyncio.Task) -> None:
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
