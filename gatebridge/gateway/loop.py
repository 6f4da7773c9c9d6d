"""
GatewayEventLoop - the single consumer of a gateway session's event queue.

Events are taken off the queue in arrival order. Each interaction is handed
to the dispatcher as its own task, so a slow handler never holds up the
interactions behind it, while one context is only ever dispatched once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from gatebridge.commands.dispatcher import InteractionDispatcher
from gatebridge.config.logging import get_logger
from gatebridge.gateway.base import (
    DisconnectEvent,
    GatewayErrorEvent,
    GatewayEvent,
    InteractionCreateEvent,
    ReadyEvent,
)

logger = get_logger(__name__)

ReadyCallback = Callable[[ReadyEvent], Awaitable[None]]


class GatewayEventLoop:
    """
    Drains gateway events and routes them.

    Args:
        events: Queue the gateway session publishes GatewayEvents on
        dispatcher: Handles InteractionCreateEvents
        on_ready: Optional coroutine run on every ReadyEvent (command deployment)
    """

    def __init__(
        self,
        events: asyncio.Queue,
        dispatcher: InteractionDispatcher,
        on_ready: ReadyCallback | None = None,
    ) -> None:
        self._events = events
        self._dispatcher = dispatcher
        self._on_ready = on_ready
        self._tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Dispatches currently in flight."""
        return len(self._tasks)

    async def run(self) -> None:
        """Consume events until close() is called or the task is cancelled."""
        self._running = True
        logger.debug("Gateway event loop started")
        try:
            while self._running:
                event = await self._events.get()
                try:
                    await self.handle(event)
                finally:
                    self._events.task_done()
        finally:
            self._running = False
            logger.debug("Gateway event loop stopped")

    async def handle(self, event: GatewayEvent) -> None:
        """Route one event. Never raises for a failing callback."""
        if isinstance(event, InteractionCreateEvent):
            task = asyncio.create_task(
                self._dispatcher.dispatch(event.context),
                name=f"dispatch:{event.context.interaction_id}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._dispatch_finished)
        elif isinstance(event, ReadyEvent):
            if self._on_ready is not None:
                try:
                    await self._on_ready(event)
                except Exception as e:
                    logger.error(f"Ready handler failed: {e}", exc_info=True)
        elif isinstance(event, GatewayErrorEvent):
            logger.error(
                f"Discord client error in {event.source}: {event.error}",
                exc_info=event.error,
            )
        elif isinstance(event, DisconnectEvent):
            logger.debug("Gateway disconnect event received")
        else:
            logger.debug(f"Ignoring gateway event {type(event).__name__}")

    async def close(self, timeout: float | None = None) -> None:
        """Stop taking new events and wait for in-flight dispatches."""
        self._running = False
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)

    def _dispatch_finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # dispatch() contains handler failures; getting here means a dispatcher bug
            logger.error(f"Dispatch task {task.get_name()} failed", exc_info=error)
