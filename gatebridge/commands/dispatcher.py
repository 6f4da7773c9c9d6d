"""
InteractionDispatcher - routes inbound interactions to command handlers.

Per interaction the dispatcher moves through

    Received -> Dispatching -> Replied | TimedOut | Errored

and every path ends with the context closed. The handler is raced against the
response deadline. Whichever settles first decides the outcome:

- handler finishes first: Replied (or Errored if it raised)
- deadline fires first: TimedOut, the invoker gets an ephemeral notice

A handler that loses the race is NOT cancelled. It keeps running in the
background and anything it does outside the interaction (database writes,
messages to other channels) still happens; only its replies are rejected,
because the context is closed. Handlers should therefore be quick, or safe
to have completed after the user was told the command timed out.

Failures never propagate out of dispatch(): one broken handler cannot take
down the gateway loop or affect other interactions.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from enum import Enum

from gatebridge.commands.context import InteractionContext, InteractionKind
from gatebridge.commands.models import resolve_options
from gatebridge.commands.registry import CommandRegistry
from gatebridge.config.logging import get_logger
from gatebridge.config.settings import DispatchSettings
from gatebridge.errors import (
    InteractionExpired,
    InteractionTimeout,
    OptionTypeError,
    UnknownCommand,
)

logger = get_logger(__name__)

UNKNOWN_COMMAND_MESSAGE = "❌ Unknown command"
TIMEOUT_MESSAGE = "❌ Command took too long to execute. Please try again."
ERROR_MESSAGE = "❌ An error occurred while executing the command."
INVALID_OPTIONS_MESSAGE = "❌ The options for this command were not valid."

DEFAULT_DEADLINE = 3.0


class DispatchOutcome(str, Enum):
    REPLIED = "replied"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    IGNORED = "ignored"  # not a command, or already dispatched


class InteractionDispatcher:
    """
    Dispatches interaction contexts to handlers from a CommandRegistry.

    Args:
        registry: Where command names are looked up
        deadline: Seconds a handler may run before the invoker is told it timed out
        dedupe_window: How many recent interaction IDs to remember, so a
                       redelivered event never runs a command twice
    """

    def __init__(
        self,
        registry: CommandRegistry,
        deadline: float = DEFAULT_DEADLINE,
        dedupe_window: int = 1024,
    ) -> None:
        if deadline <= 0:
            raise ValueError("Deadline must be a positive number")
        self._registry = registry
        self._deadline = deadline
        self._dedupe_window = dedupe_window
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls, registry: CommandRegistry, settings: DispatchSettings
    ) -> InteractionDispatcher:
        return cls(
            registry,
            deadline=settings.response_deadline,
            dedupe_window=settings.dedupe_window,
        )

    @property
    def deadline(self) -> float:
        return self._deadline

    @property
    def background_tasks(self) -> frozenset[asyncio.Task]:
        """Handlers that lost the deadline race and are still running."""
        return frozenset(self._background)

    async def dispatch(self, ctx: InteractionContext) -> DispatchOutcome:
        """Handle one interaction. Never raises for handler or reply failures."""
        if ctx.kind not in (InteractionKind.COMMAND, InteractionKind.COMPONENT):
            return DispatchOutcome.IGNORED

        if not ctx.claim() or self._already_seen(ctx.interaction_id):
            logger.debug(f"Ignoring repeated dispatch of interaction {ctx.interaction_id}")
            return DispatchOutcome.IGNORED

        descriptor = self._registry.lookup(ctx.command_name)
        if descriptor is None:
            ctx.error = UnknownCommand(
                f"Unknown command: {ctx.command_name}", details={"command": ctx.command_name}
            )
            logger.warning(f"{ctx.error.message} (invoked by {ctx.user_tag})")
            await self._notify(ctx, UNKNOWN_COMMAND_MESSAGE)
            return DispatchOutcome.ERRORED

        try:
            ctx.params = resolve_options(descriptor, ctx.raw_options)
        except OptionTypeError as e:
            ctx.error = e
            logger.info(f"Rejected options for {ctx.command_name} from {ctx.user_tag}: {e}")
            await self._notify(ctx, INVALID_OPTIONS_MESSAGE)
            return DispatchOutcome.ERRORED
        except Exception as e:
            return await self._fail(ctx, e)

        logger.info(f"Executing command: {ctx.command_name} by {ctx.user_tag}")
        try:
            task = asyncio.create_task(
                descriptor.handler(ctx), name=f"command:{ctx.command_name}:{ctx.interaction_id}"
            )
        except Exception as e:
            # sync handler, or one that raised before returning a coroutine
            return await self._fail(ctx, e)
        done, _ = await asyncio.wait({task}, timeout=self._deadline)

        if not done:
            ctx.close()
            self._keep_running(task, ctx)
            ctx.error = InteractionTimeout(
                f"Command {ctx.command_name} by {ctx.user_tag} exceeded "
                f"{self._deadline:.1f}s deadline",
                details={"command": ctx.command_name, "deadline": self._deadline},
            )
            logger.warning(ctx.error.message)
            await self._notify(ctx, TIMEOUT_MESSAGE)
            return DispatchOutcome.TIMED_OUT

        error = task.exception() if not task.cancelled() else asyncio.CancelledError()
        if error is not None:
            return await self._fail(ctx, error)

        if not ctx.responded:
            logger.warning(
                f"Command {ctx.command_name} finished without replying; "
                "Discord will show the interaction as failed"
            )
        ctx.close()
        return DispatchOutcome.REPLIED

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for handlers still running after a timeout (used on shutdown)."""
        if self._background:
            await asyncio.wait(set(self._background), timeout=timeout)

    def _already_seen(self, interaction_id: str) -> bool:
        if interaction_id in self._seen:
            return True
        self._seen[interaction_id] = None
        while len(self._seen) > self._dedupe_window:
            self._seen.popitem(last=False)
        return False

    def _keep_running(self, task: asyncio.Task, ctx: InteractionContext) -> None:
        self._background.add(task)

        def _finished(t: asyncio.Task) -> None:
            self._background.discard(t)
            if t.cancelled():
                return
            error = t.exception()
            if isinstance(error, InteractionExpired):
                logger.info(f"Late reply from timed out command {ctx.command_name} was dropped")
            elif error is not None:
                logger.error(
                    f"Timed out command {ctx.command_name} later failed",
                    exc_info=error,
                )
            else:
                logger.info(f"Timed out command {ctx.command_name} finished in the background")

        task.add_done_callback(_finished)

    async def _fail(self, ctx: InteractionContext, error: BaseException) -> DispatchOutcome:
        ctx.error = error
        logger.error(
            f"Error executing command {ctx.command_name} by {ctx.user_tag} "
            f"(user id {ctx.user_id})",
            exc_info=error,
        )
        await self._notify(ctx, ERROR_MESSAGE)
        return DispatchOutcome.ERRORED

    async def _notify(self, ctx: InteractionContext, message: str) -> None:
        """Send the final ephemeral notice; a failure here is logged, not raised."""
        try:
            await ctx.send_terminal(message)
        except Exception as e:
            logger.error(f"Failed to send error response for {ctx.command_name}: {e}")
