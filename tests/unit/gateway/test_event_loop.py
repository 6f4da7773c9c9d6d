"""
Tests for GatewayEventLoop.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from gatebridge.gateway.base import (
    DisconnectEvent,
    GatewayErrorEvent,
    InteractionCreateEvent,
    ReadyEvent,
)
from gatebridge.gateway.loop import GatewayEventLoop


def _interaction(interaction_id):
    return InteractionCreateEvent(context=MagicMock(interaction_id=interaction_id))


def _make_loop(dispatch=None, on_ready=None):
    dispatcher = MagicMock()
    dispatcher.dispatch = dispatch or AsyncMock()
    events = asyncio.Queue()
    return GatewayEventLoop(events, dispatcher, on_ready=on_ready), events, dispatcher


class TestRouting:
    @pytest.mark.asyncio
    async def test_interactions_are_dispatched(self):
        loop, _, dispatcher = _make_loop()
        event = _interaction("1")

        await loop.handle(event)
        await loop.close(timeout=1.0)

        dispatcher.dispatch.assert_awaited_once_with(event.context)
        assert loop.pending == 0

    @pytest.mark.asyncio
    async def test_ready_runs_callback(self):
        on_ready = AsyncMock()
        loop, _, _ = _make_loop(on_ready=on_ready)

        await loop.handle(ReadyEvent(user="Bridge#0001"))

        on_ready.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_ready_callback_is_contained(self):
        loop, _, _ = _make_loop(on_ready=AsyncMock(side_effect=RuntimeError("deploy failed")))

        await loop.handle(ReadyEvent(user="Bridge#0001"))

    @pytest.mark.asyncio
    async def test_error_and_disconnect_events_do_not_raise(self):
        loop, _, dispatcher = _make_loop()

        await loop.handle(GatewayErrorEvent(source="on_message", error=ValueError("x")))
        await loop.handle(DisconnectEvent())

        dispatcher.dispatch.assert_not_called()


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_next(self):
        release = asyncio.Event()
        finished = []

        async def dispatch(ctx):
            if ctx.interaction_id == "slow":
                await release.wait()
            finished.append(ctx.interaction_id)

        loop, events, _ = _make_loop(dispatch=dispatch)
        runner = asyncio.create_task(loop.run())
        try:
            events.put_nowait(_interaction("slow"))
            events.put_nowait(_interaction("fast"))
            await events.join()
            for _ in range(5):
                await asyncio.sleep(0)

            assert finished == ["fast"]
            assert loop.pending == 1

            release.set()
            await loop.close(timeout=1.0)
            assert finished == ["fast", "slow"]
        finally:
            runner.cancel()
            with pytest.raises(asyncio.CancelledError):
                await runner

    @pytest.mark.asyncio
    async def test_run_marks_running(self):
        loop, events, _ = _make_loop()
        runner = asyncio.create_task(loop.run())
        await asyncio.sleep(0)

        assert loop.running

        runner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await runner
        assert not loop.running

    @pytest.mark.asyncio
    async def test_dispatcher_crash_is_logged_not_raised(self):
        loop, _, _ = _make_loop(dispatch=AsyncMock(side_effect=RuntimeError("bug")))

        await loop.handle(_interaction("1"))
        await loop.close(timeout=1.0)

        assert loop.pending == 0
