"""
OutboundDispatchPipeline - delivers validated messages through the gateway.

Per send:

1. Resolve the channel (ChannelNotFound / InvalidChannelType otherwise)
2. Check the bot may view and post there (PermissionDenied otherwise)
3. Send, retrying with tenacity:
   - RateLimitSignal: wait at least the platform's retry-after, then retry
   - TransportError: exponential backoff, then retry
   Both share one attempt budget. Running out turns the last signal into
   RateLimited or GatewayUnavailable; nothing is retried forever. A
   retry-after longer than max_retry_after is surfaced as RateLimited at once.

Every attempt is logged with timestamp, channel, attempt number and outcome.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gatebridge.config.logging import get_logger
from gatebridge.config.settings import OutboundSettings
from gatebridge.errors import (
    GatewayUnavailable,
    PermissionDenied,
    RateLimited,
    RateLimitSignal,
    TransportError,
    ValidationError,
)
from gatebridge.gateway.base import GatewaySession
from gatebridge.messages.models import OutboundMessageRequest, SentMessage

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class RetryTicket:
    """Bookkeeping for one rate-limited send while it waits to be re-attempted."""

    original_request: OutboundMessageRequest
    channel_id: str
    attempt_count: int = 0
    next_eligible_time: datetime | None = None

    def schedule(self, attempt: int, delay: float) -> None:
        self.attempt_count = attempt
        self.next_eligible_time = datetime.now(UTC) + timedelta(seconds=delay)


class OutboundDispatchPipeline:
    """
    Sends OutboundMessageRequests to Discord channels.

    Args:
        gateway: Session used to resolve channels and send
        settings: Attempt budget and backoff shape
        sleep: Coroutine used between attempts (replaceable in tests)
    """

    def __init__(
        self,
        gateway: GatewaySession,
        settings: OutboundSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.gateway = gateway
        self.settings = settings or OutboundSettings()
        self._sleep = sleep
        self._backoff = wait_exponential(
            multiplier=self.settings.base_delay,
            max=self.settings.max_delay,
            exp_base=self.settings.backoff_multiplier,
        )

    async def send(self, channel_id: str, request: OutboundMessageRequest) -> SentMessage:
        """
        Deliver one message.

        Raises:
            ChannelNotFound: The channel does not exist or is not visible to the bot
            InvalidChannelType: The channel cannot hold messages
            PermissionDenied: The bot may not post in the channel
            RateLimited: Still rate limited after the attempt budget, or told to wait
                longer than max_retry_after
            GatewayUnavailable: Still failing to reach Discord after the attempt budget
            BotNotReady: The gateway session is not connected
        """
        if not request.has_body:
            raise ValidationError(
                "Message content or embeds are required", code="MISSING_MESSAGE_CONTENT"
            )

        try:
            channel = await self.gateway.resolve_channel(channel_id)
            if not await self.gateway.can_send(channel):
                raise PermissionDenied(
                    "Bot lacks permission to send messages in this channel",
                    details={"channelId": channel_id},
                )
        except (RateLimitSignal, TransportError) as e:
            raise self._surface(e, attempts=1) from e

        ticket: RetryTicket | None = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.max_attempts),
            wait=self._wait,
            retry=retry_if_exception_type((RateLimitSignal, TransportError)),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            sleep=self._sleep,
            reraise=True,
        )
        attempt_number = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    try:
                        sent = await self.gateway.send_to_channel(channel, request)
                    except RateLimitSignal as e:
                        if e.retry_after > self.settings.max_retry_after:
                            self._log_attempt(
                                channel_id, attempt_number, f"rate limited ({e.retry_after:.2f}s, not waiting)"
                            )
                            raise self._surface(e, attempts=attempt_number) from e
                        if ticket is None:
                            ticket = RetryTicket(original_request=request, channel_id=channel_id)
                        ticket.schedule(attempt_number, e.retry_after)
                        self._log_attempt(channel_id, attempt_number, f"rate limited ({e.retry_after:.2f}s)")
                        raise
                    except TransportError as e:
                        self._log_attempt(channel_id, attempt_number, f"transport error ({e.message})")
                        raise
                    except Exception as e:
                        self._log_attempt(channel_id, attempt_number, f"failed ({type(e).__name__})")
                        raise
                    self._log_attempt(channel_id, attempt_number, f"delivered {sent.message_id}")
        except (RateLimitSignal, TransportError) as e:
            raise self._surface(e, attempts=attempt_number) from e

        if ticket is not None:
            logger.info(
                f"Rate-limited send to channel {channel_id} delivered after "
                f"{attempt_number} attempt(s)"
            )
        return sent

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitSignal):
            return error.retry_after
        return self._backoff(retry_state)

    def _log_attempt(self, channel_id: str, attempt: int, outcome: str) -> None:
        logger.info(
            f"[{datetime.now(UTC).isoformat()}] send channel={channel_id} "
            f"attempt={attempt}/{self.settings.max_attempts} outcome={outcome}"
        )

    def _surface(self, error: RateLimitSignal | TransportError, attempts: int):
        if isinstance(error, RateLimitSignal):
            logger.warning(f"Giving up after {attempts} attempt(s): still rate limited")
            return RateLimited(
                retry_after=error.retry_after,
                details={"attempts": attempts, "retryAfter": error.retry_after},
            )
        logger.error(f"Giving up after {attempts} attempt(s): {error.message}")
        return GatewayUnavailable(details={"attempts": attempts, "reason": error.message})
