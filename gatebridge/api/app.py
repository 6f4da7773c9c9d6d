"""
REST boundary.

Routes:
    GET  /health                          - unauthenticated status probe
    POST /api/discord/send                - post to the configured default channel
    GET  /api/discord/guilds              - guilds the bot is in
    GET  /api/discord/channels/{guild_id} - text channels the bot can view
    GET  /api/discord/default-channel     - the configured send target

Every failure is answered as
``{"success": false, "error": {"code", "message", "details"?, "timestamp"}}``
with the status carried by the BridgeError that caused it.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from gatebridge import __version__
from gatebridge.api.auth import build_auth_dependency
from gatebridge.api.ratelimit import SlidingWindowLimiter
from gatebridge.config.logging import get_logger
from gatebridge.config.settings import Settings
from gatebridge.errors import (
    BotNotReady,
    BridgeError,
    MissingConfiguration,
    RateLimited,
    RateLimitError,
    ValidationError,
)
from gatebridge.gateway.base import GatewaySession
from gatebridge.messages.validator import parse_message, validate_guild_id
from gatebridge.outbound.pipeline import OutboundDispatchPipeline

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def error_response(error: BridgeError) -> JSONResponse:
    payload = error.to_payload()
    headers = {}
    if isinstance(error, RateLimitError):
        payload["retryAfter"] = round(error.retry_after, 3)
        headers["Retry-After"] = str(max(1, round(error.retry_after)))
    return JSONResponse(
        status_code=error.status,
        content={"success": False, "error": payload},
        headers=headers,
    )


async def _bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.code}")
    return error_response(exc)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed unexpectedly", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal error occurred",
                "timestamp": _now(),
            },
        },
    )


def build_discord_routes(
    settings: Settings,
    gateway: GatewaySession,
    pipeline: OutboundDispatchPipeline,
    limiter: SlidingWindowLimiter,
) -> APIRouter:
    require_api_key = build_auth_dependency(settings.api)

    async def limit_caller(caller: str = Depends(require_api_key)) -> str:
        retry_after = limiter.hit(caller)
        if retry_after is not None:
            raise RateLimited(
                "Too many requests. Please slow down.",
                retry_after=retry_after,
                details={"limit": limiter.limit, "windowSeconds": limiter.window},
            )
        return caller

    def _require_ready() -> None:
        if not gateway.connected:
            raise BotNotReady()

    router = APIRouter(prefix="/api/discord", dependencies=[Depends(limit_caller)])

    @router.post("/send")
    async def send_message(request: Request) -> dict[str, Any]:
        channel_id = settings.bot.default_channel_id
        if not channel_id:
            raise MissingConfiguration(
                "Default channel ID not configured. Set BOT__DEFAULT_CHANNEL_ID.",
                code="MISSING_DEFAULT_CHANNEL",
            )

        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError(
                "Request body must be valid JSON", code="INVALID_JSON"
            ) from None

        if isinstance(body, dict) and "channelId" in body:
            logger.debug("Ignoring caller-supplied channelId; using the default channel")
        message = parse_message(body)

        _require_ready()
        sent = await pipeline.send(channel_id, message)
        logger.info(f"Message {sent.message_id} sent to channel {channel_id}")
        return sent.to_payload()

    @router.get("/guilds")
    async def get_guilds() -> dict[str, Any]:
        _require_ready()
        guilds = [g.to_payload() for g in await gateway.list_guilds()]
        return {"success": True, "guilds": guilds, "count": len(guilds), "timestamp": _now()}

    @router.get("/channels/{guild_id}")
    async def get_channels(guild_id: str) -> dict[str, Any]:
        validate_guild_id(guild_id)
        _require_ready()
        guild, channels = await gateway.list_channels(guild_id)
        return {
            "success": True,
            "guild": {"id": guild.id, "name": guild.name},
            "channels": [c.to_payload() for c in channels],
            "count": len(channels),
            "timestamp": _now(),
        }

    @router.get("/default-channel")
    async def get_default_channel() -> dict[str, Any]:
        channel_id = settings.bot.default_channel_id
        guild_id = settings.bot.default_guild_id
        if not channel_id or not guild_id:
            raise MissingConfiguration(
                "Default channel and guild are not configured",
                code="MISSING_DEFAULT_CONFIG",
                details={"channelId": channel_id, "guildId": guild_id},
            )
        return {
            "success": True,
            "defaultChannel": {"channelId": channel_id, "guildId": guild_id},
            "timestamp": _now(),
        }

    return router


def create_app(
    settings: Settings,
    gateway: GatewaySession,
    pipeline: OutboundDispatchPipeline | None = None,
    limiter: SlidingWindowLimiter | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (API key, default channel, limits)
        gateway: Connected (or connecting) gateway session
        pipeline: Outbound pipeline (one over gateway is created if omitted)
        limiter: Per-caller request limiter (built from settings if omitted)
    """
    pipeline = pipeline or OutboundDispatchPipeline(gateway, settings.outbound)
    limiter = limiter or SlidingWindowLimiter(
        settings.api.requests_per_window, settings.api.window_seconds
    )

    app = FastAPI(title="GateBridge", version=__version__)
    app.add_exception_handler(BridgeError, _bridge_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "OK",
            "services": {
                "web": "running",
                "discord": "connected" if gateway.connected else "disconnected",
            },
            "environment": settings.environment,
            "timestamp": _now(),
        }

    app.include_router(build_discord_routes(settings, gateway, pipeline, limiter))
    return app
