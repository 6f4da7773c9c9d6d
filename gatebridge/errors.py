"""
Error taxonomy shared by the dispatcher, the outbound pipeline and the REST API.

Every error that can reach a caller is a BridgeError with a stable machine
readable ``code`` and the HTTP ``status`` the REST boundary answers with.
Internal signals (RateLimitSignal, TransportError) never leave the outbound
pipeline; they are retried and then converted into RateLimited or
GatewayUnavailable.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


class BridgeError(Exception):
    """Base class for errors with a stable code and HTTP status."""

    code = "UNKNOWN_ERROR"
    status = 500
    default_message = "An unknown error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready error object: code, message, optional details, timestamp."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        payload["timestamp"] = datetime.now(UTC).isoformat()
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Caller input
# ---------------------------------------------------------------------------

class ValidationError(BridgeError):
    """Caller input is malformed. Always recoverable, never an incident."""

    code = "INVALID_REQUEST"
    status = 400
    default_message = "Invalid request"


class OptionTypeError(ValidationError):
    """An inbound command option does not match the declared parameter schema."""

    code = "INVALID_OPTION"
    default_message = "Invalid command option"


class InvalidChannelType(BridgeError):
    code = "INVALID_CHANNEL_TYPE"
    status = 400
    default_message = "Channel is not a text-based channel"


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class NotFoundError(BridgeError):
    code = "RESOURCE_NOT_FOUND"
    status = 404
    default_message = "Resource not found"


class ChannelNotFound(NotFoundError):
    code = "CHANNEL_NOT_FOUND"
    default_message = "Channel not found"


class GuildNotFound(NotFoundError):
    code = "GUILD_NOT_FOUND"
    default_message = "Guild not found or bot is not a member"


class UnknownCommand(NotFoundError):
    code = "UNKNOWN_COMMAND"
    default_message = "Unknown command"


# ---------------------------------------------------------------------------
# REST callers
# ---------------------------------------------------------------------------

class MissingToken(BridgeError):
    code = "MISSING_TOKEN"
    status = 401
    default_message = "Authorization header with a Bearer token is required"


class InvalidToken(BridgeError):
    code = "INVALID_TOKEN"
    status = 403
    default_message = "Invalid API token"


# ---------------------------------------------------------------------------
# Platform capability
# ---------------------------------------------------------------------------

class PermissionDenied(BridgeError):
    """The bot lacks a platform-side permission."""

    code = "INSUFFICIENT_PERMISSIONS"
    status = 403
    default_message = "The bot lacks the necessary permissions to perform this action"


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------

class RateLimitError(BridgeError):
    code = "RATE_LIMITED"
    status = 429
    default_message = "Rate limited"

    def __init__(self, message: str | None = None, *, retry_after: float = 0.0, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = max(0.0, float(retry_after))


class RateLimitSignal(RateLimitError):
    """The platform asked us to slow down. Retried inside the outbound pipeline."""


class RateLimited(RateLimitError):
    """Rate limit persisted past the retry budget, or a REST caller exceeded its quota."""

    default_message = "Request was rate limited. Please try again later."


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------

class TransportError(BridgeError):
    """Connectivity to the gateway failed. Retried inside the outbound pipeline."""

    code = "TRANSPORT_ERROR"
    status = 502
    default_message = "Could not reach Discord"


class GatewayUnavailable(BridgeError):
    code = "GATEWAY_UNAVAILABLE"
    status = 500
    default_message = "Discord is currently unreachable"


class BotNotReady(BridgeError):
    code = "BOT_NOT_READY"
    status = 503
    default_message = "Discord bot is not connected. Please try again later."


class MissingConfiguration(BridgeError):
    code = "MISSING_CONFIGURATION"
    status = 500
    default_message = "Required configuration is missing"


# ---------------------------------------------------------------------------
# Interactions
# ---------------------------------------------------------------------------

class InteractionTimeout(BridgeError):
    """A command handler did not settle within the response deadline."""

    code = "INTERACTION_TIMEOUT"
    status = 504
    default_message = "Command took too long to execute"


class InteractionExpired(BridgeError):
    """A reply was attempted on an interaction that is already finished."""

    code = "INTERACTION_EXPIRED"
    status = 410
    default_message = "Interaction is no longer accepting replies"


class CommandDefinitionError(BridgeError):
    """A command descriptor cannot be deployed as a Discord slash command."""

    code = "INVALID_COMMAND_DEFINITION"
    status = 500
    default_message = "Invalid command definition"
