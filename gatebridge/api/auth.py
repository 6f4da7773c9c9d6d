"""
Bearer-token check for the /api/discord routes.
"""

from __future__ import annotations

import secrets
from collections.abc import Awaitable, Callable

from fastapi import Request

from gatebridge.config.settings import ApiSettings
from gatebridge.errors import InvalidToken, MissingToken

ANONYMOUS = "anonymous"


def extract_bearer_token(request: Request) -> str | None:
    value = request.headers.get("authorization")
    if not value or not value.lower().startswith("bearer "):
        return None
    return value.split(" ", 1)[1].strip() or None


def build_auth_dependency(settings: ApiSettings) -> Callable[[Request], Awaitable[str]]:
    """
    Create a FastAPI dependency that authenticates the caller.

    The dependency returns the caller identity used for request limiting:
    the client address, or ``anonymous`` when it is unknown.

    Raises (from the dependency):
        MissingToken: No bearer token was sent (401)
        InvalidToken: The token does not match the configured API key (403)
    """

    async def require_api_key(request: Request) -> str:
        caller = request.client.host if request.client else ANONYMOUS
        if settings.allow_anonymous:
            return caller

        token = extract_bearer_token(request)
        if token is None:
            raise MissingToken()
        if not settings.api_key or not secrets.compare_digest(token, settings.api_key):
            raise InvalidToken()
        return caller

    return require_api_key
