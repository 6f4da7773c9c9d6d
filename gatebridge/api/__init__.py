"""
REST Layer.

FastAPI application that authenticates callers, validates message bodies and
hands them to the outbound pipeline.
"""

from gatebridge.api.app import create_app

__all__ = ["create_app"]
