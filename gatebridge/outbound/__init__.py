"""
Outbound Layer.

Delivers validated messages to Discord channels with rate-limit aware retries.
"""

from gatebridge.outbound.pipeline import OutboundDispatchPipeline, RetryTicket

__all__ = ["OutboundDispatchPipeline", "RetryTicket"]
