"""
GateBridge - REST-to-Discord bridge with a slash-command dispatcher.

This package exposes a small HTTP API for posting messages (text, embeds,
buttons) to a Discord channel through a long-lived bot gateway session, and
routes slash commands and button clicks from that session to registered
handlers under Discord's interaction deadline.
"""

__version__ = "0.1.0"
