"""
Command Layer.

Holds the command registry, the typed parameter schema, the per-interaction
context handlers answer through, and the dispatcher that routes inbound slash
commands and button clicks to handlers under the response deadline:

    GatewaySession  ->  InteractionContext
                              |
    InteractionDispatcher.dispatch(ctx)  ->  CommandRegistry.lookup(name)
                              |
                     handler(ctx)  ->  ctx.reply(...)

The built-in command set lives in gatebridge.commands.builtin.
"""

from gatebridge.commands.context import InteractionContext, InteractionKind
from gatebridge.commands.dispatcher import DispatchOutcome, InteractionDispatcher
from gatebridge.commands.models import (
    CommandDescriptor,
    CommandKind,
    CommandParameter,
    ParameterType,
    ParameterValue,
    resolve_options,
)
from gatebridge.commands.registry import CommandRegistry, register_and_deploy

__all__ = [
    "CommandDescriptor",
    "CommandKind",
    "CommandParameter",
    "CommandRegistry",
    "DispatchOutcome",
    "InteractionContext",
    "InteractionDispatcher",
    "InteractionKind",
    "ParameterType",
    "ParameterValue",
    "register_and_deploy",
    "resolve_options",
]
