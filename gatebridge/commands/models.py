"""
Command descriptors and typed parameter values.

A CommandDescriptor names a handler and declares its parameters. Inbound
option values are checked against that declaration by resolve_options()
before the handler runs, producing one ParameterValue per supplied option.
ParameterValue is a tagged union (discriminated on ``kind``) so handlers get
a value whose Python type already matches the declared parameter type.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from gatebridge.config.settings import is_snowflake
from gatebridge.errors import CommandDefinitionError, OptionTypeError

# async def handler(ctx: InteractionContext) -> None
CommandHandler = Callable[..., Awaitable[None]]

_NAME_RE = re.compile(r"^[\w-]{1,32}$")
MAX_DESCRIPTION = 100


class ParameterType(str, Enum):
    """Declared parameter types, with Discord's application command option type codes."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    USER = "user"
    CHANNEL = "channel"
    ROLE = "role"
    MENTIONABLE = "mentionable"
    NUMBER = "number"

    @property
    def discord_type(self) -> int:
        return _DISCORD_TYPES[self]

    @classmethod
    def from_discord_type(cls, code: int) -> "ParameterType | None":
        for param_type, value in _DISCORD_TYPES.items():
            if value == code:
                return param_type
        return None


_DISCORD_TYPES = {
    ParameterType.STRING: 3,
    ParameterType.INTEGER: 4,
    ParameterType.BOOLEAN: 5,
    ParameterType.USER: 6,
    ParameterType.CHANNEL: 7,
    ParameterType.ROLE: 8,
    ParameterType.MENTIONABLE: 9,
    ParameterType.NUMBER: 10,
}


class CommandKind(str, Enum):
    SLASH = "slash"  # deployed to Discord, invoked as /name
    COMPONENT = "component"  # button click, routed by custom_id, never deployed


class CommandParameter(BaseModel):
    name: str
    description: str = ""
    type: ParameterType = ParameterType.STRING
    required: bool = False

    model_config = ConfigDict(frozen=True)


class CommandDescriptor(BaseModel):
    """
    A command the dispatcher can route to.

    Re-registering a descriptor under an existing name replaces the old one
    (see CommandRegistry.register).
    """

    name: str = Field(min_length=1)
    description: str = ""
    parameters: tuple[CommandParameter, ...] = ()
    handler: CommandHandler
    kind: CommandKind = CommandKind.SLASH

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    def parameter(self, name: str) -> CommandParameter | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def to_discord_payload(self) -> dict[str, Any]:
        """
        Build the application command JSON Discord expects.

        Raises:
            CommandDefinitionError: name, description or option layout Discord would reject
        """
        if self.kind is not CommandKind.SLASH:
            raise CommandDefinitionError(
                f"Command {self.name!r} is a component handler and cannot be deployed"
            )
        _check_name(self.name, "Command name")
        _check_description(self.description, f"Command {self.name!r}")

        options = []
        seen_optional = False
        for param in self.parameters:
            _check_name(param.name, f"Option name on {self.name!r}")
            _check_description(param.description, f"Option {param.name!r} on {self.name!r}")
            if param.required and seen_optional:
                raise CommandDefinitionError(
                    f"Required option {param.name!r} on {self.name!r} must come before optional ones"
                )
            seen_optional = seen_optional or not param.required
            options.append(
                {
                    "name": param.name,
                    "description": param.description,
                    "type": param.type.discord_type,
                    "required": param.required,
                }
            )

        payload: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": 1,  # CHAT_INPUT
        }
        if options:
            payload["options"] = options
        return payload


def _check_name(name: str, what: str) -> None:
    # Discord matches CHAT_INPUT names lowercase; "Greet" would arrive as "greet"
    if not _NAME_RE.match(name) or name != name.lower():
        raise CommandDefinitionError(
            f"{what} {name!r} must be 1-32 lowercase letters, numbers, hyphens and underscores"
        )


def _check_description(description: str, what: str) -> None:
    if not description or len(description) > MAX_DESCRIPTION:
        raise CommandDefinitionError(
            f"{what} needs a description of 1-{MAX_DESCRIPTION} characters"
        )


# ---------------------------------------------------------------------------
# Parameter values
# ---------------------------------------------------------------------------

class StringValue(BaseModel):
    kind: Literal["string"] = "string"
    value: str


class IntegerValue(BaseModel):
    kind: Literal["integer"] = "integer"
    value: int


class NumberValue(BaseModel):
    kind: Literal["number"] = "number"
    value: float


class BooleanValue(BaseModel):
    kind: Literal["boolean"] = "boolean"
    value: bool


class UserValue(BaseModel):
    kind: Literal["user"] = "user"
    value: str  # snowflake


class ChannelValue(BaseModel):
    kind: Literal["channel"] = "channel"
    value: str


class RoleValue(BaseModel):
    kind: Literal["role"] = "role"
    value: str


class MentionableValue(BaseModel):
    kind: Literal["mentionable"] = "mentionable"
    value: str


ParameterValue = Annotated[
    Union[
        StringValue,
        IntegerValue,
        NumberValue,
        BooleanValue,
        UserValue,
        ChannelValue,
        RoleValue,
        MentionableValue,
    ],
    Field(discriminator="kind"),
]

_VALUE_ADAPTER: TypeAdapter = TypeAdapter(ParameterValue)


def _coerce(param: CommandParameter, raw: Any) -> Any:
    """Return raw if it fits param.type, else raise OptionTypeError."""
    kind = param.type
    ok = False
    if kind is ParameterType.STRING:
        ok = isinstance(raw, str)
    elif kind is ParameterType.INTEGER:
        ok = isinstance(raw, int) and not isinstance(raw, bool)
    elif kind is ParameterType.NUMBER:
        ok = isinstance(raw, (int, float)) and not isinstance(raw, bool)
    elif kind is ParameterType.BOOLEAN:
        ok = isinstance(raw, bool)
    else:
        # Discord sends entity references as snowflake strings
        raw = str(raw) if isinstance(raw, int) and not isinstance(raw, bool) else raw
        ok = isinstance(raw, str) and is_snowflake(raw)
    if not ok:
        raise OptionTypeError(
            f"Option {param.name!r} must be of type {kind.value}",
            details={"option": param.name, "expected": kind.value},
        )
    return raw


def resolve_options(
    descriptor: CommandDescriptor,
    raw_options: Sequence[Mapping[str, Any]] | Mapping[str, Any] | None,
) -> dict[str, ParameterValue]:
    """
    Check inbound options against a descriptor's declared parameters.

    Args:
        descriptor: The command being invoked
        raw_options: Either Discord's option list ([{"name", "type", "value"}, ...])
                     or a plain name -> value mapping

    Returns:
        Mapping of option name to typed ParameterValue. Optional parameters
        that were not supplied are absent.

    Raises:
        OptionTypeError: malformed or unknown option, missing required option, or type mismatch
    """
    if raw_options is None:
        supplied: dict[str, Any] = {}
        declared_types: dict[str, int] = {}
    elif isinstance(raw_options, Mapping):
        supplied = dict(raw_options)
        declared_types = {}
    else:
        supplied = {}
        declared_types = {}
        for option in raw_options:
            if not isinstance(option, Mapping) or "name" not in option:
                raise OptionTypeError(
                    f"Malformed option for command {descriptor.name!r}: {option!r}",
                    details={"option": None},
                )
            supplied[option["name"]] = option.get("value")
            if "type" in option:
                declared_types[option["name"]] = option["type"]

    resolved: dict[str, ParameterValue] = {}
    for name, raw in supplied.items():
        param = descriptor.parameter(name)
        if param is None:
            raise OptionTypeError(
                f"Unknown option {name!r} for command {descriptor.name!r}",
                details={"option": name},
            )
        wire_type = declared_types.get(name)
        if wire_type is not None and wire_type != param.type.discord_type:
            raise OptionTypeError(
                f"Option {name!r} must be of type {param.type.value}",
                details={"option": name, "expected": param.type.value},
            )
        value = _coerce(param, raw)
        resolved[name] = _VALUE_ADAPTER.validate_python(
            {"kind": param.type.value, "value": value}
        )

    for param in descriptor.parameters:
        if param.required and param.name not in resolved:
            raise OptionTypeError(
                f"Missing required option {param.name!r}",
                details={"option": param.name},
            )

    return resolved
