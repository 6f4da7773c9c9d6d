"""
Tests for command descriptors, their Discord payloads, and option resolution.
"""

import pytest

from gatebridge.commands.models import (
    BooleanValue,
    CommandDescriptor,
    CommandKind,
    CommandParameter,
    IntegerValue,
    ParameterType,
    StringValue,
    UserValue,
    resolve_options,
)
from gatebridge.errors import CommandDefinitionError, OptionTypeError


async def _noop(ctx) -> None:
    return None


def _make_descriptor(*parameters: CommandParameter, name="roll") -> CommandDescriptor:
    return CommandDescriptor(
        name=name, description="Roll something", parameters=parameters, handler=_noop
    )


class TestDiscordPayload:
    def test_payload_shape(self):
        descriptor = _make_descriptor(
            CommandParameter(name="sides", description="Die size", type=ParameterType.INTEGER, required=True),
            CommandParameter(name="secret", description="Hide result", type=ParameterType.BOOLEAN),
            name="roll",
        )

        payload = descriptor.to_discord_payload()

        assert payload["name"] == "roll"
        assert payload["type"] == 1
        assert payload["options"] == [
            {"name": "sides", "description": "Die size", "type": 4, "required": True},
            {"name": "secret", "description": "Hide result", "type": 5, "required": False},
        ]

    def test_no_options_key_without_parameters(self):
        assert "options" not in _make_descriptor().to_discord_payload()

    @pytest.mark.parametrize("name", ["has space", "x" * 33, "bang!", "Greet"])
    def test_invalid_names(self, name):
        with pytest.raises(CommandDefinitionError):
            _make_descriptor(name=name).to_discord_payload()

    def test_option_names_must_be_lowercase(self):
        descriptor = _make_descriptor(CommandParameter(name="Sides", description="Die size"))
        with pytest.raises(CommandDefinitionError):
            descriptor.to_discord_payload()

    def test_description_limit(self):
        descriptor = CommandDescriptor(name="ping", description="d" * 101, handler=_noop)
        with pytest.raises(CommandDefinitionError):
            descriptor.to_discord_payload()

    def test_required_after_optional_rejected(self):
        descriptor = _make_descriptor(
            CommandParameter(name="a", description="a"),
            CommandParameter(name="b", description="b", required=True),
        )
        with pytest.raises(CommandDefinitionError):
            descriptor.to_discord_payload()

    def test_component_handlers_cannot_be_deployed(self):
        descriptor = CommandDescriptor(
            name="confirm_action", description="x", handler=_noop, kind=CommandKind.COMPONENT
        )
        with pytest.raises(CommandDefinitionError):
            descriptor.to_discord_payload()


class TestResolveOptions:
    def test_discord_option_list(self):
        descriptor = _make_descriptor(
            CommandParameter(name="sides", type=ParameterType.INTEGER, required=True),
            CommandParameter(name="label", type=ParameterType.STRING),
        )

        params = resolve_options(
            descriptor,
            [{"name": "sides", "type": 4, "value": 20}, {"name": "label", "type": 3, "value": "d20"}],
        )

        assert params["sides"] == IntegerValue(value=20)
        assert params["label"] == StringValue(value="d20")

    def test_mapping_input(self):
        descriptor = _make_descriptor(CommandParameter(name="secret", type=ParameterType.BOOLEAN))
        params = resolve_options(descriptor, {"secret": True})
        assert isinstance(params["secret"], BooleanValue)
        assert params["secret"].value is True

    def test_optional_parameters_may_be_absent(self):
        descriptor = _make_descriptor(CommandParameter(name="label"))
        assert resolve_options(descriptor, None) == {}

    def test_missing_required(self):
        descriptor = _make_descriptor(CommandParameter(name="sides", type=ParameterType.INTEGER, required=True))
        with pytest.raises(OptionTypeError) as exc_info:
            resolve_options(descriptor, [])
        assert exc_info.value.details["option"] == "sides"

    def test_unknown_option(self):
        with pytest.raises(OptionTypeError):
            resolve_options(_make_descriptor(), {"extra": "x"})

    def test_type_mismatch(self):
        descriptor = _make_descriptor(CommandParameter(name="sides", type=ParameterType.INTEGER))
        with pytest.raises(OptionTypeError):
            resolve_options(descriptor, {"sides": "twenty"})

    def test_bool_is_not_an_integer(self):
        descriptor = _make_descriptor(CommandParameter(name="sides", type=ParameterType.INTEGER))
        with pytest.raises(OptionTypeError):
            resolve_options(descriptor, {"sides": True})

    def test_wire_type_mismatch(self):
        descriptor = _make_descriptor(CommandParameter(name="sides", type=ParameterType.INTEGER))
        with pytest.raises(OptionTypeError):
            resolve_options(descriptor, [{"name": "sides", "type": 3, "value": 20}])

    def test_user_option_must_be_snowflake(self):
        descriptor = _make_descriptor(CommandParameter(name="who", type=ParameterType.USER))

        params = resolve_options(descriptor, [{"name": "who", "type": 6, "value": "123456789012345678"}])
        assert params["who"] == UserValue(value="123456789012345678")

        with pytest.raises(OptionTypeError):
            resolve_options(descriptor, {"who": "somebody"})

    def test_number_accepts_integers(self):
        descriptor = _make_descriptor(CommandParameter(name="scale", type=ParameterType.NUMBER))
        params = resolve_options(descriptor, {"scale": 2})
        assert params["scale"].value == 2.0

    @pytest.mark.parametrize("options", [[{"type": 4, "value": 20}], [None], ["sides"]])
    def test_malformed_option_entries(self, options):
        descriptor = _make_descriptor(CommandParameter(name="sides", type=ParameterType.INTEGER))
        with pytest.raises(OptionTypeError):
            resolve_options(descriptor, options)
