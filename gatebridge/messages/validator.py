"""
Payload validation for outbound messages.

Checks a raw JSON request body against Discord's structural limits before any
network call is made. Validation is fail-fast: the first violated limit is
reported, in this order:

    body present -> content type/length -> embeds type/count
    -> per embed: title/description -> field count -> field name/value
       -> footer/author/media/color/timestamp
    -> buttons type/count
    -> per button: label length -> style -> url/customId consistency

Reporting only the first problem keeps the error a caller sees stable for a
given body, which matters more here than listing everything at once.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from gatebridge.config.settings import is_snowflake
from gatebridge.errors import ValidationError
from gatebridge.messages.models import (
    MAX_AUTHOR_NAME,
    MAX_BUTTON_LABEL,
    MAX_BUTTONS,
    MAX_CONTENT_LENGTH,
    MAX_CUSTOM_ID,
    MAX_EMBED_DESCRIPTION,
    MAX_EMBED_FIELDS,
    MAX_EMBED_TITLE,
    MAX_EMBEDS,
    MAX_FIELD_NAME,
    MAX_FIELD_VALUE,
    MAX_FOOTER_TEXT,
    ButtonStyle,
    OutboundMessageRequest,
)

_STYLES = {style.value for style in ButtonStyle}


def _json_type(value: Any) -> str:
    """Name a value's type the way a JSON caller would think of it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _fail(code: str, message: str, **details: Any) -> ValidationError:
    return ValidationError(message, code=code, details=details or None)


def validate_message(body: Any) -> ValidationError | None:
    """
    Validate an outbound message body.

    Args:
        body: Decoded JSON request body

    Returns:
        None when the body is valid, otherwise the first ValidationError found
    """
    if not isinstance(body, Mapping):
        return _fail(
            "INVALID_REQUEST_BODY",
            "Request body must be a JSON object",
            provided=_json_type(body),
        )

    content = body.get("content")
    embeds = body.get("embeds")
    buttons = body.get("buttons")

    no_embeds = embeds is None or (isinstance(embeds, list) and not embeds)
    if not content and no_embeds:
        return _fail(
            "MISSING_MESSAGE_CONTENT",
            "Either content (string) or embeds (array) must be provided",
        )

    if content is not None:
        if not isinstance(content, str):
            return _fail(
                "INVALID_CONTENT_TYPE",
                "content must be a string",
                provided=_json_type(content),
            )
        if len(content) > MAX_CONTENT_LENGTH:
            return _fail(
                "CONTENT_TOO_LONG",
                f"content exceeds Discord's {MAX_CONTENT_LENGTH} character limit",
                length=len(content),
                maxLength=MAX_CONTENT_LENGTH,
            )

    if embeds is not None:
        if not isinstance(embeds, list):
            return _fail(
                "INVALID_EMBEDS_TYPE",
                "embeds must be an array",
                provided=_json_type(embeds),
            )
        if len(embeds) > MAX_EMBEDS:
            return _fail(
                "TOO_MANY_EMBEDS",
                f"Maximum of {MAX_EMBEDS} embeds allowed per message",
                provided=len(embeds),
                maxEmbeds=MAX_EMBEDS,
            )
        for index, embed in enumerate(embeds):
            error = _validate_embed(index, embed)
            if error is not None:
                return error

    if buttons is not None:
        if not isinstance(buttons, list):
            return _fail(
                "INVALID_BUTTONS_TYPE",
                "buttons must be an array",
                provided=_json_type(buttons),
            )
        if len(buttons) > MAX_BUTTONS:
            return _fail(
                "TOO_MANY_BUTTONS",
                f"Maximum of {MAX_BUTTONS} buttons allowed per message",
                provided=len(buttons),
                maxButtons=MAX_BUTTONS,
            )
        seen_ids: set[str] = set()
        for index, button in enumerate(buttons):
            error = _validate_button(index, button, seen_ids)
            if error is not None:
                return error

    return None


def _validate_embed(i: int, embed: Any) -> ValidationError | None:
    if not isinstance(embed, Mapping):
        return _fail(
            "INVALID_EMBED_TYPE",
            f"Embed at index {i} must be an object",
            embedIndex=i,
            provided=_json_type(embed),
        )

    for key in ("title", "description", "url"):
        value = embed.get(key)
        if value is not None and not isinstance(value, str):
            return _fail(
                "INVALID_EMBED_TYPE",
                f"Embed {key} at index {i} must be a string",
                embedIndex=i,
                field=key,
                provided=_json_type(value),
            )

    title = embed.get("title")
    if title and len(title) > MAX_EMBED_TITLE:
        return _fail(
            "EMBED_TITLE_TOO_LONG",
            f"Embed title at index {i} exceeds {MAX_EMBED_TITLE} character limit",
            embedIndex=i,
            titleLength=len(title),
            maxLength=MAX_EMBED_TITLE,
        )

    description = embed.get("description")
    if description and len(description) > MAX_EMBED_DESCRIPTION:
        return _fail(
            "EMBED_DESCRIPTION_TOO_LONG",
            f"Embed description at index {i} exceeds {MAX_EMBED_DESCRIPTION} character limit",
            embedIndex=i,
            descriptionLength=len(description),
            maxLength=MAX_EMBED_DESCRIPTION,
        )

    fields = embed.get("fields")
    if fields is not None:
        if not isinstance(fields, list):
            return _fail(
                "INVALID_EMBED_FIELDS_TYPE",
                f"Embed fields at index {i} must be an array",
                embedIndex=i,
                provided=_json_type(fields),
            )
        if len(fields) > MAX_EMBED_FIELDS:
            return _fail(
                "TOO_MANY_EMBED_FIELDS",
                f"Embed at index {i} has too many fields (max {MAX_EMBED_FIELDS})",
                embedIndex=i,
                fieldCount=len(fields),
                maxFields=MAX_EMBED_FIELDS,
            )
        for j, item in enumerate(fields):
            error = _validate_field(i, j, item)
            if error is not None:
                return error

    return _validate_embed_extras(i, embed)


def _validate_field(i: int, j: int, item: Any) -> ValidationError | None:
    if (
        not isinstance(item, Mapping)
        or not isinstance(item.get("name"), str)
        or not isinstance(item.get("value"), str)
        or not item["name"]
        or not item["value"]
    ):
        return _fail(
            "INVALID_EMBED_FIELD",
            f"Embed field at index {i}.{j} must have name and value",
            embedIndex=i,
            fieldIndex=j,
        )
    if len(item["name"]) > MAX_FIELD_NAME:
        return _fail(
            "EMBED_FIELD_NAME_TOO_LONG",
            f"Embed field name at index {i}.{j} exceeds {MAX_FIELD_NAME} character limit",
            embedIndex=i,
            fieldIndex=j,
            nameLength=len(item["name"]),
            maxLength=MAX_FIELD_NAME,
        )
    if len(item["value"]) > MAX_FIELD_VALUE:
        return _fail(
            "EMBED_FIELD_VALUE_TOO_LONG",
            f"Embed field value at index {i}.{j} exceeds {MAX_FIELD_VALUE} character limit",
            embedIndex=i,
            fieldIndex=j,
            valueLength=len(item["value"]),
            maxLength=MAX_FIELD_VALUE,
        )
    inline = item.get("inline")
    if inline is not None and not isinstance(inline, bool):
        return _fail(
            "INVALID_EMBED_FIELD",
            f"Embed field inline flag at index {i}.{j} must be a boolean",
            embedIndex=i,
            fieldIndex=j,
        )
    return None


def _validate_embed_extras(i: int, embed: Mapping) -> ValidationError | None:
    footer = embed.get("footer")
    if footer is not None:
        if not isinstance(footer, Mapping) or not isinstance(footer.get("text"), str):
            return _fail(
                "INVALID_EMBED_TYPE",
                f"Embed footer at index {i} must be an object with a text string",
                embedIndex=i,
                field="footer",
            )
        if len(footer["text"]) > MAX_FOOTER_TEXT:
            return _fail(
                "EMBED_FOOTER_TOO_LONG",
                f"Embed footer text at index {i} exceeds {MAX_FOOTER_TEXT} character limit",
                embedIndex=i,
                footerLength=len(footer["text"]),
                maxLength=MAX_FOOTER_TEXT,
            )

    author = embed.get("author")
    if author is not None:
        if not isinstance(author, Mapping) or not isinstance(author.get("name"), str):
            return _fail(
                "INVALID_EMBED_TYPE",
                f"Embed author at index {i} must be an object with a name string",
                embedIndex=i,
                field="author",
            )
        if len(author["name"]) > MAX_AUTHOR_NAME:
            return _fail(
                "EMBED_AUTHOR_NAME_TOO_LONG",
                f"Embed author name at index {i} exceeds {MAX_AUTHOR_NAME} character limit",
                embedIndex=i,
                nameLength=len(author["name"]),
                maxLength=MAX_AUTHOR_NAME,
            )

    for key in ("thumbnail", "image"):
        media = embed.get(key)
        if media is not None and (
            not isinstance(media, Mapping) or not isinstance(media.get("url"), str)
        ):
            return _fail(
                "INVALID_EMBED_TYPE",
                f"Embed {key} at index {i} must be an object with a url string",
                embedIndex=i,
                field=key,
            )

    if embed.get("color") is not None and _parse_color(embed["color"]) is None:
        return _fail(
            "INVALID_EMBED_COLOR",
            f"Embed color at index {i} must be an integer 0-16777215 or a #RRGGBB string",
            embedIndex=i,
            provided=embed["color"],
        )

    timestamp = embed.get("timestamp")
    if timestamp not in (None, False) and _parse_timestamp(timestamp) is None:
        return _fail(
            "INVALID_EMBED_TIMESTAMP",
            f"Embed timestamp at index {i} must be true, an ISO 8601 string or epoch milliseconds",
            embedIndex=i,
        )

    return None


def _validate_button(i: int, button: Any, seen_ids: set[str]) -> ValidationError | None:
    if not isinstance(button, Mapping):
        return _fail(
            "INVALID_BUTTON_TYPE",
            f"Button at index {i} must be an object",
            buttonIndex=i,
            provided=_json_type(button),
        )

    label = button.get("label")
    if label is not None and not isinstance(label, str):
        return _fail(
            "INVALID_BUTTON_TYPE",
            f"Button label at index {i} must be a string",
            buttonIndex=i,
            field="label",
        )
    if label and len(label) > MAX_BUTTON_LABEL:
        return _fail(
            "BUTTON_LABEL_TOO_LONG",
            f"Button label at index {i} exceeds {MAX_BUTTON_LABEL} character limit",
            buttonIndex=i,
            labelLength=len(label),
            maxLength=MAX_BUTTON_LABEL,
        )

    style = button.get("style", ButtonStyle.PRIMARY.value)
    if not isinstance(style, str) or style.lower() not in _STYLES:
        return _fail(
            "INVALID_BUTTON_STYLE",
            f"Button style at index {i} must be one of {', '.join(sorted(_STYLES))}",
            buttonIndex=i,
            provided=style,
        )

    custom_id = button.get("customId")
    url = button.get("url")

    if style.lower() == ButtonStyle.LINK.value:
        if not url or not isinstance(url, str):
            return _fail(
                "LINK_BUTTON_MISSING_URL",
                f"Link button at index {i} requires a url",
                buttonIndex=i,
            )
        if custom_id is not None:
            return _fail(
                "LINK_BUTTON_HAS_CUSTOM_ID",
                f"Link button at index {i} cannot have a customId",
                buttonIndex=i,
            )
        return None

    if not custom_id or not isinstance(custom_id, str):
        return _fail(
            "BUTTON_MISSING_CUSTOM_ID",
            f"Button at index {i} requires a customId",
            buttonIndex=i,
        )
    if url is not None:
        return _fail(
            "BUTTON_HAS_URL",
            f"Only link buttons may have a url (button at index {i})",
            buttonIndex=i,
        )
    if len(custom_id) > MAX_CUSTOM_ID:
        return _fail(
            "BUTTON_CUSTOM_ID_TOO_LONG",
            f"Button customId at index {i} exceeds {MAX_CUSTOM_ID} character limit",
            buttonIndex=i,
            customIdLength=len(custom_id),
            maxLength=MAX_CUSTOM_ID,
        )
    if custom_id in seen_ids:
        return _fail(
            "DUPLICATE_BUTTON_CUSTOM_ID",
            f"Button customId {custom_id!r} is used more than once",
            buttonIndex=i,
        )
    seen_ids.add(custom_id)
    return None


def _parse_color(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 0 <= value <= 0xFFFFFF else None
    if isinstance(value, str) and value.startswith("#") and len(value) == 7:
        try:
            return int(value[1:], 16)
        except ValueError:
            return None
    return None


def _parse_timestamp(value: Any) -> datetime | None:
    if value is True:
        return datetime.now(UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def parse_message(body: Any) -> OutboundMessageRequest:
    """
    Validate a raw body and build the OutboundMessageRequest it describes.

    Raises:
        ValidationError: the first limit the body violates
    """
    error = validate_message(body)
    if error is not None:
        raise error

    embeds = []
    for embed in body.get("embeds") or []:
        embed = dict(embed)
        if embed.get("color") is not None:
            embed["color"] = _parse_color(embed["color"])
        if embed.get("timestamp") in (None, False):
            embed.pop("timestamp", None)
        else:
            embed["timestamp"] = _parse_timestamp(embed["timestamp"])
        embeds.append(embed)

    buttons = []
    for button in body.get("buttons") or []:
        button = dict(button)
        button["style"] = button.get("style", ButtonStyle.PRIMARY.value).lower()
        buttons.append(button)

    return OutboundMessageRequest.model_validate(
        {"content": body.get("content") or None, "embeds": embeds, "buttons": buttons}
    )


def validate_guild_id(guild_id: str | None) -> str:
    """
    Check a guild ID path parameter.

    Raises:
        ValidationError: MISSING_GUILD_ID or INVALID_GUILD_ID_FORMAT
    """
    if not guild_id:
        raise _fail("MISSING_GUILD_ID", "guildId parameter is required")
    if not is_snowflake(guild_id):
        raise _fail(
            "INVALID_GUILD_ID_FORMAT",
            "guildId must be a valid Discord snowflake (17-19 digits)",
            provided=guild_id,
        )
    return guild_id
