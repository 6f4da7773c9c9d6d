"""
Outbound message data structures.

These models describe what a REST caller (or a command handler) wants to put
in a Discord channel: plain text, rich embeds and buttons. They carry no
Discord library types; gatebridge.messages.render converts them when a
message is actually sent.

Limits are enforced by gatebridge.messages.validator before these models are
built from a request body, so the models themselves stay permissive.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MAX_CONTENT_LENGTH = 2000
MAX_EMBEDS = 10
MAX_EMBED_TITLE = 256
MAX_EMBED_DESCRIPTION = 4096
MAX_EMBED_FIELDS = 25
MAX_FIELD_NAME = 256
MAX_FIELD_VALUE = 1024
MAX_FOOTER_TEXT = 2048
MAX_AUTHOR_NAME = 256
MAX_BUTTONS = 25
MAX_BUTTON_LABEL = 80
MAX_CUSTOM_ID = 100
BUTTONS_PER_ROW = 5


class ButtonStyle(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    SUCCESS = "success"
    DANGER = "danger"
    LINK = "link"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class EmbedField(_CamelModel):
    name: str
    value: str
    inline: bool = False


class EmbedFooter(_CamelModel):
    text: str
    icon_url: str | None = Field(None, alias="iconURL")


class EmbedAuthor(_CamelModel):
    name: str
    icon_url: str | None = Field(None, alias="iconURL")
    url: str | None = None


class EmbedMedia(_CamelModel):
    url: str


class Embed(_CamelModel):
    """A rich card. Every part is optional; Discord rejects a fully empty one."""

    title: str | None = None
    description: str | None = None
    url: str | None = None
    color: int | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    footer: EmbedFooter | None = None
    author: EmbedAuthor | None = None
    thumbnail: EmbedMedia | None = None
    image: EmbedMedia | None = None
    timestamp: datetime | None = None

    def add_field(self, name: str, value: str, inline: bool = False) -> "Embed":
        self.fields.append(EmbedField(name=name, value=value, inline=inline))
        return self


class Button(_CamelModel):
    """
    An interactive button.

    Link buttons carry a url and are handled by Discord directly. All other
    styles carry a custom_id; clicking them produces a component interaction
    whose "command name" is that custom_id.
    """

    label: str = "Button"
    style: ButtonStyle = ButtonStyle.PRIMARY
    custom_id: str | None = Field(None, alias="customId")
    url: str | None = None
    emoji: str | None = None
    disabled: bool = False

    @property
    def is_link(self) -> bool:
        return self.style is ButtonStyle.LINK


class OutboundMessageRequest(_CamelModel):
    """A message to deliver. At least one of content / embeds carries something."""

    content: str | None = None
    embeds: list[Embed] = Field(default_factory=list)
    buttons: list[Button] = Field(default_factory=list)

    @property
    def has_body(self) -> bool:
        return bool(self.content) or bool(self.embeds)


class SentMessage(BaseModel):
    """Result of a successful outbound send."""

    message_id: str
    channel_id: str
    timestamp: datetime
    content: str | None = None

    def to_payload(self) -> dict:
        return {
            "success": True,
            "messageId": self.message_id,
            "channelId": self.channel_id,
            "timestamp": self.timestamp.isoformat(),
            "content": self.content,
        }


def button_rows(buttons: list[Button]) -> list[list[Button]]:
    """Split buttons into action rows of at most BUTTONS_PER_ROW."""
    return [
        buttons[i:i + BUTTONS_PER_ROW]
        for i in range(0, len(buttons), BUTTONS_PER_ROW)
    ]
