"""
Conversion of gatebridge message models into discord.py objects.

Kept separate from the models so validation and command logic can be tested
without building Discord objects. A View must be constructed inside a running
event loop, so build_view() is only called from async send paths.
"""

from __future__ import annotations

import discord

from gatebridge.messages.models import Button, ButtonStyle, Embed, button_rows

_STYLE_MAP = {
    ButtonStyle.PRIMARY: discord.ButtonStyle.primary,
    ButtonStyle.SECONDARY: discord.ButtonStyle.secondary,
    ButtonStyle.SUCCESS: discord.ButtonStyle.success,
    ButtonStyle.DANGER: discord.ButtonStyle.danger,
    ButtonStyle.LINK: discord.ButtonStyle.link,
}

_REVERSE_STYLE_MAP = {value: key for key, value in _STYLE_MAP.items()}


def build_embed(embed: Embed) -> discord.Embed:
    """Build a discord.Embed from an Embed model."""
    result = discord.Embed(
        title=embed.title,
        description=embed.description,
        url=embed.url,
        color=embed.color,
        timestamp=embed.timestamp,
    )
    for item in embed.fields:
        result.add_field(name=item.name, value=item.value, inline=item.inline)
    if embed.footer is not None:
        result.set_footer(text=embed.footer.text, icon_url=embed.footer.icon_url)
    if embed.author is not None:
        result.set_author(
            name=embed.author.name, url=embed.author.url, icon_url=embed.author.icon_url
        )
    if embed.thumbnail is not None:
        result.set_thumbnail(url=embed.thumbnail.url)
    if embed.image is not None:
        result.set_image(url=embed.image.url)
    return result


def build_button(button: Button, row: int) -> discord.ui.Button:
    if button.is_link:
        return discord.ui.Button(
            style=discord.ButtonStyle.link,
            label=button.label,
            url=button.url,
            emoji=button.emoji,
            disabled=button.disabled,
            row=row,
        )
    return discord.ui.Button(
        style=_STYLE_MAP[button.style],
        label=button.label,
        custom_id=button.custom_id,
        emoji=button.emoji,
        disabled=button.disabled,
        row=row,
    )


def build_view(buttons: list[Button]) -> discord.ui.View | None:
    """
    Lay buttons out five per row in a View.

    The View has no callbacks: clicks arrive as component interactions and go
    through the dispatcher like slash commands do.
    """
    if not buttons:
        return None
    view = discord.ui.View(timeout=None)
    for row_index, row in enumerate(button_rows(buttons)):
        for button in row:
            view.add_item(build_button(button, row_index))
    return view


def buttons_from_components(components) -> list[Button]:
    """
    Read the buttons back out of a received message's components.

    Used when a click handler needs to redraw the buttons it was attached to.
    """
    buttons: list[Button] = []
    for row in components or []:
        for child in getattr(row, "children", []):
            if not isinstance(child, discord.Button):
                continue
            style = _REVERSE_STYLE_MAP.get(child.style, ButtonStyle.PRIMARY)
            buttons.append(
                Button(
                    label=child.label or "Button",
                    style=style,
                    custom_id=child.custom_id if style is not ButtonStyle.LINK else None,
                    url=child.url if style is ButtonStyle.LINK else None,
                    emoji=str(child.emoji) if child.emoji else None,
                    disabled=child.disabled,
                )
            )
    return buttons
