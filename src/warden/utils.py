from __future__ import annotations

import logging
from typing import Any

import discord
from discord.ext import commands

from .constants import COLORS, MAX_EMBED_DESCRIPTION, MAX_EMBED_TITLE, MAX_FIELD_VALUE, MAX_MESSAGE_LENGTH

log = logging.getLogger("warden.utils")


def safe_embed(title: str, description: str, color: int = COLORS["default"]) -> discord.Embed:
    """Create an embed with safe length limits."""
    if len(title) > MAX_EMBED_TITLE:
        title = title[:MAX_EMBED_TITLE - 3] + "…"
    if len(description) > MAX_EMBED_DESCRIPTION:
        description = description[:MAX_EMBED_DESCRIPTION - 3] + "…"

    return discord.Embed(title=title, description=description, color=color)


async def safe_followup(
    interaction: discord.Interaction,
    content: str | None = None,
    embed: discord.Embed | None = None,
    ephemeral: bool = False,
    **kwargs: Any,
) -> discord.Message | None:
    """Safely follow up an interaction with error handling."""
    try:
        return await interaction.followup.send(
            content=content, embed=embed, ephemeral=ephemeral, **kwargs
        )
    except discord.HTTPException as e:
        log.error(f"Failed to send followup: {e}")
        return None


async def safe_response(
    target: discord.Interaction | commands.Context,
    content: str | None = None,
    embed: discord.Embed | None = None,
    ephemeral: bool = False,
    **kwargs: Any,
) -> bool:
    """Safely respond to an interaction or context with error handling."""
    try:
        if isinstance(target, discord.Interaction):
            await target.response.send_message(
                content=content, embed=embed, ephemeral=ephemeral, **kwargs
            )
        elif isinstance(target, commands.Context):
            await target.reply(content=content, embed=embed, **kwargs)
        return True
    except discord.HTTPException as e:
        log.error(f"Failed to send response: {e}")
        return False


def error_embed(message: str) -> discord.Embed:
    """Create a standardized error embed."""
    return safe_embed("Error", message, COLORS["error"])


def success_embed(message: str) -> discord.Embed:
    """Create a standardized success embed."""
    return safe_embed("Success", message, COLORS["success"])


def info_embed(message: str) -> discord.Embed:
    """Create a standardized info embed."""
    return safe_embed("Information", message, COLORS["info"])


def truncate_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Truncate text to maximum length with ellipsis."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "…"


def field_value(text: str) -> str:
    """Embed field values must be non-empty and at most 1024 characters."""
    return truncate_text(text or "—", MAX_FIELD_VALUE)


def mention(user_id: int | None) -> str:
    return f"<@{user_id}>" if user_id else "unknown"
