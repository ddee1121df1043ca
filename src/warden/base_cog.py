from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from .utils import info_embed, success_embed

if TYPE_CHECKING:
    from .bot import WardenBot


class BaseCog(commands.Cog):
    """Base class for all cogs with common functionality."""

    def __init__(self, bot: "WardenBot") -> None:
        self.bot = bot
        self.log = logging.getLogger(f"warden.cog.{self.__class__.__name__.lower()}")

    async def cog_load(self) -> None:
        """Called when the cog is loaded."""
        self.log.info(f"Loaded {self.__class__.__name__}")

    async def cog_unload(self) -> None:
        """Called when the cog is unloaded."""
        self.log.info(f"Unloaded {self.__class__.__name__}")

    def in_scope(self, guild: discord.abc.Snowflake | None) -> bool:
        """Only the configured guild is governed."""
        return guild is not None and guild.id == self.bot.settings.guild_id

    def success_embed(self, message: str) -> discord.Embed:
        return success_embed(message)

    def info_embed(self, message: str) -> discord.Embed:
        return info_embed(message)
