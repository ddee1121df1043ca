from __future__ import annotations

import logging

from discord.ext import commands

from .constants import ERROR_MESSAGES
from .governance.errors import GovernanceError, PlatformError
from .utils import error_embed, safe_response

log = logging.getLogger("warden.error_handlers")


class ErrorHandler(commands.Cog):
    """Centralized error handling for prefix commands."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        """Handle command errors."""
        if isinstance(error, commands.CommandNotFound):
            return  # other bots share the "!" prefix

        if isinstance(error, commands.CommandInvokeError):
            original = error.original
            if isinstance(original, GovernanceError):
                await safe_response(ctx, embed=error_embed(str(original)))
                return
            if isinstance(original, PlatformError):
                log.error("Platform call failed in %s: %s", ctx.command, original)
                await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["platform_error"]))
                return

        if isinstance(error, commands.NoPrivateMessage):
            await safe_response(ctx, embed=error_embed("This command only works in the server."))
            return

        # MissingPermissions is a CheckFailure too
        if isinstance(error, commands.CheckFailure):
            await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["missing_permissions"]))
            return

        if isinstance(error, commands.MissingRequiredArgument):
            await safe_response(ctx, embed=error_embed(f"Missing required argument: {error.param.name}"))
            return

        if isinstance(error, commands.MemberNotFound):
            await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["invalid_user"]))
            return

        if isinstance(error, commands.BadArgument):
            await safe_response(ctx, embed=error_embed(f"Invalid argument: {error}"))
            return

        log.error(f"Unexpected error in command {ctx.command}: {error}", exc_info=error)
        await safe_response(ctx, embed=error_embed(ERROR_MESSAGES["unexpected_error"]))


async def setup_error_handlers(bot: commands.Bot) -> None:
    """Setup error handlers for the bot."""
    await bot.add_cog(ErrorHandler(bot))
