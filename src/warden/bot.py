from __future__ import annotations

import logging

import discord
from discord.ext import commands

from .config import Settings
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .governance.engine import GovernanceEngine
from .services.audit_store import SecurityAuditStore
from .services.discord_platform import DiscordPlatform
from .services.stats import RuntimeStats

log = logging.getLogger("warden.bot")


class WardenBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        self.log = log
        intents = discord.Intents.default()
        intents.members = True
        # prefix commands and message snapshots both need the content
        intents.message_content = True

        log.info("INTENTS: guilds=%s members=%s message_content=%s", intents.guilds, intents.members, intents.message_content)

        super().__init__(
            command_prefix="!",
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )

        self.settings = settings
        self.stats = RuntimeStats()
        self.audit_store = SecurityAuditStore(settings.sqlite_path)
        self.platform = DiscordPlatform(self, settings.guild_id)
        self.engine = GovernanceEngine(self.platform, settings, store=self.audit_store, stats=self.stats)

    async def setup_hook(self) -> None:
        await initialize_database(self.settings.sqlite_path, [self.audit_store])
        await setup_error_handlers(self)

        loaded: list[str] = []
        failed: list[str] = []

        async def _load_cog(import_path: str, class_name: str) -> None:
            try:
                log.info("Loading cog: %s.%s", import_path, class_name)
                mod = __import__(import_path, fromlist=[class_name])
                cls = getattr(mod, class_name)
                await self.add_cog(cls(self))
                loaded.append(f"{import_path}.{class_name}")
            except Exception as e:
                log.exception("Failed to load cog: %s.%s", import_path, class_name)
                failed.append(f"{import_path}.{class_name} ({type(e).__name__})")

        await _load_cog("warden.cogs.protection", "ProtectionCog")
        await _load_cog("warden.cogs.ballots", "BallotsCog")

        log.info("Startup cog load summary: loaded=%d failed=%d", len(loaded), len(failed))
        for name in failed:
            log.warning("Startup cog failed: %s", name)

        self.engine.start()

    async def close(self) -> None:
        try:
            await self.engine.close()
        finally:
            await super().close()

    async def on_ready(self) -> None:
        guild = self.get_guild(self.settings.guild_id)
        if guild is None:
            log.error("Not a member of guild %s; governance is inactive", self.settings.guild_id)
            return
        if guild.get_role(self.settings.privileged_role_id) is None:
            log.error("Privileged role %s does not exist in %s", self.settings.privileged_role_id, guild.name)
        log.info("Ready as %s in %s (%d members)", self.user, guild.name, guild.member_count or 0)
