from __future__ import annotations

import time

import discord
from discord.ext import commands

from ..base_cog import BaseCog
from ..governance.events import (
    BanAdded,
    BanRemoved,
    GovernanceEvent,
    MemberJoined,
    MemberRemoved,
    MemberRolesChanged,
    MessageCreated,
    MessageDeleted,
    MessagesBulkDeleted,
)
from ..governance.models import MessageSnapshot
from ..services.discord_platform import member_info


def snapshot_of(message: discord.Message) -> MessageSnapshot:
    return MessageSnapshot(
        message_id=message.id,
        author_id=message.author.id,
        author_name=message.author.display_name,
        channel_id=message.channel.id,
        content=message.content,
        attachments=tuple(a.url for a in message.attachments),
        embeds=tuple(e.to_dict() for e in message.embeds),
        captured_at=time.time(),
    )


def is_mass_mention(message: discord.Message) -> bool:
    return message.mention_everyone or "@everyone" in message.content or "@here" in message.content


class ProtectionCog(BaseCog):
    """Turns gateway events for the governed guild into governance events."""

    async def _dispatch(self, event: GovernanceEvent) -> None:
        try:
            await self.bot.engine.dispatch(event)
        except Exception:
            self.log.exception("Handling %s failed", type(event).__name__)

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member) -> None:
        if self.in_scope(member.guild):
            await self._dispatch(MemberJoined(member_info(member)))

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        if self.in_scope(member.guild):
            await self._dispatch(MemberRemoved(member_info(member)))

    @commands.Cog.listener()
    async def on_member_ban(self, guild: discord.Guild, user: discord.User | discord.Member) -> None:
        if self.in_scope(guild):
            await self._dispatch(BanAdded(user.id, user.display_name))

    @commands.Cog.listener()
    async def on_member_unban(self, guild: discord.Guild, user: discord.User) -> None:
        if self.in_scope(guild):
            await self._dispatch(BanRemoved(user.id, user.display_name))

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        if not self.in_scope(after.guild):
            return
        b = {r.id for r in before.roles}
        a = {r.id for r in after.roles}
        if a == b:
            return
        await self._dispatch(MemberRolesChanged(member_info(after), added=frozenset(a - b), removed=frozenset(b - a)))

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not self.in_scope(message.guild):
            return
        await self._dispatch(MessageCreated(snapshot_of(message), mass_mention=is_mass_mention(message)))

    @commands.Cog.listener()
    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        if payload.guild_id != self.bot.settings.guild_id:
            return
        cached = payload.cached_message
        if cached is not None and cached.author.bot:
            return
        await self._dispatch(
            MessageDeleted(
                message_id=payload.message_id,
                channel_id=payload.channel_id,
                author_id=cached.author.id if cached is not None else None,
            )
        )

    @commands.Cog.listener()
    async def on_raw_bulk_message_delete(self, payload: discord.RawBulkMessageDeleteEvent) -> None:
        if payload.guild_id != self.bot.settings.guild_id:
            return
        await self._dispatch(MessagesBulkDeleted(frozenset(payload.message_ids), payload.channel_id))
