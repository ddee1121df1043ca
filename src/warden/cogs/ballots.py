from __future__ import annotations

import asyncio
from datetime import timedelta

import discord
from discord.ext import commands

from ..base_cog import BaseCog
from ..governance.rendering import active_summary, journal_embed


class BallotsCog(BaseCog):
    """Prefix commands for ballots, plus the scheduled membership purge."""

    def __init__(self, bot) -> None:
        super().__init__(bot)
        self._task: asyncio.Task | None = None

    async def cog_load(self) -> None:
        await super().cog_load()
        if self.bot.settings.purge_enabled and self._task is None:
            self._task = asyncio.create_task(self._purge_loop(), name="warden-purge")

    async def cog_unload(self) -> None:
        if self._task:
            self._task.cancel()
            self._task = None
        await super().cog_unload()

    async def _purge_loop(self) -> None:
        await self.bot.wait_until_ready()
        while True:
            delay = self.bot.engine.purge.seconds_until_next_run()
            self.log.info("Next membership purge in %s", timedelta(seconds=int(delay)))
            await asyncio.sleep(delay)
            try:
                await self.bot.engine.purge.run()
            except Exception:
                self.log.exception("Scheduled purge failed")

    async def cog_check(self, ctx: commands.Context) -> bool:
        if ctx.guild is None:
            raise commands.NoPrivateMessage()
        return self.in_scope(ctx.guild)

    @commands.command(name="vote", help="Nominate someone for membership.")
    async def vote(self, ctx: commands.Context, member: discord.Member) -> None:
        ballot = await self.bot.engine.votes.open_admission(ctx.author.id, member.id, ctx.channel.id)
        await ctx.reply(embed=self.success_embed(f"Admission vote `{ballot.id}` for {member.mention} is open."))

    @commands.command(name="vote-kick", help="Open a vote to suspend a member.")
    async def vote_kick(self, ctx: commands.Context, member: discord.Member, *, reason: str = "") -> None:
        ballot = await self.bot.engine.votes.open_manual_sanction(ctx.author.id, member.id, ctx.channel.id, reason)
        await ctx.reply(embed=self.success_embed(f"Sanction vote `{ballot.id}` about {member.mention} is open."))

    @commands.command(name="vote-cancel", help="Cancel every open vote about a member.")
    @commands.has_permissions(manage_guild=True)
    async def vote_cancel(self, ctx: commands.Context, member: discord.Member, *, reason: str = "") -> None:
        ballots = await self.bot.engine.votes.cancel_for_subject(member.id, cancelled_by=ctx.author.id, reason=reason)
        ids = ", ".join(f"`{b.id}`" for b in ballots)
        await ctx.reply(embed=self.success_embed(f"Cancelled {ids}."))

    @commands.command(name="votes", help="List open votes.")
    async def votes(self, ctx: commands.Context) -> None:
        await ctx.reply(embed=active_summary(self.bot.engine.votes.active()))

    @commands.command(name="security-log", help="Show recent security journal entries.")
    @commands.has_permissions(manage_guild=True)
    async def security_log(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        store = self.bot.audit_store
        if member is None:
            records = await store.recent(limit=15)
        else:
            records = await store.recent_for_target(member.id, limit=15)
        await ctx.reply(embed=journal_embed(records, member.id if member else None))

    @commands.command(name="test-kick", help="Remove everyone who is not part of the group.")
    async def test_kick(self, ctx: commands.Context) -> None:
        async with ctx.typing():
            report = await self.bot.engine.purge.run(initiator_id=ctx.author.id)
        text = f"Removed {len(report.removed)} member(s)."
        if report.failed:
            text += f" {len(report.failed)} could not be removed."
        await ctx.reply(embed=self.info_embed(text))

    @commands.command(name="status", help="Show governance counters.")
    async def status(self, ctx: commands.Context) -> None:
        engine = self.bot.engine
        stats = engine.stats
        e = self.info_embed(f"Up for {timedelta(seconds=stats.uptime_seconds())}.")
        e.add_field(name="Open votes", value=str(len(engine.votes.active())), inline=True)
        e.add_field(name="Pending re-entries", value=str(len(engine.reentry)), inline=True)
        e.add_field(name="Cached messages", value=str(len(engine.snapshots)), inline=True)
        e.add_field(name="Ballots resolved", value=str(stats.ballots_resolved), inline=True)
        e.add_field(name="Ballots cancelled", value=str(stats.ballots_cancelled), inline=True)
        e.add_field(name="Choices recorded", value=str(stats.choices_recorded), inline=True)
        e.add_field(name="Reversals", value=str(stats.reversals_applied), inline=True)
        e.add_field(name="Members readmitted", value=str(stats.members_readmitted), inline=True)
        e.add_field(name="Messages restored", value=str(stats.messages_restored), inline=True)
        await ctx.reply(embed=e)
