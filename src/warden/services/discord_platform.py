from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import discord
from discord.ext import commands

from ..governance.errors import DeliveryError, PlatformError
from ..governance.models import AuditAction, AuditEntry, BallotControls, MemberInfo
from ..ui.ballots import BallotView

log = logging.getLogger("warden.discord_platform")

_AUDIT_ACTIONS = {
    AuditAction.MEMBER_KICK: discord.AuditLogAction.kick,
    AuditAction.MEMBER_BAN_ADD: discord.AuditLogAction.ban,
    AuditAction.MEMBER_BAN_REMOVE: discord.AuditLogAction.unban,
    AuditAction.MEMBER_ROLE_UPDATE: discord.AuditLogAction.member_role_update,
    AuditAction.MESSAGE_DELETE: discord.AuditLogAction.message_delete,
    AuditAction.MESSAGE_BULK_DELETE: discord.AuditLogAction.message_bulk_delete,
}

# Discord caps invite lifetime at seven days
_MAX_INVITE_AGE = 7 * 24 * 3600


def member_info(member: discord.Member) -> MemberInfo:
    return MemberInfo(
        id=member.id,
        display_name=member.display_name,
        role_ids=frozenset(r.id for r in member.roles),
        bot=member.bot,
    )


class DiscordPlatform:
    """discord.py implementation of ``GovernancePlatform`` for one guild."""

    def __init__(self, bot: commands.Bot, guild_id: int) -> None:
        self.bot = bot
        self.guild_id = guild_id

    @property
    def service_actor_id(self) -> int:
        return self.bot.user.id if self.bot.user else 0

    def _guild(self) -> discord.Guild:
        guild = self.bot.get_guild(self.guild_id)
        if guild is None:
            raise PlatformError(f"guild {self.guild_id} is not available")
        return guild

    def _role(self, guild: discord.Guild, role_id: int) -> discord.Role:
        role = guild.get_role(role_id)
        if role is None:
            raise PlatformError(f"role {role_id} does not exist")
        return role

    def _channel(self, channel_id: int) -> Any:
        channel = self._guild().get_channel_or_thread(channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise PlatformError(f"channel {channel_id} is not a text channel")
        return channel

    async def _member(self, member_id: int) -> discord.Member:
        guild = self._guild()
        member = guild.get_member(member_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(member_id)
        except discord.NotFound:
            raise PlatformError(f"member {member_id} is not in the guild") from None
        except discord.HTTPException as e:
            raise PlatformError(str(e)) from e

    async def fetch_member(self, member_id: int) -> Optional[MemberInfo]:
        guild = self._guild()
        member = guild.get_member(member_id)
        if member is None:
            try:
                member = await guild.fetch_member(member_id)
            except discord.NotFound:
                return None
            except discord.HTTPException as e:
                raise PlatformError(str(e)) from e
        return member_info(member)

    async def members_with_role(self, role_id: int) -> list[MemberInfo]:
        role = self._role(self._guild(), role_id)
        return [member_info(m) for m in role.members]

    async def list_members(self) -> list[MemberInfo]:
        return [member_info(m) for m in self._guild().members]

    async def add_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        member = await self._member(member_id)
        role = self._role(member.guild, role_id)
        if role in member.roles:
            return
        try:
            await member.add_roles(role, reason=reason)
        except discord.HTTPException as e:
            raise PlatformError(f"adding {role.name} to {member}: {e}") from e

    async def remove_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        member = await self._member(member_id)
        role = self._role(member.guild, role_id)
        if role not in member.roles:
            return
        try:
            await member.remove_roles(role, reason=reason)
        except discord.HTTPException as e:
            raise PlatformError(f"removing {role.name} from {member}: {e}") from e

    async def kick(self, member_id: int, *, reason: str) -> None:
        try:
            await self._guild().kick(discord.Object(id=member_id), reason=reason)
        except discord.HTTPException as e:
            raise PlatformError(f"kicking {member_id}: {e}") from e

    async def unban(self, user_id: int, *, reason: str) -> None:
        try:
            await self._guild().unban(discord.Object(id=user_id), reason=reason)
        except discord.HTTPException as e:
            raise PlatformError(f"unbanning {user_id}: {e}") from e

    async def create_invite(self, channel_id: Optional[int], *, max_age: int, reason: str) -> str:
        guild = self._guild()
        channel = guild.get_channel(channel_id) if channel_id else None
        if not isinstance(channel, discord.TextChannel):
            me = guild.me
            channel = next(
                (c for c in guild.text_channels if c.permissions_for(me).create_instant_invite),
                None,
            )
        if channel is None:
            raise PlatformError("no channel allows creating invites")
        try:
            invite = await channel.create_invite(
                max_age=min(max(0, int(max_age)), _MAX_INVITE_AGE),
                max_uses=1,
                unique=True,
                reason=reason,
            )
        except discord.HTTPException as e:
            raise PlatformError(f"creating invite in #{channel}: {e}") from e
        return invite.url

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
        ping_role_id: Optional[int] = None,
    ) -> int:
        channel = self._channel(channel_id)
        kwargs: dict[str, Any] = {}
        if embeds:
            kwargs["embeds"] = list(embeds)
        if controls is not None:
            kwargs["view"] = BallotView(controls.ballot_id, disabled=controls.disabled)
        if ping_role_id is not None:
            kwargs["allowed_mentions"] = discord.AllowedMentions(
                everyone=False, users=False, roles=[discord.Object(id=ping_role_id)]
            )
        try:
            message = await channel.send(content, **kwargs)
        except discord.HTTPException as e:
            raise PlatformError(f"sending to {channel_id}: {e}") from e
        return message.id

    async def edit_message(
        self,
        channel_id: int,
        message_id: int,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
    ) -> None:
        channel = self._channel(channel_id)
        view = BallotView(controls.ballot_id, disabled=controls.disabled) if controls else None
        try:
            await channel.get_partial_message(message_id).edit(embeds=list(embeds), view=view)
        except discord.HTTPException as e:
            raise PlatformError(f"editing {message_id}: {e}") from e

    async def send_dm(self, member_id: int, content: str) -> None:
        try:
            user = self.bot.get_user(member_id) or await self.bot.fetch_user(member_id)
            await user.send(content)
        except discord.HTTPException as e:
            raise DeliveryError(f"DM to {member_id}: {e}") from e

    async def fetch_audit_entries(self, action: AuditAction, *, limit: int) -> list[AuditEntry]:
        guild = self._guild()
        entries: list[AuditEntry] = []
        try:
            async for entry in guild.audit_logs(limit=limit, action=_AUDIT_ACTIONS[action]):
                actor = entry.user
                actor_id = actor.id if actor else getattr(entry, "user_id", None)
                if actor_id is None:
                    continue
                entries.append(
                    AuditEntry(
                        actor_id=actor_id,
                        actor_name=actor.display_name if actor else str(actor_id),
                        target_id=getattr(entry.target, "id", None),
                        reason=entry.reason,
                        created_at=entry.created_at,
                    )
                )
        except discord.HTTPException as e:
            raise PlatformError(f"reading audit log ({action.value}): {e}") from e
        return entries
