from __future__ import annotations

import asyncio
import logging
from typing import Optional

import discord

from ..config import Settings
from ..constants import COLORS
from ..services.stats import RuntimeStats
from ..utils import mention, safe_embed, truncate_text
from .attribution import AuditAttributor
from .errors import DeliveryError, PlatformError
from .events import (
    BanAdded,
    BanRemoved,
    MemberJoined,
    MemberRemoved,
    MemberRolesChanged,
    MessageDeleted,
    MessagesBulkDeleted,
)
from .models import AttributionRecord, AuditAction, MessageSnapshot
from .notifier import SecurityNotifier
from .ports import GovernancePlatform
from .reentry import ReentryTracker
from .roles import RoleDirectory
from .snapshots import SnapshotCache
from .trust import TrustLedger

log = logging.getLogger("warden.governance.protection")


class ProtectionEngine:
    """Reverses actions taken against privileged members by anyone but the service.

    Every handler is a single reaction to one gateway event. Attribution that
    cannot be established means no reversal.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        settings: Settings,
        roles: RoleDirectory,
        attributor: AuditAttributor,
        reentry: ReentryTracker,
        snapshots: SnapshotCache,
        trust: TrustLedger,
        notifier: SecurityNotifier,
        stats: RuntimeStats,
    ) -> None:
        self.platform = platform
        self.settings = settings
        self.roles = roles
        self.attributor = attributor
        self.reentry = reentry
        self.snapshots = snapshots
        self.trust = trust
        self.notifier = notifier
        self.stats = stats

    # removal / ban -------------------------------------------------------

    async def on_member_removed(self, event: MemberRemoved) -> None:
        member = event.member
        self.roles.remember_departed(member)

        record = await self.attributor.attribute(AuditAction.MEMBER_KICK, member.id)
        if record is None:
            log.info("%s (%s) left the guild", member.display_name, member.id)
            return
        if self.trust.trusts(record):
            log.debug("Kick of %s was performed by the service", member.id)
            return
        if not self.roles.is_privileged(member):
            await self.notifier.moderation(
                "member_kicked", actor_id=record.actor_id, target_id=member.id, reason=record.reason
            )
            return

        await self._readmit(member.id, member.display_name, record, banned=False)

    async def on_ban_added(self, event: BanAdded) -> None:
        record = await self.attributor.attribute(AuditAction.MEMBER_BAN_ADD, event.user_id)
        was_privileged = await self.roles.was_privileged(event.user_id)

        if record is None:
            if was_privileged:
                await self.notifier.security(
                    "privileged_ban_unattributed", target_id=event.user_id, outcome="not reversed, actor unknown"
                )
            return
        if self.trust.trusts(record):
            return
        if not was_privileged:
            await self.notifier.moderation(
                "member_banned", actor_id=record.actor_id, target_id=event.user_id, reason=record.reason
            )
            return

        try:
            await self.platform.unban(event.user_id, reason=f"Ban of a privileged member by {record.actor_name} reversed")
        except PlatformError as e:
            log.error("Could not unban privileged member %s: %s", event.user_id, e)
            await self.notifier.security(
                "privileged_ban", actor_id=record.actor_id, target_id=event.user_id,
                reason=record.reason, outcome=f"unban failed: {e}",
            )
            return

        self.stats.reversals_applied += 1
        await self._readmit(event.user_id, event.display_name, record, banned=True)

    async def _readmit(self, member_id: int, display_name: str, record: AttributionRecord, *, banned: bool) -> None:
        action = "privileged_ban" if banned else "privileged_kick"
        existing = self.reentry.get(member_id)
        if existing is not None:
            log.info("Re-entry for %s already pending, not minting another invite", member_id)
            await self.notifier.security(
                action, actor_id=record.actor_id, target_id=member_id, outcome="re-entry already pending"
            )
            return

        try:
            invite_url = await self.platform.create_invite(
                self.settings.invite_channel_id,
                max_age=int(self.settings.reentry_retention_seconds),
                reason=f"Re-entry for {display_name}",
            )
        except PlatformError as e:
            log.error("Could not create re-entry invite for %s: %s", member_id, e)
            await self.notifier.security(
                action, actor_id=record.actor_id, target_id=member_id,
                reason=record.reason, outcome=f"invite creation failed: {e}",
            )
            return

        self.reentry.record(member_id, invite_url, display_name, was_privileged=True)

        verb = "banned" if banned else "kicked"
        text = (
            f"You were {verb} by {record.actor_name} without a member vote. "
            f"Your membership is protected; rejoin with this invite and your role will be restored: {invite_url}"
        )
        delivered = "dm"
        try:
            await self.platform.send_dm(member_id, text)
        except DeliveryError:
            delivered = await self._post_fallback(member_id, display_name, invite_url)

        await self.notifier.security(
            action,
            actor_id=record.actor_id,
            target_id=member_id,
            reason=record.reason,
            outcome="reversed" if banned else "re-entry issued",
            invite_delivery=delivered,
        )

    async def _post_fallback(self, member_id: int, display_name: str, invite_url: str) -> str:
        channel_id = (
            self.settings.fallback_channel_id
            or self.settings.vote_channel_id
            or self.settings.log_channel_id
        )
        if channel_id is None:
            log.warning("No fallback channel to relay the invite for %s", member_id)
            return "undelivered"
        try:
            await self.platform.send_message(
                channel_id,
                f"Could not DM {display_name} ({mention(member_id)}). Please pass on their re-entry invite: {invite_url}",
            )
        except PlatformError as e:
            log.error("Fallback invite post for %s failed: %s", member_id, e)
            return "undelivered"
        return "fallback_channel"

    async def on_ban_removed(self, event: BanRemoved) -> None:
        record = await self.attributor.attribute(AuditAction.MEMBER_BAN_REMOVE, event.user_id)
        if record is None or self.trust.trusts(record):
            return
        await self.notifier.moderation(
            "member_unbanned", actor_id=record.actor_id, target_id=event.user_id, reason=record.reason
        )

    # return ----------------------------------------------------------------

    async def on_member_joined(self, event: MemberJoined) -> None:
        member = event.member
        # popped before the first await so a duplicate join finds nothing
        entry = self.reentry.consume(member.id)
        if entry is None:
            return

        await asyncio.sleep(self.settings.role_propagation_delay_seconds)

        current = await self.roles.member(member.id)
        if current is None:
            log.info("%s left again before their role could be restored", member.id)
            self.reentry.restore(entry)
            return
        if not self.roles.is_privileged(current):
            try:
                await self.platform.add_role(
                    member.id, self.settings.privileged_role_id, reason="Restoring membership after re-entry"
                )
            except PlatformError as e:
                log.error("Could not restore privileged role for %s: %s", member.id, e)
                self.reentry.restore(entry)
                await self.notifier.security("reentry_failed", target_id=member.id, outcome=str(e))
                return

        self.stats.members_readmitted += 1
        try:
            await self.platform.send_dm(member.id, "Welcome back. Your membership has been restored.")
        except DeliveryError:
            log.debug("Could not confirm re-entry to %s privately", member.id)
        await self.notifier.security("reentry_restored", target_id=member.id, display_name=entry.display_name)

    # messages --------------------------------------------------------------

    async def on_message_deleted(self, event: MessageDeleted) -> None:
        snapshot = self.snapshots.pop(event.message_id)
        author_id = event.author_id if event.author_id is not None else (snapshot.author_id if snapshot else None)
        if author_id is None:
            return
        if not await self.roles.holds_privileged(author_id):
            return

        record = await self.attributor.attribute(AuditAction.MESSAGE_DELETE)
        if record is None or record.actor_id == author_id:
            # indistinguishable from the author deleting their own message
            return
        if self.trust.trusts(record):
            return

        await self._repost(event, author_id, snapshot, record)
        await self.notifier.abuse(
            "privileged_message_deleted",
            actor_id=record.actor_id,
            target_id=author_id,
            channel_id=event.channel_id,
            restored=snapshot is not None,
        )

    async def _repost(
        self,
        event: MessageDeleted,
        author_id: int,
        snapshot: Optional[MessageSnapshot],
        record: AttributionRecord,
    ) -> None:
        if snapshot is None:
            embed = safe_embed(
                "Message could not be recovered",
                f"A message by {mention(author_id)} was deleted by {mention(record.actor_id)}; "
                "its content was not cached.",
                COLORS["warning"],
            )
            embeds = [embed]
        else:
            body = snapshot.content or "*(no text)*"
            if snapshot.attachments:
                body += "\n" + "\n".join(snapshot.attachments)
            embed = safe_embed("Restored message", body, COLORS["warning"])
            embed.set_author(name=snapshot.author_name)
            embed.add_field(name="Author", value=mention(author_id), inline=True)
            embed.add_field(name="Deleted by", value=mention(record.actor_id), inline=True)
            embeds = [embed] + [discord.Embed.from_dict(data) for data in snapshot.embeds[:9]]

        try:
            await self.platform.send_message(event.channel_id, embeds=embeds)
        except PlatformError as e:
            log.error("Could not repost deleted message %s: %s", event.message_id, e)
            return
        if snapshot is not None:
            self.stats.messages_restored += 1
            log.info(
                "Reposted message %s by %s deleted by %s: %s",
                event.message_id, author_id, record.actor_id, truncate_text(snapshot.content, 80),
            )

    async def on_messages_bulk_deleted(self, event: MessagesBulkDeleted) -> None:
        snapshots = [s for s in (self.snapshots.pop(mid) for mid in event.message_ids) if s is not None]
        record = await self.attributor.attribute(AuditAction.MESSAGE_BULK_DELETE)
        if record is not None and self.trust.trusts(record):
            return
        await self.notifier.moderation(
            "messages_bulk_deleted",
            actor_id=record.actor_id if record else None,
            channel_id=event.channel_id,
            count=len(event.message_ids),
            cached=len(snapshots),
        )

    # roles -----------------------------------------------------------------

    async def on_roles_changed(self, event: MemberRolesChanged) -> None:
        member = event.member
        privileged = self.settings.privileged_role_id
        protected = self.settings.protected_role_id

        if privileged in event.removed:
            await self._guard_role(member.id, privileged, rollback=True, abuse=False)
        if protected is not None and protected != privileged and protected in event.removed:
            await self._guard_role(member.id, protected, rollback=self.settings.rollback_protected_role, abuse=True)

    async def _guard_role(self, member_id: int, role_id: int, *, rollback: bool, abuse: bool) -> None:
        if self.trust.consume(member_id, role_id):
            log.debug("Role %s removal from %s was expected", role_id, member_id)
            return

        record = await self.attributor.attribute(AuditAction.MEMBER_ROLE_UPDATE, member_id)
        if record is None:
            log.info("Role %s removed from %s by an unknown actor, leaving it", role_id, member_id)
            return
        if self.trust.trusts(record) or record.actor_id == member_id:
            return

        outcome = "logged"
        if rollback:
            outcome = await self._restore_role(member_id, role_id)

        notify = self.notifier.abuse if abuse else self.notifier.security
        await notify(
            "protected_role_removed" if abuse else "privileged_role_removed",
            actor_id=record.actor_id,
            target_id=member_id,
            role_id=role_id,
            reason=record.reason,
            outcome=outcome,
        )

    async def _restore_role(self, member_id: int, role_id: int) -> str:
        current = await self.roles.member(member_id)
        if current is None:
            return "member gone"
        if current.has_role(role_id):
            return "already restored"
        try:
            await self.platform.add_role(member_id, role_id, reason="Unauthorized role removal reversed")
        except PlatformError as e:
            log.error("Could not re-add role %s to %s: %s", role_id, member_id, e)
            return f"rollback failed: {e}"
        self.stats.reversals_applied += 1
        return "reversed"
