from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..config import Settings
from ..constants import COLORS, PURGE_KICK_PAUSE_SECONDS
from ..services.stats import RuntimeStats
from ..utils import safe_embed, truncate_text
from .errors import IneligibleError, PlatformError
from .notifier import SecurityNotifier
from .ports import GovernancePlatform
from .roles import RoleDirectory

log = logging.getLogger("warden.governance.purge")


@dataclass
class PurgeReport:
    removed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def seconds_until(hhmm: str, now: datetime) -> float:
    """Seconds from ``now`` to the next occurrence of ``hhmm`` (UTC)."""
    hours, minutes = (int(part) for part in hhmm.split(":", 1))
    target = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class MembershipPurge:
    """Kicks everyone outside the governance lifecycle (no member, pending or sanctioned role)."""

    def __init__(
        self,
        platform: GovernancePlatform,
        settings: Settings,
        roles: RoleDirectory,
        notifier: SecurityNotifier,
        stats: RuntimeStats,
        pause_seconds: float = PURGE_KICK_PAUSE_SECONDS,
    ) -> None:
        self.platform = platform
        self.settings = settings
        self.roles = roles
        self.notifier = notifier
        self.stats = stats
        self.pause_seconds = pause_seconds

    async def run(self, *, initiator_id: Optional[int] = None) -> PurgeReport:
        if initiator_id is not None and not await self.roles.holds_privileged(initiator_id):
            raise IneligibleError("Only members can run the purge.")

        members = await self.platform.list_members()
        targets = [m for m in members if not m.bot and not self.roles.is_governed(m)]
        log.info("Purge started by %s: %d of %d members to remove", initiator_id or "schedule", len(targets), len(members))

        report = PurgeReport()
        for i, member in enumerate(targets):
            try:
                await self.platform.kick(member.id, reason="Not part of the group")
            except PlatformError as e:
                log.warning("Purge could not kick %s: %s", member.id, e)
                report.failed.append(member.display_name)
            else:
                report.removed.append(member.display_name)
                self.stats.purge_kicks += 1
            if i + 1 < len(targets):
                await asyncio.sleep(self.pause_seconds)

        await self._report(report)
        await self.notifier.security(
            "membership_purge",
            actor_id=initiator_id,
            severity="info",
            removed=len(report.removed),
            failed=len(report.failed),
        )
        return report

    async def _report(self, report: PurgeReport) -> None:
        if self.settings.purge_channel_id is None:
            return
        if report.removed:
            description = truncate_text("\n".join(f"• {name}" for name in report.removed), 4000)
        else:
            description = "Nobody needed to be removed."
        embed = safe_embed(f"Purge: {len(report.removed)} removed", description, COLORS["warning"])
        if report.failed:
            embed.add_field(name="Could not remove", value=truncate_text(", ".join(report.failed), 1024), inline=False)
        try:
            await self.platform.send_message(self.settings.purge_channel_id, embeds=[embed])
        except PlatformError as e:
            log.warning("Could not post purge report: %s", e)

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        return seconds_until(self.settings.purge_time, now or datetime.now(timezone.utc))
