from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from ..config import Settings
from ..services.audit_store import SecurityAuditStore
from ..services.stats import RuntimeStats
from .attribution import AuditAttributor
from .coordinator import VoteCoordinator
from .events import (
    BallotChoiceCast,
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
from .notifier import SecurityNotifier
from .ports import GovernancePlatform
from .protection import ProtectionEngine
from .purge import MembershipPurge
from .reentry import ReentryTracker
from .roles import RoleDirectory
from .scheduler import DeferredTasks
from .snapshots import SnapshotCache
from .trust import TrustLedger

log = logging.getLogger("warden.governance.engine")


@dataclass(frozen=True)
class SweepReport:
    ballots_resolved: int
    reentries_expired: int
    snapshots_expired: int
    expectations_expired: int
    departed_expired: int


class GovernanceEngine:
    """Owns all governance state and routes each inbound event to one handler.

    One instance per guild. Handlers run on the bot's event loop; they only
    yield at awaited platform calls, so the collections owned here need no
    locking.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        settings: Settings,
        *,
        store: Optional[SecurityAuditStore] = None,
        stats: Optional[RuntimeStats] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self.settings = settings
        self.stats = stats or RuntimeStats()
        self.tasks = DeferredTasks()
        self.roles = RoleDirectory(platform, settings, clock=clock)
        self.trust = TrustLedger(platform, clock=clock)
        self.attributor = AuditAttributor(
            platform, freshness_seconds=settings.attribution_freshness_seconds, clock=clock
        )
        self.reentry = ReentryTracker(settings.reentry_retention_seconds, clock=clock)
        self.snapshots = SnapshotCache(
            settings.snapshot_cache_size, settings.snapshot_max_age_seconds, clock=clock
        )
        self.notifier = SecurityNotifier(platform, store, settings.log_channel_id, clock=clock)
        self.protection = ProtectionEngine(
            platform, settings, self.roles, self.attributor, self.reentry,
            self.snapshots, self.trust, self.notifier, self.stats,
        )
        self.votes = VoteCoordinator(
            platform, settings, self.roles, self.trust, self.tasks, self.notifier, self.stats, clock=clock
        )
        self.purge = MembershipPurge(platform, settings, self.roles, self.notifier, self.stats)
        self._sweeper: asyncio.Task | None = None

        self._handlers: dict[type, Callable[[Any], Awaitable[Any]]] = {
            MemberJoined: self.protection.on_member_joined,
            MemberRemoved: self.protection.on_member_removed,
            BanAdded: self.protection.on_ban_added,
            BanRemoved: self.protection.on_ban_removed,
            MessageCreated: self._on_message_created,
            MessageDeleted: self.protection.on_message_deleted,
            MessagesBulkDeleted: self.protection.on_messages_bulk_deleted,
            MemberRolesChanged: self._on_roles_changed,
            BallotChoiceCast: self.votes.handle_choice,
        }

    async def dispatch(self, event: GovernanceEvent) -> Any:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"no handler for {type(event).__name__}")
        return await handler(event)

    async def _on_message_created(self, event: MessageCreated) -> None:
        snapshot = event.snapshot
        self.snapshots.capture(snapshot)
        if not (event.mass_mention and self.settings.severe_trigger_enabled):
            return
        if not await self.roles.holds_privileged(snapshot.author_id):
            return
        log.warning("Mass mention by member %s in %s", snapshot.author_id, snapshot.channel_id)
        await self.notifier.abuse(
            "mass_mention", actor_id=snapshot.author_id, channel_id=snapshot.channel_id, content=snapshot.content[:200]
        )
        await self.votes.open_severe_sanction(
            snapshot.author_id, snapshot.channel_id, reason="Mass mention of the whole server"
        )

    async def _on_roles_changed(self, event: MemberRolesChanged) -> None:
        await self.protection.on_roles_changed(event)
        if self.settings.privileged_role_id in event.added:
            await self.votes.on_privileged_granted(event.member.id)

    # lifecycle ---------------------------------------------------------------

    async def sweep(self) -> SweepReport:
        report = SweepReport(
            ballots_resolved=await self.votes.sweep(),
            reentries_expired=self.reentry.prune(),
            snapshots_expired=self.snapshots.prune(),
            expectations_expired=self.trust.prune(),
            departed_expired=self.roles.prune(),
        )
        log.debug("Sweep: %s", report)
        return report

    def start(self) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="warden-sweep")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception:
                log.exception("Periodic sweep failed")

    async def close(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        self.tasks.cancel_all()
