from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Optional

from ..config import Settings
from ..services.stats import RuntimeStats
from ..utils import mention
from .errors import (
    BallotClosedError,
    DuplicateBallotError,
    FeatureDisabledError,
    IneligibleError,
    PlatformError,
    SelfVoteError,
)
from .events import BallotChoiceCast
from .models import Ballot, BallotControls, BallotKind, MemberInfo, Outcome
from .notifier import SecurityNotifier
from .ports import GovernancePlatform
from .rendering import ballot_embed, result_announcement, result_embed
from .roles import RoleDirectory
from .scheduler import DeferredTasks
from .tally import certain_outcome, final_outcome, tally
from .trust import TrustLedger

log = logging.getLogger("warden.governance.coordinator")


def deadline_key(ballot_id: str) -> str:
    return f"deadline:{ballot_id}"


def restore_key(member_id: int) -> str:
    return f"restore:{member_id}"


class VoteCoordinator:
    """Owns the open ballots and applies their outcomes.

    Ballot state lives only in memory. Resolution always runs in the same
    order: mark resolved, drop the deadline, disable the buttons, forget the
    ballot, then touch roles. A late click or a late deadline therefore finds
    nothing to act on.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        settings: Settings,
        roles: RoleDirectory,
        trust: TrustLedger,
        tasks: DeferredTasks,
        notifier: SecurityNotifier,
        stats: RuntimeStats,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self.settings = settings
        self.roles = roles
        self.trust = trust
        self.tasks = tasks
        self.notifier = notifier
        self.stats = stats
        self._clock = clock
        self._active: dict[str, Ballot] = {}
        # (subject id, category) pairs whose ballot is being posted right now
        self._opening: set[tuple[int, str]] = set()

    # queries -----------------------------------------------------------------

    def active(self) -> list[Ballot]:
        return sorted(self._active.values(), key=lambda b: b.opened_at)

    def get(self, ballot_id: str) -> Optional[Ballot]:
        return self._active.get(ballot_id)

    def find(self, subject_id: int, category: Optional[str] = None) -> Optional[Ballot]:
        for ballot in self._active.values():
            if ballot.subject_id == subject_id and (category is None or ballot.category == category):
                return ballot
        return None

    def _check_unique(self, subject: MemberInfo, kind: BallotKind) -> None:
        if (subject.id, kind.category) in self._opening or self.find(subject.id, kind.category) is not None:
            raise DuplicateBallotError(
                f"A {kind.category} vote about {subject.display_name} is already open."
            )

    # opening -----------------------------------------------------------------

    async def _require_privileged(self, member_id: int, message: str) -> MemberInfo:
        member = await self.roles.member(member_id)
        if member is None or not self.roles.is_privileged(member):
            raise IneligibleError(message)
        return member

    async def open_admission(self, initiator_id: int, nominee_id: int, channel_id: Optional[int]) -> Ballot:
        initiator = await self._require_privileged(initiator_id, "Only members can nominate someone.")
        nominee = await self.roles.member(nominee_id)
        if nominee is None:
            raise IneligibleError("That user is not in the server.")
        if nominee.bot:
            raise IneligibleError("Bots cannot be nominated.")
        self._check_unique(nominee, BallotKind.ADMISSION)
        if self.roles.is_privileged(nominee):
            raise IneligibleError(f"{nominee.display_name} is already a member.")
        if self.roles.is_pending(nominee):
            raise IneligibleError(f"{nominee.display_name} is already awaiting a vote.")
        if self.roles.is_sanctioned(nominee):
            raise IneligibleError(f"{nominee.display_name} is serving a sanction and cannot be nominated.")
        return await self._open(BallotKind.ADMISSION, nominee, channel_id, initiator=initiator)

    async def open_manual_sanction(
        self,
        initiator_id: int,
        subject_id: int,
        channel_id: Optional[int],
        reason: str = "",
    ) -> Ballot:
        if self.settings.sanctioned_role_id is None:
            raise FeatureDisabledError("Sanction votes are disabled: no sanctioned role is configured.")
        if initiator_id == subject_id:
            raise SelfVoteError("You cannot open a sanction vote against yourself.")
        initiator = await self._require_privileged(initiator_id, "Only members can request a sanction vote.")
        subject = await self._require_privileged(subject_id, "Sanction votes can only target members.")
        self._check_unique(subject, BallotKind.MANUAL_SANCTION)
        return await self._open(BallotKind.MANUAL_SANCTION, subject, channel_id, initiator=initiator, reason=reason)

    async def open_severe_sanction(self, subject_id: int, channel_id: Optional[int], reason: str) -> Optional[Ballot]:
        """System-triggered; collisions and non-members are dropped instead of raising."""
        subject = await self.roles.member(subject_id)
        if subject is None or not self.roles.is_privileged(subject):
            return None
        try:
            return await self._open(BallotKind.SEVERE_SANCTION, subject, channel_id, reason=reason)
        except DuplicateBallotError:
            log.info("Severe sanction for %s not opened: a sanction vote is already running", subject_id)
            return None

    async def _open(
        self,
        kind: BallotKind,
        subject: MemberInfo,
        channel_id: Optional[int],
        *,
        initiator: Optional[MemberInfo] = None,
        reason: str = "",
    ) -> Ballot:
        self._check_unique(subject, kind)
        target_channel = self.settings.vote_channel_id or channel_id
        if target_channel is None:
            raise FeatureDisabledError("No channel is configured for votes.")

        key = (subject.id, kind.category)
        self._opening.add(key)
        try:
            pool = await self.roles.privileged_members()
            policy = self.settings.policy_for(kind)
            now = self._clock()
            ballot = Ballot(
                id=uuid.uuid4().hex[:8],
                kind=kind,
                subject_id=subject.id,
                subject_name=subject.display_name,
                policy=policy,
                opened_at=now,
                deadline=now + policy.duration_seconds,
                eligible={m.id: m.display_name for m in pool if m.id != subject.id},
                initiator_id=initiator.id if initiator else None,
                initiator_name=initiator.display_name if initiator else None,
                channel_id=target_channel,
                reason=reason,
            )

            marked = False
            if kind is BallotKind.ADMISSION and self.settings.pending_role_id is not None:
                await self.platform.add_role(
                    subject.id, self.settings.pending_role_id, reason=f"Nominated by {initiator.display_name if initiator else 'system'}"
                )
                marked = True
            try:
                ballot.message_id = await self.platform.send_message(
                    target_channel,
                    f"<@&{self.settings.privileged_role_id}> a vote is open.",
                    embeds=[ballot_embed(ballot, tally(ballot))],
                    controls=BallotControls(ballot.id),
                    ping_role_id=self.settings.privileged_role_id,
                )
            except PlatformError:
                if marked:
                    await self._clear_pending(subject.id)
                raise
        finally:
            self._opening.discard(key)

        self._active[ballot.id] = ballot
        self.tasks.schedule(deadline_key(ballot.id), policy.duration_seconds, self.on_deadline, ballot.id)
        self.stats.ballots_opened += 1
        log.info("Opened %s ballot %s about %s (%d eligible)", kind.value, ballot.id, subject.id, len(ballot.eligible))
        await self.notifier.moderation(
            "ballot_opened",
            actor_id=ballot.initiator_id,
            target_id=subject.id,
            ballot_id=ballot.id,
            kind=kind.value,
            eligible=len(ballot.eligible),
            reason=reason,
        )
        return ballot

    # voting ------------------------------------------------------------------

    async def handle_choice(self, event: BallotChoiceCast) -> Ballot:
        ballot = self._active.get(event.ballot_id)
        if ballot is None or ballot.resolved:
            raise BallotClosedError("This vote is closed.")
        if event.voter_id == ballot.subject_id:
            raise SelfVoteError("You cannot vote on your own case.")
        if event.voter_id not in ballot.eligible:
            raise IneligibleError("Only members of the group when the vote opened can take part.")
        if not await self.roles.holds_privileged(event.voter_id):
            raise IneligibleError("Only current members can vote.")
        if ballot.resolved:
            raise BallotClosedError("This vote is closed.")

        previous = ballot.cast(event.voter_id, event.choice)
        self.stats.choices_recorded += 1
        log.debug("Ballot %s: %s chose %s (was %s)", ballot.id, event.voter_id, event.choice.value, previous)

        if ballot.policy.resolve_early:
            outcome = certain_outcome(ballot.policy, tally(ballot))
            if outcome is not None:
                await self._resolve(ballot, outcome)
                return ballot
        await self._refresh(ballot)
        return ballot

    async def _refresh(self, ballot: Ballot) -> None:
        if ballot.channel_id is None or ballot.message_id is None:
            return
        try:
            await self.platform.edit_message(
                ballot.channel_id,
                ballot.message_id,
                embeds=[ballot_embed(ballot, tally(ballot))],
                controls=BallotControls(ballot.id),
            )
        except PlatformError as e:
            log.warning("Could not refresh ballot %s: %s", ballot.id, e)

    # resolution --------------------------------------------------------------

    async def on_deadline(self, ballot_id: str) -> None:
        ballot = self._active.get(ballot_id)
        if ballot is None or ballot.resolved:
            return
        await self._resolve(ballot, final_outcome(ballot.policy, tally(ballot)))

    async def _resolve(self, ballot: Ballot, outcome: Outcome) -> None:
        if ballot.resolved:
            return
        ballot.resolved = True
        ballot.outcome = outcome
        self.tasks.cancel(deadline_key(ballot.id))

        t = tally(ballot)
        if ballot.channel_id is not None and ballot.message_id is not None:
            try:
                await self.platform.edit_message(
                    ballot.channel_id,
                    ballot.message_id,
                    embeds=[result_embed(ballot, t)],
                    controls=BallotControls(ballot.id, disabled=True),
                )
            except PlatformError as e:
                log.warning("Could not close ballot message %s: %s", ballot.id, e)

        self._active.pop(ballot.id, None)

        error = await self._apply(ballot)

        if ballot.channel_id is not None:
            text = result_announcement(ballot)
            if error:
                text += f"\nThe result could not be fully applied: {error}"
            try:
                await self.platform.send_message(ballot.channel_id, text)
            except PlatformError as e:
                log.warning("Could not announce result of ballot %s: %s", ballot.id, e)

        if outcome is Outcome.CANCELLED:
            self.stats.ballots_cancelled += 1
        else:
            self.stats.ballots_resolved += 1
        log.info("Ballot %s resolved %s (%d yes / %d no / %d missing)", ballot.id, outcome.value, t.yes, t.no, t.missing)
        await self.notifier.moderation(
            "ballot_resolved",
            target_id=ballot.subject_id,
            ballot_id=ballot.id,
            kind=ballot.kind.value,
            outcome=outcome.value,
            tally=f"{t.yes} yes / {t.no} no / {t.missing} missing",
            error=error,
        )

    async def _apply(self, ballot: Ballot) -> Optional[str]:
        """Role side effects of a closed ballot; returns an error text on failure."""
        try:
            if ballot.kind is BallotKind.ADMISSION:
                await self._clear_pending(ballot.subject_id)
                if ballot.outcome is Outcome.APPROVED:
                    await self.platform.add_role(
                        ballot.subject_id, self.settings.privileged_role_id, reason=f"Admitted by vote {ballot.id}"
                    )
            elif ballot.outcome is Outcome.APPROVED and ballot.kind is BallotKind.MANUAL_SANCTION:
                await self._suspend(ballot)
            elif ballot.outcome is Outcome.APPROVED and ballot.kind is BallotKind.SEVERE_SANCTION:
                await self._revoke_privileged(ballot.subject_id, f"Removed by vote {ballot.id}")
                await self.platform.kick(ballot.subject_id, reason=f"Removed by vote {ballot.id}")
        except PlatformError as e:
            log.error("Applying ballot %s (%s) failed: %s", ballot.id, ballot.kind.value, e)
            return str(e)
        return None

    async def _clear_pending(self, member_id: int) -> None:
        if self.settings.pending_role_id is None:
            return
        member = await self.roles.member(member_id)
        if member is not None and self.roles.is_pending(member):
            await self.platform.remove_role(member_id, self.settings.pending_role_id, reason="Vote closed")

    async def _revoke_privileged(self, member_id: int, reason: str) -> None:
        role_id = self.settings.privileged_role_id
        if not await self.roles.holds_privileged(member_id):
            # no removal means no role-change event to consume an expectation
            return
        # registered first so the protection engine recognises the change
        self.trust.expect(member_id, role_id)
        try:
            await self.platform.remove_role(member_id, role_id, reason=reason)
        except PlatformError:
            self.trust.discard(member_id, role_id)
            raise

    async def _suspend(self, ballot: Ballot) -> None:
        sanctioned = self.settings.sanctioned_role_id
        if sanctioned is None:
            raise PlatformError("no sanctioned role configured")
        await self._revoke_privileged(ballot.subject_id, f"Suspended by vote {ballot.id}")
        await self.platform.add_role(ballot.subject_id, sanctioned, reason=f"Suspended by vote {ballot.id}")
        self.tasks.schedule(
            restore_key(ballot.subject_id),
            self.settings.sanction_duration_seconds,
            self.restore_sanctioned,
            ballot.subject_id,
        )

    async def restore_sanctioned(self, member_id: int) -> bool:
        """End a suspension unless it was already lifted by hand."""
        self.tasks.cancel(restore_key(member_id))
        member = await self.roles.member(member_id)
        if member is None:
            log.info("Suspended member %s is gone, nothing to restore", member_id)
            return False
        if not self.roles.is_sanctioned(member):
            log.info("Suspension of %s was already lifted", member_id)
            return False
        try:
            await self.platform.add_role(member_id, self.settings.privileged_role_id, reason="Suspension ended")
            await self.platform.remove_role(member_id, self.settings.sanctioned_role_id, reason="Suspension ended")
        except PlatformError as e:
            log.error("Could not end suspension of %s: %s", member_id, e)
            await self.notifier.security("suspension_restore_failed", target_id=member_id, outcome=str(e))
            return False
        await self.notifier.moderation("suspension_ended", target_id=member_id)
        return True

    # management --------------------------------------------------------------

    async def cancel(self, ballot_id: str, *, cancelled_by: Optional[int] = None, reason: str = "") -> Ballot:
        ballot = self._active.get(ballot_id)
        if ballot is None or ballot.resolved:
            raise BallotClosedError("No open vote with that id.")
        log.info("Ballot %s cancelled by %s: %s", ballot.id, cancelled_by, reason or "no reason")
        await self._resolve(ballot, Outcome.CANCELLED)
        return ballot

    async def cancel_for_subject(self, subject_id: int, *, cancelled_by: Optional[int] = None, reason: str = "") -> list[Ballot]:
        ballots = [b for b in self.active() if b.subject_id == subject_id]
        if not ballots:
            raise BallotClosedError(f"No open vote about {mention(subject_id)}.")
        for ballot in ballots:
            await self.cancel(ballot.id, cancelled_by=cancelled_by, reason=reason)
        return ballots

    async def on_privileged_granted(self, member_id: int) -> None:
        """A nominee who became a member by other means no longer needs a vote."""
        ballot = self.find(member_id, BallotKind.ADMISSION.category)
        if ballot is not None:
            await self.cancel(ballot.id, reason="nominee already holds the member role")

    async def sweep(self) -> int:
        """Resolve ballots whose deadline passed without their timer firing."""
        now = self._clock()
        overdue = [b.id for b in self._active.values() if b.deadline <= now]
        for ballot_id in overdue:
            await self.on_deadline(ballot_id)
        return len(overdue)
