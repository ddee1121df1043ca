from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

import discord

from ..config import Settings
from ..governance.errors import DeliveryError, PlatformError
from ..governance.models import AuditAction, AuditEntry, BallotControls, MemberInfo

PRIVILEGED = 100
PENDING = 101
SANCTIONED = 102
PROTECTED = 103
VOTE_CHANNEL = 500
LOG_CHANNEL = 501
FALLBACK_CHANNEL = 502
SERVICE_ACTOR = 999


def make_settings(**overrides: Any) -> Settings:
    """Settings wired to the fake role and channel ids, with no delays."""
    values: dict[str, Any] = dict(
        token="test-token",
        guild_id=1,
        privileged_role_id=PRIVILEGED,
        pending_role_id=PENDING,
        sanctioned_role_id=SANCTIONED,
        protected_role_id=PROTECTED,
        vote_channel_id=VOTE_CHANNEL,
        log_channel_id=LOG_CHANNEL,
        fallback_channel_id=FALLBACK_CHANNEL,
        role_propagation_delay_seconds=0.0,
    )
    values.update(overrides)
    return Settings(**values)


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SentMessage:
    channel_id: int
    message_id: int
    content: Optional[str]
    embeds: list[discord.Embed]
    controls: Optional[BallotControls]
    ping_role_id: Optional[int]


@dataclass
class EditedMessage:
    channel_id: int
    message_id: int
    embeds: list[discord.Embed]
    controls: Optional[BallotControls]


@dataclass
class RoleCall:
    op: str  # "add" | "remove"
    member_id: int
    role_id: int
    reason: str


class FakePlatform:
    """In-memory ``GovernancePlatform`` that records every outbound call."""

    def __init__(self, clock: Callable[[], float], service_actor_id: int = SERVICE_ACTOR) -> None:
        self._clock = clock
        self._service_actor_id = service_actor_id
        self._ids = itertools.count(10_000)
        self.members: dict[int, MemberInfo] = {}
        self.audit: dict[AuditAction, list[AuditEntry]] = {}
        self.sent: list[SentMessage] = []
        self.edits: list[EditedMessage] = []
        self.dms: list[tuple[int, str]] = []
        self.role_calls: list[RoleCall] = []
        self.kicked: list[int] = []
        self.unbanned: list[int] = []
        self.invites: list[str] = []
        self.dm_blocked: set[int] = set()
        self.failing: set[str] = set()
        self.audit_error: Optional[PlatformError] = None
        # operation names in call order
        self.calls: list[str] = []

    @property
    def service_actor_id(self) -> int:
        return self._service_actor_id

    # setup helpers -------------------------------------------------------------

    def add_member(self, member_id: int, name: str, *role_ids: int, bot: bool = False) -> MemberInfo:
        member = MemberInfo(id=member_id, display_name=name, role_ids=frozenset(role_ids), bot=bot)
        self.members[member_id] = member
        return member

    def add_audit(
        self,
        action: AuditAction,
        actor_id: int,
        target_id: Optional[int] = None,
        *,
        actor_name: str = "",
        age_seconds: float = 0.0,
        reason: Optional[str] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            actor_id=actor_id,
            actor_name=actor_name or f"user{actor_id}",
            target_id=target_id,
            reason=reason,
            created_at=datetime.fromtimestamp(self._clock() - age_seconds, tz=timezone.utc),
        )
        self.audit.setdefault(action, []).insert(0, entry)
        return entry

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if op in self.failing:
            raise PlatformError(f"{op} refused")

    def roles_of(self, member_id: int) -> frozenset[int]:
        return self.members[member_id].role_ids

    def texts(self, channel_id: Optional[int] = None) -> list[str]:
        return [m.content or "" for m in self.sent if channel_id is None or m.channel_id == channel_id]

    # GovernancePlatform --------------------------------------------------------

    async def fetch_member(self, member_id: int) -> Optional[MemberInfo]:
        return self.members.get(member_id)

    async def members_with_role(self, role_id: int) -> list[MemberInfo]:
        return [m for m in self.members.values() if role_id in m.role_ids]

    async def list_members(self) -> list[MemberInfo]:
        return list(self.members.values())

    async def add_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        self._check("add_role")
        member = self.members.get(member_id)
        if member is None:
            raise PlatformError(f"member {member_id} is not in the guild")
        self.role_calls.append(RoleCall("add", member_id, role_id, reason))
        self.members[member_id] = replace(member, role_ids=member.role_ids | {role_id})

    async def remove_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        self._check("remove_role")
        member = self.members.get(member_id)
        if member is None:
            raise PlatformError(f"member {member_id} is not in the guild")
        self.role_calls.append(RoleCall("remove", member_id, role_id, reason))
        self.members[member_id] = replace(member, role_ids=member.role_ids - {role_id})

    async def kick(self, member_id: int, *, reason: str) -> None:
        self._check("kick")
        self.kicked.append(member_id)
        self.members.pop(member_id, None)

    async def unban(self, user_id: int, *, reason: str) -> None:
        self._check("unban")
        self.unbanned.append(user_id)

    async def create_invite(self, channel_id: Optional[int], *, max_age: int, reason: str) -> str:
        self._check("create_invite")
        url = f"https://discord.gg/fake{next(self._ids)}"
        self.invites.append(url)
        return url

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
        ping_role_id: Optional[int] = None,
    ) -> int:
        self._check("send_message")
        message_id = next(self._ids)
        self.sent.append(SentMessage(channel_id, message_id, content, list(embeds), controls, ping_role_id))
        return message_id

    async def edit_message(
        self,
        channel_id: int,
        message_id: int,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
    ) -> None:
        self._check("edit_message")
        self.edits.append(EditedMessage(channel_id, message_id, list(embeds), controls))

    async def send_dm(self, member_id: int, content: str) -> None:
        if member_id in self.dm_blocked:
            raise DeliveryError(f"DMs closed for {member_id}")
        self.dms.append((member_id, content))

    async def fetch_audit_entries(self, action: AuditAction, *, limit: int) -> list[AuditEntry]:
        if self.audit_error is not None:
            raise self.audit_error
        return list(self.audit.get(action, []))[:limit]


def seed_members(platform: FakePlatform, count: int, role_id: int = PRIVILEGED) -> list[MemberInfo]:
    return [platform.add_member(i, f"member{i}", role_id) for i in range(1, count + 1)]
