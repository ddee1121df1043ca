from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class BallotKind(str, Enum):
    ADMISSION = "admission"
    MANUAL_SANCTION = "manual-sanction"
    SEVERE_SANCTION = "severe-sanction"

    @property
    def category(self) -> str:
        """Kinds sharing a category cannot be open for the same subject at once."""
        return "admission" if self is BallotKind.ADMISSION else "sanction"


class Visibility(str, Enum):
    ANONYMOUS = "anonymous"
    PUBLIC = "public"


class ResolutionRule(str, Enum):
    UNANIMOUS = "unanimous"
    SIMPLE_MAJORITY = "simple-majority"
    ABSOLUTE_MAJORITY = "absolute-majority"


class MissingVotePolicy(str, Enum):
    COUNT_AS_YES = "count-as-yes"
    COUNT_AS_NO = "count-as-no"
    IGNORE = "ignore"


class Choice(str, Enum):
    YES = "yes"
    NO = "no"


class Outcome(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BallotPolicy:
    duration_seconds: float
    visibility: Visibility
    rule: ResolutionRule
    missing: MissingVotePolicy
    resolve_early: bool = True


@dataclass(frozen=True)
class MemberInfo:
    """Read-only view of a guild member as far as governance cares."""

    id: int
    display_name: str
    role_ids: frozenset[int] = frozenset()
    bot: bool = False

    def has_role(self, role_id: Optional[int]) -> bool:
        return role_id is not None and role_id in self.role_ids


@dataclass
class Ballot:
    id: str
    kind: BallotKind
    subject_id: int
    subject_name: str
    policy: BallotPolicy
    opened_at: float
    deadline: float
    # voter id -> display name, snapshotted when the ballot opens
    eligible: dict[int, str]
    initiator_id: Optional[int] = None
    initiator_name: Optional[str] = None
    channel_id: Optional[int] = None
    message_id: Optional[int] = None
    reason: str = ""
    choices: dict[int, Choice] = field(default_factory=dict)
    resolved: bool = False
    outcome: Optional[Outcome] = None

    @property
    def category(self) -> str:
        return self.kind.category

    @property
    def remaining(self) -> int:
        return len(self.eligible) - len(self.choices)

    def cast(self, voter_id: int, choice: Choice) -> Optional[Choice]:
        """Record a choice, replacing any earlier one. Returns the replaced choice."""
        previous = self.choices.get(voter_id)
        self.choices[voter_id] = choice
        return previous

    def count(self, choice: Choice) -> int:
        return sum(1 for c in self.choices.values() if c is choice)

    def voter_names(self, choice: Choice) -> list[str]:
        return [self.eligible.get(vid, str(vid)) for vid, c in self.choices.items() if c is choice]


@dataclass(frozen=True)
class BallotControls:
    """Yes/no buttons attached to a ballot message."""

    ballot_id: str
    disabled: bool = False


class AuditAction(str, Enum):
    MEMBER_KICK = "member_kick"
    MEMBER_BAN_ADD = "member_ban_add"
    MEMBER_BAN_REMOVE = "member_ban_remove"
    MEMBER_ROLE_UPDATE = "member_role_update"
    MESSAGE_DELETE = "message_delete"
    MESSAGE_BULK_DELETE = "message_bulk_delete"


# The audit trail does not reliably name the author of a deleted message.
UNTARGETED_ACTIONS = frozenset({AuditAction.MESSAGE_DELETE, AuditAction.MESSAGE_BULK_DELETE})


@dataclass(frozen=True)
class AuditEntry:
    actor_id: int
    actor_name: str
    target_id: Optional[int]
    reason: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AttributionRecord:
    actor_id: int
    actor_name: str
    reason: Optional[str]
    acted_at: datetime


@dataclass(frozen=True)
class ReentryEntry:
    member_id: int
    invite_url: str
    was_privileged: bool
    created_at: float
    display_name: str


@dataclass(frozen=True)
class MessageSnapshot:
    message_id: int
    author_id: int
    author_name: str
    channel_id: int
    content: str
    attachments: tuple[str, ...] = ()
    embeds: tuple[dict[str, Any], ...] = ()
    captured_at: float = 0.0
