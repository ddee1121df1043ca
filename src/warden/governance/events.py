"""Typed inbound events consumed by :class:`GovernanceEngine.dispatch`.

Cogs translate discord.py gateway payloads into these so the engine never
touches live Discord objects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from .models import Choice, MemberInfo, MessageSnapshot


@dataclass(frozen=True)
class MemberJoined:
    member: MemberInfo


@dataclass(frozen=True)
class MemberRemoved:
    # Roles as they were right before the member left
    member: MemberInfo


@dataclass(frozen=True)
class BanAdded:
    user_id: int
    display_name: str


@dataclass(frozen=True)
class BanRemoved:
    user_id: int
    display_name: str


@dataclass(frozen=True)
class MessageCreated:
    snapshot: MessageSnapshot
    mass_mention: bool = False


@dataclass(frozen=True)
class MessageDeleted:
    message_id: int
    channel_id: int
    author_id: Optional[int] = None


@dataclass(frozen=True)
class MessagesBulkDeleted:
    message_ids: frozenset[int]
    channel_id: int


@dataclass(frozen=True)
class MemberRolesChanged:
    member: MemberInfo
    added: frozenset[int]
    removed: frozenset[int]


@dataclass(frozen=True)
class BallotChoiceCast:
    ballot_id: str
    voter_id: int
    choice: Choice


GovernanceEvent = Union[
    MemberJoined,
    MemberRemoved,
    BanAdded,
    BanRemoved,
    MessageCreated,
    MessageDeleted,
    MessagesBulkDeleted,
    MemberRolesChanged,
    BallotChoiceCast,
]
