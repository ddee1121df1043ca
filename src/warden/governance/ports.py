"""
Outbound contract between the governance engine and the chat platform.

The engine only talks to Discord through this protocol. The production
implementation lives in ``warden.services.discord_platform``; tests use
``warden.testing.fakes.FakePlatform``.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

import discord

from .models import AuditAction, AuditEntry, BallotControls, MemberInfo


@runtime_checkable
class GovernancePlatform(Protocol):
    """Every method raises ``PlatformError`` when the platform refuses the call."""

    @property
    def service_actor_id(self) -> int:
        """Identity the bot itself acts under."""
        ...

    async def fetch_member(self, member_id: int) -> Optional[MemberInfo]:
        """Current member state, or None when the user is not in the guild."""
        ...

    async def members_with_role(self, role_id: int) -> list[MemberInfo]:
        ...

    async def list_members(self) -> list[MemberInfo]:
        ...

    async def add_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        ...

    async def remove_role(self, member_id: int, role_id: int, *, reason: str) -> None:
        ...

    async def kick(self, member_id: int, *, reason: str) -> None:
        ...

    async def unban(self, user_id: int, *, reason: str) -> None:
        ...

    async def create_invite(self, channel_id: Optional[int], *, max_age: int, reason: str) -> str:
        """Mint a single-use invite and return its URL."""
        ...

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
        ping_role_id: Optional[int] = None,
    ) -> int:
        """Post a message and return its id."""
        ...

    async def edit_message(
        self,
        channel_id: int,
        message_id: int,
        *,
        embeds: Sequence[discord.Embed] = (),
        controls: Optional[BallotControls] = None,
    ) -> None:
        ...

    async def send_dm(self, member_id: int, content: str) -> None:
        """Raises ``DeliveryError`` when the member cannot be reached privately."""
        ...

    async def fetch_audit_entries(self, action: AuditAction, *, limit: int) -> list[AuditEntry]:
        """Newest entries first."""
        ...
