from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..config import Settings
from ..constants import DEPARTED_MEMORY_TTL_SECONDS
from ..services.cache import TTLCache
from .models import MemberInfo
from .ports import GovernancePlatform

log = logging.getLogger("warden.governance.roles")


class RoleDirectory:
    """The one place that answers "who holds which governance role".

    Both the vote coordinator and the protection engine go through here. It
    also remembers the roles of members who just left, because the gateway
    delivers the removal and the ban as separate events in no fixed order.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self.privileged_role_id = settings.privileged_role_id
        self.pending_role_id = settings.pending_role_id
        self.sanctioned_role_id = settings.sanctioned_role_id
        self.protected_role_id = settings.protected_role_id
        self._departed: TTLCache[int, MemberInfo] = TTLCache(
            default_ttl_seconds=DEPARTED_MEMORY_TTL_SECONDS, clock=clock
        )

    def is_privileged(self, member: MemberInfo) -> bool:
        return member.has_role(self.privileged_role_id)

    def is_pending(self, member: MemberInfo) -> bool:
        return member.has_role(self.pending_role_id)

    def is_sanctioned(self, member: MemberInfo) -> bool:
        return member.has_role(self.sanctioned_role_id)

    def is_governed(self, member: MemberInfo) -> bool:
        """Holds any role of the governance lifecycle."""
        return self.is_privileged(member) or self.is_pending(member) or self.is_sanctioned(member)

    async def member(self, member_id: int) -> Optional[MemberInfo]:
        return await self.platform.fetch_member(member_id)

    async def privileged_members(self) -> list[MemberInfo]:
        members = await self.platform.members_with_role(self.privileged_role_id)
        return [m for m in members if not m.bot]

    async def holds_privileged(self, member_id: int) -> bool:
        member = await self.member(member_id)
        return member is not None and self.is_privileged(member)

    async def was_privileged(self, member_id: int) -> bool:
        """Privileged now, or at the moment they left the guild."""
        departed = self._departed.get(member_id)
        if departed is not None:
            return self.is_privileged(departed)
        return await self.holds_privileged(member_id)

    def remember_departed(self, member: MemberInfo) -> None:
        self._departed.set(member.id, member)

    def prune(self) -> int:
        return self._departed.prune()
