from __future__ import annotations

import time
from typing import Callable, Optional

from ..constants import TRUST_EXPECTATION_TTL_SECONDS
from .models import AttributionRecord
from .ports import GovernancePlatform


class TrustLedger:
    """Tells the protection engine which changes the service made itself.

    Besides the bot's own identity, the vote coordinator registers every role
    removal it is about to perform. The matching role-change event consumes
    the expectation and is left alone.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        ttl_seconds: float = TRUST_EXPECTATION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self._ttl = ttl_seconds
        self._clock = clock
        self._expected: dict[tuple[int, int], float] = {}

    def is_trusted(self, actor_id: Optional[int]) -> bool:
        return actor_id is not None and actor_id == self.platform.service_actor_id

    def trusts(self, record: Optional[AttributionRecord]) -> bool:
        return record is not None and self.is_trusted(record.actor_id)

    def expect(self, member_id: int, role_id: int) -> None:
        self._expected[(member_id, role_id)] = self._clock() + self._ttl

    def discard(self, member_id: int, role_id: int) -> None:
        self._expected.pop((member_id, role_id), None)

    def consume(self, member_id: int, role_id: int) -> bool:
        expires_at = self._expected.pop((member_id, role_id), None)
        return expires_at is not None and expires_at >= self._clock()

    def prune(self) -> int:
        now = self._clock()
        stale = [k for k, expires_at in self._expected.items() if expires_at < now]
        for k in stale:
            del self._expected[k]
        return len(stale)
