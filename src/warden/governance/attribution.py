from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from ..constants import AUDIT_PAGE_SIZE
from .errors import PlatformError
from .models import UNTARGETED_ACTIONS, AttributionRecord, AuditAction
from .ports import GovernancePlatform

log = logging.getLogger("warden.governance.attribution")


class AuditAttributor:
    """Works out who performed an action from the guild audit log.

    Discord writes audit entries asynchronously, so only the newest entry is
    considered and only while it is fresh. Anything doubtful yields None,
    which callers treat as "actor unknown, do not reverse".
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        *,
        freshness_seconds: float = 5.0,
        page_size: int = AUDIT_PAGE_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self.freshness_seconds = freshness_seconds
        self.page_size = page_size
        self._clock = clock

    async def attribute(self, action: AuditAction, target_id: Optional[int] = None) -> Optional[AttributionRecord]:
        try:
            entries = await self.platform.fetch_audit_entries(action, limit=self.page_size)
        except PlatformError as e:
            log.warning("Audit log query for %s failed: %s", action.value, e)
            return None
        if not entries:
            log.debug("No %s audit entries", action.value)
            return None

        newest = max(entries, key=lambda e: e.created_at)
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        age = (now - newest.created_at).total_seconds()
        if age > self.freshness_seconds:
            log.debug("Newest %s entry is %.1fs old, treating as unrelated", action.value, age)
            return None

        if action not in UNTARGETED_ACTIONS and target_id is not None and newest.target_id != target_id:
            log.debug("Newest %s entry targets %s, not %s", action.value, newest.target_id, target_id)
            return None

        return AttributionRecord(
            actor_id=newest.actor_id,
            actor_name=newest.actor_name,
            reason=newest.reason,
            acted_at=newest.created_at,
        )
