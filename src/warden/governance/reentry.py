from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from .models import ReentryEntry

log = logging.getLogger("warden.governance.reentry")


class ReentryTracker:
    """Single-use re-entry invites for privileged members removed by others."""

    def __init__(self, retention_seconds: float = 24 * 3600, clock: Callable[[], float] = time.time) -> None:
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._entries: dict[int, ReentryEntry] = {}

    def _expired(self, entry: ReentryEntry) -> bool:
        return self._clock() - entry.created_at >= self.retention_seconds

    def record(self, member_id: int, invite_url: str, display_name: str, *, was_privileged: bool = True) -> ReentryEntry:
        entry = ReentryEntry(
            member_id=member_id,
            invite_url=invite_url,
            was_privileged=was_privileged,
            created_at=self._clock(),
            display_name=display_name,
        )
        self._entries[member_id] = entry
        return entry

    def get(self, member_id: int) -> Optional[ReentryEntry]:
        entry = self._entries.get(member_id)
        if entry is not None and self._expired(entry):
            del self._entries[member_id]
            return None
        return entry

    def consume(self, member_id: int) -> Optional[ReentryEntry]:
        """Remove and return the live entry for ``member_id``, if any."""
        entry = self._entries.pop(member_id, None)
        if entry is None or self._expired(entry):
            return None
        return entry

    def restore(self, entry: ReentryEntry) -> None:
        """Put back an entry whose restoration failed so a later rejoin can retry."""
        if not self._expired(entry):
            self._entries.setdefault(entry.member_id, entry)

    def prune(self) -> int:
        stale = [mid for mid, entry in self._entries.items() if self._expired(entry)]
        for mid in stale:
            del self._entries[mid]
        if stale:
            log.info("Dropped %d expired re-entry entries", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, member_id: object) -> bool:
        return member_id in self._entries
