from __future__ import annotations

import time
from typing import Callable, Optional

from ..services.cache import TTLCache
from .models import MessageSnapshot


class SnapshotCache:
    """Recent guild messages, kept so a wrongly deleted one can be reposted."""

    def __init__(self, max_size: int = 1000, max_age_seconds: int = 3600, clock: Callable[[], float] = time.time) -> None:
        self._cache: TTLCache[int, MessageSnapshot] = TTLCache(
            default_ttl_seconds=max_age_seconds, max_size=max_size, clock=clock
        )

    def capture(self, snapshot: MessageSnapshot) -> None:
        self._cache.set(snapshot.message_id, snapshot)

    def pop(self, message_id: int) -> Optional[MessageSnapshot]:
        return self._cache.pop(message_id)

    def prune(self) -> int:
        return self._cache.prune()

    def __len__(self) -> int:
        return len(self._cache)
