from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass
class RuntimeStats:
    started_at: float = field(default_factory=time.time)
    ballots_opened: int = 0
    ballots_resolved: int = 0
    ballots_cancelled: int = 0
    choices_recorded: int = 0
    reversals_applied: int = 0
    members_readmitted: int = 0
    messages_restored: int = 0
    purge_kicks: int = 0

    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)
