from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import aiosqlite

from ..constants import COLORS
from ..services.audit_store import SecurityAuditStore
from ..utils import field_value, mention, safe_embed
from .errors import PlatformError
from .ports import GovernancePlatform

log = logging.getLogger("warden.governance.notifier")

_TITLES = {
    "security": "Security",
    "abuse": "Abuse detected",
    "moderation": "Moderation",
}
_COLORS = {
    "security": COLORS["security"],
    "abuse": COLORS["error"],
    "moderation": COLORS["info"],
}


class SecurityNotifier:
    """Fans one governance event out to the log, the journal and the log channel.

    Each sink is best effort; a failing sink is logged and never stops the
    handler that emitted the event.
    """

    def __init__(
        self,
        platform: GovernancePlatform,
        store: Optional[SecurityAuditStore] = None,
        log_channel_id: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.platform = platform
        self.store = store
        self.log_channel_id = log_channel_id
        self._clock = clock

    async def security(self, action: str, *, actor_id: Optional[int] = None, target_id: Optional[int] = None,
                       severity: str = "high", **details: Any) -> None:
        await self._emit("security", action, severity, actor_id, target_id, details)

    async def abuse(self, action: str, *, actor_id: Optional[int] = None, target_id: Optional[int] = None,
                    severity: str = "medium", **details: Any) -> None:
        await self._emit("abuse", action, severity, actor_id, target_id, details)

    async def moderation(self, action: str, *, actor_id: Optional[int] = None, target_id: Optional[int] = None,
                         severity: str = "info", **details: Any) -> None:
        await self._emit("moderation", action, severity, actor_id, target_id, details)

    async def _emit(
        self,
        kind: str,
        action: str,
        severity: str,
        actor_id: Optional[int],
        target_id: Optional[int],
        details: dict[str, Any],
    ) -> None:
        level = logging.WARNING if kind != "moderation" else logging.INFO
        log.log(level, "[%s] %s actor=%s target=%s %s", kind, action, actor_id, target_id, details)

        if self.store is not None:
            try:
                await self.store.add(
                    kind=kind,
                    action=action,
                    severity=severity,
                    actor_id=actor_id,
                    target_id=target_id,
                    created_at_iso=datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(),
                    details=details,
                )
            except aiosqlite.Error:
                log.exception("Failed to journal %s/%s", kind, action)

        if self.log_channel_id is None:
            return
        embed = safe_embed(f"{_TITLES[kind]}: {action.replace('_', ' ')}", "", _COLORS[kind])
        embed.add_field(name="Actor", value=mention(actor_id), inline=True)
        embed.add_field(name="Target", value=mention(target_id), inline=True)
        embed.add_field(name="Severity", value=severity, inline=True)
        for key, value in details.items():
            if value is None or value == "":
                continue
            embed.add_field(name=key.replace("_", " ").capitalize(), value=field_value(str(value)), inline=False)
        try:
            await self.platform.send_message(self.log_channel_id, embeds=[embed])
        except PlatformError as e:
            log.warning("Could not post %s notification to log channel: %s", kind, e)
