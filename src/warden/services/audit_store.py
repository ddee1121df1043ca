from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

import aiosqlite

from .base import BaseService

_COLUMNS = "id, kind, action, severity, actor_id, target_id, created_at_iso, details_json"


@dataclass(frozen=True)
class SecurityRecord:
    id: int
    kind: str  # "security" | "abuse" | "moderation"
    action: str
    severity: str
    actor_id: Optional[int]
    target_id: Optional[int]
    created_at_iso: str
    details_json: str

    @property
    def details(self) -> dict[str, Any]:
        return json.loads(self.details_json)


class SecurityAuditStore(BaseService[SecurityRecord]):
    """Append-only journal of protection and ballot events."""

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS security_audit (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              kind TEXT NOT NULL,
              action TEXT NOT NULL,
              severity TEXT NOT NULL,
              actor_id INTEGER,
              target_id INTEGER,
              created_at_iso TEXT NOT NULL,
              details_json TEXT NOT NULL
            )
            """
        )
        await db.execute("CREATE INDEX IF NOT EXISTS idx_secaudit_target ON security_audit(target_id, id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_secaudit_kind ON security_audit(kind, id)")

    def _from_row(self, row: aiosqlite.Row) -> SecurityRecord:
        return SecurityRecord(
            id=int(row["id"]),
            kind=str(row["kind"]),
            action=str(row["action"]),
            severity=str(row["severity"]),
            actor_id=(int(row["actor_id"]) if row["actor_id"] is not None else None),
            target_id=(int(row["target_id"]) if row["target_id"] is not None else None),
            created_at_iso=str(row["created_at_iso"]),
            details_json=str(row["details_json"]),
        )

    async def add(
        self,
        *,
        kind: str,
        action: str,
        severity: str,
        created_at_iso: str,
        details: dict[str, Any],
        actor_id: Optional[int] = None,
        target_id: Optional[int] = None,
    ) -> int:
        details_json = json.dumps(details, separators=(",", ":"), ensure_ascii=False, default=str)
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                INSERT INTO security_audit (
                  kind, action, severity, actor_id, target_id, created_at_iso, details_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (kind, action, severity, actor_id, target_id, created_at_iso, details_json),
            )
            await db.commit()
            return int(cur.lastrowid)

    async def recent(self, limit: int = 20, *, kind: Optional[str] = None) -> list[SecurityRecord]:
        limit = max(1, min(100, int(limit)))
        if kind is None:
            return await self._fetch_all(
                f"SELECT {_COLUMNS} FROM security_audit ORDER BY id DESC LIMIT ?", (limit,)
            )
        return await self._fetch_all(
            f"SELECT {_COLUMNS} FROM security_audit WHERE kind = ? ORDER BY id DESC LIMIT ?", (kind, limit)
        )

    async def recent_for_target(self, target_id: int, limit: int = 20) -> list[SecurityRecord]:
        limit = max(1, min(100, int(limit)))
        return await self._fetch_all(
            f"SELECT {_COLUMNS} FROM security_audit WHERE target_id = ? ORDER BY id DESC LIMIT ?",
            (target_id, limit),
        )
