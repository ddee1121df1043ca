from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, Sequence, TypeVar

import aiosqlite

T = TypeVar("T")


class BaseService(ABC, Generic[T]):
    """Base class for SQLite-backed stores: schema creation and row mapping."""

    def __init__(self, sqlite_path: str) -> None:
        self._path = sqlite_path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await self._create_tables(db)
            await db.commit()

    @abstractmethod
    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        ...

    @abstractmethod
    def _from_row(self, row: aiosqlite.Row) -> T:
        ...

    async def _fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[T]:
        async with aiosqlite.connect(self._path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, tuple(params)) as cur:
                rows = await cur.fetchall()
        return [self._from_row(r) for r in rows]
