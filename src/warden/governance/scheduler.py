from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

log = logging.getLogger("warden.governance.scheduler")


class DeferredTasks:
    """Cancelable delayed callbacks keyed by the entity they act on.

    Scheduling a key that is already pending replaces the earlier task. A task
    drops its own key before running the callback, so the callback may
    reschedule under the same key.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task] = {}

    def schedule(
        self,
        key: str,
        delay: float,
        callback: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> None:
        self.cancel(key)
        self._tasks[key] = asyncio.create_task(
            self._run(key, max(0.0, delay), callback, args), name=f"warden-{key}"
        )

    async def _run(self, key: str, delay: float, callback: Callable[..., Awaitable[Any]], args: tuple) -> None:
        await asyncio.sleep(delay)
        if self._tasks.get(key) is asyncio.current_task():
            del self._tasks[key]
        try:
            await callback(*args)
        except Exception:
            log.exception("Deferred task %s failed", key)

    def cancel(self, key: str) -> bool:
        task = self._tasks.pop(key, None)
        if task is None:
            return False
        if task is not asyncio.current_task():
            task.cancel()
        return True

    def pending(self, key: str) -> bool:
        return key in self._tasks

    def cancel_all(self) -> None:
        for key in list(self._tasks):
            self.cancel(key)

    def __len__(self) -> int:
        return len(self._tasks)
