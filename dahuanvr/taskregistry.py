"""Registry of named background tasks."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine, Hashable
from functools import partial
from typing import Any

_LOGGER = logging.getLogger(__name__)


class TaskRegistry:
    """Lock guarded mapping of key to running task.

    At most one task runs per key. Starting a key again cancels the previous
    task and every task releases its own slot when it finishes, however it
    finishes.
    """

    def __init__(self, name: str = "dahuanvr") -> None:
        self._name = name
        self._lock = threading.Lock()
        self._tasks: dict[Hashable, asyncio.Task] = {}

    def start(self, key: Hashable, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run ``coro`` as the task for ``key``, cancelling any previous one."""
        with self._lock:
            previous = self._tasks.pop(key, None)
        if previous is not None and not previous.done():
            _LOGGER.debug("Cancelling previous %s task for %s", self._name, key)
            previous.cancel()
        task = asyncio.create_task(coro, name=f"{self._name}-{key}")
        with self._lock:
            self._tasks[key] = task
        task.add_done_callback(partial(self._release, key))
        return task

    def _release(self, key: Hashable, task: asyncio.Task) -> None:
        with self._lock:
            if self._tasks.get(key) is task:
                del self._tasks[key]

    def get(self, key: Hashable) -> asyncio.Task | None:
        """Return the running task for ``key``."""
        with self._lock:
            return self._tasks.get(key)

    def is_running(self, key: Hashable) -> bool:
        """Return True if a task is registered for ``key``."""
        task = self.get(key)
        return task is not None and not task.done()

    def keys(self) -> list[Hashable]:
        """Return the keys with a registered task."""
        with self._lock:
            return list(self._tasks)

    def cancel(self, key: Hashable) -> asyncio.Task | None:
        """Request cancellation of the task for ``key``."""
        with self._lock:
            task = self._tasks.pop(key, None)
        if task is not None:
            task.cancel()
        return task

    async def stop(self, key: Hashable) -> None:
        """Cancel the task for ``key`` and wait for it to finish."""
        if (task := self.cancel(key)) is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def stop_all(self) -> None:
        """Cancel every task and wait for them to finish."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, key: Hashable) -> bool:
        return self.is_running(key)
