"""
Fire-and-forget dispatch for background writes.

Interaction inserts, preference flushes and silent feed refreshes run as
detached asyncio tasks. The caller never awaits them and never sees their
failures; failures are logged here and dropped.

Each task may carry an owner (the viewer id it works for) so one viewer's
session can wait on its own work without waiting on everybody else's.
"""

import asyncio
from typing import Any, Awaitable, Dict, List, Optional

from core.logging import LoggerMixin


_ALL_OWNERS = object()


class BackgroundTasks(LoggerMixin):
    """
    Owns detached tasks so they are not garbage collected mid-flight.

    Usage:
        tasks = BackgroundTasks()
        tasks.dispatch(client.insert_interaction(...), label="insert_interaction", owner=viewer_id)
        ...
        await tasks.drain(owner=viewer_id)   # one viewer's work
        await tasks.drain()                  # shutdown / tests
    """

    def __init__(self):
        self._tasks: Dict[asyncio.Task, Optional[str]] = {}

    def dispatch(
        self,
        coro: Awaitable[Any],
        label: str = "background",
        owner: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """
        Schedule ``coro`` without blocking the caller.

        Must be called from inside a running event loop. Returns the task so
        callers that care (tests) can await it; production callers ignore it.
        """
        try:
            task = asyncio.ensure_future(coro)
        except RuntimeError as e:
            # No running loop: close the coroutine so it isn't left un-awaited
            if asyncio.iscoroutine(coro):
                coro.close()
            self.logger.warning("Background dispatch without event loop", task=label, error=str(e))
            return None

        task.set_name(label)
        self._tasks[task] = owner
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        owner = self._tasks.pop(task, None)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.warning(
                "Background task failed",
                task=task.get_name(),
                owner=owner,
                error=str(error),
                error_type=type(error).__name__,
            )

    def _owned(self, owner: Any) -> List[asyncio.Task]:
        if owner is _ALL_OWNERS:
            return list(self._tasks)
        return [task for task, task_owner in self._tasks.items() if task_owner == owner]

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def pending_for(self, owner: Optional[str]) -> int:
        return len(self._owned(owner))

    async def drain(self, owner: Any = _ALL_OWNERS) -> None:
        """
        Wait until dispatched tasks (including ones they spawn) finish.

        Args:
            owner: Only wait on tasks dispatched for this owner. Waits on
                every task when omitted.
        """
        tasks = self._owned(owner)
        while tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            tasks = self._owned(owner)
