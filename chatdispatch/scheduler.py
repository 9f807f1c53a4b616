"""Named, cancelable delayed actions.

Each scheduled action runs as an asyncio task on the running loop:
sleep for the delay, then call the action (awaiting it if it returns an
awaitable). Handles are stored by name so commands can cancel work they
scheduled earlier, e.g. a reminder or a delayed message delete.
"""

import asyncio
import inspect
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

logger = structlog.get_logger("chatdispatch.scheduler")

Action = Union[Callable[[], Any], Awaitable[Any]]


class TaskState(str, Enum):
    """Lifecycle of a ScheduledTask.

    Flow: PENDING -> RUNNING -> DONE, or PENDING/RUNNING -> CANCELLED.
    """
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"


def log_task_exception(task: asyncio.Task):
    """Log exceptions from fire-and-forget tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("scheduled_task_failed", error=str(exc), exc_type=type(exc).__name__)


class ScheduledTask:
    """Cancelable handle for one delayed action.

    A cooperative cancel (``immediate=False``) stops a pending action
    from ever starting but lets an action that is already running
    finish; the handle still reports itself cancelled. An immediate
    cancel interrupts the underlying asyncio task wherever it is.
    """

    def __init__(self, name: str, delay: float, action: Action):
        self.name = name
        self.delay = delay
        self._action = action
        self._started = False
        self._cancel_requested = False
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"scheduled:{name}")
        self._task.add_done_callback(log_task_exception)

    async def _run(self) -> Any:
        await asyncio.sleep(self.delay)
        if self._cancel_requested:
            return None
        self._started = True
        logger.debug("scheduled_task_started", name=self.name)
        result = self._action() if callable(self._action) else self._action
        if inspect.isawaitable(result):
            result = await result
        return result

    def cancel(self, immediate: bool = False) -> bool:
        """Request cancellation.

        Returns:
            False if the task had already completed, True otherwise.
        """
        if self._task.done():
            return False
        self._cancel_requested = True
        if immediate or not self._started:
            self._task.cancel()
        return True

    @property
    def state(self) -> TaskState:
        if self._cancel_requested or self._task.cancelled():
            return TaskState.CANCELLED
        if self._task.done():
            return TaskState.DONE
        if self._started:
            return TaskState.RUNNING
        return TaskState.PENDING

    @property
    def cancelled(self) -> bool:
        return self.state == TaskState.CANCELLED

    @property
    def done(self) -> bool:
        """True once completed or cancelled."""
        return self._task.done() or self._cancel_requested

    async def wait(self) -> None:
        """Wait for the underlying task to settle (for shutdown and tests)."""
        await asyncio.wait({self._task})


class ScheduledTaskRegistry:
    """Name -> ScheduledTask map.

    Scheduling under a name that is still pending replaces the stored
    handle without cancelling the previous task; callers that reuse
    names must cancel first.
    """

    def __init__(self):
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()

    def schedule(self, name: str, delay: float, action: Action) -> ScheduledTask:
        """Run ``action`` after ``delay`` seconds. Requires a running loop."""
        handle = ScheduledTask(name, delay, action)
        with self._lock:
            previous = self._tasks.get(name)
            self._tasks[name] = handle
        if previous is not None and not previous.done:
            logger.warning("scheduled_task_replaced", name=name)
        logger.debug("task_scheduled", name=name, delay=delay)
        return handle

    def contains(self, name: str) -> bool:
        with self._lock:
            return name in self._tasks

    def get(self, name: str) -> Optional[ScheduledTask]:
        with self._lock:
            return self._tasks.get(name)

    def cancel(self, name: str, immediate: bool = False) -> None:
        """Cancel the task stored under ``name``; no-op when absent."""
        with self._lock:
            handle = self._tasks.get(name)
        if handle is None:
            return
        handle.cancel(immediate=immediate)
        logger.debug("scheduled_task_cancelled", name=name, immediate=immediate)

    def sweep(self) -> int:
        """Forget handles that are done or cancelled.

        Returns:
            Number of handles removed.
        """
        with self._lock:
            finished = [name for name, h in self._tasks.items() if h.done]
            for name in finished:
                del self._tasks[name]
        return len(finished)

    def shutdown(self) -> None:
        """Interrupt every outstanding task."""
        with self._lock:
            handles = list(self._tasks.values())
            self._tasks.clear()
        for handle in handles:
            handle.cancel(immediate=True)
        if handles:
            logger.info("scheduler_shutdown", cancelled=len(handles))

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
