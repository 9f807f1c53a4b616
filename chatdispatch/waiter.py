"""Event waiter: one-shot filtered waits on inbound events.

A wait is a registered (condition, action) pair, not a blocked
coroutine. The transport feeds every inbound event to on_event(); the
first live registration whose condition accepts the event is retired
and its action awaited. A registration with a timeout is retired by the
loop when the timeout elapses and its timeout action runs instead.

Each registration ends exactly once, by one of: action, timeout
action, or explicit cancel().
"""

import asyncio
import inspect
import threading
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type, TypeVar, Union

import structlog

from .scheduler import log_task_exception

logger = structlog.get_logger("chatdispatch.menu")

E = TypeVar("E")

Condition = Callable[[E], bool]
EventAction = Callable[[E], Union[None, Awaitable[None]]]
TimeoutAction = Callable[[], Union[None, Awaitable[None]]]


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    return await _maybe_await(fn(*args))


class WaitRegistration:
    """Handle for a single pending wait."""

    def __init__(
        self,
        waiter: "EventWaiter",
        event_type: Type[Any],
        condition: Condition,
        action: EventAction,
        timeout_action: Optional[TimeoutAction],
    ):
        self._waiter = waiter
        self.event_type = event_type
        self.condition = condition
        self.action = action
        self.timeout_action = timeout_action
        self._timer: Optional[asyncio.TimerHandle] = None
        self._active = True
        self.outcome: Optional[str] = None

    @property
    def active(self) -> bool:
        return self._active

    def retire(self, outcome: str) -> bool:
        """Mark this wait finished. Only the first caller gets True."""
        if not self._active:
            return False
        self._active = False
        self.outcome = outcome
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._waiter._discard(self)
        return True

    def cancel(self) -> bool:
        """Drop the wait without running either action."""
        return self.retire("cancelled")


class EventWaiter:
    """Registry of one-shot filtered waits keyed by event type."""

    def __init__(self):
        self._waits: Dict[Type[Any], List[WaitRegistration]] = {}
        self._lock = threading.Lock()

    def wait_for_event(
        self,
        event_type: Type[E],
        condition: Condition,
        action: EventAction,
        timeout: Optional[float] = None,
        timeout_action: Optional[TimeoutAction] = None,
    ) -> WaitRegistration:
        """Register a wait for the next ``event_type`` event passing ``condition``.

        Args:
            event_type: Class of event to wait for.
            condition: Sync predicate applied to each candidate event.
            action: Sync or async callable run with the accepted event.
            timeout: Seconds before the wait expires (None = never).
            timeout_action: Sync or async callable run on expiry.

        Returns:
            The registration, which can be cancelled.
        """
        registration = WaitRegistration(self, event_type, condition, action, timeout_action)
        with self._lock:
            self._waits.setdefault(event_type, []).append(registration)
        if timeout is not None and timeout > 0:
            loop = asyncio.get_running_loop()
            registration._timer = loop.call_later(timeout, self._expire, registration)
        return registration

    def _discard(self, registration: WaitRegistration) -> None:
        with self._lock:
            waits = self._waits.get(registration.event_type)
            if waits and registration in waits:
                waits.remove(registration)
                if not waits:
                    del self._waits[registration.event_type]

    def _expire(self, registration: WaitRegistration) -> None:
        if not registration.retire("timeout"):
            return
        logger.debug("wait_timed_out", event_type=registration.event_type.__name__)
        if registration.timeout_action is None:
            return
        task = asyncio.get_running_loop().create_task(_call(registration.timeout_action))
        task.add_done_callback(log_task_exception)

    async def on_event(self, event: Any) -> int:
        """Offer ``event`` to every live wait registered for its type.

        Returns:
            Number of waits whose action was run.
        """
        with self._lock:
            candidates = [
                reg
                for event_type, regs in self._waits.items()
                if isinstance(event, event_type)
                for reg in regs
            ]
        fired = 0
        for registration in candidates:
            if not registration.active:
                continue
            try:
                accepted = registration.condition(event)
            except Exception as e:
                logger.error("wait_condition_error", error=str(e), exc_type=type(e).__name__)
                continue
            if not accepted or not registration.retire("event"):
                continue
            fired += 1
            try:
                await _maybe_await(registration.action(event))
            except Exception as e:
                logger.error("wait_action_error", error=str(e), exc_type=type(e).__name__)
        return fired

    def pending(self, event_type: Optional[Type[Any]] = None) -> int:
        """Count live waits (optionally for one event type)."""
        with self._lock:
            if event_type is not None:
                return len(self._waits.get(event_type, ()))
            return sum(len(regs) for regs in self._waits.values())
