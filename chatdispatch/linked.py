"""Linked deletion: remove bot responses when the triggering message goes.

Responses sent through CommandEvent.reply() are linked to the id of the
message that invoked the command. When that message is deleted, the
linked responses are deleted too. Only the most recent ``capacity``
trigger ids are remembered.
"""

import threading
from collections import OrderedDict
from typing import Generic, List, Optional, Set, TypeVar

import structlog

from .exceptions import TransportError
from .transport import Message, MessageDeleteEvent, Transport

logger = structlog.get_logger("chatdispatch.dispatch")

K = TypeVar("K")
V = TypeVar("V")


class FixedSizeCache(Generic[K, V]):
    """Insertion-ordered map that evicts its oldest key when full."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Cache capacity must be at least 1")
        self.capacity = capacity
        self._data: "OrderedDict[K, V]" = OrderedDict()

    def add(self, key: K, value: V) -> None:
        if key in self._data:
            self._data[key] = value
            return
        if len(self._data) >= self.capacity:
            self._data.popitem(last=False)
        self._data[key] = value

    def get(self, key: K) -> Optional[V]:
        return self._data.get(key)

    def pop(self, key: K) -> Optional[V]:
        return self._data.pop(key, None)

    def __contains__(self, key: K) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class LinkedMessageCache:
    """Trigger message id -> set of bot response messages."""

    def __init__(self, capacity: int):
        self._cache: FixedSizeCache[str, Set[Message]] = FixedSizeCache(capacity)
        self._lock = threading.Lock()

    def link(self, call_id: str, message: Message) -> None:
        """Link ``message`` to the trigger ``call_id``, merging with existing links."""
        with self._lock:
            stored = self._cache.get(call_id)
            if stored is not None:
                stored.add(message)
            else:
                self._cache.add(call_id, {message})

    def linked(self, call_id: str) -> List[Message]:
        """Snapshot of the messages linked to ``call_id``."""
        with self._lock:
            return list(self._cache.get(call_id) or ())

    async def cascade_delete(self, event: MessageDeleteEvent, transport: Transport) -> int:
        """Delete every response linked to the deleted message.

        Uses one bulk delete when there is more than one response and the
        bot can manage messages in the channel, otherwise deletes one by
        one. Failures are logged and ignored.

        Returns:
            Number of linked messages a delete was attempted for.
        """
        with self._lock:
            stored = self._cache.pop(event.message_id)
            messages = list(stored or ())
        if not messages:
            return 0

        if len(messages) > 1 and event.channel.can_manage_messages:
            try:
                await transport.delete_messages(event.channel, messages)
            except TransportError as e:
                logger.debug("linked_bulk_delete_failed", error=str(e))
        else:
            for message in messages:
                try:
                    await transport.delete_message(message)
                except TransportError as e:
                    logger.debug(
                        "linked_delete_failed", message_id=message.id, error=str(e)
                    )
        logger.debug(
            "linked_messages_deleted", trigger=event.message_id, count=len(messages)
        )
        return len(messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
