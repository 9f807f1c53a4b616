"""Ordered, alias-indexed command registry.

Keeps the command list (help order) and a lowercase name/alias ->
position index in one structure. Both are mutated together under a
single lock, so a reader never sees the list and the index disagree.

Dispatch lookups use one of two paths. With few commands a linear scan
over Command.is_command_for() is used, which lets commands customise
their own matching; above ``index_limit`` commands the O(1) index is
used instead.
"""

import threading
from typing import Dict, List, Optional, Tuple

import structlog

from ..exceptions import CommandNotFoundError, DuplicateKeyError, IndexOutOfRangeError
from .base import Command, CommandGroup

logger = structlog.get_logger("chatdispatch.dispatch")

# Above this many commands, dispatch switches from scan to index lookup
DEFAULT_INDEX_LIMIT = 20


class CommandRegistry:
    """Command list plus name/alias index.

    Args:
        index_limit: Largest command count still resolved by linear scan.
    """

    def __init__(self, index_limit: int = DEFAULT_INDEX_LIMIT):
        self.index_limit = index_limit
        self._commands: List[Command] = []
        self._index: Dict[str, int] = {}
        self._lock = threading.RLock()

    def add(self, command: Command, position: Optional[int] = None) -> None:
        """Insert ``command`` at ``position`` (default: the end).

        Raises:
            IndexOutOfRangeError: position is outside ``[0, size]``.
            DuplicateKeyError: the name or an alias is already indexed.
        """
        with self._lock:
            size = len(self._commands)
            target = size if position is None else position
            if target < 0 or target > size:
                raise IndexOutOfRangeError(
                    f"Index specified is invalid: [{target}/{size}]",
                    position=target,
                    size=size,
                )
            keys = command.keys
            seen = set()
            for key in keys:
                if key in self._index or key in seen:
                    raise DuplicateKeyError(
                        f'Command added has a name or alias that has already been indexed: "{key}"!',
                        key=key,
                    )
                seen.add(key)

            if target < size:
                for key, pos in self._index.items():
                    if pos >= target:
                        self._index[key] = pos + 1
            for key in keys:
                self._index[key] = target
            self._commands.insert(target, command)
        logger.debug("command_added", command=command.name, position=target)

    def add_group(self, group: CommandGroup) -> None:
        """Append every command provided by ``group``."""
        for command in group.get_commands():
            self.add(command)

    def remove(self, name: str) -> Command:
        """Remove the command owning ``name`` together with all its aliases.

        Raises:
            CommandNotFoundError: ``name`` is not indexed.
        """
        key = name.lower()
        with self._lock:
            if key not in self._index:
                raise CommandNotFoundError(f'Name provided is not indexed: "{name}"!', name=name)
            target = self._index[key]
            for k in [k for k, pos in self._index.items() if pos == target]:
                del self._index[k]
            for k, pos in self._index.items():
                if pos > target:
                    self._index[k] = pos - 1
            command = self._commands.pop(target)
        logger.debug("command_removed", command=command.name, position=target)
        return command

    def lookup(self, name: str) -> Optional[Command]:
        """Case-insensitive index lookup of a name or alias."""
        with self._lock:
            position = self._index.get(name.lower())
            if position is None:
                return None
            return self._commands[position]

    def find(self, name: str) -> Optional[Command]:
        """Resolve ``name`` for dispatch using the scan or the index."""
        with self._lock:
            if len(self._commands) <= self.index_limit:
                for command in self._commands:
                    if command.is_command_for(name):
                        return command
                return None
            return self.lookup(name)

    def position_of(self, name: str) -> Optional[int]:
        with self._lock:
            return self._index.get(name.lower())

    def index_snapshot(self) -> Dict[str, int]:
        """Copy of the name/alias -> position index."""
        with self._lock:
            return dict(self._index)

    @property
    def commands(self) -> Tuple[Command, ...]:
        """Registered commands in order."""
        with self._lock:
            return tuple(self._commands)

    def __len__(self) -> int:
        with self._lock:
            return len(self._commands)

    def __contains__(self, name: str) -> bool:
        return self.position_of(name) is not None
