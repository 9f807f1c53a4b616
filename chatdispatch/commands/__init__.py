"""Command framework for chatdispatch.

Provides the Command model, the CommandEvent passed to handlers, the
CommandListener hooks, the CommandGroup ABC and the CommandRegistry.
"""

from .base import Category, Command, CommandGroup, CommandListener, CooldownScope
from .event import CommandEvent
from .registry import DEFAULT_INDEX_LIMIT, CommandRegistry

__all__ = [
    "Category",
    "Command",
    "CommandEvent",
    "CommandGroup",
    "CommandListener",
    "CommandRegistry",
    "CooldownScope",
    "DEFAULT_INDEX_LIMIT",
]
