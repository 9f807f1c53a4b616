"""chatdispatch: command dispatch and reaction menus for chat bots."""

from .client import CommandClient
from .commands import (
    Category,
    Command,
    CommandEvent,
    CommandGroup,
    CommandListener,
    CommandRegistry,
    CooldownScope,
)
from .cooldowns import CooldownTracker
from .menu import LEFT, RIGHT, STOP, Slideshow, SlideshowSession
from .models import ClientSettings, MenuSettings
from .scheduler import ScheduledTaskRegistry
from .waiter import EventWaiter

__version__ = "1.0.0"

__all__ = [
    "Category",
    "ClientSettings",
    "Command",
    "CommandClient",
    "CommandEvent",
    "CommandGroup",
    "CommandListener",
    "CommandRegistry",
    "CooldownScope",
    "CooldownTracker",
    "EventWaiter",
    "LEFT",
    "MenuSettings",
    "RIGHT",
    "STOP",
    "ScheduledTaskRegistry",
    "Slideshow",
    "SlideshowSession",
]
