"""Reaction-driven interactive menus."""

from .base import Menu, is_authorized
from .slideshow import LEFT, RIGHT, STOP, SessionState, Slideshow, SlideshowSession

__all__ = [
    "LEFT",
    "Menu",
    "RIGHT",
    "STOP",
    "SessionState",
    "Slideshow",
    "SlideshowSession",
    "is_authorized",
]
