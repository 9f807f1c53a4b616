"""Reaction-paged slideshow of images.

A Slideshow is the reusable menu definition (pages, resolvers, who may
use it). Each display creates a SlideshowSession, an explicit state
machine with exactly one armed wait at a time:

    RENDERING -> ARMED -> RENDERING (navigated) -> ARMED -> ...
                       -> STOPPED | TIMED_OUT | FAILED

Every session ends by calling the final action exactly once with the
last message it rendered.
"""

import asyncio
import inspect
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import structlog

from ..exceptions import TransportError
from ..models import MenuSettings
from ..transport import Channel, Embed, Message, OutgoingMessage, ReactionEvent
from ..waiter import EventWaiter, WaitRegistration
from .base import Menu

logger = structlog.get_logger("chatdispatch.menu")

LEFT = "\u25C0"
STOP = "\u23F9"
RIGHT = "\u25B6"
NAVIGATION_EMOJI = (LEFT, STOP, RIGHT)

FinalAction = Callable[[Message], Union[None, Awaitable[None]]]


class SessionState(str, Enum):
    """Lifecycle of a SlideshowSession."""
    RENDERING = "rendering"
    ARMED = "armed"
    STOPPED = "stopped"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.STOPPED, SessionState.TIMED_OUT, SessionState.FAILED})


def clamp_page(page: int, total: int) -> int:
    return max(1, min(total, page))


class Slideshow(Menu):
    """Paged image viewer navigated with ◀ ⏹ ▶ reactions.

    Args:
        waiter: EventWaiter receiving reaction events.
        transport: Chat transport.
        urls: One image url per page.
        users: Ids of users allowed to navigate.
        roles: Ids of roles allowed to navigate.
        timeout: Seconds each wait stays armed; reset on every page turn.
        color: ``(page, total) -> int`` embed color.
        text: ``(page, total) -> str`` message text above the embed.
        description: ``(page, total) -> str`` embed description.
        final_action: Called once with the message when the session ends.
        show_page_numbers: Add an "Image X/N" footer.
        wait_on_single_page: Arm a stop-only wait for one-page slideshows.
    """

    def __init__(
        self,
        waiter: EventWaiter,
        transport,
        urls: Sequence[str],
        *,
        users=None,
        roles=None,
        timeout: float = 60.0,
        color: Optional[Callable[[int, int], Optional[int]]] = None,
        text: Optional[Callable[[int, int], str]] = None,
        description: Optional[Callable[[int, int], str]] = None,
        final_action: Optional[FinalAction] = None,
        show_page_numbers: bool = True,
        wait_on_single_page: bool = False,
    ):
        if not urls:
            raise ValueError("A slideshow needs at least one page")
        super().__init__(waiter, transport, users=users, roles=roles, timeout=timeout)
        self.urls: List[str] = list(urls)
        self.color = color
        self.text = text
        self.description = description
        self.final_action = final_action
        self.show_page_numbers = show_page_numbers
        self.wait_on_single_page = wait_on_single_page

    @classmethod
    def from_settings(
        cls, waiter: EventWaiter, transport, urls: Sequence[str], settings: MenuSettings, **kwargs
    ) -> "Slideshow":
        """Build a slideshow with defaults taken from MenuSettings."""
        kwargs.setdefault("timeout", settings.timeout_seconds)
        kwargs.setdefault("show_page_numbers", settings.show_page_numbers)
        kwargs.setdefault("wait_on_single_page", settings.wait_on_single_page)
        return cls(waiter, transport, urls, **kwargs)

    @property
    def total_pages(self) -> int:
        return len(self.urls)

    def render_page(self, page: int) -> OutgoingMessage:
        total = self.total_pages
        embed = Embed(
            color=self.color(page, total) if self.color else None,
            image_url=self.urls[page - 1],
            description=self.description(page, total) if self.description else None,
            footer=f"Image {page}/{total}" if self.show_page_numbers else None,
        )
        content = self.text(page, total) if self.text else ""
        return OutgoingMessage(content=content or "", embed=embed)

    async def display(self, channel: Channel) -> "SlideshowSession":
        """Show page 1 as a new message in ``channel``."""
        return await self.paginate(channel, 1)

    async def display_in(self, message: Message) -> "SlideshowSession":
        """Show page 1 by editing ``message``."""
        return await self.paginate_in(message, 1)

    async def paginate(self, channel: Channel, page: int) -> "SlideshowSession":
        """Show ``page`` (clamped) as a new message in ``channel``."""
        session = SlideshowSession(self, page)
        await session.start(lambda content: self.transport.send_message(channel, content))
        return session

    async def paginate_in(self, message: Message, page: int) -> "SlideshowSession":
        """Show ``page`` (clamped) by editing ``message``."""
        session = SlideshowSession(self, page)
        await session.start(lambda content: self.transport.edit_message(message, content))
        return session


class SlideshowSession:
    """One live slideshow on one message."""

    def __init__(self, slideshow: Slideshow, page: int):
        self.slideshow = slideshow
        self.page = clamp_page(page, slideshow.total_pages)
        self.state = SessionState.RENDERING
        self.message: Optional[Message] = None
        self._registration: Optional[WaitRegistration] = None
        self._closed = asyncio.Event()

    @property
    def total_pages(self) -> int:
        return self.slideshow.total_pages

    @property
    def closed(self) -> bool:
        return self.state in TERMINAL_STATES

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def start(self, render: Callable[[OutgoingMessage], Awaitable[Message]]) -> None:
        """Render the first page, then attach reactions and arm.

        A failed first render leaves the session FAILED and re-raises;
        there is no message to hand to the final action.
        """
        try:
            message = await render(self.slideshow.render_page(self.page))
        except Exception:
            self.state = SessionState.FAILED
            self._closed.set()
            raise
        self.message = message
        await self._initialize()

    async def _initialize(self) -> None:
        if self.total_pages > 1:
            for emoji in NAVIGATION_EMOJI:
                await self._add_reaction(emoji)
            self._arm()
        elif self.slideshow.wait_on_single_page:
            await self._add_reaction(STOP)
            self._arm()
        else:
            await self._finish(SessionState.STOPPED)

    async def _add_reaction(self, emoji: str) -> None:
        try:
            await self.slideshow.transport.add_reaction(self.message, emoji)
        except TransportError as e:
            logger.debug("slideshow_reaction_add_failed", emoji=emoji, error=str(e))

    def _arm(self) -> None:
        self.state = SessionState.ARMED
        self._registration = self.slideshow.waiter.wait_for_event(
            ReactionEvent,
            self._accepts,
            self._on_reaction,
            timeout=self.slideshow.timeout,
            timeout_action=self._on_timeout,
        )

    def _accepts(self, event: ReactionEvent) -> bool:
        if self.message is None or event.message_id != self.message.id:
            return False
        if event.emoji not in NAVIGATION_EMOJI:
            return False
        return self.slideshow.is_valid_user(event)

    async def _on_reaction(self, event: ReactionEvent) -> None:
        if event.emoji == STOP:
            await self._finish(SessionState.STOPPED)
            return

        if event.emoji == LEFT:
            new_page = max(1, self.page - 1)
        else:
            new_page = min(self.total_pages, self.page + 1)
        self.state = SessionState.RENDERING

        try:
            await self.slideshow.transport.remove_reaction(
                event.channel, event.message_id, event.emoji, event.user
            )
        except TransportError as e:
            logger.debug("slideshow_reaction_remove_failed", error=str(e))

        try:
            content = self.slideshow.render_page(new_page)
            edited = await self.slideshow.transport.edit_message(self.message, content)
        except Exception as e:
            logger.warning(
                "slideshow_render_failed", page=new_page, error=str(e), exc_type=type(e).__name__
            )
            await self._finish(SessionState.FAILED)
            return
        if self.closed:
            # stopped while the edit was in flight
            return
        self.message = edited
        self.page = new_page
        logger.debug("slideshow_page_changed", message_id=self.message.id, page=new_page)
        self._arm()

    async def _on_timeout(self) -> None:
        await self._finish(SessionState.TIMED_OUT)

    async def stop(self) -> None:
        """End the session from outside, as if ⏹ had been pressed."""
        if self._registration is not None:
            self._registration.cancel()
        await self._finish(SessionState.STOPPED)

    async def _finish(self, state: SessionState) -> None:
        if self.closed:
            return
        self.state = state
        self._closed.set()
        logger.debug("slideshow_closed", state=state.value, page=self.page)
        final_action = self.slideshow.final_action
        if final_action is None or self.message is None:
            return
        try:
            result = final_action(self.message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("slideshow_final_action_failed", error=str(e), exc_type=type(e).__name__)
