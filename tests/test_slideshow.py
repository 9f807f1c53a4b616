"""Tests for the reaction-paged slideshow."""

import asyncio

import pytest

from chatdispatch.exceptions import DeliveryError
from chatdispatch.menu import LEFT, RIGHT, STOP, SessionState, Slideshow, is_authorized
from chatdispatch.menu.slideshow import clamp_page
from chatdispatch.models import MenuSettings
from chatdispatch.transport import Message, User
from chatdispatch.waiter import EventWaiter

from conftest import ALICE, BOT, GUILD_CHANNEL, OWNER, make_reaction

URLS = [f"https://img.example/{i}.png" for i in range(1, 6)]


def _slideshow(transport, waiter, urls=URLS, **kwargs):
    finals = []
    kwargs.setdefault("timeout", 5)
    show = Slideshow(waiter, transport, urls, final_action=finals.append, **kwargs)
    return show, finals


@pytest.mark.parametrize("page,expected", [(-3, 1), (0, 1), (1, 1), (3, 3), (5, 5), (9, 5)])
def test_clamp_page(page, expected):
    assert clamp_page(page, 5) == expected


def test_empty_slideshow_rejected(transport):
    with pytest.raises(ValueError):
        Slideshow(EventWaiter(), transport, [])


def test_render_page_footer_and_image(transport):
    show = Slideshow(
        EventWaiter(), transport, URLS, color=lambda p, t: 0xFF0000, text=lambda p, t: f"page {p}"
    )
    out = show.render_page(2)
    assert out.content == "page 2"
    assert out.embed.image_url == URLS[1]
    assert out.embed.footer == "Image 2/5"
    assert out.embed.color == 0xFF0000


def test_render_page_without_numbers(transport):
    show = Slideshow(EventWaiter(), transport, URLS, show_page_numbers=False)
    assert show.render_page(1).embed.footer is None


@pytest.mark.asyncio
async def test_five_page_navigate_then_timeout(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter, timeout=0.05)

    session = await show.paginate(GUILD_CHANNEL, 3)
    message = session.message
    assert message.embed.footer == "Image 3/5"
    assert [e for _, e in transport.reactions] == [LEFT, STOP, RIGHT]
    assert session.state == SessionState.ARMED

    assert await waiter.on_event(make_reaction(message, RIGHT)) == 1
    assert session.page == 4
    assert transport.edits[-1].embed.footer == "Image 4/5"
    assert transport.removed_reactions == [(message.id, RIGHT, ALICE.id)]

    await asyncio.wait_for(session.wait_closed(), timeout=1)
    assert session.state == SessionState.TIMED_OUT
    assert len(finals) == 1
    assert finals[0].embed.footer == "Image 4/5"


@pytest.mark.asyncio
async def test_out_of_range_page_is_clamped(transport):
    show, _ = _slideshow(transport, EventWaiter())
    session = await show.paginate(GUILD_CHANNEL, 42)
    assert session.page == 5
    assert session.message.embed.footer == "Image 5/5"
    await session.stop()


@pytest.mark.asyncio
async def test_left_on_first_page_stays_put(transport):
    waiter = EventWaiter()
    show, _ = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)
    await waiter.on_event(make_reaction(session.message, LEFT))
    assert session.page == 1
    assert session.state == SessionState.ARMED
    await session.stop()


@pytest.mark.asyncio
async def test_stop_reaction_ends_session(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)

    await waiter.on_event(make_reaction(session.message, STOP))
    assert session.state == SessionState.STOPPED
    assert len(finals) == 1
    assert waiter.pending() == 0

    # later reactions are ignored
    assert await waiter.on_event(make_reaction(session.message, RIGHT)) == 0
    assert len(finals) == 1


@pytest.mark.asyncio
async def test_single_page_finishes_immediately(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter, urls=URLS[:1])
    session = await show.display(GUILD_CHANNEL)

    assert session.state == SessionState.STOPPED
    assert transport.reactions == []
    assert len(finals) == 1
    assert waiter.pending() == 0


@pytest.mark.asyncio
async def test_single_page_waits_when_configured(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter, urls=URLS[:1], wait_on_single_page=True)
    session = await show.display(GUILD_CHANNEL)

    assert [e for _, e in transport.reactions] == [STOP]
    assert session.state == SessionState.ARMED
    await waiter.on_event(make_reaction(session.message, STOP))
    assert session.state == SessionState.STOPPED
    assert len(finals) == 1


@pytest.mark.asyncio
async def test_unauthorized_user_is_ignored(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter, users=[OWNER.id])
    session = await show.display(GUILD_CHANNEL)

    assert await waiter.on_event(make_reaction(session.message, RIGHT, user=ALICE)) == 0
    assert session.page == 1
    assert await waiter.on_event(make_reaction(session.message, RIGHT, user=OWNER)) == 1
    assert session.page == 2
    await session.stop()
    assert len(finals) == 1


@pytest.mark.asyncio
async def test_reaction_on_other_message_is_ignored(transport):
    waiter = EventWaiter()
    show, _ = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)
    other = await transport.send_message(GUILD_CHANNEL, "unrelated")

    assert await waiter.on_event(make_reaction(other, RIGHT)) == 0
    assert await waiter.on_event(make_reaction(session.message, "\U0001F600")) == 0
    assert session.page == 1
    await session.stop()


@pytest.mark.asyncio
async def test_remove_reaction_failure_is_swallowed(transport):
    transport.fail_remove_reaction = True
    waiter = EventWaiter()
    show, _ = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)

    await waiter.on_event(make_reaction(session.message, RIGHT))
    assert session.page == 2
    assert session.state == SessionState.ARMED
    await session.stop()


@pytest.mark.asyncio
async def test_edit_failure_marks_session_failed(transport):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)
    transport.fail_edit = True

    await waiter.on_event(make_reaction(session.message, RIGHT))
    assert session.state == SessionState.FAILED
    assert session.page == 1
    assert len(finals) == 1
    assert waiter.pending() == 0


@pytest.mark.asyncio
async def test_initial_render_failure_raises(transport):
    transport.fail_edit = True
    show, finals = _slideshow(transport, EventWaiter())
    target = await transport.send_message(GUILD_CHANNEL, "loading")

    with pytest.raises(DeliveryError):
        await show.display_in(target)
    assert finals == []


@pytest.mark.asyncio
async def test_display_in_edits_existing_message(transport):
    show, _ = _slideshow(transport, EventWaiter())
    target = await transport.send_message(GUILD_CHANNEL, "loading")
    session = await show.display_in(target)
    assert session.message.id == target.id
    assert transport.edits[0].embed.footer == "Image 1/5"
    await session.stop()


@pytest.mark.asyncio
async def test_add_reaction_failure_still_arms(transport):
    transport.fail_add_reaction = True
    waiter = EventWaiter()
    show, _ = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)
    assert session.state == SessionState.ARMED
    await session.stop()


@pytest.mark.asyncio
async def test_final_action_failure_is_contained(transport):
    def explode(message):
        raise RuntimeError("boom")

    show = Slideshow(EventWaiter(), transport, URLS[:1], final_action=explode)
    session = await show.display(GUILD_CHANNEL)
    assert session.state == SessionState.STOPPED


def test_from_settings_uses_menu_defaults(transport):
    settings = MenuSettings(timeout_seconds=12, show_page_numbers=False, wait_on_single_page=True)
    show = Slideshow.from_settings(EventWaiter(), transport, URLS, settings)
    assert show.timeout == 12
    assert show.show_page_numbers is False
    assert show.wait_on_single_page is True


def test_authorization_rules():
    bob = User(id="9", name="bob")
    reaction = make_reaction_for(bob, roles=("r1",))
    assert is_authorized(reaction, frozenset(), frozenset())
    assert is_authorized(reaction, frozenset({"9"}), frozenset())
    assert is_authorized(reaction, frozenset(), frozenset({"r1"}))
    assert not is_authorized(reaction, frozenset({"1"}), frozenset({"r2"}))

    dm = make_reaction_for(bob, roles=("r1",), guild_id=None)
    assert not is_authorized(dm, frozenset(), frozenset({"r1"}))

    bot = make_reaction_for(BOT)
    assert not is_authorized(bot, frozenset(), frozenset())


def make_reaction_for(user, roles=(), guild_id="300"):
    message = Message(id="1", channel=GUILD_CHANNEL, content="", author=BOT)
    return make_reaction(message, RIGHT, user=user, roles=roles, guild_id=guild_id)


@pytest.mark.asyncio
async def test_resolver_error_during_navigation_fails_session(transport):
    def color(page, total):
        if page == 2:
            raise RuntimeError("no color for page 2")
        return 0x00FF00

    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter, urls=URLS[:3], color=color, timeout=0.05)
    session = await show.display(GUILD_CHANNEL)

    await waiter.on_event(make_reaction(session.message, RIGHT))
    await asyncio.sleep(0.08)

    assert session.state == SessionState.FAILED
    assert session.page == 1
    assert len(finals) == 1
    assert waiter.pending() == 0


@pytest.mark.asyncio
async def test_resolver_error_on_first_render_raises(transport):
    def text(page, total):
        raise RuntimeError("broken resolver")

    show, finals = _slideshow(transport, EventWaiter(), text=text)
    with pytest.raises(RuntimeError):
        await show.display(GUILD_CHANNEL)
    assert finals == []


@pytest.mark.asyncio
async def test_stop_during_page_edit_does_not_rearm(transport, monkeypatch):
    waiter = EventWaiter()
    show, finals = _slideshow(transport, waiter)
    session = await show.display(GUILD_CHANNEL)
    original_edit = transport.edit_message

    async def edit_and_stop(message, content):
        await session.stop()
        return await original_edit(message, content)

    monkeypatch.setattr(transport, "edit_message", edit_and_stop)
    await waiter.on_event(make_reaction(session.message, RIGHT))

    assert session.state == SessionState.STOPPED
    assert session.page == 1
    assert waiter.pending() == 0
    assert len(finals) == 1
