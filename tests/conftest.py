"""Shared fixtures: an in-memory transport and event builders."""

import itertools
from typing import Dict, Iterable, List, Optional

import pytest

from chatdispatch.exceptions import DeliveryError, PermissionDeniedError
from chatdispatch.transport import (
    Channel,
    Message,
    MessageContent,
    MessageEvent,
    ReactionEvent,
    Transport,
    User,
    to_outgoing,
)

BOT = User(id="1000", name="Botty", bot=True)
OWNER = User(id="42", name="Owner", discriminator="0001")
ALICE = User(id="7", name="alice")
GUILD_CHANNEL = Channel(id="500")
DM_CHANNEL = Channel(id="600", private=True)


class FakeTransport(Transport):
    """Records every side effect; failures can be switched on per operation."""

    def __init__(self):
        self._ids = itertools.count(9000)
        self.sent: List[Message] = []
        self.edits: List[Message] = []
        self.reactions: List[tuple] = []
        self.removed_reactions: List[tuple] = []
        self.deleted: List[str] = []
        self.bulk_deleted: List[List[str]] = []
        self.presence: Optional[str] = None
        self.users: Dict[str, User] = {OWNER.id: OWNER}
        self.fail_open_dm = False
        self.fail_dm_send = False
        self.fail_remove_reaction = False
        self.fail_add_reaction = False
        self.fail_edit = False

    async def send_message(self, channel: Channel, content: MessageContent) -> Message:
        if channel.private and self.fail_dm_send:
            raise DeliveryError("Cannot send messages to this user")
        out = to_outgoing(content)
        message = Message(
            id=str(next(self._ids)),
            channel=channel,
            content=out.content,
            author=BOT,
            embed=out.embed,
        )
        self.sent.append(message)
        return message

    async def edit_message(self, message: Message, content: MessageContent) -> Message:
        if self.fail_edit:
            raise DeliveryError("Unknown Message")
        out = to_outgoing(content)
        edited = Message(
            id=message.id,
            channel=message.channel,
            content=out.content,
            author=message.author,
            guild_id=message.guild_id,
            embed=out.embed,
        )
        self.edits.append(edited)
        return edited

    async def add_reaction(self, message: Message, emoji: str) -> None:
        if self.fail_add_reaction:
            raise PermissionDeniedError("Missing ADD_REACTIONS", permission="ADD_REACTIONS")
        self.reactions.append((message.id, emoji))

    async def remove_reaction(self, channel: Channel, message_id: str, emoji: str, user: User) -> None:
        if self.fail_remove_reaction:
            raise PermissionDeniedError("Missing MANAGE_MESSAGES", permission="MANAGE_MESSAGES")
        self.removed_reactions.append((message_id, emoji, user.id))

    async def delete_message(self, message: Message) -> None:
        self.deleted.append(message.id)

    async def delete_messages(self, channel: Channel, messages: Iterable[Message]) -> None:
        self.bulk_deleted.append(sorted(m.id for m in messages))

    async def open_private_channel(self, user: User) -> Channel:
        if self.fail_open_dm:
            raise DeliveryError("Cannot open DM")
        return Channel(id=f"dm-{user.id}", private=True)

    def get_self_user(self) -> User:
        return BOT

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    async def set_presence(self, activity: Optional[str]) -> None:
        self.presence = activity


def make_message_event(
    content: str,
    author: User = ALICE,
    channel: Channel = GUILD_CHANNEL,
    guild_id: Optional[str] = "300",
    message_id: str = "1",
) -> MessageEvent:
    if channel.private:
        guild_id = None
    message = Message(id=message_id, channel=channel, content=content, author=author, guild_id=guild_id)
    return MessageEvent(message=message, guild_id=guild_id)


def make_reaction(
    message: Message,
    emoji: str,
    user: User = ALICE,
    roles: Iterable[str] = (),
    guild_id: Optional[str] = "300",
) -> ReactionEvent:
    return ReactionEvent(
        message_id=message.id,
        emoji=emoji,
        user=user,
        channel=message.channel,
        guild_id=guild_id,
        member_roles=frozenset(roles),
    )


@pytest.fixture
def transport():
    return FakeTransport()
