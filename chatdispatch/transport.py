"""Chat transport interface and the entities it exchanges with the core.

The transport is an external collaborator: it delivers inbound events
(messages, reaction adds, message deletes) and performs the primitive
side effects (send, edit, delete, react). The core only depends on the
dataclasses and the Transport ABC defined here.

Transport implementations signal failures by raising
PermissionDeniedError or DeliveryError from chatdispatch.exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Union


@dataclass(frozen=True)
class User:
    """A chat user (or bot account)."""
    id: str
    name: str
    discriminator: str = "0000"
    bot: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class Role:
    """A guild role."""
    id: str
    name: str = ""


@dataclass(frozen=True)
class Channel:
    """A message channel as seen by the bot.

    Attributes:
        private: True for direct-message channels.
        can_talk: Whether the bot may send messages here.
        can_manage_messages: Whether the bot may bulk delete here.
    """
    id: str
    private: bool = False
    can_talk: bool = True
    can_manage_messages: bool = False


@dataclass(frozen=True)
class Embed:
    """Rich embed attached to a message."""
    color: Optional[int] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    footer: Optional[str] = None


@dataclass(frozen=True)
class OutgoingMessage:
    """Content of a message about to be sent or edited in."""
    content: str = ""
    embed: Optional[Embed] = None


@dataclass(frozen=True)
class Message:
    """A message that exists on the chat service."""
    id: str
    channel: Channel
    content: str = ""
    author: Optional[User] = None
    guild_id: Optional[str] = None
    embed: Optional[Embed] = None


@dataclass(frozen=True)
class MessageEvent:
    """Inbound message-received event.

    Attributes:
        member_roles: Role ids of the author in the guild (empty in DMs).
    """
    message: Message
    guild_id: Optional[str] = None
    member_roles: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def author(self) -> User:
        return self.message.author

    @property
    def channel(self) -> Channel:
        return self.message.channel

    @property
    def content(self) -> str:
        return self.message.content

    @property
    def is_private(self) -> bool:
        return self.message.channel.private


@dataclass(frozen=True)
class ReactionEvent:
    """Inbound reaction-add event."""
    message_id: str
    emoji: str
    user: User
    channel: Channel
    guild_id: Optional[str] = None
    member_roles: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class MessageDeleteEvent:
    """Inbound message-deleted event."""
    message_id: str
    channel: Channel
    guild_id: Optional[str] = None


MessageContent = Union[str, OutgoingMessage]


class Transport(ABC):
    """Primitive asynchronous operations offered by the chat service."""

    @abstractmethod
    async def send_message(self, channel: Channel, content: MessageContent) -> Message:
        """Send a new message and return it."""
        ...

    @abstractmethod
    async def edit_message(self, message: Message, content: MessageContent) -> Message:
        """Replace the content of an existing message and return it."""
        ...

    @abstractmethod
    async def add_reaction(self, message: Message, emoji: str) -> None:
        ...

    @abstractmethod
    async def remove_reaction(self, channel: Channel, message_id: str, emoji: str, user: User) -> None:
        ...

    @abstractmethod
    async def delete_message(self, message: Message) -> None:
        ...

    @abstractmethod
    async def delete_messages(self, channel: Channel, messages: Iterable[Message]) -> None:
        """Bulk delete; requires the manage-messages capability."""
        ...

    @abstractmethod
    async def open_private_channel(self, user: User) -> Channel:
        ...

    @abstractmethod
    def get_self_user(self) -> User:
        """The bot's own account."""
        ...

    def get_user(self, user_id: str) -> Optional[User]:
        """Look up a cached user by id."""
        return None

    async def set_presence(self, activity: Optional[str]) -> None:
        """Set the bot's status/activity text."""
        return None


def to_outgoing(content: MessageContent) -> OutgoingMessage:
    """Normalize plain text into an OutgoingMessage."""
    if isinstance(content, OutgoingMessage):
        return content
    return OutgoingMessage(content=content)
