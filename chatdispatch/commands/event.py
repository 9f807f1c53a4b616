"""Per-invocation context handed to command handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

import structlog

from ..exceptions import TransportError
from ..help import split_message
from ..transport import Channel, Message, MessageContent, MessageEvent, User

if TYPE_CHECKING:
    from ..client import CommandClient

logger = structlog.get_logger("chatdispatch.dispatch")


class CommandEvent:
    """A dispatched command invocation.

    Wraps the inbound MessageEvent together with the parsed argument
    string and the CommandClient, and offers reply helpers that go
    through the client's transport.
    """

    def __init__(self, event: MessageEvent, args: str, client: "CommandClient"):
        self.event = event
        self.args = args
        self.client = client

    @property
    def message(self) -> Message:
        return self.event.message

    @property
    def author(self) -> User:
        return self.event.author

    @property
    def channel(self) -> Channel:
        return self.event.channel

    @property
    def guild_id(self) -> Optional[str]:
        return self.event.guild_id

    @property
    def is_private(self) -> bool:
        return self.event.is_private

    @property
    def self_user(self) -> User:
        return self.client.transport.get_self_user()

    @property
    def is_owner(self) -> bool:
        return self.author.id == self.client.owner_id

    @property
    def is_co_owner(self) -> bool:
        return self.author.id in self.client.co_owner_ids

    async def reply(self, content: MessageContent) -> List[Message]:
        """Send ``content`` to the invoking channel.

        Long text is split into several messages. Replies in guild
        channels are linked to the invoking message for linked deletion.
        """
        transport = self.client.transport
        if isinstance(content, str):
            chunks: List[MessageContent] = list(split_message(content))
        else:
            chunks = [content]
        sent = []
        for chunk in chunks:
            message = await transport.send_message(self.channel, chunk)
            sent.append(message)
            if not self.is_private:
                self.client.link_ids(self.message.id, message)
        return sent

    async def reply_success(self, text: str) -> List[Message]:
        return await self.reply(f"{self.client.success} {text}")

    async def reply_warning(self, text: str) -> List[Message]:
        return await self.reply(f"{self.client.warning} {text}")

    async def reply_error(self, text: str) -> List[Message]:
        return await self.reply(f"{self.client.error} {text}")

    async def reply_in_dm(self, content: str) -> List[Message]:
        """Send ``content`` to the author privately (no linking)."""
        transport = self.client.transport
        channel = self.channel if self.is_private else await transport.open_private_channel(self.author)
        return [await transport.send_message(channel, chunk) for chunk in split_message(content)]

    async def react(self, emoji: str) -> bool:
        """Best-effort reaction on the invoking message."""
        if not emoji:
            return False
        try:
            await self.client.transport.add_reaction(self.message, emoji)
        except TransportError as e:
            logger.debug("react_failed", emoji=emoji, error=str(e))
            return False
        return True

    async def react_success(self) -> bool:
        return await self.react(self.client.success)

    async def react_warning(self) -> bool:
        return await self.react(self.client.warning)

    async def react_error(self) -> bool:
        return await self.react(self.client.error)
