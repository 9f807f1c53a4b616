"""Base classes for the command framework.

Defines the command model and the hooks around its execution. Commands
are immutable once built; handler groups extend CommandGroup and return
their commands from get_commands(), which CommandRegistry.add_group()
registers in order.

Key classes:
    Command: Name, aliases, metadata and the async handler.
    Category: Help grouping with an optional gating predicate.
    CooldownScope: How a command's cooldown key is derived.
    CommandListener: Optional hooks notified around dispatch.
    CommandGroup: ABC that handler groups implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Tuple

import structlog

if TYPE_CHECKING:
    from ..transport import MessageEvent
    from .event import CommandEvent

logger = structlog.get_logger("chatdispatch.dispatch")

CommandHandler = Callable[["CommandEvent"], Awaitable[None]]


class CooldownScope(str, Enum):
    """Scope a command's cooldown applies to.

    Guild scopes fall back to their channel equivalents in DMs.
    """
    GLOBAL = "global"
    USER = "user"
    CHANNEL = "channel"
    GUILD = "guild"
    USER_CHANNEL = "user_channel"
    USER_GUILD = "user_guild"


@dataclass(frozen=True)
class Category:
    """A help grouping, optionally gating the commands in it.

    Attributes:
        name: Heading shown in the help document.
        predicate: Sync check run before any command in the category.
        failure_response: Reply sent when the predicate rejects.
    """
    name: str
    predicate: Optional[Callable[["CommandEvent"], bool]] = field(default=None, compare=False)
    failure_response: Optional[str] = None

    def test(self, event: "CommandEvent") -> bool:
        return self.predicate is None or self.predicate(event)


@dataclass(frozen=True)
class Command:
    """A registered chat command.

    Attributes:
        name: Canonical name, unique across the registry.
        handler: Async callable receiving the CommandEvent.
        help: One-line description for the help document.
        aliases: Alternative names, unique across the registry.
        category: Help grouping (None = "No Category").
        arguments: Argument synopsis shown in help, e.g. "<query>".
        owner_only: Only the owner and co-owners may run it.
        guild_only: Refuse to run in direct messages.
        cooldown: Seconds between uses (0 = no cooldown).
        cooldown_scope: What the cooldown is keyed on.
        hidden: Leave out of the help document.
    """
    name: str
    handler: CommandHandler = field(compare=False)
    help: str = "no help available"
    aliases: Tuple[str, ...] = ()
    category: Optional[Category] = None
    arguments: Optional[str] = None
    owner_only: bool = False
    guild_only: bool = True
    cooldown: int = 0
    cooldown_scope: CooldownScope = CooldownScope.USER
    hidden: bool = False

    def __post_init__(self):
        if not self.name or any(c.isspace() for c in self.name):
            raise ValueError(f"Invalid command name: {self.name!r}")
        object.__setattr__(self, "aliases", tuple(self.aliases))

    @property
    def keys(self) -> Tuple[str, ...]:
        """Lowercased name followed by lowercased aliases."""
        return (self.name.lower(),) + tuple(a.lower() for a in self.aliases)

    def is_command_for(self, name: str) -> bool:
        """Case-insensitive match on the name or any alias.

        Used by the linear-scan dispatch path; subclasses may widen it.
        """
        lowered = name.lower()
        return lowered == self.name.lower() or any(lowered == a.lower() for a in self.aliases)

    def cooldown_key(self, event: "CommandEvent") -> str:
        """Derive the cooldown key for this invocation."""
        user_id = event.author.id
        channel_id = event.channel.id
        guild_id = event.guild_id
        scope = self.cooldown_scope
        if scope == CooldownScope.GUILD and guild_id is None:
            scope = CooldownScope.CHANNEL
        elif scope == CooldownScope.USER_GUILD and guild_id is None:
            scope = CooldownScope.USER_CHANNEL

        if scope == CooldownScope.USER:
            return f"{self.name}|U:{user_id}"
        if scope == CooldownScope.CHANNEL:
            return f"{self.name}|C:{channel_id}"
        if scope == CooldownScope.GUILD:
            return f"{self.name}|G:{guild_id}"
        if scope == CooldownScope.USER_CHANNEL:
            return f"{self.name}|U:{user_id}|C:{channel_id}"
        if scope == CooldownScope.USER_GUILD:
            return f"{self.name}|U:{user_id}|G:{guild_id}"
        return f"{self.name}|globally"

    async def run(self, event: "CommandEvent") -> bool:
        """Apply the command's own policy checks, then run the handler.

        Checks, in order: category predicate, owner-only, guild-only,
        cooldown. A failed check replies (if there is something to say)
        and notifies the listener's on_terminated_command.

        Returns:
            True if the handler ran.
        """
        client = event.client
        if self.category is not None and not self.category.test(event):
            await self._terminate(event, self.category.failure_response)
            return False
        if self.owner_only and not (event.is_owner or event.is_co_owner):
            await self._terminate(event, None)
            return False
        if self.guild_only and event.is_private:
            await self._terminate(
                event, f"{client.error} This command cannot be used in Direct messages"
            )
            return False
        if self.cooldown > 0:
            key = self.cooldown_key(event)
            remaining = client.get_remaining_cooldown(key)
            if remaining > 0:
                await self._terminate(
                    event,
                    f"{client.warning} That command is on cooldown for "
                    f"{remaining} more seconds!",
                )
                return False
            client.apply_cooldown(key, self.cooldown)

        await self.handler(event)
        await client.notify_listener("on_completed_command", event, self)
        return True

    async def _terminate(self, event: "CommandEvent", reply: Optional[str]) -> None:
        logger.debug("command_terminated", command=self.name, has_reply=reply is not None)
        if reply:
            await event.reply(reply)
        await event.client.notify_listener("on_terminated_command", event, self)


class CommandListener:
    """Hooks notified around dispatch. Override what you need.

    Hooks may be sync or async. Failures are logged by the client and
    never interrupt dispatch.
    """

    async def on_command(self, event: "CommandEvent", command: Optional[Command]) -> None:
        """Called before a command (or help, with ``command=None``) runs."""

    async def on_completed_command(self, event: "CommandEvent", command: Optional[Command]) -> None:
        """Called after a command's handler returned."""

    async def on_terminated_command(self, event: "CommandEvent", command: Optional[Command]) -> None:
        """Called when a command (or help, with ``command=None``) refused to run."""

    async def on_command_exception(
        self, event: "CommandEvent", command: Command, error: Exception
    ) -> None:
        """Called when a command's handler raised."""

    async def on_non_command_message(self, event: "MessageEvent") -> None:
        """Called for every message that did not dispatch a command."""


class CommandGroup(ABC):
    """Abstract base class for command handler groups.

    Subclasses implement get_commands() to return the Command objects
    they provide, in the order they should appear in help.
    """

    @abstractmethod
    def get_commands(self) -> List[Command]:
        """Return the commands this group provides."""
        ...
