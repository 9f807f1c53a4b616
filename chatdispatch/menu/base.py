"""Shared base for reaction-driven menus."""

from typing import AbstractSet, FrozenSet, Iterable, Optional

from ..transport import ReactionEvent, Transport
from ..waiter import EventWaiter


class Menu:
    """Common state for interactive menus.

    Args:
        waiter: EventWaiter the menu arms its waits on.
        transport: Chat transport used to render.
        users: Ids of users allowed to interact.
        roles: Ids of roles whose members may interact.
        timeout: Seconds a single wait stays armed.

    With no users and no roles, anyone (but bots) may interact.
    """

    def __init__(
        self,
        waiter: EventWaiter,
        transport: Transport,
        users: Optional[Iterable[str]] = None,
        roles: Optional[Iterable[str]] = None,
        timeout: float = 60.0,
    ):
        self.waiter = waiter
        self.transport = transport
        self.users: FrozenSet[str] = frozenset(users or ())
        self.roles: FrozenSet[str] = frozenset(roles or ())
        self.timeout = timeout

    def is_valid_user(self, event: ReactionEvent) -> bool:
        return is_authorized(event, self.users, self.roles)


def is_authorized(event: ReactionEvent, users: AbstractSet[str], roles: AbstractSet[str]) -> bool:
    """Authorization rule shared by all menus."""
    if event.user.bot:
        return False
    if not users and not roles:
        return True
    if event.user.id in users:
        return True
    if event.guild_id is None:
        return False
    return any(role in roles for role in event.member_roles)
