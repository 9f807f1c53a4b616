"""Command client: routes inbound chat messages to registered commands.

CommandClient is the listener the transport feeds events into. For each
inbound message it resolves the prefix (configured text or a mention of
the bot), splits out the command name and arguments, and either sends
the help document by DM or resolves and runs a command. It also owns
the in-memory registries commands rely on: cooldowns, usage counters,
scheduled tasks and the linked-deletion cache.

Key classes:
    CommandClient: Dispatcher plus the shared command-side registries.
"""

import inspect
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple, Union

import structlog

from .commands.base import Command, CommandListener
from .commands.event import CommandEvent
from .commands.registry import CommandRegistry
from .cooldowns import CooldownTracker
from .exceptions import TransportError
from .help import build_help, split_message
from .linked import LinkedMessageCache
from .models import ClientSettings, is_safe_id
from .scheduler import Action, ScheduledTask, ScheduledTaskRegistry
from .stats import BotListStatsReporter, ShardInfo
from .transport import Message, MessageDeleteEvent, MessageEvent, Transport
from .usage import UsageCounter

logger = structlog.get_logger("chatdispatch.dispatch")

HelpFunction = Callable[[CommandEvent], str]

# Guild joins older than this are reconnect replays, not new joins
GUILD_JOIN_WINDOW = timedelta(minutes=10)


class CommandClient:
    """Dispatcher for prefix commands.

    Args:
        transport: Chat transport used for every side effect.
        settings: Validated client settings.
        commands: Commands to register, in help order.
        listener: Optional hooks notified around dispatch.
        help_function: Builds the help document for an invocation.
        stats_reporter: Bot list reporter; built from the settings'
            API keys when omitted.
        clock: Time source for cooldowns (Unix seconds).
    """

    def __init__(
        self,
        transport: Transport,
        settings: ClientSettings,
        commands: Iterable[Command] = (),
        listener: Optional[CommandListener] = None,
        help_function: Optional[HelpFunction] = None,
        stats_reporter: Optional[BotListStatsReporter] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not is_safe_id(settings.owner_id):
            logger.warning(
                "unsafe_owner_id",
                owner_id=settings.owner_id,
                msg="Make sure the id is a non-negative long",
            )
        for co_owner in settings.co_owner_ids:
            if not is_safe_id(co_owner):
                logger.warning(
                    "unsafe_co_owner_id",
                    co_owner_id=co_owner,
                    msg="Make sure the id is a non-negative long",
                )

        self.transport = transport
        self.settings = settings
        self.listener = listener
        self.help_function: HelpFunction = help_function or build_help
        self.start_time = datetime.now(timezone.utc)
        self.textual_prefix = settings.prefix or ""
        self.total_guilds = 0

        self.registry = CommandRegistry(index_limit=settings.index_limit)
        self.cooldowns = CooldownTracker(clock=clock)
        self.uses = UsageCounter()
        self.scheduler = ScheduledTaskRegistry()
        self._linked: Optional[LinkedMessageCache] = (
            LinkedMessageCache(settings.linked_cache_size) if settings.linked_cache_size > 0 else None
        )
        if stats_reporter is None and (settings.carbon_key or settings.bots_key):
            stats_reporter = BotListStatsReporter(settings.carbon_key, settings.bots_key)
        self.stats_reporter = stats_reporter

        for command in commands:
            self.add_command(command)

    # --- settings accessors ---

    @property
    def owner_id(self) -> str:
        return self.settings.owner_id

    @property
    def owner_id_long(self) -> int:
        return int(self.settings.owner_id)

    @property
    def co_owner_ids(self) -> Tuple[str, ...]:
        return tuple(self.settings.co_owner_ids)

    @property
    def co_owner_ids_long(self) -> List[int]:
        return [int(i) for i in self.settings.co_owner_ids]

    @property
    def prefix(self) -> Optional[str]:
        return self.settings.prefix

    @property
    def help_word(self) -> str:
        return self.settings.help_word

    @property
    def success(self) -> str:
        return self.settings.success

    @property
    def warning(self) -> str:
        return self.settings.warning

    @property
    def error(self) -> str:
        return self.settings.error

    @property
    def server_invite(self) -> Optional[str]:
        return self.settings.server_invite

    # --- commands ---

    @property
    def commands(self) -> Tuple[Command, ...]:
        return self.registry.commands

    def add_command(self, command: Command, position: Optional[int] = None) -> None:
        self.registry.add(command, position)

    def remove_command(self, name: str) -> Command:
        return self.registry.remove(name)

    def get_command_uses(self, command: Union[Command, str]) -> int:
        name = command.name if isinstance(command, Command) else command
        return self.uses.get(name)

    # --- cooldowns ---

    def get_cooldown(self, key: str) -> Optional[datetime]:
        return self.cooldowns.get_expiry(key)

    def get_remaining_cooldown(self, key: str) -> int:
        return self.cooldowns.remaining(key)

    def apply_cooldown(self, key: str, seconds: int) -> None:
        self.cooldowns.apply(key, seconds)

    def clean_cooldowns(self) -> int:
        return self.cooldowns.sweep()

    # --- scheduled tasks ---

    def schedule(self, name: str, delay: float, action: Action) -> ScheduledTask:
        return self.scheduler.schedule(name, delay, action)

    def schedule_contains(self, name: str) -> bool:
        return self.scheduler.contains(name)

    def get_scheduled_task(self, name: str) -> Optional[ScheduledTask]:
        return self.scheduler.get(name)

    def cancel(self, name: str) -> None:
        self.scheduler.cancel(name, immediate=False)

    def cancel_immediately(self, name: str) -> None:
        self.scheduler.cancel(name, immediate=True)

    def clean_schedule(self) -> int:
        return self.scheduler.sweep()

    # --- linked deletion ---

    @property
    def uses_linked_deletion(self) -> bool:
        return self._linked is not None

    def link_ids(self, call_id: str, message: Message) -> None:
        """Link a response ``message`` to the message that triggered it.

        No-op unless a positive linked_cache_size was configured.
        """
        if self._linked is None:
            return
        self._linked.link(call_id, message)

    # --- listener ---

    async def notify_listener(self, hook: str, *args) -> None:
        """Call ``listener.<hook>(*args)``; failures are logged, not raised."""
        if self.listener is None:
            return
        try:
            result = getattr(self.listener, hook)(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error("listener_hook_failed", hook=hook, error=str(e), exc_type=type(e).__name__)

    # --- inbound events ---

    def parse(self, content: str) -> Optional[Tuple[str, str]]:
        """Split ``content`` into (name, args) if it starts with a prefix."""
        if self.prefix is None:
            self_id = self.transport.get_self_user().id
            if not (content.startswith(f"<@{self_id}>") or content.startswith(f"<@!{self_id}>")):
                return None
            remainder = content[content.index(">") + 1:]
        else:
            if not content.lower().startswith(self.prefix.lower()):
                return None
            remainder = content[len(self.prefix):]
        parts = remainder.strip().split(None, 1)
        if not parts:
            return "", ""
        return parts[0], parts[1] if len(parts) > 1 else ""

    async def on_message_received(self, event: MessageEvent) -> None:
        """Dispatch one inbound message."""
        if event.author is None or event.author.bot:
            return
        dispatched = False
        parts = self.parse(event.content)
        if parts is not None:
            name, args = parts
            if self.settings.use_help and name.lower() == self.help_word.lower():
                dispatched = True
                await self._send_help(CommandEvent(event, args, self))
            elif event.is_private or event.channel.can_talk:
                command = self.registry.find(name)
                if command is not None:
                    dispatched = True
                    await self._run_command(command, CommandEvent(event, args, self))
        if not dispatched:
            await self.notify_listener("on_non_command_message", event)

    async def _run_command(self, command: Command, cevent: CommandEvent) -> None:
        await self.notify_listener("on_command", cevent, command)
        count = self.uses.increment(command.name)
        logger.info(
            "command_dispatched",
            command=command.name,
            user=cevent.author.id,
            channel=cevent.channel.id,
            uses=count,
        )
        try:
            await command.run(cevent)
        except Exception as e:
            logger.error(
                "command_failed", command=command.name, error=str(e), exc_type=type(e).__name__
            )
            await self.notify_listener("on_command_exception", cevent, command, e)

    async def _send_help(self, cevent: CommandEvent) -> None:
        await self.notify_listener("on_command", cevent, None)
        try:
            messages = split_message(self.help_function(cevent))
        except Exception as e:
            logger.error("help_build_failed", error=str(e), exc_type=type(e).__name__)
            await self.notify_listener("on_terminated_command", cevent, None)
            return
        if not messages:
            logger.warning("help_empty", user=cevent.author.id)
            await self.notify_listener("on_terminated_command", cevent, None)
            return
        try:
            dm = await self.transport.open_private_channel(cevent.author)
        except TransportError as e:
            logger.info("help_dm_open_failed", user=cevent.author.id, error=str(e))
            await self._warn_channel(
                cevent, "Help cannot be sent because I could not open a Direct Message with you."
            )
        else:
            try:
                await self.transport.send_message(dm, messages[0])
            except TransportError as e:
                logger.info("help_dm_blocked", user=cevent.author.id, error=str(e))
                await self._warn_channel(
                    cevent, "Help cannot be sent because you are blocking Direct Messages."
                )
            else:
                if cevent.guild_id is not None:
                    await cevent.react_success()
                for chunk in messages[1:]:
                    try:
                        await self.transport.send_message(dm, chunk)
                    except TransportError as e:
                        logger.debug("help_chunk_failed", error=str(e))
        await self.notify_listener("on_completed_command", cevent, None)

    async def _warn_channel(self, cevent: CommandEvent, text: str) -> None:
        try:
            await self.transport.send_message(cevent.channel, f"{self.warning} {text}")
        except TransportError as e:
            logger.warning("help_warning_undeliverable", channel=cevent.channel.id, error=str(e))

    async def on_message_delete(self, event: MessageDeleteEvent) -> None:
        """Cascade-delete responses linked to a deleted guild message."""
        if event.channel.private or self._linked is None:
            return
        await self._linked.cascade_delete(event, self.transport)

    async def on_ready(self, guild_count: int = 0, shard: Optional[ShardInfo] = None) -> None:
        """Finish setup once the transport is connected."""
        self_user = self.transport.get_self_user()
        self.textual_prefix = f"@{self_user.name} " if self.prefix is None else self.prefix
        game = self.settings.game
        if game is not None:
            activity = f"Type {self.textual_prefix}{self.help_word}" if game == "default" else game
            await self.transport.set_presence(activity)
        logger.info("client_ready", user=self_user.name, commands=len(self.registry))
        await self.send_stats(guild_count, shard)

    async def on_guild_join(
        self, guild_count: int, joined_at: datetime, shard: Optional[ShardInfo] = None
    ) -> None:
        """Report stats for a join; naive ``joined_at`` values are read as UTC."""
        if joined_at.tzinfo is None:
            joined_at = joined_at.replace(tzinfo=timezone.utc)
        if joined_at + GUILD_JOIN_WINDOW > datetime.now(timezone.utc):
            await self.send_stats(guild_count, shard)

    async def on_guild_leave(self, guild_count: int, shard: Optional[ShardInfo] = None) -> None:
        await self.send_stats(guild_count, shard)

    async def send_stats(self, guild_count: int, shard: Optional[ShardInfo] = None) -> None:
        if self.stats_reporter is None or not self.stats_reporter.enabled:
            return
        total = await self.stats_reporter.send_stats(
            self.transport.get_self_user().id, guild_count, shard
        )
        if total is not None:
            self.total_guilds = total

    async def on_shutdown(self) -> None:
        """Cancel scheduled work and release the stats session."""
        self.scheduler.shutdown()
        if self.stats_reporter is not None:
            await self.stats_reporter.close()
        logger.info("client_shutdown")
