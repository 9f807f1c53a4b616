"""Guild-count reporting to bot list services.

Posts the bot's guild count to carbonitex and bots.discord.pw when API
keys are configured, and reads back the per-shard counts from
bots.discord.pw to compute the total across shards. Every failure is
logged and swallowed; stats never affect dispatch.
"""

from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

logger = structlog.get_logger("chatdispatch.stats")

CARBON_URL = "https://www.carbonitex.net/discord/data/botdata.php"
BOTS_URL = "https://bots.discord.pw/api/bots/{bot_id}/stats"

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=10)


@dataclass(frozen=True)
class ShardInfo:
    shard_id: int
    shard_total: int


class BotListStatsReporter:
    """Posts guild counts to bot list services.

    Args:
        carbon_key: carbonitex API key (None disables it).
        bots_key: bots.discord.pw API key (None disables it).
        session: Optional shared aiohttp session; one is created lazily
            otherwise and closed by close().
    """

    def __init__(
        self,
        carbon_key: Optional[str] = None,
        bots_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.carbon_key = carbon_key
        self.bots_key = bots_key
        self._session = session
        self._owns_session = session is None

    @property
    def enabled(self) -> bool:
        return bool(self.carbon_key or self.bots_key)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=REQUEST_TIMEOUT)
        return self._session

    async def send_stats(
        self, bot_id: str, guild_count: int, shard: Optional[ShardInfo] = None
    ) -> Optional[int]:
        """Report ``guild_count`` and return the total across shards.

        Returns:
            Total guild count from bots.discord.pw, or None if it could
            not be fetched (or that service is not configured).
        """
        if self.carbon_key:
            await self._post_carbon(guild_count, shard)
        if self.bots_key:
            await self._post_bots(bot_id, guild_count, shard)
            return await self._fetch_total(bot_id)
        return None

    async def _post_carbon(self, guild_count: int, shard: Optional[ShardInfo]) -> None:
        headers = {"key": self.carbon_key, "servercount": str(guild_count)}
        if shard is not None:
            headers["shard_id"] = str(shard.shard_id)
            headers["shard_count"] = str(shard.shard_total)
        try:
            async with self._get_session().post(CARBON_URL, headers=headers) as resp:
                if resp.status >= 400:
                    logger.warning("carbon_stats_rejected", status=resp.status)
                else:
                    logger.info("carbon_stats_sent", guilds=guild_count)
        except aiohttp.ClientError as e:
            logger.error("carbon_stats_failed", error=str(e))

    async def _post_bots(self, bot_id: str, guild_count: int, shard: Optional[ShardInfo]) -> None:
        body = {"server_count": guild_count}
        if shard is not None:
            body["shard_id"] = shard.shard_id
            body["shard_count"] = shard.shard_total
        try:
            async with self._get_session().post(
                BOTS_URL.format(bot_id=bot_id),
                json=body,
                headers={"Authorization": self.bots_key},
            ) as resp:
                if resp.status >= 400:
                    logger.warning("bots_stats_rejected", status=resp.status)
                else:
                    logger.info("bots_stats_sent", guilds=guild_count)
        except aiohttp.ClientError as e:
            logger.error("bots_stats_failed", error=str(e))

    async def _fetch_total(self, bot_id: str) -> Optional[int]:
        try:
            async with self._get_session().get(
                BOTS_URL.format(bot_id=bot_id),
                headers={"Authorization": self.bots_key},
            ) as resp:
                if resp.status != 200:
                    logger.warning("bots_shard_stats_unavailable", status=resp.status)
                    return None
                shards = await resp.json(content_type=None)
            return sum(int(entry.get("server_count", 0)) for entry in shards)
        except (aiohttp.ClientError, ValueError, TypeError, AttributeError) as e:
            logger.error("bots_shard_stats_failed", error=str(e))
            return None

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
