"""
Magnus Sync - Redis cache tier.
Hot copy of player records shared by every server; no persistence guarantee.
"""
from __future__ import annotations
from uuid import UUID
import structlog

from magnus_infrastructure.redis import RedisClient

from ..models import PlayerRecord

logger = structlog.get_logger(__name__)

PLAYER_KEY_PREFIX = "player:"


class RedisPlayerCache:
    """Cache adapter storing each record as JSON under ``<prefix>player:<uuid>``.

    Errors from Redis propagate as ``CacheError``; the cached repository
    decides how to degrade.
    """

    def __init__(self, client: RedisClient, max_payload_size: int = 65536) -> None:
        self._client = client
        self._max_payload_size = max_payload_size

    @staticmethod
    def key_for(player_id: UUID) -> str:
        return f"{PLAYER_KEY_PREFIX}{player_id}"

    async def save(self, record: PlayerRecord) -> None:
        value = record.to_json()
        size = len(value.encode("utf-8"))
        if size > self._max_payload_size:
            logger.warning("cache_snapshot_oversized", player_id=str(record.uuid),
                           username=record.username, size=size, max_size=self._max_payload_size)
            # stale copy must not outlive this write
            await self.evict_cache(record.uuid)
            return
        await self._client.set(self.key_for(record.uuid), value)

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        value = await self._client.get(self.key_for(player_id))
        if value is None:
            return None
        return PlayerRecord.from_json(value)

    async def evict_cache(self, player_id: UUID) -> None:
        await self._client.delete(self.key_for(player_id))
