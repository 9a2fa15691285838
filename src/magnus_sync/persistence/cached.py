"""
Magnus Sync - Cached repository.

Composes the cache tier and the durable tier:
- Read: cache-aside (cache, then durable store, then repopulate cache).
- Write: write-through (cache best-effort, durable store always).
Cache failures degrade latency only; durable failures propagate.
"""
from __future__ import annotations
from uuid import UUID
import structlog

from ..models import PlayerRecord
from ..ports import PlayerRepository

logger = structlog.get_logger(__name__)


class CachedPlayerRepository:
    """Cache-aside / write-through composition of a cache and a durable store."""

    def __init__(self, cache: PlayerRepository, persistent_store: PlayerRepository) -> None:
        self._cache = cache
        self._store = persistent_store

    async def save(self, record: PlayerRecord) -> None:
        try:
            await self._cache.save(record)
        except Exception as e:
            logger.warning("cache_write_failed", player_id=str(record.uuid), error=str(e))
        await self._store.save(record)

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        try:
            cached = await self._cache.find_by_id(player_id)
        except Exception as e:
            logger.warning("cache_read_failed", player_id=str(player_id), error=str(e))
            cached = None
        if cached is not None:
            return cached

        persistent = await self._store.find_by_id(player_id)
        if persistent is None:
            return None
        try:
            await self._cache.save(persistent)
        except Exception as e:
            logger.debug("cache_repopulate_failed", player_id=str(player_id), error=str(e))
        return persistent

    async def evict_cache(self, player_id: UUID) -> None:
        try:
            await self._cache.evict_cache(player_id)
        except Exception as e:
            logger.warning("cache_evict_failed", player_id=str(player_id), error=str(e))
