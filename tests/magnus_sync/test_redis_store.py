"""Unit tests for the Redis cache tier."""
from __future__ import annotations
import pytest

from magnus_common.exceptions import CacheError
from magnus_sync.persistence.redis_store import RedisPlayerCache


class TestRedisPlayerCache:

    @pytest.fixture
    def cache(self, fake_redis):
        return RedisPlayerCache(fake_redis, max_payload_size=4096)

    @pytest.mark.asyncio
    async def test_save_and_find(self, cache, fake_redis, make_record, player_id):
        record = make_record()
        await cache.save(record)

        assert f"magnus:player:{player_id}" in fake_redis.store
        assert fake_redis.ttls[f"magnus:player:{player_id}"] is None
        assert await cache.find_by_id(player_id) == record

    @pytest.mark.asyncio
    async def test_find_missing(self, cache, player_id):
        assert await cache.find_by_id(player_id) is None

    @pytest.mark.asyncio
    async def test_evict(self, cache, make_record, player_id):
        await cache.save(make_record())
        await cache.evict_cache(player_id)
        assert await cache.find_by_id(player_id) is None

    @pytest.mark.asyncio
    async def test_oversized_snapshot_not_cached_and_stale_copy_dropped(
        self, cache, fake_redis, make_record, player_id
    ):
        await cache.save(make_record(last_updated=1000))
        await cache.save(make_record(inventory_nbt="x" * 5000, last_updated=2000))

        assert f"magnus:player:{player_id}" not in fake_redis.store

    @pytest.mark.asyncio
    async def test_errors_propagate(self, cache, fake_redis, make_record):
        fake_redis.fail = True
        with pytest.raises(CacheError):
            await cache.save(make_record())
