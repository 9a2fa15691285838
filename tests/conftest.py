"""
Pytest configuration and fixtures for Magnus Sync testing.

In-memory stand-ins for the Redis client and for storage tiers, so unit
tests exercise real composition logic without live services.
"""
from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable
from uuid import UUID, uuid4

import pytest

from magnus_common.exceptions import CacheError
from magnus_sync.models import PlayerRecord


class FakePubSub:
    """Dedicated subscription connection fed from FakeRedisClient.publish."""

    def __init__(self, broker: FakeRedisClient) -> None:
        self._broker = broker
        self.queue: asyncio.Queue[Any] = asyncio.Queue()
        self.channels: list[str] = []
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        if self._broker.failing_subscribes > 0:
            self._broker.failing_subscribes -= 1
            raise ConnectionError("connection refused")
        for channel in channels:
            self._broker.subscribers.setdefault(channel, []).append(self)
            self.channels.append(channel)

    async def listen(self):
        while True:
            item = await self.queue.get()
            if isinstance(item, BaseException):
                raise item
            if item is None:
                return
            yield {"type": "message", "channel": self.channels[0], "data": item}

    async def unsubscribe(self, *channels: str) -> None:
        for channel in self.channels:
            subs = self._broker.subscribers.get(channel, [])
            if self in subs:
                subs.remove(self)
        self.channels = []

    async def aclose(self) -> None:
        self.closed = True


class FakeRedisClient:
    """Subset of magnus_infrastructure.redis.RedisClient backed by dicts."""

    key_prefix = "magnus:"

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, Any] = {}
        self.subscribers: dict[str, list[FakePubSub]] = {}
        self.published: list[tuple[str, str]] = []
        self.pubsubs: list[FakePubSub] = []
        self.fail = False
        self.failing_subscribes = 0
        self.disconnected = False

    async def disconnect(self) -> None:
        self.disconnected = True

    def make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _check(self) -> None:
        if self.fail:
            raise CacheError("Redis unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        return self.store.get(self.make_key(key))

    async def set(self, key: str, value: str, ttl: Any = None) -> bool:
        self._check()
        full = self.make_key(key)
        self.store[full] = value
        self.ttls[full] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(self.make_key(key), None) is not None:
                removed += 1
        return removed

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if self.make_key(key) in self.store)

    async def publish(self, channel: str, message: str) -> int:
        self._check()
        self.published.append((channel, message))
        targets = list(self.subscribers.get(self.make_key(channel), []))
        for pubsub in targets:
            pubsub.queue.put_nowait(message)
        return len(targets)

    def pubsub(self) -> FakePubSub:
        self._check()
        pubsub = FakePubSub(self)
        self.pubsubs.append(pubsub)
        return pubsub

    def inject(self, channel: str, raw: str | bytes) -> None:
        """Deliver a raw message as if another server published it."""
        for pubsub in list(self.subscribers.get(self.make_key(channel), [])):
            pubsub.queue.put_nowait(raw)

    def drop_connections(self) -> None:
        for subs in list(self.subscribers.values()):
            for pubsub in list(subs):
                pubsub.queue.put_nowait(ConnectionError("connection reset by peer"))


class InMemoryPlayerRepository:
    """PlayerRepository over a dict, with switchable failures."""

    def __init__(self, *, volatile: bool = False) -> None:
        self.records: dict[UUID, PlayerRecord] = {}
        self.volatile = volatile
        self.fail_reads = False
        self.fail_writes = False
        self.saves: list[PlayerRecord] = []
        self.reads: list[UUID] = []

    async def save(self, record: PlayerRecord) -> None:
        if self.fail_writes:
            raise ConnectionError("store unreachable")
        self.records[record.uuid] = record
        self.saves.append(record)

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        self.reads.append(player_id)
        if self.fail_reads:
            raise ConnectionError("store unreachable")
        return self.records.get(player_id)

    async def evict_cache(self, player_id: UUID) -> None:
        if self.volatile:
            self.records.pop(player_id, None)

    def go_down(self) -> None:
        self.fail_reads = self.fail_writes = True

    def come_back(self) -> None:
        self.fail_reads = self.fail_writes = False


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def cache_repo() -> InMemoryPlayerRepository:
    return InMemoryPlayerRepository(volatile=True)


@pytest.fixture
def store_repo() -> InMemoryPlayerRepository:
    return InMemoryPlayerRepository()


@pytest.fixture
def player_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_record(player_id: UUID) -> Callable[..., PlayerRecord]:
    """Factory for PlayerRecord; defaults to the ``player_id`` fixture."""

    def _make(**overrides: Any) -> PlayerRecord:
        data: dict[str, Any] = {
            "uuid": player_id,
            "username": "Steve",
            "health": 20.0,
            "food_level": 20,
            "saturation": 5.0,
            "experience_level": 0,
            "experience_progress": 0.0,
            "inventory_nbt": "inventory-bytes",
            "ender_chest_nbt": "ender-bytes",
            "last_updated": 1000,
        }
        data.update(overrides)
        return PlayerRecord(**data)

    return _make


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    """Poll a condition while background tasks run."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait
