"""Magnus Redis Client - Async key/value access and pub/sub connections."""
from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

import redis.asyncio as redis
import structlog
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from redis.asyncio.client import PubSub

from magnus_common.exceptions import CacheError

logger = structlog.get_logger(__name__)


class RedisSettings(BaseSettings):
    """Redis connection settings from environment."""
    host: str = Field(default="localhost")
    port: int = Field(default=6379, ge=1, le=65535)
    password: SecretStr | None = Field(default=None)
    db: int = Field(default=0, ge=0, le=15)
    ssl: bool = Field(default=False)
    ssl_ca_certs: str | None = Field(default=None)
    max_connections: int = Field(default=16, ge=1, le=1000)
    socket_timeout: float = Field(default=5.0, gt=0)
    socket_connect_timeout: float = Field(default=2.0, gt=0)
    health_check_interval: int = Field(default=30, ge=0)
    client_name: str = Field(default="magnus")
    key_prefix: str = Field(default="magnus:")
    model_config = SettingsConfigDict(env_prefix="REDIS_", env_file=".env", extra="ignore")


class RedisClient:
    """Async Redis client shared by the cache tier, session locks and the message bus."""

    def __init__(self, settings: RedisSettings | None = None) -> None:
        self._settings = settings or RedisSettings()
        self._client: redis.Redis | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def key_prefix(self) -> str:
        return self._settings.key_prefix

    def make_key(self, key: str) -> str:
        """Apply key prefix for namespace isolation."""
        if key.startswith(self._settings.key_prefix):
            return key
        return f"{self._settings.key_prefix}{key}"

    async def connect(self, max_retries: int = 3, base_delay: float = 1.0) -> None:
        """Initialize Redis connection with retry on transient errors."""
        if self._client is not None:
            return
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                self._client = self._create_client()
                await self._client.ping()
                logger.info("redis_connected", host=self._settings.host, port=self._settings.port,
                            ssl=self._settings.ssl)
                return
            except (TimeoutError, redis.RedisError, OSError) as e:
                last_error = e
                self._client = None
                if attempt < max_retries - 1:
                    delay = base_delay * (2 ** attempt)
                    logger.warning(
                        "redis_connect_retry",
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
        raise CacheError(
            f"Failed to connect to Redis after {max_retries} attempts: {last_error}",
            cause=last_error,
        )

    def _create_client(self) -> redis.Redis:
        """Create standalone Redis client with bounded timeouts."""
        kwargs: dict[str, Any] = {}
        if self._settings.ssl:
            kwargs["ssl"] = True
            if self._settings.ssl_ca_certs:
                kwargs["ssl_ca_certs"] = self._settings.ssl_ca_certs
        return redis.Redis(
            host=self._settings.host, port=self._settings.port,
            password=self._settings.password.get_secret_value() if self._settings.password else None,
            db=self._settings.db, decode_responses=True,
            socket_timeout=self._settings.socket_timeout,
            socket_connect_timeout=self._settings.socket_connect_timeout,
            health_check_interval=self._settings.health_check_interval,
            max_connections=self._settings.max_connections,
            client_name=self._settings.client_name,
            **kwargs,
        )

    async def disconnect(self) -> None:
        """Close Redis connection gracefully."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("redis_disconnected")

    def _ensure_connected(self) -> redis.Redis:
        if not self._client:
            raise CacheError("Redis client not connected")
        return self._client

    async def get(self, key: str) -> str | None:
        """Get raw string value."""
        client = self._ensure_connected()
        try:
            return await client.get(self.make_key(key))
        except (TimeoutError, redis.RedisError, OSError) as e:
            raise CacheError(f"Failed to get key: {e}", cause=e) from e

    async def set(self, key: str, value: str, ttl: int | timedelta | None = None) -> bool:
        """Set raw string value with optional TTL."""
        client = self._ensure_connected()
        if isinstance(ttl, timedelta):
            ttl = int(ttl.total_seconds())
        try:
            await client.set(self.make_key(key), value, ex=ttl)
            return True
        except (TimeoutError, redis.RedisError, OSError) as e:
            raise CacheError(f"Failed to set key: {e}", cause=e) from e

    async def delete(self, *keys: str) -> int:
        """Delete one or more keys."""
        client = self._ensure_connected()
        try:
            return await client.delete(*(self.make_key(k) for k in keys))
        except (TimeoutError, redis.RedisError, OSError) as e:
            raise CacheError(f"Failed to delete keys: {e}", cause=e) from e

    async def exists(self, *keys: str) -> int:
        """Count how many of the keys exist."""
        client = self._ensure_connected()
        try:
            return await client.exists(*(self.make_key(k) for k in keys))
        except (TimeoutError, redis.RedisError, OSError) as e:
            raise CacheError(f"Failed to check keys: {e}", cause=e) from e

    async def publish(self, channel: str, message: str) -> int:
        """Publish raw message to channel, returns subscriber count."""
        client = self._ensure_connected()
        try:
            count = await client.publish(self.make_key(channel), message)
        except (TimeoutError, redis.RedisError, OSError) as e:
            raise CacheError(f"Failed to publish: {e}", cause=e) from e
        logger.debug("redis_publish", channel=channel, subscriber_count=count)
        return count

    def pubsub(self) -> PubSub:
        """Dedicated pub/sub connection; caller owns its lifecycle."""
        return self._ensure_connected().pubsub(ignore_subscribe_messages=True)


async def create_redis_client(settings: RedisSettings | None = None) -> RedisClient:
    """Factory function to create and connect a Redis client."""
    client = RedisClient(settings)
    await client.connect()
    return client
