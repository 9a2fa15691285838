"""Magnus Infrastructure - Redis, PostgreSQL and logging clients."""

from .observability import LogLevel, ObservabilitySettings, configure_logging
from .postgres import PostgresClient, PostgresSettings, create_postgres_client
from .redis import RedisClient, RedisSettings, create_redis_client

__all__ = [
    "LogLevel",
    "ObservabilitySettings",
    "PostgresClient",
    "PostgresSettings",
    "RedisClient",
    "RedisSettings",
    "configure_logging",
    "create_postgres_client",
    "create_redis_client",
]
