"""Magnus Sync persistence tiers: Redis cache, PostgreSQL store, local backup and composites."""

from .cached import CachedPlayerRepository
from .local_backup import LocalBackupStore
from .postgres_store import PostgresPlayerStore
from .redis_store import RedisPlayerCache
from .resilient import ResilientPlayerRepository

__all__ = [
    "CachedPlayerRepository",
    "LocalBackupStore",
    "PostgresPlayerStore",
    "RedisPlayerCache",
    "ResilientPlayerRepository",
]
