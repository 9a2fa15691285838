"""
Magnus Sync.

Cross-server player profile synchronization:
- Tiered storage (Redis cache over PostgreSQL) with a local disk failover
- Background reconciliation of local backups
- Fail-open session locks
- Signed, size-bounded Redis pub/sub notifications
- Network-wide player list and global chat over the bus
"""

from .bootstrap import MagnusRuntime
from .config import MagnusSettings
from .locking import SessionLockManager
from .messaging import SecureRedisMessageBus, SubscriptionState
from .models import ChatMessage, PlayerEntry, PlayerRecord, ServerPlayerInfo
from .persistence import (
    CachedPlayerRepository,
    LocalBackupStore,
    PostgresPlayerStore,
    RedisPlayerCache,
    ResilientPlayerRepository,
)
from .ports import MessageBus, MessageCallback, PlayerRepository
from .services import (
    BackupRecoveryService,
    GlobalChatService,
    GlobalPlayerListService,
    RecoveryReport,
    SyncService,
)

__all__ = [
    "BackupRecoveryService",
    "CachedPlayerRepository",
    "ChatMessage",
    "GlobalChatService",
    "GlobalPlayerListService",
    "LocalBackupStore",
    "MagnusRuntime",
    "MagnusSettings",
    "MessageBus",
    "MessageCallback",
    "PlayerEntry",
    "PlayerRecord",
    "PlayerRepository",
    "PostgresPlayerStore",
    "RecoveryReport",
    "RedisPlayerCache",
    "ResilientPlayerRepository",
    "SecureRedisMessageBus",
    "ServerPlayerInfo",
    "SessionLockManager",
    "SubscriptionState",
    "SyncService",
]
