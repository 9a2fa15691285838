"""Magnus Sync application services."""

from .chat import GlobalChatService
from .player_list import GlobalPlayerListService
from .recovery import BackupRecoveryService, RecoveryReport
from .sync import SyncService

__all__ = [
    "BackupRecoveryService",
    "GlobalChatService",
    "GlobalPlayerListService",
    "RecoveryReport",
    "SyncService",
]
