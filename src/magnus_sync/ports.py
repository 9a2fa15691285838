"""
Magnus Sync - Storage and messaging ports.

Every storage tier (cache, durable store, local backup and the composites
built from them) implements ``PlayerRepository``. Tiers are composed, never
subclassed from one another.
"""
from __future__ import annotations
from typing import Awaitable, Callable, Protocol
from uuid import UUID

from .models import PlayerRecord

MessageCallback = Callable[[str], Awaitable[None] | None]


class PlayerRepository(Protocol):
    """Storage capability shared by all tiers. Implementations must be safe
    to call concurrently for distinct player ids."""

    async def save(self, record: PlayerRecord) -> None:
        """Persist the record, replacing any previous copy."""
        ...

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        """Return the record, or None when it does not exist."""
        ...

    async def evict_cache(self, player_id: UUID) -> None:
        """Drop any volatile cached copy. Never touches durable data."""
        ...


class MessageBus(Protocol):
    """Best-effort cross-process notification transport."""

    def publish(self, channel: str, message: str) -> None:
        """Fire-and-forget publish; never blocks on the network."""
        ...

    def subscribe(self, channel: str, callback: MessageCallback) -> None:
        """Register the single listener for a channel."""
        ...

    async def close(self) -> None:
        """Stop all listeners and suppress reconnection."""
        ...
