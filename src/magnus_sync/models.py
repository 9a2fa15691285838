"""
Magnus Sync - Domain Models.

PlayerRecord is the unit of synchronization between servers. It is replaced
atomically as a whole; freshness is decided only by ``last_updated``.
"""
from __future__ import annotations
from typing import Any
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from magnus_common.utils import DateTimeUtils


class PlayerRecord(BaseModel):
    """Serializable snapshot of a player's synchronized state."""

    uuid: UUID
    username: str = Field(max_length=32)
    health: float
    food_level: int
    saturation: float
    exhaustion: float = 0.0
    air: int = 300
    score: int = 0
    selected_slot: int = 0
    experience_level: int
    experience_progress: float
    inventory_nbt: str
    ender_chest_nbt: str
    active_effects_nbt: str = ""
    last_updated: int = Field(default_factory=DateTimeUtils.now_millis)

    model_config = ConfigDict(frozen=True, extra="ignore")

    def is_newer_than(self, other: PlayerRecord) -> bool:
        """Strictly fresher by logical timestamp."""
        return self.last_updated > other.last_updated

    def to_json(self, *, indent: int | None = None) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def from_json(cls, data: str | bytes) -> PlayerRecord:
        return cls.model_validate_json(data)

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the durable store."""
        return self.model_dump()

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> PlayerRecord:
        return cls.model_validate(row)


class PlayerEntry(BaseModel):
    """Minimal player entry for the global player list."""
    uuid: str
    name: str


class ServerPlayerInfo(BaseModel):
    """Player list heartbeat from a single server."""
    server_name: str
    players: list[PlayerEntry] = Field(default_factory=list)
    timestamp: int = Field(default_factory=DateTimeUtils.now_millis)


class ChatMessage(BaseModel):
    """Chat line relayed to every other server; raw text, no formatting."""
    server_name: str
    player_uuid: str
    player_name: str
    raw_message: str
    timestamp: int = Field(default_factory=DateTimeUtils.now_millis)
