"""
Magnus Sync - PostgreSQL durable tier.
Permanent storage of player records keyed by UUID with upsert semantics.
"""
from __future__ import annotations
from uuid import UUID
import structlog

from magnus_common.exceptions import ConfigurationError
from magnus_common.utils import ValidationUtils
from magnus_infrastructure.postgres import PostgresClient

from ..models import PlayerRecord

logger = structlog.get_logger(__name__)

COLUMNS: tuple[str, ...] = (
    "uuid", "username", "health", "food_level", "saturation", "exhaustion", "air",
    "score", "selected_slot", "experience_level", "experience_progress",
    "inventory_nbt", "ender_chest_nbt", "active_effects_nbt", "last_updated",
)

# Columns added after the first release; applied additively on startup.
MIGRATION_COLUMNS: tuple[tuple[str, str], ...] = (
    ("exhaustion", "DOUBLE PRECISION NOT NULL DEFAULT 0"),
    ("air", "INTEGER NOT NULL DEFAULT 300"),
    ("score", "INTEGER NOT NULL DEFAULT 0"),
    ("selected_slot", "INTEGER NOT NULL DEFAULT 0"),
    ("active_effects_nbt", "TEXT NOT NULL DEFAULT ''"),
)


class PostgresPlayerStore:
    """Durable store adapter. Failures surface as ``DatabaseError``."""

    def __init__(self, client: PostgresClient, table_name: str = "player_data",
                 schema: str = "public") -> None:
        for key, name in (("POSTGRES_TABLE_NAME", table_name), ("POSTGRES_DB_SCHEMA", schema)):
            if not ValidationUtils.is_valid_sql_identifier(name):
                raise ConfigurationError(f"Invalid SQL identifier {name!r}", config_key=key)
        self._client = client
        self._table = table_name
        self._schema = schema
        self._upsert_sql = self._build_upsert()

    @property
    def qualified_table(self) -> str:
        return f"{self._schema}.{self._table}"

    def _build_upsert(self) -> str:
        columns = ", ".join(COLUMNS)
        placeholders = ", ".join(f"${i}" for i in range(1, len(COLUMNS) + 1))
        updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in COLUMNS if c != "uuid")
        return (
            f"INSERT INTO {self.qualified_table} ({columns}) VALUES ({placeholders}) "
            f"ON CONFLICT (uuid) DO UPDATE SET {updates}"
        )

    async def ensure_schema(self) -> None:
        """Create the table and apply additive column migrations. Idempotent."""
        await self._client.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.qualified_table} (
                uuid UUID PRIMARY KEY,
                username VARCHAR(32) NOT NULL,
                health DOUBLE PRECISION NOT NULL,
                food_level INTEGER NOT NULL,
                saturation DOUBLE PRECISION NOT NULL,
                experience_level INTEGER NOT NULL,
                experience_progress DOUBLE PRECISION NOT NULL,
                inventory_nbt TEXT NOT NULL,
                ender_chest_nbt TEXT NOT NULL,
                last_updated BIGINT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        for column, definition in MIGRATION_COLUMNS:
            await self._client.execute(
                f"ALTER TABLE {self.qualified_table} ADD COLUMN IF NOT EXISTS {column} {definition}"
            )
        logger.info("player_schema_ready", table=self.qualified_table)

    async def save(self, record: PlayerRecord) -> None:
        row = record.to_row()
        await self._client.execute(self._upsert_sql, *(row[c] for c in COLUMNS))

    async def find_by_id(self, player_id: UUID) -> PlayerRecord | None:
        row = await self._client.fetch_one(
            f"SELECT {', '.join(COLUMNS)} FROM {self.qualified_table} WHERE uuid = $1",
            player_id,
        )
        return PlayerRecord.from_row(row) if row else None

    async def evict_cache(self, player_id: UUID) -> None:
        """Durable storage has no cache to evict."""
