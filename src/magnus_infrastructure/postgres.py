"""Magnus PostgreSQL Client - Pooled asyncpg access for the durable player tier."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import asyncpg
import structlog
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from magnus_common.exceptions import DatabaseError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class PostgresSettings(BaseSettings):
    """PostgreSQL connection and player table settings from environment."""

    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="magnus")
    user: str = Field(default="postgres")
    password: SecretStr = Field(default=SecretStr(""))
    min_pool_size: int = Field(default=2, ge=1, le=100)
    max_pool_size: int = Field(default=10, ge=1, le=200)
    connect_timeout: float = Field(default=5.0, gt=0)
    command_timeout: float = Field(default=10.0, gt=0)
    connect_retries: int = Field(default=3, ge=1)
    connect_retry_delay: float = Field(default=1.0, gt=0)
    db_schema: str = Field(default="public")
    table_name: str = Field(default="player_data")
    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_", env_file=".env", extra="ignore"
    )

    def get_dsn(self) -> str:
        return (
            f"postgresql://{self.user}:{self.password.get_secret_value()}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class PostgresClient:
    """asyncpg pool wrapper. Every driver failure surfaces as ``DatabaseError``."""

    def __init__(self, settings: PostgresSettings | None = None) -> None:
        self._settings = settings or PostgresSettings()
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def settings(self) -> PostgresSettings:
        return self._settings

    async def connect(self, max_retries: int | None = None, base_delay: float | None = None) -> None:
        """Open the pool, retrying with exponential backoff."""
        if self._pool is not None:
            return
        retries = max_retries or self._settings.connect_retries
        delay = base_delay or self._settings.connect_retry_delay
        last_error: Exception | None = None
        for attempt in range(retries):
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self._settings.get_dsn(),
                    min_size=self._settings.min_pool_size,
                    max_size=self._settings.max_pool_size,
                    timeout=self._settings.connect_timeout,
                    command_timeout=self._settings.command_timeout,
                )
            except (TimeoutError, asyncpg.PostgresError, OSError) as e:
                last_error = e
                if attempt + 1 < retries:
                    wait = delay * (2 ** attempt)
                    logger.warning("postgres_connect_retry", attempt=attempt + 1,
                                   max_retries=retries, delay=wait, error=str(e))
                    await asyncio.sleep(wait)
                continue
            logger.info("postgres_pool_connected", host=self._settings.host,
                        database=self._settings.database, pool_size=self._settings.max_pool_size)
            return
        raise DatabaseError(
            f"Failed to connect to PostgreSQL after {retries} attempts: {last_error}",
            operation="connect",
            cause=last_error,
        )

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_disconnected")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        if not self._pool:
            raise DatabaseError("PostgreSQL client not connected", operation="acquire")
        try:
            async with self._pool.acquire(timeout=self._settings.connect_timeout) as conn:
                yield conn
        except (TimeoutError, OSError, asyncpg.InterfaceError) as e:
            raise DatabaseError(
                f"Connection unavailable: {e}", operation="acquire", cause=e
            ) from e

    async def _run(self, operation: str, query: str,
                   call: Callable[[asyncpg.Connection], Awaitable[T]]) -> T:
        loop = asyncio.get_running_loop()
        start = loop.time()
        async with self.acquire() as conn:
            try:
                result = await call(conn)
            except asyncpg.PostgresError as e:
                raise DatabaseError(
                    f"Query {operation} failed: {e}", operation=operation, cause=e
                ) from e
        logger.debug("postgres_query", operation=operation, query=_truncate_query(query),
                     elapsed_ms=round((loop.time() - start) * 1000, 2))
        return result

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        """Run a statement; returns the command status tag."""
        return await self._run(
            "execute", query, lambda conn: conn.execute(query, *args, timeout=timeout)
        )

    async def fetch_one(
        self, query: str, *args: Any, timeout: float | None = None
    ) -> dict[str, Any] | None:
        row = await self._run(
            "fetch_one", query, lambda conn: conn.fetchrow(query, *args, timeout=timeout)
        )
        return dict(row) if row else None


def _truncate_query(query: str, max_length: int = 200) -> str:
    query = " ".join(query.split())
    return query[:max_length] + "..." if len(query) > max_length else query


async def create_postgres_client(
    settings: PostgresSettings | None = None,
) -> PostgresClient:
    """Create and connect a PostgreSQL client."""
    client = PostgresClient(settings)
    await client.connect()
    return client
