"""
Magnus Sync - Configuration.

Environment-based settings for the sync layer. Connection settings for Redis
and PostgreSQL live with their clients in ``magnus_infrastructure``.
"""
from __future__ import annotations
from pathlib import Path
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MagnusSettings(BaseSettings):
    """Sync, recovery, locking and messaging configuration."""
    server_name: str = Field(default="server-1", min_length=1)
    backup_dir: Path = Field(default=Path("config/magnus/backups"))
    janitor_initial_delay_seconds: float = Field(default=60.0, ge=0)
    janitor_interval_seconds: float = Field(default=300.0, gt=0)
    lock_ttl_seconds: int = Field(default=30, ge=1, le=3600)
    max_payload_size: int = Field(default=65536, ge=1024)
    bus_retry_delay_ms: int = Field(default=5000, ge=1)
    bus_max_retries: int = Field(default=10, ge=0)
    signing_secret: SecretStr | None = Field(default=None)
    signature_max_age_ms: int = Field(default=30_000, ge=1000)
    heartbeat_interval_ms: int = Field(default=2500, ge=100)
    player_list_stale_ms: int = Field(default=10_000, ge=1000)
    model_config = SettingsConfigDict(env_prefix="MAGNUS_", env_file=".env", extra="ignore")

    @field_validator("signing_secret")
    @classmethod
    def validate_signing_secret(cls, v: SecretStr | None) -> SecretStr | None:
        if v is not None and len(v.get_secret_value()) < 16:
            raise ValueError("signing_secret must be at least 16 characters")
        return v

    @property
    def signing_enabled(self) -> bool:
        return self.signing_secret is not None
