"""Unit tests for sync settings."""
from __future__ import annotations
from pathlib import Path
import pytest
from pydantic import SecretStr, ValidationError as PydanticValidationError

from magnus_sync.config import MagnusSettings


class TestMagnusSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MAGNUS_SERVER_NAME", raising=False)
        settings = MagnusSettings()

        assert settings.server_name == "server-1"
        assert settings.backup_dir == Path("config/magnus/backups")
        assert settings.janitor_initial_delay_seconds == 60
        assert settings.janitor_interval_seconds == 300
        assert settings.lock_ttl_seconds == 30
        assert settings.max_payload_size == 65536
        assert settings.bus_retry_delay_ms == 5000
        assert settings.bus_max_retries == 10
        assert settings.signature_max_age_ms == 30_000
        assert not settings.signing_enabled

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MAGNUS_SERVER_NAME", "survival-2")
        monkeypatch.setenv("MAGNUS_LOCK_TTL_SECONDS", "45")
        settings = MagnusSettings()
        assert settings.server_name == "survival-2"
        assert settings.lock_ttl_seconds == 45

    def test_signing_secret_enables_signing(self):
        settings = MagnusSettings(signing_secret=SecretStr("s" * 16))
        assert settings.signing_enabled
        assert "s" * 16 not in repr(settings)

    def test_short_signing_secret_rejected(self):
        with pytest.raises(PydanticValidationError):
            MagnusSettings(signing_secret=SecretStr("short"))

    def test_payload_limit_floor(self):
        with pytest.raises(PydanticValidationError):
            MagnusSettings(max_payload_size=10)
