"""
Magnus Exception Hierarchy.
Structured exception handling with correlation tracking for the sync layer.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from pydantic import BaseModel, Field
import structlog

logger = structlog.get_logger(__name__)


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    DATABASE = "database"
    CACHE = "cache"
    LOCAL_STORAGE = "local_storage"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class ErrorContext(BaseModel):
    """Structured context for error tracking."""
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    service_name: str = Field(default="magnus-sync")
    operation: str | None = None
    player_id: str | None = None
    server_name: str | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)
    model_config = {"frozen": True}


class MagnusError(Exception):
    """Base exception for all Magnus errors with structured tracking."""
    error_code: str = "MAGNUS_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    severity: ErrorSeverity = ErrorSeverity.MEDIUM

    def __init__(self, message: str, *, user_message: str | None = None,
                 context: ErrorContext | None = None, cause: Exception | None = None,
                 details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.user_message = user_message or "An error occurred. Please try again."
        self.context = context or ErrorContext()
        self.cause = cause
        self.details = details or {}
        self._log_error()

    def _log_error(self) -> None:
        log_data = {
            "error_code": self.error_code, "category": self.category.value,
            "severity": self.severity.value, "correlation_id": self.context.correlation_id,
            "operation": self.context.operation, "details": self.details,
        }
        if self.context.player_id:
            log_data["player_id"] = self.context.player_id
        if self.cause:
            log_data["cause_type"] = type(self.cause).__name__
            log_data["cause_message"] = str(self.cause)
        if self.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            logger.error(self.message, **log_data)
        else:
            logger.warning(self.message, **log_data)


# Application Layer Exceptions
class ApplicationError(MagnusError):
    error_code = "APPLICATION_ERROR"
    severity = ErrorSeverity.MEDIUM


class DataUnavailableError(ApplicationError):
    """No tier, including the local backup, could answer a read for this player."""
    error_code = "DATA_UNAVAILABLE"
    category = ErrorCategory.UNAVAILABLE
    severity = ErrorSeverity.CRITICAL

    def __init__(self, player_id: str, **kwargs: Any) -> None:
        message = f"Database is down and no local backup found for {player_id}"
        details = kwargs.pop("details", {})
        details["player_id"] = player_id
        super().__init__(
            message,
            user_message="Your profile could not be loaded. Please try again later.",
            details=details, **kwargs,
        )
        self.player_id = player_id


class SessionLockedError(ApplicationError):
    """A save for this player is still in progress on some server."""
    error_code = "SESSION_LOCKED"
    category = ErrorCategory.CONFLICT
    severity = ErrorSeverity.LOW

    def __init__(self, player_id: str, *, retry_after_seconds: int = 5, **kwargs: Any) -> None:
        message = f"Session for {player_id} is locked by a pending save"
        details = kwargs.pop("details", {})
        details.update({"player_id": player_id, "retry_after_seconds": retry_after_seconds})
        super().__init__(
            message,
            user_message="Your data is still being saved. Please retry in a few seconds.",
            details=details, **kwargs,
        )
        self.player_id = player_id
        self.retry_after_seconds = retry_after_seconds


# Infrastructure Layer Exceptions
class InfrastructureError(MagnusError):
    error_code = "INFRASTRUCTURE_ERROR"
    category = ErrorCategory.UNAVAILABLE
    severity = ErrorSeverity.HIGH


class DatabaseError(InfrastructureError):
    error_code = "DATABASE_ERROR"
    category = ErrorCategory.DATABASE

    def __init__(self, message: str, *, operation: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if operation:
            details["db_operation"] = operation
        super().__init__(message, user_message="A database error occurred",
                         details=details, **kwargs)


class CacheError(InfrastructureError):
    error_code = "CACHE_ERROR"
    category = ErrorCategory.CACHE
    severity = ErrorSeverity.MEDIUM


class LocalStorageError(InfrastructureError):
    error_code = "LOCAL_STORAGE_ERROR"
    category = ErrorCategory.LOCAL_STORAGE

    def __init__(self, message: str, *, path: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if path:
            details["path"] = path
        super().__init__(message, details=details, **kwargs)


class ConfigurationError(InfrastructureError):
    error_code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.CRITICAL

    def __init__(self, message: str, *, config_key: str | None = None, **kwargs: Any) -> None:
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        super().__init__(message, user_message="Service configuration error",
                         details=details, **kwargs)
