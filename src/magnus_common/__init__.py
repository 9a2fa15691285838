"""
Magnus Common Library.

Shared primitives for the sync layer:
- Structured exception hierarchy with correlation tracking
- Utility functions for the clock, crypto, validation and backoff
"""

from .exceptions import (
    ApplicationError,
    CacheError,
    ConfigurationError,
    DatabaseError,
    DataUnavailableError,
    ErrorCategory,
    ErrorContext,
    ErrorSeverity,
    InfrastructureError,
    LocalStorageError,
    MagnusError,
    SessionLockedError,
)
from .utils import (
    CryptoUtils,
    DateTimeUtils,
    ValidationUtils,
    backoff_delay_ms,
)

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "ApplicationError",
    "CacheError",
    "ConfigurationError",
    "DatabaseError",
    "DataUnavailableError",
    "ErrorCategory",
    "ErrorContext",
    "ErrorSeverity",
    "InfrastructureError",
    "LocalStorageError",
    "MagnusError",
    "SessionLockedError",
    # Utils
    "CryptoUtils",
    "DateTimeUtils",
    "ValidationUtils",
    "backoff_delay_ms",
]
