"""Magnus Common Utilities - Clock, Crypto, Validation, Backoff."""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import time

SQL_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class DateTimeUtils:
    """Epoch-millisecond clock shared by records, heartbeats and signatures."""

    @staticmethod
    def now_millis() -> int:
        """Current wall-clock time in milliseconds since the epoch."""
        return time.time_ns() // 1_000_000


class CryptoUtils:
    """Cryptographic operations for message integrity."""

    @staticmethod
    def hmac_sign_b64(message: str, secret: str) -> str:
        """HMAC-SHA256 of message, standard base64 encoded (padded)."""
        digest = hmac.new(
            secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).digest()
        return base64.b64encode(digest).decode("ascii")

    @staticmethod
    def constant_time_compare(a: str, b: str) -> bool:
        """Compare strings in constant time to prevent timing attacks."""
        return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class ValidationUtils:
    """Input validation utilities."""

    @staticmethod
    def is_valid_sql_identifier(name: str, max_length: int = 128) -> bool:
        """Validate that a string is a safe SQL identifier.

        Prevents SQL injection by ensuring names only contain alphanumeric
        characters and underscores, starting with a letter or underscore.
        """
        if not name or len(name) > max_length:
            return False
        return SQL_IDENTIFIER.match(name) is not None


def backoff_delay_ms(base_delay_ms: int, attempt: int, max_exponent: int = 5) -> int:
    """Exponential backoff: base * 2^min(attempt, max_exponent)."""
    return base_delay_ms * (1 << min(max(attempt, 0), max_exponent))
