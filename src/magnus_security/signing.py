"""Magnus Security - HMAC message signing for pub/sub payloads.

Envelope wire format: ``<base64 hmac-sha256>|<unix millis>|<payload>``.
The HMAC covers ``<unix millis>|<payload>``; the payload itself may contain ``|``.
"""
from __future__ import annotations

from typing import Callable

import structlog

from magnus_common.utils import CryptoUtils, DateTimeUtils

logger = structlog.get_logger(__name__)

DELIMITER = "|"
DEFAULT_MAX_AGE_MS = 30_000


class MessageSigner:
    """Signs and verifies bus messages with a pre-shared secret.

    Verification rejects tampered envelopes, envelopes older than ``max_age_ms``
    and envelopes stamped in the future.
    """

    def __init__(self, secret: str, clock: Callable[[], int] = DateTimeUtils.now_millis) -> None:
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._secret = secret
        self._clock = clock

    def sign(self, payload: str) -> str:
        """Return ``signature|timestamp|payload`` for the given payload."""
        data = f"{self._clock()}{DELIMITER}{payload}"
        return f"{CryptoUtils.hmac_sign_b64(data, self._secret)}{DELIMITER}{data}"

    def verify(self, envelope: str, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> str | None:
        """Return the original payload if the envelope is authentic and fresh."""
        parts = envelope.split(DELIMITER, 2)
        if len(parts) != 3:
            return None
        signature, timestamp_str, payload = parts
        if not timestamp_str.isascii() or not timestamp_str.isdigit():
            return None
        age = self._clock() - int(timestamp_str)
        if age < 0 or age > max_age_ms:
            return None
        expected = CryptoUtils.hmac_sign_b64(f"{timestamp_str}{DELIMITER}{payload}", self._secret)
        if not CryptoUtils.constant_time_compare(signature, expected):
            return None
        return payload
