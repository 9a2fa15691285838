"""Magnus Security - message integrity for the notification bus."""

from .signing import DEFAULT_MAX_AGE_MS, MessageSigner

__all__ = ["DEFAULT_MAX_AGE_MS", "MessageSigner"]
