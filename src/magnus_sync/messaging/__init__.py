"""Magnus Sync messaging: authenticated, size-bounded Redis pub/sub."""

from .bus import ManagedSubscription, SecureRedisMessageBus, SubscriptionState

__all__ = ["ManagedSubscription", "SecureRedisMessageBus", "SubscriptionState"]
