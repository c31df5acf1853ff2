"""Real-time team chat"""

from .bus import RealtimeMessageBus, SubscriptionState

__all__ = ["RealtimeMessageBus", "SubscriptionState"]
