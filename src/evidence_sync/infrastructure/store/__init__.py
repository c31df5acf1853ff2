"""Remote store module.

Provides the shared case store contract and its SQL implementation.
"""

from evidence_sync.infrastructure.store.base import (
    ChangeFeed,
    RealtimeEvent,
    RemoteStore,
    RemoteStoreError,
    Subscription,
)
from evidence_sync.infrastructure.store.sql_store import SqlRemoteStore

__all__ = [
    "ChangeFeed",
    "RealtimeEvent",
    "RemoteStore",
    "RemoteStoreError",
    "Subscription",
    "SqlRemoteStore",
]
