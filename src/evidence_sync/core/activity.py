"""Audit trail for case access and changes"""

import logging
from typing import Optional

from evidence_sync.core.identity import new_record_id
from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError
from evidence_sync.models import ActivityLogEntry, ActivityType, Case, Officer

logger = logging.getLogger(__name__)


class ActivityRecorder:
    """Appends activity entries to a case and to the store"""

    def __init__(self, store: Optional[RemoteStore]):
        self.store = store

    async def record(
        self,
        case: Case,
        actor: Officer,
        action: str,
        target: str,
        type: ActivityType = ActivityType.SYSTEM,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            id=new_record_id(),
            user_id=actor.id,
            user_name=actor.name,
            action=action,
            target=target,
            type=type,
        )
        # Newest first, matching the order entries are loaded in
        case.activity_log.insert(0, entry)

        if self.store is None:
            return entry

        try:
            await self.store.upsert("activity_logs", [entry.to_row(case.id)], "id")
        except RemoteStoreError as e:
            logger.error(f"Error logging activity '{action}' on {case.id}: {e}")
        return entry
