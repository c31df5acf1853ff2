"""Officer directory lookups"""

import logging
from typing import List, Optional

from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError
from evidence_sync.models import Officer

logger = logging.getLogger(__name__)


class OfficerDirectory:
    def __init__(self, store: Optional[RemoteStore]):
        self.store = store

    async def list_officers(self) -> List[Officer]:
        if self.store is None:
            return []
        try:
            rows = await self.store.select_where("officers", {}, order_by="name")
        except RemoteStoreError as e:
            logger.warning(f"Error fetching officers: {e}")
            return []
        return [Officer.model_validate(row) for row in rows]

    async def get(self, officer_id: str) -> Optional[Officer]:
        if self.store is None:
            return None
        try:
            rows = await self.store.select_where("officers", {"id": officer_id})
        except RemoteStoreError as e:
            logger.warning(f"Error fetching officer {officer_id}: {e}")
            return None
        return Officer.model_validate(rows[0]) if rows else None

    async def register(self, officer: Officer) -> bool:
        """Add or update a directory entry"""
        if self.store is None:
            return False
        try:
            await self.store.upsert("officers", [officer.model_dump()], "id")
        except RemoteStoreError as e:
            logger.error(f"Error saving officer {officer.id}: {e}")
            return False
        return True
