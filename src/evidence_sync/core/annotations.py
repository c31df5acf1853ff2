"""
Annotation Store

Append-only comments on media evidence.

Persistence overwrites the comment list of the item's stored row with the
local copy and never creates the row.
Two clients commenting on the same item at the same time each write a list
that lacks the other's comment, and whichever write lands last wins: one
comment is silently lost in the store. This is a known limitation.
"""

import asyncio
import logging
from typing import List, Optional, Set

from evidence_sync.core.identity import new_record_id
from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError
from evidence_sync.models import Case, CaseComment, EvidenceKind, Officer

logger = logging.getLogger(__name__)


class EvidenceNotFoundError(LookupError):
    """No media item with the given id in the open case"""


class AnnotationStore:
    """Comment threads for the media of one case"""

    def __init__(self, store: Optional[RemoteStore], case: Case):
        self.store = store
        self.case = case
        self._pending: Set[asyncio.Task] = set()

    def add_comment(self, evidence_id: str, author: Officer, content: str) -> CaseComment:
        """
        Append a comment locally and persist the item's full comment list.

        Args:
            evidence_id: Media record id
            author: Commenting officer
            content: Free text

        Returns:
            The new comment, already visible in the local case

        Raises:
            EvidenceNotFoundError: If the case has no media with that id
        """
        media = self.case.find_media(evidence_id)
        if media is None:
            raise EvidenceNotFoundError(f"Evidence not found: {evidence_id}")

        comment = CaseComment(
            id=new_record_id(),
            user_id=author.id,
            user_name=author.name,
            content=content,
            evidence_id=evidence_id,
        )
        media.comments = [*media.comments, comment]

        if self.store is None:
            logger.debug(f"Remote store not configured, comment {comment.id} kept locally")
            return comment

        snapshot = [c.model_dump(mode="json") for c in media.comments]
        task = asyncio.create_task(self._persist(evidence_id, snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return comment

    async def _persist(self, evidence_id: str, comments: List[dict]) -> bool:
        try:
            updated = await self.store.update_where(
                EvidenceKind.MEDIA.table,
                {"case_id": self.case.id, "id": evidence_id},
                {"comments": comments},
            )
        except RemoteStoreError as e:
            logger.error(f"Error updating comments for {evidence_id}: {e}")
            return False
        if not updated:
            logger.warning(
                f"Comments for {evidence_id} not saved: no stored media row in case {self.case.id}"
            )
            return False
        return True

    async def flush(self) -> None:
        """Wait for every outstanding comment write"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
