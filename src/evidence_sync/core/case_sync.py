"""
Case Sync Manager

Reconciles an in-memory case snapshot with the remote store: bulk
re-ingestion of a whole case, full-case reload, deletion and listing.
"""

import asyncio
import json
import logging
import mimetypes
from io import BytesIO
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from evidence_sync.config.settings import Settings, settings as default_settings
from evidence_sync.core.identity import assign_missing_ids
from evidence_sync.infrastructure.storage import StorageError, StorageProvider
from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError
from evidence_sync.models import (
    ActivityLogEntry,
    Case,
    CaseSummary,
    CallRecord,
    EvidenceKind,
    LocationRecord,
    MediaRecord,
    MessageRecord,
    SyncReport,
    TableFailure,
    TeamMessage,
)
from evidence_sync.models.evidence import utcnow

logger = logging.getLogger(__name__)

# Process-local handles that are meaningless once the process exits
TRANSIENT_URL_PREFIXES = ("blob:",)
# Upstream evidence ids repeat across cases
EVIDENCE_KEY = ("case_id", "id")


def is_transient_url(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(TRANSIENT_URL_PREFIXES)


def _decode_comments(value: Any) -> List[Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return value if isinstance(value, list) else []


class CaseSyncManager:
    """Business logic for keeping a case snapshot and the remote store in step"""

    def __init__(
        self,
        store: Optional[RemoteStore],
        storage: Optional[StorageProvider] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.storage = storage
        self.settings = settings or default_settings

    @property
    def offline(self) -> bool:
        return self.store is None

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def create(self, case: Case, actor_id: str) -> SyncReport:
        """
        Write a full case snapshot, replacing whatever the store holds for it.

        Case metadata is written first, on its own. Each evidence table is then
        replaced by delete-then-insert scoped to the case id, independently of
        the others: a failing table is reported and the rest still complete.
        A crash between a table's delete and insert leaves that table empty
        for the case until the next re-ingest.

        Args:
            case: Snapshot to persist; missing evidence ids are assigned in place
            actor_id: Officer performing the write

        Returns:
            SyncReport with per-table failures
        """
        report = SyncReport(case_id=case.id)
        if self.offline:
            logger.warning(f"Remote store not configured, skipping persistence of case {case.id}")
            report.offline = True
            return report

        assign_missing_ids(case)

        try:
            await self.store.upsert("cases", [case.metadata_row(created_by=actor_id)], "id")
            report.metadata_saved = True
        except RemoteStoreError as e:
            logger.error(f"Error saving case metadata for {case.id}: {e}")
            report.failures.append(TableFailure(table="cases", stage="insert", error=str(e)))
            return report

        media_rows = await asyncio.gather(*(self._media_row(case.id, m) for m in case.media))
        plan = {
            EvidenceKind.CALL.table: [c.to_row(case.id) for c in case.calls],
            EvidenceKind.MESSAGE.table: [m.to_row(case.id) for m in case.messages],
            EvidenceKind.LOCATION.table: [loc.to_row(case.id) for loc in case.locations],
            EvidenceKind.MEDIA.table: list(media_rows),
        }

        outcomes = await asyncio.gather(
            *(self._replace_table(case.id, table, rows) for table, rows in plan.items())
        )
        for table, failures in zip(plan, outcomes):
            if failures:
                report.failures.extend(failures)
            else:
                report.tables_written.append(table)

        if report.failures:
            logger.warning(
                f"Case {case.id} saved with failures in: {', '.join(report.failed_tables())}"
            )
        else:
            logger.info(
                f"Persisted case {case.id}: {len(case.calls)} calls, {len(case.messages)} messages, "
                f"{len(case.locations)} locations, {len(case.media)} media items"
            )
        return report

    async def _replace_table(self, case_id: str, table: str, rows: List[Dict[str, Any]]) -> List[TableFailure]:
        failures = []
        try:
            await self.store.delete_where(table, {"case_id": case_id})
        except RemoteStoreError as e:
            logger.warning(f"Error clearing {table} for case {case_id}: {e}")
            failures.append(TableFailure(table=table, stage="delete", error=str(e)))

        if rows:
            try:
                await self.store.upsert(table, rows, EVIDENCE_KEY)
            except RemoteStoreError as e:
                logger.error(f"Error saving {table} for case {case_id}: {e}")
                failures.append(TableFailure(table=table, stage="insert", error=str(e)))
        return failures

    async def _media_row(self, case_id: str, media: MediaRecord) -> Dict[str, Any]:
        """Row for a media item with its URL made safe to persist"""
        row = media.to_row(case_id)
        url = media.url

        if is_transient_url(url):
            durable = await self._upload_media(case_id, media)
            row["url"] = durable
            if durable:
                media.url = durable
        elif url and url.startswith("data:") and len(url) > self.settings.media_inline_url_limit:
            logger.warning(
                f"Data URL too large for {media.file_name} ({len(url) // 1024}KB), storing without URL"
            )
            row["url"] = None

        return row

    async def _upload_media(self, case_id: str, media: MediaRecord) -> Optional[str]:
        """Upload the bytes behind a transient URL; None when that is not possible"""
        if self.storage is None or media.content is None:
            logger.info(
                f"Durable storage unavailable for {media.file_name}; "
                f"media will work in the current session only"
            )
            return None

        content_type = media.mime_type or mimetypes.guess_type(media.file_name)[0] or "application/octet-stream"
        key = f"{self.settings.media_key_prefix}/{case_id}/{media.id}/{media.file_name}"
        try:
            stored_key = await self.storage.upload(
                file_stream=BytesIO(media.content),
                key=key,
                content_type=content_type,
                case_id=case_id,
            )
        except StorageError as e:
            logger.warning(f"Storage upload skipped for {media.file_name}: {e}")
            return None
        return self.storage.public_url(stored_key)

    async def delete(self, case_id: str) -> bool:
        """
        Delete case metadata; the store cascades to evidence, chat and logs.

        Returns:
            True if a case row was deleted
        """
        if self.offline:
            logger.warning(f"Remote store not configured, skipping deletion of case {case_id}")
            return False

        try:
            deleted = await self.store.delete_where("cases", {"id": case_id})
        except RemoteStoreError as e:
            logger.error(f"Failed to delete case {case_id}: {e}")
            return False

        logger.info(f"Deleted case {case_id}")
        return deleted > 0

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def load(self, case_id: str) -> Optional[Case]:
        """
        Load a full case.

        Evidence collections are fetched concurrently. A collection that fails
        to load comes back empty so the rest of the case stays usable.

        Returns:
            The case, or None if its metadata is missing or unreadable
        """
        if self.offline:
            return None

        try:
            rows = await self.store.select_where("cases", {"id": case_id})
        except RemoteStoreError as e:
            logger.error(f"Error fetching case metadata for {case_id}: {e}")
            return None
        if not rows:
            logger.warning(f"Case not found: {case_id}")
            return None
        meta = rows[0]

        calls, messages, locations, media, team_messages, activity = await asyncio.gather(
            self._fetch(case_id, "evidence_calls", CallRecord),
            self._fetch(case_id, "evidence_messages", MessageRecord),
            self._fetch(case_id, "evidence_locations", LocationRecord),
            self._fetch(case_id, "evidence_media", MediaRecord, prepare=self._prepare_media_row),
            self._fetch(case_id, "team_messages", TeamMessage, order_by="timestamp"),
            self._fetch(case_id, "activity_logs", ActivityLogEntry, order_by="timestamp", descending=True),
        )

        for item in media:
            if is_transient_url(item.url):
                logger.warning(f"Transient URL stored for {item.file_name}; needs re-extraction")
                item.url = None
                item.needs_reextraction = True

        logger.info(
            f"Loaded case {case_id}: {len(calls)} calls, {len(messages)} messages, "
            f"{len(media)} media items"
        )

        return Case(
            id=meta["id"],
            name=meta["name"],
            device=meta.get("device") or "",
            owner=meta.get("owner") or "",
            extraction_date=meta.get("extraction_date") or utcnow(),
            calls=calls,
            messages=messages,
            locations=locations,
            media=media,
            team_messages=team_messages,
            activity_log=activity,
        )

    @staticmethod
    def _prepare_media_row(row: Dict[str, Any]) -> Dict[str, Any]:
        row = dict(row)
        row["comments"] = _decode_comments(row.get("comments"))
        row["metadata"] = row.get("metadata") or {}
        return row

    async def _fetch(
        self,
        case_id: str,
        table: str,
        model: Type[BaseModel],
        order_by: Optional[str] = None,
        descending: bool = False,
        prepare=None,
    ) -> List[Any]:
        try:
            rows = await self.store.select_where(table, {"case_id": case_id}, order_by, descending)
        except RemoteStoreError as e:
            logger.warning(f"Error fetching {table} for case {case_id}: {e}")
            return []

        items = []
        for row in rows:
            if prepare is not None:
                row = prepare(row)
            try:
                items.append(model.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed row {row.get('id')} in {table}: {e}")
        return items

    async def list_cases(self) -> List[CaseSummary]:
        """All cases in the store, newest extraction first"""
        if self.offline:
            return []

        try:
            rows = await self.store.select_where("cases", {}, order_by="extraction_date", descending=True)
        except RemoteStoreError as e:
            logger.error(f"Error listing cases: {e}")
            return []
        return [CaseSummary.model_validate(row) for row in rows]
