"""
Forensic Session

Top-level controller for one signed-in officer. Owns the remote store
connection (or the lack of one), the open case, and the components that act
on it. Components receive the store and settings explicitly from here.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from evidence_sync.config.settings import Settings, settings as default_settings
from evidence_sync.core import (
    DEFAULT_KINDS,
    ActivityRecorder,
    AIService,
    AnnotationStore,
    CaseAnalyst,
    CaseSyncManager,
    OfficerDirectory,
    Timeline,
    assemble,
    new_case_id,
    new_record_id,
)
from evidence_sync.infrastructure.database import DatabaseClient
from evidence_sync.infrastructure.storage import StorageProvider, get_storage_provider
from evidence_sync.infrastructure.store import RemoteStore, SqlRemoteStore
from evidence_sync.logging_config import configure_logging
from evidence_sync.models import (
    ActivityType,
    Case,
    CaseComment,
    CaseSummary,
    EvidenceKind,
    Officer,
    SyncReport,
    TeamMessage,
    TeamMessageType,
)
from evidence_sync.realtime import RealtimeMessageBus

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Who is acting, and with which configuration"""

    officer: Officer
    settings: Settings = field(default_factory=lambda: default_settings)


class ForensicSession:
    """One officer's working session over the shared case store"""

    def __init__(
        self,
        context: SessionContext,
        store: Optional[RemoteStore] = None,
        storage: Optional[StorageProvider] = None,
        ai_service: Optional[AIService] = None,
    ):
        self.context = context
        self.store = store
        self.storage = storage
        self.ai_service = ai_service

        self.case: Optional[Case] = None
        self.annotations: Optional[AnnotationStore] = None
        self._db: Optional[DatabaseClient] = None
        self._wire()

    @classmethod
    def from_environment(cls, officer: Officer, ai_service: Optional[AIService] = None) -> "ForensicSession":
        """Session configured from DATABASE_URL, STORAGE_PROVIDER and friends"""
        configure_logging()
        return cls(
            SessionContext(officer, default_settings),
            storage=get_storage_provider(),
            ai_service=ai_service,
        )

    @property
    def officer(self) -> Officer:
        return self.context.officer

    @property
    def offline(self) -> bool:
        return self.store is None

    def _wire(self) -> None:
        self.sync = CaseSyncManager(self.store, self.storage, self.context.settings)
        self.chat = RealtimeMessageBus(self.store)
        self.activity = ActivityRecorder(self.store)
        self.officers = OfficerDirectory(self.store)
        self.analyst = CaseAnalyst(self.ai_service, self.store, self.activity)

    async def open(self) -> None:
        """Connect to the configured store, or continue offline"""
        settings = self.context.settings
        if self.store is None and not settings.is_offline:
            db = DatabaseClient(settings=settings)
            try:
                await db.initialize()
            except (SQLAlchemyError, OSError, RuntimeError) as e:
                logger.error(f"Remote store unreachable, continuing offline: {e}")
                await db.close()
            else:
                self._db = db
                self.store = SqlRemoteStore(db)
                self._wire()

        if self.offline:
            logger.warning("Running in offline mode; the in-memory case is the only copy")
        else:
            logger.info(f"Session opened for officer {self.officer.id}")

    async def close(self) -> None:
        await self.flush()
        await self.close_case()
        if self._db is not None:
            await self._db.close()
            self._db = None

    # ------------------------------------------------------------------
    # Case lifecycle
    # ------------------------------------------------------------------

    def new_case(self, name: str, device: str = "", owner: str = "", **evidence) -> Case:
        """Build an unsaved case with a fresh id"""
        return Case(
            id=new_case_id(prefix=self.context.settings.case_id_prefix),
            name=name,
            device=device,
            owner=owner,
            **evidence,
        )

    async def create_case(self, case: Case, source_name: Optional[str] = None) -> SyncReport:
        """Persist a freshly ingested case and make it the open case"""
        report = await self.sync.create(case, self.officer.id)
        if report.metadata_saved:
            await self.activity.record(
                case, self.officer, "Imported extraction", source_name or case.name, ActivityType.SYSTEM
            )
        await self.close_case()
        await self.chat.subscribe(case.id)
        self._adopt(case)
        return report

    async def open_case(self, case_id: str) -> Optional[Case]:
        """
        Load a stored case and make it the open case.

        Any open case is closed first. Chat is subscribed before the case is
        fetched so messages posted during the load are not missed.
        """
        await self.close_case()
        await self.chat.subscribe(case_id)
        case = await self.sync.load(case_id)
        if case is None:
            await self.chat.unsubscribe()
            return None
        self._adopt(case)
        await self.activity.record(case, self.officer, "Opened Case", case.name, ActivityType.ACCESS)
        return case

    async def delete_case(self, case_id: str) -> bool:
        if self.case is not None and self.case.id == case_id:
            await self.close_case()
        return await self.sync.delete(case_id)

    async def list_cases(self) -> List[CaseSummary]:
        return await self.sync.list_cases()

    def _adopt(self, case: Case) -> None:
        self.case = case
        self.chat.load_history(case.team_messages)
        # Chat and case share one list so the snapshot reflects live chat
        case.team_messages = self.chat.messages
        self.annotations = AnnotationStore(self.store, case)

    async def close_case(self) -> None:
        """Stop listening for the open case; queued writes still complete"""
        await self.chat.unsubscribe()
        self.case = None
        self.annotations = None

    def _require_case(self) -> Case:
        if self.case is None:
            raise RuntimeError("No case is open")
        return self.case

    # ------------------------------------------------------------------
    # Actions on the open case
    # ------------------------------------------------------------------

    def timeline(self, kinds: Iterable[EvidenceKind] = DEFAULT_KINDS) -> Timeline:
        return assemble(self._require_case(), kinds)

    def send_message(
        self,
        content: str,
        type: TeamMessageType = TeamMessageType.TEXT,
        file_name: Optional[str] = None,
    ) -> TeamMessage:
        self._require_case()
        message = TeamMessage(
            id=new_record_id(),
            sender_id=self.officer.id,
            content=content,
            type=type,
            file_name=file_name,
        )
        self.chat.send(message)
        return message

    def add_comment(self, evidence_id: str, content: str) -> CaseComment:
        self._require_case()
        return self.annotations.add_comment(evidence_id, self.officer, content)

    async def generate_report(self) -> str:
        return await self.analyst.generate_report(self._require_case(), self.officer)

    async def flush(self) -> None:
        """Wait for background chat and comment writes"""
        await self.chat.flush()
        if self.annotations is not None:
            await self.annotations.flush()
