"""
Case Data Models

The case snapshot held in memory by a client, plus sync outcome reporting.
"""

from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import BaseModel, Field

from .collaboration import ActivityLogEntry, TeamMessage
from .evidence import (
    AnyEvidence,
    CallRecord,
    EvidenceKind,
    LocationRecord,
    MediaRecord,
    MessageRecord,
    SyncModel,
    UTCDateTime,
    utcnow,
)


class Case(SyncModel):
    """Unit of investigation: one extracted device and everything found on it"""

    id: str = Field(..., description="Globally unique case id (CASE-<year>-<nnnn>)")
    name: str
    device: str = ""
    owner: str = ""
    extraction_date: UTCDateTime = Field(default_factory=utcnow)

    calls: List[CallRecord] = Field(default_factory=list)
    messages: List[MessageRecord] = Field(default_factory=list)
    locations: List[LocationRecord] = Field(default_factory=list)
    media: List[MediaRecord] = Field(default_factory=list)
    team_messages: List[TeamMessage] = Field(default_factory=list)
    activity_log: List[ActivityLogEntry] = Field(default_factory=list)

    def collection(self, kind: EvidenceKind) -> List[AnyEvidence]:
        """Evidence list for a kind"""
        return {
            EvidenceKind.CALL: self.calls,
            EvidenceKind.MESSAGE: self.messages,
            EvidenceKind.LOCATION: self.locations,
            EvidenceKind.MEDIA: self.media,
        }[EvidenceKind(kind)]

    def evidence(self) -> Iterator[Tuple[EvidenceKind, AnyEvidence]]:
        for kind in EvidenceKind:
            for record in self.collection(kind):
                yield kind, record

    def find_media(self, evidence_id: str) -> Optional[MediaRecord]:
        for item in self.media:
            if item.id == evidence_id:
                return item
        return None

    def metadata_row(self, created_by: Optional[str] = None) -> Dict[str, Any]:
        """Row for the ``cases`` table"""
        row: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "device": self.device,
            "owner": self.owner,
            "extraction_date": self.extraction_date,
        }
        if created_by is not None:
            row["created_by"] = created_by
        return row


class CaseSummary(BaseModel):
    """Simplified case item for listings"""

    id: str
    name: str
    device: str = ""
    extraction_date: Optional[datetime] = None


class TableFailure(BaseModel):
    """One evidence table that could not be replaced"""

    table: str
    stage: str = Field(..., description="'delete' or 'insert'")
    error: str


class SyncReport(BaseModel):
    """Aggregated outcome of a bulk case write"""

    case_id: str
    offline: bool = False
    metadata_saved: bool = False
    tables_written: List[str] = Field(default_factory=list)
    failures: List[TableFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.metadata_saved and not self.failures

    def failed_tables(self) -> List[str]:
        return sorted({f.table for f in self.failures})
