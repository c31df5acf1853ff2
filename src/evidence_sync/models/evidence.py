"""
Evidence Data Models

Core domain models for extracted device evidence and the case that owns it.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from extraction tools are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncModel(BaseModel):
    """Base model for everything that travels to the remote store"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class EvidenceKind(str, Enum):
    """Evidence kind, in timeline tie-break order"""
    CALL = "call"
    MESSAGE = "message"
    LOCATION = "location"
    MEDIA = "media"

    @property
    def table(self) -> str:
        return EVIDENCE_TABLES[self]

    @property
    def precedence(self) -> int:
        return _PRECEDENCE[self]


EVIDENCE_TABLES: Dict[EvidenceKind, str] = {
    EvidenceKind.CALL: "evidence_calls",
    EvidenceKind.MESSAGE: "evidence_messages",
    EvidenceKind.LOCATION: "evidence_locations",
    EvidenceKind.MEDIA: "evidence_media",
}

_PRECEDENCE: Dict[EvidenceKind, int] = {
    EvidenceKind.CALL: 0,
    EvidenceKind.MESSAGE: 1,
    EvidenceKind.LOCATION: 2,
    EvidenceKind.MEDIA: 3,
}


class CallType(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    MISSED = "missed"


class MessageApp(str, Enum):
    WHATSAPP = "whatsapp"
    SMS = "sms"
    TELEGRAM = "telegram"


class MediaType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"


class EvidenceRecord(SyncModel):
    """Fields shared by every evidence kind.

    ``id`` may be absent when the upstream extraction supplied none; it is
    synthesized by ``assign_missing_ids`` before the record is persisted.
    """

    id: Optional[str] = Field(None, description="Identifier, unique per case and table")
    timestamp: UTCDateTime = Field(..., description="When the event happened on the device")

    def to_row(self, case_id: str) -> Dict[str, Any]:
        """Flatten into a remote store row"""
        row = self.model_dump()
        row["case_id"] = case_id
        return row


class CallRecord(EvidenceRecord):
    kind: ClassVar[EvidenceKind] = EvidenceKind.CALL

    from_party: str = Field(..., description="Calling party")
    to_party: str = Field(..., description="Called party")
    duration: int = Field(0, ge=0, description="Duration in seconds")
    type: CallType = Field(..., description="Call direction")


class MessageRecord(EvidenceRecord):
    kind: ClassVar[EvidenceKind] = EvidenceKind.MESSAGE

    from_party: str
    to_party: str
    content: str = ""
    app: MessageApp


class LocationRecord(EvidenceRecord):
    kind: ClassVar[EvidenceKind] = EvidenceKind.LOCATION

    lat: float
    lng: float
    label: str = ""


class CaseComment(SyncModel):
    """Append-only annotation on a single evidence item"""

    id: str
    user_id: str
    user_name: str
    content: str
    timestamp: UTCDateTime = Field(default_factory=utcnow)
    evidence_id: str


class MediaRecord(EvidenceRecord):
    """Media evidence (image/video/audio) with its comment thread.

    ``content`` holds the bytes behind a transient ``blob:`` URL for the
    lifetime of the process only; it is never serialized.
    """

    kind: ClassVar[EvidenceKind] = EvidenceKind.MEDIA

    type: MediaType
    file_name: str
    url: Optional[str] = None
    size: str = ""
    mime_type: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    comments: List[CaseComment] = Field(default_factory=list)
    needs_reextraction: bool = Field(default=False, exclude=True)
    content: Optional[bytes] = Field(default=None, exclude=True, repr=False)

    def to_row(self, case_id: str) -> Dict[str, Any]:
        row = super().to_row(case_id)
        row["comments"] = [c.model_dump(mode="json") for c in self.comments]
        return row


AnyEvidence = Union[CallRecord, MessageRecord, LocationRecord, MediaRecord]

EVIDENCE_MODELS = {
    EvidenceKind.CALL: CallRecord,
    EvidenceKind.MESSAGE: MessageRecord,
    EvidenceKind.LOCATION: LocationRecord,
    EvidenceKind.MEDIA: MediaRecord,
}


@dataclass(frozen=True)
class TimelineEvent:
    """One entry of the merged timeline; keeps the full record for rendering"""

    kind: EvidenceKind
    record: AnyEvidence

    @property
    def timestamp(self) -> datetime:
        return self.record.timestamp
