"""Data models for Evidence Sync"""

from .case import Case, CaseSummary, SyncReport, TableFailure
from .collaboration import (
    ActivityLogEntry,
    ActivityType,
    AIChatMessage,
    AIInsight,
    ChatRole,
    InsightType,
    Officer,
    TeamMessage,
    TeamMessageType,
)
from .evidence import (
    EVIDENCE_MODELS,
    EVIDENCE_TABLES,
    AnyEvidence,
    CallRecord,
    CallType,
    CaseComment,
    EvidenceKind,
    LocationRecord,
    MediaRecord,
    MediaType,
    MessageApp,
    MessageRecord,
    TimelineEvent,
)

__all__ = [
    "Case",
    "CaseSummary",
    "SyncReport",
    "TableFailure",
    "ActivityLogEntry",
    "ActivityType",
    "AIChatMessage",
    "AIInsight",
    "ChatRole",
    "InsightType",
    "Officer",
    "TeamMessage",
    "TeamMessageType",
    "EVIDENCE_MODELS",
    "EVIDENCE_TABLES",
    "AnyEvidence",
    "CallRecord",
    "CallType",
    "CaseComment",
    "EvidenceKind",
    "LocationRecord",
    "MediaRecord",
    "MediaType",
    "MessageApp",
    "MessageRecord",
    "TimelineEvent",
]
