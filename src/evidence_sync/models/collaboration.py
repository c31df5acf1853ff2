"""
Collaboration Data Models

Team chat, audit trail, officer directory and archived AI output.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field

from .evidence import SyncModel, UTCDateTime, utcnow


class TeamMessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    ALERT = "alert"


class TeamMessage(SyncModel):
    """Team chat message; ``id`` is the deduplication key across clients"""

    id: str = Field(..., description="Client-generated globally unique id")
    sender_id: str
    content: str = ""
    timestamp: UTCDateTime = Field(default_factory=utcnow)
    type: TeamMessageType = TeamMessageType.TEXT
    file_name: Optional[str] = None

    def to_row(self, case_id: str) -> Dict[str, Any]:
        row = self.model_dump()
        row["case_id"] = case_id
        return row


class ActivityType(str, Enum):
    ACCESS = "access"
    EDIT = "edit"
    FLAG = "flag"
    SYSTEM = "system"


class ActivityLogEntry(SyncModel):
    """Append-only audit record"""

    id: str
    user_id: str
    user_name: str
    action: str
    target: str
    timestamp: UTCDateTime = Field(default_factory=utcnow)
    type: ActivityType = ActivityType.SYSTEM

    def to_row(self, case_id: str) -> Dict[str, Any]:
        row = self.model_dump()
        row["case_id"] = case_id
        return row


class Officer(SyncModel):
    """Directory entry for an investigator"""

    id: str
    name: str
    role: str = "investigator"
    avatar: str = ""
    online: bool = False


class InsightType(str, Enum):
    REPORT = "report"
    ANALYSIS = "analysis"
    SUMMARY = "summary"


class AIInsight(SyncModel):
    """Archived output of the summarization service"""

    id: str
    type: InsightType = InsightType.REPORT
    title: str
    content: str
    generated_by: str
    timestamp: UTCDateTime = Field(default_factory=utcnow)


class ChatRole(str, Enum):
    USER = "user"
    MODEL = "model"


class AIChatMessage(SyncModel):
    id: str
    role: ChatRole
    text: str
    timestamp: UTCDateTime = Field(default_factory=utcnow)
