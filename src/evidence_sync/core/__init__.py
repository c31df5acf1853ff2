"""Core synchronization logic"""

from .activity import ActivityRecorder
from .annotations import AnnotationStore, EvidenceNotFoundError
from .case_sync import CaseSyncManager, is_transient_url
from .identity import EvidenceIdGenerator, assign_missing_ids, new_case_id, new_record_id
from .insights import AIService, CaseAnalyst
from .officers import OfficerDirectory
from .timeline import DEFAULT_KINDS, Timeline, assemble

__all__ = [
    "ActivityRecorder",
    "AnnotationStore",
    "EvidenceNotFoundError",
    "CaseSyncManager",
    "is_transient_url",
    "EvidenceIdGenerator",
    "assign_missing_ids",
    "new_case_id",
    "new_record_id",
    "AIService",
    "CaseAnalyst",
    "OfficerDirectory",
    "DEFAULT_KINDS",
    "Timeline",
    "assemble",
]
