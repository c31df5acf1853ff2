"""
Identifier generation

Case ids, deterministic evidence ids for records that arrive without one, and
random ids for everything created interactively (chat, comments, audit).
"""

import logging
import random
from datetime import datetime, timezone
from typing import Dict, Optional, Set
from uuid import uuid4

from evidence_sync.models import Case, EvidenceKind

logger = logging.getLogger(__name__)


def new_case_id(
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
    prefix: str = "CASE",
) -> str:
    """Return ``<prefix>-<year>-<nnnn>`` with a random 4-digit suffix"""
    now = now or datetime.now(timezone.utc)
    rng = rng or random
    return f"{prefix}-{now.year}-{rng.randint(1000, 9999)}"


def new_record_id() -> str:
    """128-bit random identifier"""
    return uuid4().hex


class EvidenceIdGenerator:
    """Synthesizes evidence ids from case id, kind and a per-kind counter.

    Ids are ``{case_id}_{kind}_{n}``. The counter only moves forward and skips
    values already taken in the case, so ids never collide with upstream ids
    and are the same every time the same snapshot is ingested.
    """

    def __init__(self, case_id: str, taken: Optional[Set[str]] = None):
        self.case_id = case_id
        self._taken: Set[str] = set(taken or ())
        self._counters: Dict[EvidenceKind, int] = {}

    def next_id(self, kind: EvidenceKind) -> str:
        kind = EvidenceKind(kind)
        n = self._counters.get(kind, 0)
        while True:
            n += 1
            candidate = f"{self.case_id}_{kind.value}_{n}"
            if candidate not in self._taken:
                break
        self._counters[kind] = n
        self._taken.add(candidate)
        return candidate


def assign_missing_ids(case: Case) -> int:
    """Give every evidence record without an id a deterministic one.

    Returns:
        Number of ids assigned
    """
    taken = {record.id for _, record in case.evidence() if record.id}
    generator = EvidenceIdGenerator(case.id, taken)

    assigned = 0
    for kind, record in case.evidence():
        if not record.id:
            record.id = generator.next_id(kind)
            assigned += 1

    if assigned:
        logger.info(f"Assigned {assigned} evidence ids for case {case.id}")
    return assigned
