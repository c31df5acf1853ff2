"""
Timeline assembly

Merges the evidence collections of a case into one chronologically ordered,
read-only sequence. Pure: nothing here mutates the case or keeps state
between calls.
"""

from collections.abc import Sequence
from typing import Iterable, List, Optional, Tuple

from evidence_sync.models import Case, EvidenceKind, TimelineEvent

DEFAULT_KINDS: Tuple[EvidenceKind, ...] = (
    EvidenceKind.CALL,
    EvidenceKind.MESSAGE,
    EvidenceKind.LOCATION,
)


class Timeline(Sequence):
    """Lazily sorted view over a case's evidence.

    Sorting happens on first access; iterating again restarts from the first
    event and yields the same events in the same order.
    """

    def __init__(self, case: Case, kinds: Iterable[EvidenceKind] = DEFAULT_KINDS):
        self._case = case
        self._kinds = tuple(EvidenceKind(k) for k in kinds)
        self._events: Optional[List[TimelineEvent]] = None

    def _ordered(self) -> List[TimelineEvent]:
        if self._events is None:
            keyed = []
            for kind in self._kinds:
                for index, record in enumerate(self._case.collection(kind)):
                    keyed.append(((record.timestamp, kind.precedence, index), TimelineEvent(kind, record)))
            keyed.sort(key=lambda item: item[0])
            self._events = [event for _, event in keyed]
        return self._events

    def __getitem__(self, index):
        return self._ordered()[index]

    def __len__(self) -> int:
        return len(self._ordered())

    def __iter__(self):
        return iter(self._ordered())

    def __repr__(self) -> str:
        return f"<Timeline(case='{self._case.id}', kinds={[k.value for k in self._kinds]})>"


def assemble(case: Case, kinds: Iterable[EvidenceKind] = DEFAULT_KINDS) -> Timeline:
    """Ordered evidence events for a case.

    Order is by timestamp; equal timestamps fall back to kind precedence
    (call, message, location, media) and then to position within the kind's
    collection.
    """
    return Timeline(case, kinds)
