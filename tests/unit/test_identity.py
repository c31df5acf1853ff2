"""Unit tests for identifier generation"""

import random
import re
from datetime import datetime, timezone

import pytest

from evidence_sync.core.identity import (
    EvidenceIdGenerator,
    assign_missing_ids,
    new_case_id,
    new_record_id,
)
from evidence_sync.models import Case, CallRecord, EvidenceKind, MessageRecord

from tests.conftest import ts


@pytest.mark.unit
class TestCaseIds:
    """Case id format"""

    def test_case_id_format(self):
        case_id = new_case_id(now=datetime(2024, 5, 1, tzinfo=timezone.utc), rng=random.Random(7))
        assert re.fullmatch(r"CASE-2024-\d{4}", case_id)
        assert 1000 <= int(case_id.rsplit("-", 1)[1]) <= 9999

    def test_case_id_prefix(self):
        assert new_case_id(prefix="INV").startswith("INV-")

    def test_record_ids_are_128_bit(self):
        ids = {new_record_id() for _ in range(500)}
        assert len(ids) == 500
        assert all(len(i) == 32 for i in ids)


@pytest.mark.unit
class TestEvidenceIdGenerator:
    """Deterministic evidence id synthesis"""

    def test_counter_is_per_kind(self):
        gen = EvidenceIdGenerator("CASE-2024-0001")
        assert gen.next_id(EvidenceKind.CALL) == "CASE-2024-0001_call_1"
        assert gen.next_id(EvidenceKind.CALL) == "CASE-2024-0001_call_2"
        assert gen.next_id(EvidenceKind.MESSAGE) == "CASE-2024-0001_message_1"

    def test_skips_taken_ids(self):
        gen = EvidenceIdGenerator("C", taken={"C_call_1", "C_call_2"})
        assert gen.next_id(EvidenceKind.CALL) == "C_call_3"

    def test_rapid_synthesis_never_collides(self):
        gen = EvidenceIdGenerator("C")
        ids = [gen.next_id(EvidenceKind.LOCATION) for _ in range(10_000)]
        assert len(set(ids)) == len(ids)

    def test_assign_missing_ids_is_deterministic(self):
        def build():
            return Case(
                id="CASE-2024-0002",
                name="x",
                calls=[
                    CallRecord(timestamp=ts(10), from_party="a", to_party="b", type="incoming"),
                    CallRecord(id="CASE-2024-0002_call_1", timestamp=ts(11), from_party="a",
                               to_party="b", type="incoming"),
                    CallRecord(timestamp=ts(12), from_party="a", to_party="b", type="incoming"),
                ],
                messages=[MessageRecord(timestamp=ts(10), from_party="a", to_party="b", app="sms")],
            )

        first, second = build(), build()
        assert assign_missing_ids(first) == 3
        assign_missing_ids(second)

        assert [c.id for c in first.calls] == [c.id for c in second.calls]
        assert [c.id for c in first.calls] == [
            "CASE-2024-0002_call_2",
            "CASE-2024-0002_call_1",
            "CASE-2024-0002_call_3",
        ]
        assert first.messages[0].id == "CASE-2024-0002_message_1"

    def test_assign_missing_ids_keeps_existing(self, case):
        before = [r.id for _, r in case.evidence()]
        assert assign_missing_ids(case) == 0
        assert [r.id for _, r in case.evidence()] == before
