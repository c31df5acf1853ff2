"""Unit tests for the SQL-backed remote store"""

import asyncio

import pytest

from evidence_sync.infrastructure.store import RealtimeEvent, RemoteStoreError

from tests.conftest import ts


def _call(id, case_id="CASE-2024-0001", **overrides):
    row = {
        "id": id,
        "case_id": case_id,
        "timestamp": ts(10),
        "from_party": "a",
        "to_party": "b",
        "duration": 5,
        "type": "incoming",
    }
    row.update(overrides)
    return row


async def _seed_case(store, case_id="CASE-2024-0001"):
    await store.upsert("cases", [{"id": case_id, "name": "seed", "extraction_date": ts(9)}])


@pytest.mark.unit
class TestUpsert:
    """Insert-or-update semantics"""

    @pytest.mark.asyncio
    async def test_insert_then_update_supplied_columns_only(self, store):
        await _seed_case(store)
        await store.upsert("evidence_media", [{
            "id": "p1", "case_id": "CASE-2024-0001", "file_name": "IMG_0001.jpg", "url": "https://a/1.jpg",
        }])

        await store.upsert("evidence_media", [{"id": "p1", "case_id": "CASE-2024-0001", "url": "https://b/1.jpg"}])

        rows = await store.select_where("evidence_media", {"id": "p1"})
        assert rows[0]["url"] == "https://b/1.jpg"
        assert rows[0]["file_name"] == "IMG_0001.jpg"

    @pytest.mark.asyncio
    async def test_duplicate_keys_in_one_batch_last_wins(self, store):
        await _seed_case(store)
        count = await store.upsert("evidence_calls", [_call("c1", duration=1), _call("c1", duration=2)])

        assert count == 1
        rows = await store.select_where("evidence_calls", {"case_id": "CASE-2024-0001"})
        assert [r["duration"] for r in rows] == [2]

    @pytest.mark.asyncio
    async def test_empty_batch_is_a_noop(self, store):
        assert await store.upsert("evidence_calls", []) == 0

    @pytest.mark.asyncio
    async def test_unknown_table(self, store):
        with pytest.raises(RemoteStoreError) as exc_info:
            await store.upsert("nope", [{"id": "x"}])
        assert exc_info.value.table == "nope"

    @pytest.mark.asyncio
    async def test_constraint_violation_is_wrapped(self, store):
        # No parent case row: the foreign key rejects the insert
        with pytest.raises(RemoteStoreError):
            await store.upsert("evidence_calls", [_call("c1", case_id="CASE-MISSING")])

    @pytest.mark.asyncio
    async def test_same_evidence_id_in_two_cases_coexists(self, store):
        await _seed_case(store, "CASE-2024-0001")
        await _seed_case(store, "CASE-2024-0002")
        await store.upsert("evidence_calls", [_call("c1", duration=1)])

        await store.upsert("evidence_calls", [_call("c1", case_id="CASE-2024-0002", duration=2)])

        first = await store.select_where("evidence_calls", {"case_id": "CASE-2024-0001"})
        second = await store.select_where("evidence_calls", {"case_id": "CASE-2024-0002"})
        assert [(r["id"], r["duration"]) for r in first] == [("c1", 1)]
        assert [(r["id"], r["duration"]) for r in second] == [("c1", 2)]

    @pytest.mark.asyncio
    async def test_explicit_composite_key(self, store):
        await _seed_case(store)
        await store.upsert("evidence_calls", [_call("c1")], ("case_id", "id"))

        count = await store.upsert("evidence_calls", [_call("c1", duration=3)], ("case_id", "id"))

        assert count == 1
        rows = await store.select_where("evidence_calls", {})
        assert [r["duration"] for r in rows] == [3]

    @pytest.mark.asyncio
    async def test_row_missing_a_key_column(self, store):
        await _seed_case(store)
        with pytest.raises(RemoteStoreError):
            await store.upsert("evidence_calls", [{"id": "c1", "duration": 4}])

    @pytest.mark.asyncio
    async def test_unknown_conflict_column(self, store):
        await _seed_case(store)
        with pytest.raises(RemoteStoreError):
            await store.upsert("evidence_calls", [_call("c1")], "colour")


@pytest.mark.unit
class TestDeleteAndSelect:
    """Predicate-scoped reads and deletes"""

    @pytest.mark.asyncio
    async def test_delete_is_scoped_to_predicate(self, store):
        await _seed_case(store, "CASE-2024-0001")
        await _seed_case(store, "CASE-2024-0002")
        await store.upsert("evidence_calls", [_call("a1"), _call("a2"), _call("b1", case_id="CASE-2024-0002")])

        deleted = await store.delete_where("evidence_calls", {"case_id": "CASE-2024-0001"})

        assert deleted == 2
        remaining = await store.select_where("evidence_calls", {})
        assert [r["id"] for r in remaining] == ["b1"]

    @pytest.mark.asyncio
    async def test_delete_requires_predicate(self, store):
        with pytest.raises(ValueError):
            await store.delete_where("evidence_calls", {})

    @pytest.mark.asyncio
    async def test_unknown_column(self, store):
        with pytest.raises(RemoteStoreError):
            await store.select_where("evidence_calls", {"colour": "red"})

    @pytest.mark.asyncio
    async def test_unknown_order_column(self, store):
        with pytest.raises(RemoteStoreError) as exc_info:
            await store.select_where("evidence_calls", {}, order_by="nope")
        assert exc_info.value.table == "evidence_calls"

    @pytest.mark.asyncio
    async def test_ordering(self, store):
        await _seed_case(store)
        await store.upsert("evidence_calls", [
            _call("late", timestamp=ts(12)),
            _call("early", timestamp=ts(8)),
            _call("mid", timestamp=ts(10)),
        ])

        asc = await store.select_where("evidence_calls", {}, order_by="timestamp")
        desc = await store.select_where("evidence_calls", {}, order_by="timestamp", descending=True)

        assert [r["id"] for r in asc] == ["early", "mid", "late"]
        assert [r["id"] for r in desc] == ["late", "mid", "early"]

    @pytest.mark.asyncio
    async def test_case_delete_cascades(self, store):
        await _seed_case(store)
        await store.upsert("evidence_calls", [_call("c1")])
        await store.upsert("team_messages", [{
            "id": "t1", "case_id": "CASE-2024-0001", "sender_id": "off-1",
            "content": "hi", "timestamp": ts(10), "type": "text",
        }])

        await store.delete_where("cases", {"id": "CASE-2024-0001"})

        assert await store.select_where("evidence_calls", {}) == []
        assert await store.select_where("team_messages", {}) == []


@pytest.mark.unit
class TestUpdateWhere:
    """Update-only writes"""

    @pytest.mark.asyncio
    async def test_updates_matching_rows_only(self, store):
        await _seed_case(store, "CASE-2024-0001")
        await _seed_case(store, "CASE-2024-0002")
        await store.upsert("evidence_calls", [_call("c1"), _call("c1", case_id="CASE-2024-0002")])

        updated = await store.update_where(
            "evidence_calls", {"case_id": "CASE-2024-0002", "id": "c1"}, {"duration": 60}
        )

        assert updated == 1
        rows = await store.select_where("evidence_calls", {}, order_by="case_id")
        assert [(r["case_id"], r["duration"]) for r in rows] == [
            ("CASE-2024-0001", 5),
            ("CASE-2024-0002", 60),
        ]

    @pytest.mark.asyncio
    async def test_no_match_never_inserts(self, store):
        await _seed_case(store)
        subscription = store.subscribe_insert("evidence_calls")

        updated = await store.update_where(
            "evidence_calls", {"case_id": "CASE-2024-0001", "id": "ghost"}, {"duration": 1}
        )
        subscription.close()

        assert updated == 0
        assert await store.select_where("evidence_calls", {}) == []
        assert [event async for event in subscription] == []

    @pytest.mark.asyncio
    async def test_requires_predicate(self, store):
        with pytest.raises(ValueError):
            await store.update_where("evidence_calls", {}, {"duration": 1})

    @pytest.mark.asyncio
    async def test_unknown_value_column(self, store):
        with pytest.raises(RemoteStoreError):
            await store.update_where("evidence_calls", {"id": "c1"}, {"colour": "red"})


@pytest.mark.unit
class TestChangeFeed:
    """INSERT notifications"""

    @pytest.mark.asyncio
    async def test_only_new_rows_are_announced(self, store):
        await _seed_case(store)
        subscription = store.subscribe_insert("evidence_calls", {"case_id": "CASE-2024-0001"})

        await store.upsert("evidence_calls", [_call("c1")])
        await store.upsert("evidence_calls", [_call("c1", duration=7), _call("c2")])
        subscription.close()

        ids = [event.row["id"] async for event in subscription]
        assert ids == ["c1", "c2"]

    @pytest.mark.asyncio
    async def test_filter_excludes_other_cases(self, store):
        await _seed_case(store, "CASE-2024-0001")
        await _seed_case(store, "CASE-2024-0002")
        subscription = store.subscribe_insert("evidence_calls", {"case_id": "CASE-2024-0002"})

        await store.upsert("evidence_calls", [_call("a1"), _call("b1", case_id="CASE-2024-0002")])
        subscription.close()

        events = [event async for event in subscription]
        assert [e.row["id"] for e in events] == ["b1"]
        assert all(e.operation == "INSERT" for e in events)

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_releases(self, store):
        subscription = store.subscribe_insert("team_messages", {"case_id": "x"})
        assert store.feed.subscriber_count == 1

        subscription.close()
        subscription.close()

        assert store.feed.subscriber_count == 0
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_failed_stream_raises_to_consumer_then_closes_cleanly(self, store):
        subscription = store.subscribe_insert("team_messages")
        subscription.deliver(RealtimeEvent("team_messages", "INSERT", {"id": "t1"}))
        subscription.fail(ConnectionError("socket dropped"))

        received = []
        with pytest.raises(ConnectionError):
            async for event in subscription:
                received.append(event)

        assert [e.row["id"] for e in received] == ["t1"]
        subscription.close()
        subscription.close()

    @pytest.mark.asyncio
    async def test_subscribe_to_unknown_table(self, store):
        with pytest.raises(RemoteStoreError):
            store.subscribe_insert("nope")

    @pytest.mark.asyncio
    async def test_concurrent_reads(self, store):
        await _seed_case(store)
        await store.upsert("evidence_calls", [_call(f"c{i}") for i in range(20)])

        results = await asyncio.gather(*(
            store.select_where("evidence_calls", {"case_id": "CASE-2024-0001"}) for _ in range(10)
        ))

        assert all(len(rows) == 20 for rows in results)
