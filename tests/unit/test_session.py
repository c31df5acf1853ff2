"""End-to-end tests for the officer session controller"""

import asyncio

import pytest
import pytest_asyncio

from evidence_sync import ForensicSession, SessionContext
from evidence_sync.config.settings import Settings
from evidence_sync.core import EvidenceNotFoundError
from evidence_sync.infrastructure.storage import LocalStorage, reset_storage_provider
from evidence_sync.models import CallRecord, EvidenceKind, LocationRecord, MessageRecord, TeamMessage

from tests.conftest import FailingStore, ts


async def drain():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest_asyncio.fixture
async def session(store, settings, officer):
    session = ForensicSession(SessionContext(officer, settings), store=store)
    await session.open()
    yield session
    await session.close()


@pytest_asyncio.fixture
async def colleague(store, settings, other_officer):
    session = ForensicSession(SessionContext(other_officer, settings), store=store)
    await session.open()
    yield session
    await session.close()


class PostDuringLoadStore(FailingStore):
    """Another officer posts to team chat right after the history is fetched"""

    def __init__(self, inner, late_message):
        super().__init__(inner)
        self.late_message = late_message

    async def select_where(self, table, predicate, order_by=None, descending=False):
        rows = await super().select_where(table, predicate, order_by, descending)
        if table == "team_messages" and self.late_message is not None:
            message, self.late_message = self.late_message, None
            await self.inner.upsert("team_messages", [message.to_row(predicate["case_id"])])
        return rows


@pytest.mark.unit
class TestCaseLifecycle:
    @pytest.mark.asyncio
    async def test_ingest_and_timeline_with_simultaneous_events(self, session):
        case = session.new_case(
            "Handset A",
            device="iPhone 12",
            owner="Unknown",
            locations=[LocationRecord(timestamp=ts(10), lat=51.5, lng=-0.12)],
            messages=[MessageRecord(timestamp=ts(10), from_party="a", to_party="b", app="telegram")],
            calls=[CallRecord(timestamp=ts(10), from_party="a", to_party="b", type="outgoing")],
        )
        case.id = "CASE-2024-0001"

        report = await session.create_case(case, source_name="handset_a.zip")

        assert report.ok
        assert session.case is case
        assert [e.kind for e in session.timeline()] == [
            EvidenceKind.CALL, EvidenceKind.MESSAGE, EvidenceKind.LOCATION,
        ]
        assert case.activity_log[0].action == "Imported extraction"
        assert case.activity_log[0].target == "handset_a.zip"

    @pytest.mark.asyncio
    async def test_new_case_id_uses_configured_prefix(self, session):
        case = session.new_case("x")
        assert case.id.startswith("CASE-")

    @pytest.mark.asyncio
    async def test_open_case_logs_access(self, session, colleague, case):
        await session.create_case(case)

        opened = await colleague.open_case(case.id)

        assert opened.id == case.id
        assert opened.activity_log[0].action == "Opened Case"
        assert opened.activity_log[0].user_id == "off-2"

    @pytest.mark.asyncio
    async def test_open_missing_case(self, session):
        assert await session.open_case("CASE-2024-9999") is None
        assert session.case is None

    @pytest.mark.asyncio
    async def test_list_and_delete(self, session, case):
        await session.create_case(case)

        assert [s.id for s in await session.list_cases()] == [case.id]
        assert await session.delete_case(case.id) is True
        assert session.case is None
        assert await session.list_cases() == []

    @pytest.mark.asyncio
    async def test_actions_require_an_open_case(self, session):
        with pytest.raises(RuntimeError):
            session.timeline()
        with pytest.raises(RuntimeError):
            session.send_message("hello")


@pytest.mark.unit
class TestCollaboration:
    @pytest.mark.asyncio
    async def test_chat_between_two_officers(self, session, colleague, case):
        await session.create_case(case)
        await colleague.open_case(case.id)

        sent = session.send_message("Check the 10:05 SMS")
        await session.flush()
        await drain()

        assert [m.id for m in session.case.team_messages] == [sent.id]
        assert [m.content for m in colleague.case.team_messages] == ["Check the 10:05 SMS"]
        assert colleague.chat.unread is True

    @pytest.mark.asyncio
    async def test_chat_history_is_loaded_on_open(self, session, colleague, case):
        await session.create_case(case)
        session.send_message("first")
        await session.flush()

        reopened = await colleague.open_case(case.id)

        assert [m.content for m in reopened.team_messages] == ["first"]

    @pytest.mark.asyncio
    async def test_message_posted_while_opening_is_not_missed(self, session, store, settings, other_officer, case):
        await session.create_case(case)
        session.send_message("before open")
        await session.flush()
        late = TeamMessage(id="late-1", sender_id="off-1", content="posted during load")
        colleague = ForensicSession(SessionContext(other_officer, settings), store=PostDuringLoadStore(store, late))
        await colleague.open()
        try:
            opened = await colleague.open_case(case.id)
            await drain()

            assert [m.content for m in opened.team_messages] == ["before open", "posted during load"]
            assert opened.team_messages is colleague.chat.messages
        finally:
            await colleague.close()

    @pytest.mark.asyncio
    async def test_open_missing_case_closes_current_one(self, session, case, store):
        await session.create_case(case)

        assert await session.open_case("CASE-2024-9999") is None
        assert session.case is None
        assert store.feed.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_comment_visible_to_colleague_after_reload(self, session, colleague, case):
        await session.create_case(case)

        session.add_comment("p1", "Timestamp mismatch with EXIF")
        await session.flush()
        reopened = await colleague.open_case(case.id)

        assert [c.content for c in reopened.media[0].comments] == ["Timestamp mismatch with EXIF"]

    @pytest.mark.asyncio
    async def test_comment_on_unknown_evidence(self, session, case):
        await session.create_case(case)
        with pytest.raises(EvidenceNotFoundError):
            session.add_comment("nope", "x")


@pytest.mark.unit
class TestConnectivity:
    @pytest.mark.asyncio
    async def test_session_connects_from_settings(self, settings, officer):
        session = ForensicSession(SessionContext(officer, settings))
        await session.open()
        try:
            assert not session.offline
            assert not session.sync.offline
        finally:
            await session.close()

    @pytest.mark.asyncio
    async def test_unreachable_store_falls_back_to_offline(self, tmp_path, officer):
        settings = Settings(
            database_url=f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}",
            db_connect_attempts=2,
            db_connect_base_delay=0.01,
        )
        session = ForensicSession(SessionContext(officer, settings))

        await session.open()

        assert session.offline

    @pytest.mark.asyncio
    async def test_offline_session_works_in_memory(self, officer, case):
        session = ForensicSession(SessionContext(officer, Settings(database_url=None)))
        await session.open()

        report = await session.create_case(case)
        message = session.send_message("local note")
        session.add_comment("p1", "local comment")
        await session.flush()

        assert report.offline
        assert session.case.team_messages == [message]
        assert [c.content for c in session.case.media[0].comments] == ["local comment"]
        assert await session.list_cases() == []
        await session.close()

    def test_from_environment_uses_storage_factory(self, officer, monkeypatch, tmp_path):
        monkeypatch.setenv("STORAGE_PROVIDER", "local")
        monkeypatch.setenv("STORAGE_LOCAL_PATH", str(tmp_path / "media"))
        reset_storage_provider()
        try:
            session = ForensicSession.from_environment(officer)
            assert isinstance(session.storage, LocalStorage)
            assert session.sync.storage is session.storage
        finally:
            reset_storage_provider()


class CannedAIService:
    async def complete(self, prompt, system_instruction):
        return "## Executive Summary\nThree events on 14 March."


@pytest.mark.unit
class TestReports:
    @pytest.mark.asyncio
    async def test_generate_report_for_open_case(self, store, settings, officer, case):
        session = ForensicSession(SessionContext(officer, settings), store=store, ai_service=CannedAIService())
        await session.open()
        try:
            await session.create_case(case)
            report = await session.generate_report()
            insights = await session.analyst.insights(case.id)
        finally:
            await session.close()

        assert report.startswith("## Executive Summary")
        assert [i.content for i in insights] == [report]
