"""Shared fixtures: a real SQLite-backed store, failure injection and case builders."""

from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

import pytest
import pytest_asyncio

from evidence_sync.config.settings import Settings
from evidence_sync.infrastructure.database import DatabaseClient
from evidence_sync.infrastructure.store import RemoteStore, RemoteStoreError, SqlRemoteStore
from evidence_sync.logging_config import configure_logging
from evidence_sync.models import (
    Case,
    CallRecord,
    LocationRecord,
    MediaRecord,
    MessageRecord,
    Officer,
)


def pytest_configure(config):
    configure_logging("DEBUG")


def ts(hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2024, 3, 14, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'store.db'}",
        db_connect_attempts=1,
        media_inline_url_limit=100,
    )


@pytest_asyncio.fixture
async def db(settings):
    client = DatabaseClient(settings=settings)
    await client.initialize()
    yield client
    await client.close()


@pytest_asyncio.fixture
async def store(db) -> SqlRemoteStore:
    return SqlRemoteStore(db)


class FailingStore(RemoteStore):
    """Wraps a store and fails chosen (table, operation) pairs"""

    def __init__(self, inner: RemoteStore, failures: Optional[Set[Tuple[str, str]]] = None):
        self.inner = inner
        self.failures = set(failures or ())
        self.calls: List[Tuple[str, str]] = []

    def _check(self, table: str, operation: str) -> None:
        self.calls.append((table, operation))
        if (table, operation) in self.failures:
            raise RemoteStoreError(f"injected {operation} failure on {table}", table=table)

    async def upsert(self, table, rows, conflict_key=None):
        self._check(table, "upsert")
        return await self.inner.upsert(table, rows, conflict_key)

    async def update_where(self, table, predicate, values):
        self._check(table, "update")
        return await self.inner.update_where(table, predicate, values)

    async def delete_where(self, table, predicate):
        self._check(table, "delete")
        return await self.inner.delete_where(table, predicate)

    async def select_where(self, table, predicate, order_by=None, descending=False):
        self._check(table, "select")
        return await self.inner.select_where(table, predicate, order_by, descending)

    def subscribe_insert(self, table, filter=None):
        self._check(table, "subscribe")
        return self.inner.subscribe_insert(table, filter)


@pytest.fixture
def officer() -> Officer:
    return Officer(id="off-1", name="Det. Reyes", role="investigator", online=True)


@pytest.fixture
def other_officer() -> Officer:
    return Officer(id="off-2", name="Sgt. Okafor", role="investigator", online=True)


def make_case(case_id: str = "CASE-2024-0001") -> Case:
    return Case(
        id=case_id,
        name="Seized handset",
        device="Pixel 7",
        owner="J. Doe",
        extraction_date=ts(9),
        calls=[
            CallRecord(id="c1", timestamp=ts(10), from_party="+15550001", to_party="+15550002",
                       duration=42, type="outgoing"),
            CallRecord(id="c2", timestamp=ts(11), from_party="+15550003", to_party="+15550001",
                       duration=0, type="missed"),
        ],
        messages=[
            MessageRecord(id="m1", timestamp=ts(10, 5), from_party="+15550002", to_party="+15550001",
                          content="on my way", app="sms"),
        ],
        locations=[
            LocationRecord(id="l1", timestamp=ts(10, 30), lat=40.7128, lng=-74.006, label="Downtown"),
        ],
        media=[
            MediaRecord(id="p1", timestamp=ts(12), type="image", file_name="IMG_0001.jpg",
                        url="https://cdn.example.org/IMG_0001.jpg", size="2.1 MB",
                        mime_type="image/jpeg", metadata={"device": "Pixel 7"}),
        ],
    )


@pytest.fixture
def case() -> Case:
    return make_case()
