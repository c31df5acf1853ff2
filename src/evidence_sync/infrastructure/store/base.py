"""Remote Store Interface

Abstract contract for the shared relational store that every client of a case
reads from and writes to, plus the real-time change stream it exposes.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Row = Dict[str, Any]
Predicate = Dict[str, Any]
# Column name, several column names, or None for the table's primary key
ConflictKey = Union[str, Sequence[str], None]


class RemoteStoreError(Exception):
    """A single remote read or write failed (network, constraint, driver)"""

    def __init__(self, message: str, *, table: Optional[str] = None) -> None:
        super().__init__(message)
        self.table = table


@dataclass(frozen=True)
class RealtimeEvent:
    """Change notification delivered through a subscription"""

    table: str
    operation: str
    row: Row = field(default_factory=dict)


_CLOSED = object()


class Subscription:
    """Filtered stream of INSERT events for one table.

    Iterate with ``async for``; iteration ends once ``close()`` is called.
    ``close()`` is idempotent and never raises, including after the stream
    has failed.
    """

    def __init__(
        self,
        table: str,
        filter: Optional[Predicate] = None,
        on_close: Optional[Callable[["Subscription"], None]] = None,
    ):
        self.table = table
        self.filter = dict(filter or {})
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: RealtimeEvent) -> bool:
        if event.table != self.table:
            return False
        return all(event.row.get(k) == v for k, v in self.filter.items())

    def deliver(self, event: RealtimeEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def fail(self, error: BaseException) -> None:
        """Terminate the stream with an error raised to the consumer"""
        if not self._closed:
            self._queue.put_nowait(error)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            try:
                self._on_close(self)
            except Exception as e:
                logger.warning(f"Error releasing subscription on {self.table}: {e}")

    def __aiter__(self):
        return self

    async def __anext__(self) -> RealtimeEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class ChangeFeed:
    """In-process fan-out of committed inserts to open subscriptions"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def open(self, table: str, filter: Optional[Predicate] = None) -> Subscription:
        subscription = Subscription(table, filter, on_close=self._release)
        self._subscriptions.append(subscription)
        logger.debug(f"Opened subscription on {table} filter={filter}")
        return subscription

    def publish(self, event: RealtimeEvent) -> int:
        delivered = 0
        for subscription in list(self._subscriptions):
            if subscription.matches(event):
                subscription.deliver(event)
                delivered += 1
        return delivered

    def close_all(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def _release(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class RemoteStore(ABC):
    """Abstract remote store.

    Rows are flat key-value records; nested structures (comment lists,
    media metadata) travel as opaque structured values in a single column.
    """

    @abstractmethod
    async def upsert(self, table: str, rows: List[Row], conflict_key: ConflictKey = None) -> int:
        """Insert rows, updating the supplied columns of rows whose
        ``conflict_key`` already exists. The key defaults to the table's
        primary key, which for evidence tables is ``(case_id, id)``.

        Returns:
            Number of rows written

        Raises:
            RemoteStoreError: If the write fails
        """
        pass

    @abstractmethod
    async def update_where(self, table: str, predicate: Predicate, values: Row) -> int:
        """Set ``values`` on existing rows matching ``predicate``; never inserts.

        Returns:
            Number of rows updated, 0 when nothing matched

        Raises:
            RemoteStoreError: If the update fails
        """
        pass

    @abstractmethod
    async def delete_where(self, table: str, predicate: Predicate) -> int:
        """Delete rows matching every key/value pair of ``predicate``.

        Returns:
            Number of rows deleted

        Raises:
            RemoteStoreError: If the delete fails
        """
        pass

    @abstractmethod
    async def select_where(
        self,
        table: str,
        predicate: Predicate,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        """Fetch rows matching ``predicate``.

        Raises:
            RemoteStoreError: If the read fails
        """
        pass

    @abstractmethod
    def subscribe_insert(self, table: str, filter: Optional[Predicate] = None) -> Subscription:
        """Open a stream of INSERT events for ``table`` restricted to ``filter``"""
        pass
