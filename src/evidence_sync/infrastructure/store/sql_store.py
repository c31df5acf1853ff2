"""SQL Remote Store Implementation

RemoteStore backed by the async SQLAlchemy engine. Upserts use the dialect's
native ``INSERT ... ON CONFLICT DO UPDATE`` (SQLite, PostgreSQL), and rows that
did not exist before a write are announced on the change feed. The conflict
target defaults to the table's primary key.
"""

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Column, Table, delete, select, tuple_, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from evidence_sync.infrastructure.database.client import DatabaseClient
from evidence_sync.infrastructure.database.models import TABLES
from evidence_sync.infrastructure.store.base import (
    ChangeFeed,
    ConflictKey,
    Predicate,
    RealtimeEvent,
    RemoteStore,
    RemoteStoreError,
    Row,
    Subscription,
)

logger = logging.getLogger(__name__)

_INSERT_BY_DIALECT = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SqlRemoteStore(RemoteStore):
    """Remote store over a SQLAlchemy async database.

    Each operation runs in its own session so concurrent reads issued with
    ``asyncio.gather`` never share a connection.
    """

    def __init__(self, db: DatabaseClient, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed or ChangeFeed()

    def _table(self, name: str) -> Table:
        try:
            return TABLES[name]
        except KeyError:
            raise RemoteStoreError(f"Unknown table: {name}", table=name)

    def _where(self, table: Table, predicate: Predicate):
        try:
            return [table.c[column] == value for column, value in predicate.items()]
        except KeyError as e:
            raise RemoteStoreError(f"Unknown column {e} on {table.name}", table=table.name)

    def _column(self, table: Table, name: str) -> Column:
        try:
            return table.c[name]
        except KeyError:
            raise RemoteStoreError(f"Unknown column '{name}' on {table.name}", table=table.name)

    def _key_columns(self, table: Table, conflict_key: ConflictKey) -> List[Column]:
        if conflict_key is None:
            return list(table.primary_key.columns)
        names = [conflict_key] if isinstance(conflict_key, str) else list(conflict_key)
        if not names:
            raise ValueError("conflict_key must name at least one column")
        return [self._column(table, name) for name in names]

    async def upsert(self, table: str, rows: List[Row], conflict_key: ConflictKey = None) -> int:
        if not rows:
            return 0

        t = self._table(table)
        dialect = self.db.engine.dialect.name
        insert = _INSERT_BY_DIALECT.get(dialect)
        if insert is None:
            raise RemoteStoreError(f"Upsert not supported on dialect {dialect}", table=table)

        key_columns = self._key_columns(t, conflict_key)
        key_names = [c.name for c in key_columns]

        # Last occurrence of a key wins within one batch
        unique: Dict[Tuple, Row] = {}
        for row in rows:
            key = tuple(row.get(name) for name in key_names)
            if None in key:
                raise RemoteStoreError(f"Row without {', '.join(key_names)} for {table}", table=table)
            unique[key] = row

        # Group rows by column set so each statement has uniform VALUES
        batches: Dict[tuple, List[Row]] = {}
        for row in unique.values():
            batches.setdefault(tuple(sorted(row)), []).append(row)

        if len(key_columns) == 1:
            lookup = key_columns[0].in_([key[0] for key in unique])
        else:
            lookup = tuple_(*key_columns).in_(list(unique))

        try:
            async with self.db.get_session() as session:
                result = await session.execute(select(*key_columns).where(lookup))
                existing = {tuple(found) for found in result.all()}

                for columns, batch in batches.items():
                    stmt = insert(t).values(batch)
                    update_cols = {c: stmt.excluded[c] for c in columns if c not in key_names}
                    if update_cols:
                        stmt = stmt.on_conflict_do_update(index_elements=key_columns, set_=update_cols)
                    else:
                        stmt = stmt.on_conflict_do_nothing(index_elements=key_columns)
                    await session.execute(stmt)

                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Upsert into {table} failed: {e}")
            raise RemoteStoreError(f"Upsert into {table} failed: {e}", table=table) from e

        for key, row in unique.items():
            if key not in existing:
                self.feed.publish(RealtimeEvent(table=table, operation="INSERT", row=dict(row)))

        logger.debug(f"Upserted {len(unique)} rows into {table} ({len(unique) - len(existing)} new)")
        return len(unique)

    async def update_where(self, table: str, predicate: Predicate, values: Row) -> int:
        if not predicate:
            raise ValueError("update_where requires a non-empty predicate")

        t = self._table(table)
        conditions = self._where(t, predicate)
        for column in values:
            self._column(t, column)
        if not values:
            return 0

        try:
            async with self.db.get_session() as session:
                result = await session.execute(update(t).where(*conditions).values(**values))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Update of {table} failed: {e}")
            raise RemoteStoreError(f"Update of {table} failed: {e}", table=table) from e

        logger.debug(f"Updated {result.rowcount} rows of {table} where {predicate}")
        return result.rowcount

    async def delete_where(self, table: str, predicate: Predicate) -> int:
        if not predicate:
            raise ValueError("delete_where requires a non-empty predicate")

        t = self._table(table)
        conditions = self._where(t, predicate)
        try:
            async with self.db.get_session() as session:
                result = await session.execute(delete(t).where(*conditions))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Delete from {table} failed: {e}")
            raise RemoteStoreError(f"Delete from {table} failed: {e}", table=table) from e

        logger.debug(f"Deleted {result.rowcount} rows from {table} where {predicate}")
        return result.rowcount

    async def select_where(
        self,
        table: str,
        predicate: Predicate,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Row]:
        t = self._table(table)
        stmt = select(t)
        conditions = self._where(t, predicate)
        if conditions:
            stmt = stmt.where(*conditions)
        if order_by:
            column = self._column(t, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        try:
            async with self.db.get_session() as session:
                result = await session.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            logger.error(f"Select from {table} failed: {e}")
            raise RemoteStoreError(f"Select from {table} failed: {e}", table=table) from e

    def subscribe_insert(self, table: str, filter: Optional[Predicate] = None) -> Subscription:
        self._table(table)
        return self.feed.open(table, filter)
