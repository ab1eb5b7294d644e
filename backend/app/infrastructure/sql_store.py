"""
SQLAlchemy implementation of the record store.

CONCURRENCY STRATEGY: Compare-and-swap on a version column
==========================================================

Problem:
  Two administrators approve (or approve and reject) the same booking at the
  same time. Both read status=pending, both write. Last write wins and one
  admin's decision silently disappears.

Solution:
  Every mutable table carries `version`. Updates are issued as

    UPDATE t SET ..., version = version + 1
    WHERE id = :id AND version = :expected_version

  and rowcount == 0 means somebody else got there first. We do not retry:
  a lost approval race must be re-decided by a human on fresh data, so the
  caller gets VersionConflictError (HTTP 409).

Change events are queued on the session and only dispatched after commit
(see app.db.session).
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, VersionConflictError
from app.core.logging import get_logger
from app.core.metrics import record_version_conflict
from app.services.interfaces.store import RecordStore
from app.services.notification_service import (
    DELETE,
    INSERT,
    PENDING_CHANGES_KEY,
    UPDATE,
    ChangeEvent,
    ChangeFeed,
    change_feed,
)

logger = get_logger(__name__)


def _row_values(record) -> Dict[str, Any]:
    mapper = inspect(record).mapper
    return {attr.key: getattr(record, attr.key) for attr in mapper.column_attrs}


class SqlAlchemyStore(RecordStore):
    """Record store over a request-scoped AsyncSession."""

    def __init__(self, db: AsyncSession, feed: ChangeFeed = change_feed):
        self.db = db
        self.feed = feed

    def _queue_change(self, table: str, operation: str, record_id: Optional[int], changes: dict) -> None:
        pending = self.db.info.setdefault(PENDING_CHANGES_KEY, [])
        pending.append(ChangeEvent(table=table, operation=operation, record_id=record_id, changes=changes))

    async def get(self, model, record_id):
        return await self.db.get(model, record_id)

    async def get_or_raise(self, model, record_id):
        record = await self.db.get(model, record_id)
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        return record

    async def reload(self, model, record_id):
        record = await self.db.get(model, record_id, populate_existing=True)
        if record is None:
            raise NotFoundError(model.__name__, record_id)
        return record

    async def find(self, model, *criteria, order_by=None) -> List:
        query = select(model)
        if criteria:
            query = query.where(*criteria)
        if order_by is not None:
            query = query.order_by(order_by)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def insert(self, record):
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        self._queue_change(record.__tablename__, INSERT, record.id, _row_values(record))
        logger.debug("record_inserted", table=record.__tablename__, record_id=record.id)
        return record

    async def update_fields(self, model, record_id, values, expected_version=None):
        stmt = (
            update(model)
            .where(model.id == record_id)
            .values(**values, version=model.version + 1)
            .execution_options(synchronize_session=False)
        )
        if expected_version is not None:
            stmt = stmt.where(model.version == expected_version)

        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            current = await self.db.get(model, record_id, populate_existing=True)
            if current is None:
                raise NotFoundError(model.__name__, record_id)
            record_version_conflict(model.__tablename__)
            logger.warning(
                "version_conflict",
                table=model.__tablename__,
                record_id=record_id,
                expected_version=expected_version,
                current_version=current.version,
            )
            raise VersionConflictError(model.__name__, record_id, expected_version)

        record = await self.db.get(model, record_id, populate_existing=True)
        self._queue_change(model.__tablename__, UPDATE, record_id, dict(values, version=record.version))
        return record

    async def delete(self, model, record_id):
        await self.get_or_raise(model, record_id)
        # Core DELETE: dependent rows are removed explicitly by the coordinator
        await self.db.execute(
            delete(model)
            .where(model.id == record_id)
            .execution_options(synchronize_session="fetch")
        )
        self._queue_change(model.__tablename__, DELETE, record_id, {})

    async def delete_where(self, model, *criteria) -> int:
        id_query = select(model.id)
        if criteria:
            id_query = id_query.where(*criteria)
        ids = list((await self.db.execute(id_query)).scalars().all())
        if not ids:
            return 0

        await self.db.execute(
            delete(model)
            .where(model.id.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        for record_id in ids:
            self._queue_change(model.__tablename__, DELETE, record_id, {})
        return len(ids)

    def subscribe(self, table, handler, predicate=None):
        return self.feed.subscribe(table, handler, predicate)

    @asynccontextmanager
    async def savepoint(self):
        pending = self.db.info.setdefault(PENDING_CHANGES_KEY, [])
        mark = len(pending)
        try:
            async with self.db.begin_nested():
                yield
        except Exception:
            # drop events of the rolled-back writes
            del pending[mark:]
            raise
