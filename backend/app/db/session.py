"""
Async engine, session factory and the request-scoped `get_db` dependency.

Sessions are built on ReservationSession so that change events queued by the
record store are handed to the change feed only after a successful commit and
dropped on rollback. Observers therefore never see a mutation that did not
persist.
"""

from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.services.notification_service import PENDING_CHANGES_KEY, change_feed


class ReservationSession(Session):
    """Sync session class backing every AsyncSession of this application."""


@event.listens_for(ReservationSession, "after_commit")
def _dispatch_committed_changes(session: Session) -> None:
    pending = session.info.pop(PENDING_CHANGES_KEY, None)
    if pending:
        change_feed.dispatch(pending)


@event.listens_for(ReservationSession, "after_soft_rollback")
def _discard_rolled_back_changes(session: Session, previous_transaction) -> None:
    if previous_transaction.parent is None:
        session.info.pop(PENDING_CHANGES_KEY, None)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        sync_session_class=ReservationSession,
        expire_on_commit=False,
    )


@lru_cache()
def get_engine() -> AsyncEngine:
    settings = get_settings()
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        echo=settings.DEBUG,
    )


@lru_cache()
def get_sessionmaker() -> async_sessionmaker:
    return make_sessionmaker(get_engine())


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One transaction per request: commit on success, roll back on any error."""
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
