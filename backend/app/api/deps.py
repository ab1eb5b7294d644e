"""
Shared route dependencies.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.infrastructure.sql_store import SqlAlchemyStore
from app.services.interfaces.store import RecordStore


async def get_store(db: AsyncSession = Depends(get_db)) -> RecordStore:
    return SqlAlchemyStore(db)
