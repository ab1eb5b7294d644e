"""
Declarative base and shared column mixins.

VersionMixin backs the compare-and-swap updates performed by the record
store: every UPDATE carries `WHERE version = :read_version` and bumps it.
"""

from sqlalchemy import Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class VersionMixin:
    version = Column(Integer, nullable=False, default=1, server_default="1")
