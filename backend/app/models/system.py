"""
System-level records: settings singletons, the audit trail, and cascade
repairs (compensating actions recorded when a dependent mutation failed after
its primary change was kept).
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint, func

from app.db.base import Base, TimestampMixin, VersionMixin

REPAIR_PENDING = "pending"
REPAIR_APPLIED = "applied"
REPAIR_SUPERSEDED = "superseded"


class SystemSetting(Base, TimestampMixin, VersionMixin):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    setting_key = Column(String(100), nullable=False)
    setting_value = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, default="general")
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    __table_args__ = (UniqueConstraint("setting_key", name="uq_system_setting_key"),)


class AuditEntry(Base):
    __tablename__ = "audit_entries"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CascadeRepair(Base, TimestampMixin, VersionMixin):
    __tablename__ = "cascade_repairs"

    id = Column(Integer, primary_key=True, index=True)
    operation = Column(String(100), nullable=False)
    step = Column(String(100), nullable=False)
    target_table = Column(String(100), nullable=False)
    target_id = Column(Integer, nullable=False)
    field = Column(String(100), nullable=False)
    desired_value = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=REPAIR_PENDING)
    error = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_cascade_repairs_target", "target_table", "target_id", "status"),
    )
