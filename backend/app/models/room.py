"""
Room and equipment inventory.

`Room.is_available` is a denormalized occupancy flag. It is written only by
the lifecycle coordinator: false while an approved booking holds the room,
true once that booking is rejected, deleted or completed.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, JSON, String

from app.db.base import Base, TimestampMixin, VersionMixin


class Room(Base, TimestampMixin, VersionMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    capacity = Column(Integer, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    facilities = Column(JSON, nullable=False, default=list)
    is_available = Column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, code={self.code}, available={self.is_available})>"


class Equipment(Base, TimestampMixin, VersionMixin):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    category = Column(String(100), nullable=False, index=True)
    is_mandatory = Column(Boolean, nullable=False, default=False)
    is_available = Column(Boolean, nullable=False, default=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Equipment(id={self.id}, code={self.code})>"
