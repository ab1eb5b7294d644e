"""
Booking model: a request to occupy a room over the half-open interval
[start_time, end_time).

Key design decisions:
- room_id is nullable for non-room (equipment only) requests
- status moves pending -> approved|rejected, approved -> completed; only the
  lifecycle coordinator writes it
- `version` enables compare-and-swap on concurrent approve/reject calls
- Index on (room_id, status) serves the conflict query "approved bookings of
  this room"
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Text, Index, CheckConstraint

from app.db.base import Base, TimestampMixin, VersionMixin

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
COMPLETED = "completed"

BOOKING_STATUSES = (PENDING, APPROVED, REJECTED, COMPLETED)
CLASS_TYPES = ("theory", "practical")


class Booking(Base, TimestampMixin, VersionMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    purpose = Column(String(500), nullable=False)
    sks = Column(Integer, nullable=False, default=1)
    class_type = Column(String(20), nullable=False, default="theory")
    status = Column(String(20), nullable=False, default=PENDING)
    equipment_requested = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="check_booking_interval"),
        CheckConstraint("sks > 0", name="check_booking_sks_positive"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint("class_type IN ('theory', 'practical')", name="check_booking_class_type"),
        Index("ix_bookings_room_status", "room_id", "status"),
        Index("ix_bookings_start_time", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, room={self.room_id}, status={self.status})>"
