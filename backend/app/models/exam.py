"""
Exam slot allocation.

A take-home exam has no room and no time window; a sit-in exam has all three.
The inspector is stored as a snapshot of the lecturer's name at submission
time (InspectorSnapshot), not as a foreign key, so renaming a lecturer later
does not rewrite historical exam schedules.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import composite

from app.db.base import Base, TimestampMixin, VersionMixin


@dataclass(frozen=True)
class InspectorSnapshot:
    """Value object: an inspector's display name frozen at a point in time."""

    full_name: Optional[str]
    captured_at: Optional[datetime]

    def as_columns(self) -> dict:
        return {"inspector_name": self.full_name, "inspector_captured_at": self.captured_at}


class Exam(Base, TimestampMixin, VersionMixin):
    __tablename__ = "exams"

    id = Column(Integer, primary_key=True, index=True)
    day = Column(String(20), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    is_take_home = Column(Boolean, nullable=False, default=False)
    course_code = Column(String(50), nullable=False)
    course_name = Column(String(255), nullable=False)
    semester = Column(Integer, nullable=False)
    class_name = Column("class", String(20), nullable=False)
    student_amount = Column(Integer, nullable=False, default=0)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    lecturer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True)
    study_program_id = Column(Integer, ForeignKey("study_programs.id"), nullable=False)
    inspector_name = Column(String(255), nullable=True)
    inspector_captured_at = Column(DateTime(timezone=True), nullable=True)

    inspector = composite(InspectorSnapshot, inspector_name, inspector_captured_at)

    __table_args__ = (
        CheckConstraint("semester >= 1 AND semester <= 8", name="check_exam_semester"),
        CheckConstraint("student_amount >= 0", name="check_exam_student_amount"),
        CheckConstraint(
            "(is_take_home AND room_id IS NULL AND start_time IS NULL AND end_time IS NULL) OR "
            "(NOT is_take_home AND room_id IS NOT NULL AND start_time IS NOT NULL "
            "AND end_time IS NOT NULL AND end_time > start_time)",
            name="check_exam_slot_shape",
        ),
        Index("ix_exams_date_room", "date", "room_id"),
        Index("ix_exams_study_program_id", "study_program_id"),
    )

    def __repr__(self) -> str:
        return f"<Exam(id={self.id}, course={self.course_code}, date={self.date}, take_home={self.is_take_home})>"
