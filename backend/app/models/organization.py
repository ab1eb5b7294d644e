"""
Departments and study programs.

Rooms and exams are owned by a department; lecturer candidate lists for exam
scheduling are narrowed to a study program.
"""

from sqlalchemy import Column, ForeignKey, Integer, String

from app.db.base import Base, TimestampMixin


class Department(Base, TimestampMixin):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<Department(id={self.id}, code={self.code})>"


class StudyProgram(Base, TimestampMixin):
    __tablename__ = "study_programs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False, index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<StudyProgram(id={self.id}, code={self.code})>"
