"""
User model. Accounts are owned by the external auth service; this table keeps
the profile fields the reservation core reads (role, department, study
program, full name for inspector snapshots).
"""

from sqlalchemy import Column, Integer, String, ForeignKey, CheckConstraint

from app.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    identity_number = Column(String(50), nullable=False, index=True)
    role = Column(String(30), nullable=False, default="student", index=True)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    study_program_id = Column(Integer, ForeignKey("study_programs.id"), nullable=True, index=True)
    phone_number = Column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('student', 'lecturer', 'department_admin', 'super_admin')",
            name="check_user_role",
        ),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"
