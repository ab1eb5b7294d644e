"""Initial schema: organization, users, rooms, bookings, checkouts, exams, system tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _version():
    return sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1"))


def upgrade() -> None:
    op.create_table(
        "departments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_departments_id", "departments", ["id"])
    op.create_index("ix_departments_code", "departments", ["code"], unique=True)

    op.create_table(
        "study_programs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_study_programs_id", "study_programs", ["id"])
    op.create_index("ix_study_programs_code", "study_programs", ["code"], unique=True)
    op.create_index("ix_study_programs_department_id", "study_programs", ["department_id"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("identity_number", sa.String(50), nullable=False),
        sa.Column("role", sa.String(30), nullable=False, server_default=sa.text("'student'")),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("study_program_id", sa.Integer(), sa.ForeignKey("study_programs.id"), nullable=True),
        sa.Column("phone_number", sa.String(50), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('student', 'lecturer', 'department_admin', 'super_admin')",
            name="check_user_role",
        ),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_identity_number", "users", ["identity_number"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_department_id", "users", ["department_id"])
    # Lecturer candidate lists are filtered by study program
    op.create_index("ix_users_study_program_id", "users", ["study_program_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("facilities", sa.JSON(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _version(),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_room_capacity_positive"),
    )
    op.create_index("ix_rooms_id", "rooms", ["id"])
    op.create_index("ix_rooms_code", "rooms", ["code"], unique=True)
    op.create_index("ix_rooms_department_id", "rooms", ["department_id"])
    op.create_index("ix_rooms_is_available", "rooms", ["is_available"])

    op.create_table(
        "equipment",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        _version(),
        *_timestamps(),
    )
    op.create_index("ix_equipment_id", "equipment", ["id"])
    op.create_index("ix_equipment_code", "equipment", ["code"], unique=True)
    op.create_index("ix_equipment_category", "equipment", ["category"])
    op.create_index("ix_equipment_department_id", "equipment", ["department_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("purpose", sa.String(500), nullable=False),
        sa.Column("sks", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("class_type", sa.String(20), nullable=False, server_default=sa.text("'theory'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("equipment_requested", sa.JSON(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _version(),
        *_timestamps(),
        sa.CheckConstraint("end_time > start_time", name="check_booking_interval"),
        sa.CheckConstraint("sks > 0", name="check_booking_sks_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'completed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("class_type IN ('theory', 'practical')", name="check_booking_class_type"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_room_id", "bookings", ["room_id"])
    # Conflict query: "approved bookings of this room"
    op.create_index("ix_bookings_room_status", "bookings", ["room_id", "status"])
    op.create_index("ix_bookings_start_time", "bookings", ["start_time"])

    op.create_table(
        "checkouts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("checkout_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expected_return_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("checkout_notes", sa.Text(), nullable=True),
        sa.Column("return_notes", sa.Text(), nullable=True),
        sa.Column("condition_on_checkout", sa.String(20), nullable=False, server_default=sa.text("'good'")),
        sa.Column("condition_on_return", sa.String(20), nullable=True),
        sa.Column("approved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("returned_to", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _version(),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('active', 'returned', 'overdue', 'lost', 'damaged')",
            name="check_checkout_status",
        ),
        sa.CheckConstraint(
            "condition_on_checkout IN ('excellent', 'good', 'fair', 'poor')",
            name="check_checkout_condition",
        ),
    )
    op.create_index("ix_checkouts_id", "checkouts", ["id"])
    op.create_index("ix_checkouts_booking_id", "checkouts", ["booking_id"])
    op.create_index("ix_checkouts_user_id", "checkouts", ["user_id"])
    op.create_index("ix_checkouts_status", "checkouts", ["status"])
    op.create_index("ix_checkouts_approved_by", "checkouts", ["approved_by"])

    op.create_table(
        "checkout_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "checkout_id", sa.Integer(), sa.ForeignKey("checkouts.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("equipment_id", sa.Integer(), sa.ForeignKey("equipment.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("condition_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="check_checkout_item_quantity_positive"),
    )
    op.create_index("ix_checkout_items_id", "checkout_items", ["id"])
    op.create_index("ix_checkout_items_checkout_id", "checkout_items", ["checkout_id"])

    op.create_table(
        "checkout_violations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        # Violations outlive their checkout
        sa.Column(
            "checkout_id", sa.Integer(), sa.ForeignKey("checkouts.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("violation_type", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default=sa.text("'minor'")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("penalty_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("penalty_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("reported_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        _version(),
        *_timestamps(),
        sa.CheckConstraint(
            "violation_type IN ('late_return', 'damage', 'loss', 'misuse', 'other')",
            name="check_violation_type",
        ),
        sa.CheckConstraint("severity IN ('minor', 'major', 'critical')", name="check_violation_severity"),
        sa.CheckConstraint(
            "status IN ('active', 'resolved', 'disputed', 'waived')",
            name="check_violation_status",
        ),
    )
    op.create_index("ix_checkout_violations_id", "checkout_violations", ["id"])
    op.create_index("ix_checkout_violations_checkout_id", "checkout_violations", ["checkout_id"])
    op.create_index("ix_checkout_violations_user_id", "checkout_violations", ["user_id"])

    op.create_table(
        "exams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("day", sa.String(20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("is_take_home", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("course_code", sa.String(50), nullable=False),
        sa.Column("course_name", sa.String(255), nullable=False),
        sa.Column("semester", sa.Integer(), nullable=False),
        sa.Column("class", sa.String(20), nullable=False),
        sa.Column("student_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("rooms.id"), nullable=True),
        sa.Column("lecturer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("department_id", sa.Integer(), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("study_program_id", sa.Integer(), sa.ForeignKey("study_programs.id"), nullable=False),
        sa.Column("inspector_name", sa.String(255), nullable=True),
        sa.Column("inspector_captured_at", sa.DateTime(timezone=True), nullable=True),
        _version(),
        *_timestamps(),
        sa.CheckConstraint("semester >= 1 AND semester <= 8", name="check_exam_semester"),
        sa.CheckConstraint("student_amount >= 0", name="check_exam_student_amount"),
        sa.CheckConstraint(
            "(is_take_home AND room_id IS NULL AND start_time IS NULL AND end_time IS NULL) OR "
            "(NOT is_take_home AND room_id IS NOT NULL AND start_time IS NOT NULL "
            "AND end_time IS NOT NULL AND end_time > start_time)",
            name="check_exam_slot_shape",
        ),
    )
    op.create_index("ix_exams_id", "exams", ["id"])
    # Exam conflict pool: sit-in exams of one date
    op.create_index("ix_exams_date_room", "exams", ["date", "room_id"])
    op.create_index("ix_exams_study_program_id", "exams", ["study_program_id"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("setting_key", sa.String(100), nullable=False),
        sa.Column("setting_value", sa.JSON(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default=sa.text("'general'")),
        sa.Column("updated_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _version(),
        *_timestamps(),
        sa.UniqueConstraint("setting_key", name="uq_system_setting_key"),
    )
    op.create_index("ix_system_settings_id", "system_settings", ["id"])

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_entries_id", "audit_entries", ["id"])
    op.create_index("ix_audit_entries_action", "audit_entries", ["action"])

    op.create_table(
        "cascade_repairs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("operation", sa.String(100), nullable=False),
        sa.Column("step", sa.String(100), nullable=False),
        sa.Column("target_table", sa.String(100), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("field", sa.String(100), nullable=False),
        sa.Column("desired_value", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("error", sa.Text(), nullable=True),
        _version(),
        *_timestamps(),
    )
    op.create_index("ix_cascade_repairs_id", "cascade_repairs", ["id"])
    op.create_index("ix_cascade_repairs_target", "cascade_repairs", ["target_table", "target_id", "status"])


def downgrade() -> None:
    op.drop_table("cascade_repairs")
    op.drop_table("audit_entries")
    op.drop_table("system_settings")
    op.drop_table("exams")
    op.drop_table("checkout_violations")
    op.drop_table("checkout_items")
    op.drop_table("checkouts")
    op.drop_table("bookings")
    op.drop_table("equipment")
    op.drop_table("rooms")
    op.drop_table("users")
    op.drop_table("study_programs")
    op.drop_table("departments")
