"""
Exam scheduling.

Exams are only editable while Exam Mode is on. A sit-in exam occupies a room
on its date over [start_time, end_time); a take-home exam occupies nothing.
Exams and bookings are separate conflict pools: an exam is only checked
against other exams.

The inspector is not a foreign key. When an exam is submitted, the chosen
lecturer's current full name is copied into an InspectorSnapshot.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

from app.core.exceptions import ConflictError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_conflict_check, record_transition
from app.core.security import ADMIN_ROLES, DEPARTMENT_ADMIN, LECTURER, Actor, ensure_department_scope, require_role
from app.models.exam import Exam, InspectorSnapshot
from app.models.organization import StudyProgram
from app.models.room import Room
from app.models.user import User
from app.schemas.exam import ExamCreate, ExamUpdate
from app.services.conflict_detector import Allocation, conflicting_ids, exam_window, validate_interval
from app.services.exam_mode_service import ensure_exam_mode_enabled
from app.services.interfaces.store import RecordStore
from app.services.transitions import ensure_version

logger = get_logger(__name__)


def validate_exam_slot(
    is_take_home: bool,
    room_id: Optional[int],
    start: Optional[time],
    end: Optional[time],
) -> None:
    if is_take_home:
        if room_id is not None or start is not None or end is not None:
            raise ValidationError("Take-home exams cannot have a room or a time window")
        return
    if room_id is None or start is None or end is None:
        raise ValidationError("Sit-in exams need a room, a start time and an end time")
    validate_interval(start, end)


def _exam_pool(exams) -> list[Allocation]:
    pool = []
    for exam in exams:
        start, end = exam_window(exam.date, exam.start_time, exam.end_time)
        pool.append(Allocation(id=exam.id, resource_id=exam.room_id, start=start, end=end))
    return pool


async def _exams_on(store: RecordStore, exam_date: date) -> list[Allocation]:
    exams = await store.find(Exam, Exam.date == exam_date, Exam.is_take_home.is_(False))
    return _exam_pool(exams)


async def room_candidates(
    store: RecordStore,
    actor: Actor,
    exam_date: date,
    start: Optional[time],
    end: Optional[time],
    editing_exam_id: Optional[int] = None,
) -> list[Room]:
    """
    Rooms the actor may pick for an exam slot.

    Department admins see their own department's rooms and unowned ones.
    Rooms holding an overlapping sit-in exam on that date are left out, except
    the room the edited exam already uses.
    """
    require_role(actor, ADMIN_ROLES, "list exam rooms")
    criteria = []
    if actor.role == DEPARTMENT_ADMIN:
        criteria.append((Room.department_id == actor.department_id) | Room.department_id.is_(None))
    rooms = await store.find(Room, *criteria, order_by=Room.code)

    current_room_id = None
    if editing_exam_id is not None:
        editing = await store.get_or_raise(Exam, editing_exam_id)
        current_room_id = editing.room_id

    if start is None or end is None:
        return rooms
    validate_interval(start, end)

    window_start, window_end = exam_window(exam_date, start, end)
    pool = await _exams_on(store, exam_date)
    candidates = []
    for room in rooms:
        taken = conflicting_ids(pool, room.id, window_start, window_end, exclude_id=editing_exam_id)
        if not taken or room.id == current_room_id:
            candidates.append(room)

    if current_room_id is not None and all(r.id != current_room_id for r in candidates):
        current = await store.get(Room, current_room_id)
        if current is not None:
            candidates.append(current)
    return candidates


async def lecturer_candidates(store: RecordStore, actor: Actor, study_program_id: int) -> list[User]:
    require_role(actor, ADMIN_ROLES, "list exam lecturers")
    await store.get_or_raise(StudyProgram, study_program_id)
    return await store.find(
        User,
        User.role == LECTURER,
        User.study_program_id == study_program_id,
        order_by=User.full_name,
    )


async def _check_slot(store: RecordStore, data: ExamCreate, exclude_id: Optional[int] = None) -> None:
    validate_exam_slot(data.is_take_home, data.room_id, data.start_time, data.end_time)
    if data.is_take_home:
        return
    await store.get_or_raise(Room, data.room_id)

    window_start, window_end = exam_window(data.date, data.start_time, data.end_time)
    pool = await _exams_on(store, data.date)
    found = sorted(conflicting_ids(pool, data.room_id, window_start, window_end, exclude_id=exclude_id))
    record_conflict_check("exam", bool(found))
    if found:
        logger.info("exam_conflict", room_id=data.room_id, date=str(data.date), conflicting_ids=found)
        raise ConflictError(f"Room {data.room_id} already hosts an exam in that slot", conflicting_ids=found)


async def _resolve_people(store: RecordStore, actor: Actor, data: ExamCreate):
    """Check lecturer and inspector against the study program; snapshot the inspector."""
    program = await store.get_or_raise(StudyProgram, data.study_program_id)
    ensure_department_scope(actor, program.department_id, "schedule exams")

    lecturers = {u.id: u for u in await lecturer_candidates(store, actor, program.id)}
    if data.lecturer_id not in lecturers:
        raise ValidationError(
            f"User {data.lecturer_id} is not a lecturer of study program {program.id}",
            lecturer_id=data.lecturer_id,
        )

    inspector = InspectorSnapshot(full_name=None, captured_at=None)
    if data.inspector_id is not None:
        if data.inspector_id not in lecturers:
            raise ValidationError(
                f"User {data.inspector_id} is not a lecturer of study program {program.id}",
                inspector_id=data.inspector_id,
            )
        inspector = InspectorSnapshot(
            full_name=lecturers[data.inspector_id].full_name,
            captured_at=datetime.now(timezone.utc),
        )
    return program, inspector


def _exam_values(data: ExamCreate, program: StudyProgram) -> dict:
    return {
        "day": data.date.strftime("%A"),
        "date": data.date,
        "start_time": data.start_time,
        "end_time": data.end_time,
        "is_take_home": data.is_take_home,
        "room_id": data.room_id,
        "course_code": data.course_code,
        "course_name": data.course_name,
        "semester": data.semester,
        "class_name": data.class_name,
        "student_amount": data.student_amount,
        "lecturer_id": data.lecturer_id,
        "department_id": program.department_id,
        "study_program_id": program.id,
    }


async def create_exam(store: RecordStore, actor: Actor, data: ExamCreate) -> Exam:
    require_role(actor, ADMIN_ROLES, "schedule exams")
    await ensure_exam_mode_enabled(store)
    await _check_slot(store, data)
    program, inspector = await _resolve_people(store, actor, data)

    exam = await store.insert(Exam(**_exam_values(data, program), inspector=inspector))
    record_transition("exam", "create")
    logger.info(
        "exam_created",
        exam_id=exam.id,
        course_code=exam.course_code,
        date=str(exam.date),
        room_id=exam.room_id,
        take_home=exam.is_take_home,
    )
    return exam


async def update_exam(store: RecordStore, actor: Actor, exam_id: int, data: ExamUpdate) -> Exam:
    require_role(actor, ADMIN_ROLES, "edit exams")
    await ensure_exam_mode_enabled(store)
    exam = await store.get_or_raise(Exam, exam_id)
    ensure_department_scope(actor, exam.department_id, "edit exams")
    version = ensure_version("Exam", exam, data.version)
    await _check_slot(store, data, exclude_id=exam_id)
    program, inspector = await _resolve_people(store, actor, data)

    values = _exam_values(data, program)
    values.update(inspector.as_columns())
    updated = await store.update_fields(Exam, exam_id, values, expected_version=version)
    record_transition("exam", "update")
    logger.info("exam_updated", exam_id=exam_id, date=str(updated.date), room_id=updated.room_id)
    return updated


async def delete_exam(store: RecordStore, actor: Actor, exam_id: int) -> None:
    require_role(actor, ADMIN_ROLES, "delete exams")
    exam = await store.get_or_raise(Exam, exam_id)
    ensure_department_scope(actor, exam.department_id, "delete exams")
    await store.delete(Exam, exam_id)
    record_transition("exam", "delete")
    logger.info("exam_deleted", exam_id=exam_id, deleted_by=actor.id)
