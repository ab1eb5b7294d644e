"""
Exam scheduling endpoints. All of them are admin-only; create and update also
need Exam Mode to be on.
"""

from datetime import date, time
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_store
from app.core.security import Actor, get_current_actor
from app.schemas.exam import ExamCreate, ExamResponse, ExamUpdate, LecturerCandidate
from app.schemas.room import RoomResponse
from app.services import exam_service
from app.services.interfaces.store import RecordStore

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("/room-candidates", response_model=list[RoomResponse])
async def room_candidates_endpoint(
    exam_date: date = Query(..., alias="date"),
    start_time: Optional[time] = Query(None),
    end_time: Optional[time] = Query(None),
    editing_exam_id: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Rooms free for the slot (plus the edited exam's own room)."""
    return await exam_service.room_candidates(store, actor, exam_date, start_time, end_time, editing_exam_id)


@router.get("/lecturer-candidates", response_model=list[LecturerCandidate])
async def lecturer_candidates_endpoint(
    study_program_id: int = Query(...),
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await exam_service.lecturer_candidates(store, actor, study_program_id)


@router.post("/", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam_endpoint(
    exam_data: ExamCreate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await exam_service.create_exam(store, actor, exam_data)


@router.put("/{exam_id}", response_model=ExamResponse)
async def update_exam_endpoint(
    exam_id: int,
    exam_data: ExamUpdate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await exam_service.update_exam(store, actor, exam_id, exam_data)


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam_endpoint(
    exam_id: int,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    await exam_service.delete_exam(store, actor, exam_id)
