"""
System endpoints: Exam Mode and cascade repair replay.
"""

from fastapi import APIRouter, Depends

from app.api.deps import get_store
from app.core.security import Actor, get_current_actor
from app.schemas.exam import ExamModeResponse, ExamModeToggle
from app.schemas.system import CascadeRepairResponse
from app.services.cascade import replay_pending_repairs
from app.services.exam_mode_service import get_exam_mode, toggle_exam_mode
from app.services.interfaces.store import RecordStore

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/exam-mode", response_model=ExamModeResponse)
async def get_exam_mode_endpoint(
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    state = await get_exam_mode(store)
    return ExamModeResponse(enabled=state.enabled, version=state.version, updated_by=state.updated_by)


@router.post("/exam-mode/toggle", response_model=ExamModeResponse)
async def toggle_exam_mode_endpoint(
    body: ExamModeToggle,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """
    Flip Exam Mode. Deletes every exam, in both directions.
    Super admins only, and `confirm` must be true.
    """
    result = await toggle_exam_mode(store, actor, body.confirm, expected_version=body.version)
    return ExamModeResponse(
        enabled=result.state.enabled,
        version=result.state.version,
        deleted_exams=result.deleted_exams,
        updated_by=result.state.updated_by,
    )


@router.post("/repairs/replay", response_model=list[CascadeRepairResponse])
async def replay_repairs_endpoint(
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Settle cascade repairs left behind by failed dependent steps."""
    return await replay_pending_repairs(store, actor)
