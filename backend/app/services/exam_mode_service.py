"""
Exam Mode: the global switch that opens and closes exam scheduling.

The switch is a SystemSetting row (key EXAM_MODE_SETTING_KEY, value
{"enabled": bool}). Every toggle, in either direction, wipes the exam table:
a new exam period always starts from an empty schedule. Because of that the
toggle is restricted to super admins, needs an explicit confirmation, and is
written to the audit trail.
"""

from dataclasses import dataclass
from typing import Optional

from app.core.config import get_settings
from app.core.exceptions import ExamModeDisabledError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_exam_mode_reset
from app.core.security import SUPER_ADMIN, Actor, require_role
from app.models.exam import Exam
from app.models.system import AuditEntry, SystemSetting
from app.services.interfaces.store import RecordStore
from app.services.transitions import ensure_version

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExamModeState:
    enabled: bool
    version: int = 0
    updated_by: Optional[int] = None


@dataclass(frozen=True)
class ExamModeToggleResult:
    state: ExamModeState
    deleted_exams: int


def _state_of(setting: SystemSetting) -> ExamModeState:
    value = setting.setting_value or {}
    return ExamModeState(enabled=bool(value.get("enabled", False)), version=setting.version, updated_by=setting.updated_by)


async def _find_setting(store: RecordStore) -> Optional[SystemSetting]:
    key = get_settings().EXAM_MODE_SETTING_KEY
    found = await store.find(SystemSetting, SystemSetting.setting_key == key)
    return found[0] if found else None


async def get_exam_mode(store: RecordStore) -> ExamModeState:
    setting = await _find_setting(store)
    if setting is None:
        return ExamModeState(enabled=False)
    return _state_of(setting)


async def ensure_exam_mode_enabled(store: RecordStore) -> None:
    if not (await get_exam_mode(store)).enabled:
        raise ExamModeDisabledError()


async def toggle_exam_mode(
    store: RecordStore,
    actor: Actor,
    confirm: bool,
    expected_version: Optional[int] = None,
) -> ExamModeToggleResult:
    """Flip Exam Mode after deleting every exam."""
    require_role(actor, {SUPER_ADMIN}, "toggle Exam Mode")
    if not confirm:
        raise ValidationError("Toggling Exam Mode deletes all exams; set confirm=true to proceed")

    setting = await _find_setting(store)
    if setting is None:
        setting = await store.insert(
            SystemSetting(
                setting_key=get_settings().EXAM_MODE_SETTING_KEY,
                setting_value={"enabled": False},
                description="Exam scheduling period switch",
                category="exam",
            )
        )
    version = ensure_version("SystemSetting", setting, expected_version)
    enabled = not _state_of(setting).enabled

    deleted = await store.delete_where(Exam)
    updated = await store.update_fields(
        SystemSetting,
        setting.id,
        {"setting_value": {"enabled": enabled}, "updated_by": actor.id},
        expected_version=version,
    )
    await store.insert(
        AuditEntry(
            action="exam_mode_toggled",
            actor_id=actor.id,
            details={"enabled": enabled, "deleted_exams": deleted},
        )
    )

    record_exam_mode_reset(deleted)
    logger.warning("exam_mode_reset", enabled=enabled, deleted_exams=deleted, actor_id=actor.id)
    return ExamModeToggleResult(state=_state_of(updated), deleted_exams=deleted)
