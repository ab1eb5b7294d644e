"""Guards shared by the booking, checkout and exam lifecycles."""

from typing import Dict, Iterable, Optional

from app.core.exceptions import InvalidTransitionError, VersionConflictError
from app.core.metrics import record_version_conflict


def ensure_version(entity: str, record, expected_version: Optional[int]) -> int:
    """
    Return the version to compare-and-swap against.

    When the caller states which version it last saw, a mismatch fails fast
    before any conflict check or write is attempted.
    """
    if expected_version is not None and record.version != expected_version:
        record_version_conflict(record.__tablename__)
        raise VersionConflictError(entity, record.id, expected_version)
    return record.version


def ensure_transition(entity: str, current: str, target: str, allowed: Dict[str, Iterable[str]]) -> None:
    if target not in allowed.get(current, ()):
        raise InvalidTransitionError(
            f"{entity} cannot move from '{current}' to '{target}'",
            current_status=current,
            target_status=target,
        )
