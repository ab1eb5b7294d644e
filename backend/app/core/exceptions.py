"""
Error taxonomy for the reservation core.

Every error is an HTTPException so services can raise them directly and the
API layer needs no translation table. The `detail` payload is always a dict:

    {"error": "ConflictError", "message": "...", "conflicting_ids": [3, 7]}

CascadeFailure is not defined here: a failed dependent mutation never
aborts the operation, it is reported as a warning (see app.services.cascade).
"""

from typing import Iterable, Optional

from fastapi import HTTPException, status


class ReservationError(HTTPException):
    """Base class for all errors surfaced by the reservation core."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra):
        self.message = message
        self.extra = extra
        super().__init__(
            status_code=type(self).status_code,
            detail={"error": type(self).__name__, "message": message, **extra},
        )

    def __str__(self) -> str:
        return self.message


class ValidationError(ReservationError):
    """Malformed or missing fields. Raised before any mutation."""

    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class ConflictError(ReservationError):
    """The candidate interval overlaps an existing allocation on the same resource."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflicting_ids: Iterable[int] = ()):
        self.conflicting_ids = sorted(conflicting_ids)
        super().__init__(message, conflicting_ids=self.conflicting_ids)


class NotFoundError(ReservationError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, record_id: Optional[int]):
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} {record_id} not found", entity=entity, id=record_id)


class AuthorizationError(ReservationError):
    status_code = status.HTTP_403_FORBIDDEN


class VersionConflictError(ReservationError):
    """A compare-and-swap update lost against a concurrent writer."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entity: str, record_id: int, expected_version: Optional[int]):
        self.entity = entity
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"{entity} {record_id} was modified concurrently; reload and retry",
            entity=entity,
            id=record_id,
            expected_version=expected_version,
        )


class InvalidTransitionError(ReservationError):
    """The requested transition is not allowed from the record's current status."""

    status_code = status.HTTP_409_CONFLICT


class ExamModeDisabledError(InvalidTransitionError):
    def __init__(self):
        super().__init__("Exam Mode is disabled; exam scheduling is not active")
