"""
Shared response pieces.
"""

from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, BaseModel

from app.services.conflict_detector import as_utc

# Request timestamps are normalised to UTC; a naive value is read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class CascadeWarning(BaseModel):
    error: str = "CascadeFailure"
    message: str
    operation: str
    step: str
    target_table: str
    target_id: Optional[int]
    reason: str
    repair_id: Optional[int] = None


class TransitionRequest(BaseModel):
    """Body for approve/reject style calls. `version` enables compare-and-swap."""

    version: Optional[int] = None


def warnings_of(result) -> list[CascadeWarning]:
    return [CascadeWarning(**failure.as_warning()) for failure in result.warnings]
