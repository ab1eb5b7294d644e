"""
Pydantic schemas for booking-related request/response validation.

Interval checks (start < end) are done by the conflict detector's
validate_interval so that service-level callers get the same ValidationError
as HTTP callers.
"""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field

from app.schemas.common import CascadeWarning, UtcDatetime


class BookingCreate(BaseModel):
    room_id: Optional[int] = None
    start_time: UtcDatetime
    end_time: UtcDatetime
    purpose: str = Field(..., min_length=1, max_length=500)
    sks: int = Field(default=1, gt=0, le=24)
    class_type: Literal["theory", "practical"] = "theory"
    equipment_requested: list[int] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=2000)


class BookingReschedule(BaseModel):
    room_id: Optional[int] = None
    start_time: Optional[UtcDatetime] = None
    end_time: Optional[UtcDatetime] = None
    version: Optional[int] = None


class BookingResponse(BaseModel):
    id: int
    user_id: int
    room_id: Optional[int]
    start_time: datetime
    end_time: datetime
    purpose: str
    sks: int
    class_type: str
    status: str
    equipment_requested: list[int]
    notes: Optional[str]
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingTransitionResponse(BaseModel):
    booking: BookingResponse
    warnings: list[CascadeWarning] = Field(default_factory=list)


class BookingDeleteResponse(BaseModel):
    message: str
    booking_id: int
    prior_status: str
    warnings: list[CascadeWarning] = Field(default_factory=list)


class ConflictQuery(BaseModel):
    room_id: int
    start_time: UtcDatetime
    end_time: UtcDatetime
    exclude_id: Optional[int] = None


class ConflictReport(BaseModel):
    room_id: int
    overlaps: bool
    conflicting_ids: list[int]
