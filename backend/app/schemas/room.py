"""
Pydantic schemas for rooms.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class RoomCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    capacity: int = Field(..., gt=0, le=10000)
    department_id: Optional[int] = None
    facilities: list[str] = Field(default_factory=list)


class RoomResponse(BaseModel):
    id: int
    name: str
    code: str
    capacity: int
    department_id: Optional[int]
    facilities: list[str]
    is_available: bool
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}
