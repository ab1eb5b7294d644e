"""
Pydantic schemas for system maintenance endpoints.
"""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel


class CascadeRepairResponse(BaseModel):
    id: int
    operation: str
    step: str
    target_table: str
    target_id: int
    field: str
    desired_value: Optional[Any]
    status: str
    error: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}
