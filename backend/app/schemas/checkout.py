"""
Pydantic schemas for checkouts, checkout items and violations.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field

from app.schemas.common import CascadeWarning, UtcDatetime


class CheckoutItemCreate(BaseModel):
    equipment_id: int
    quantity: int = Field(default=1, gt=0, le=1000)
    condition_notes: Optional[str] = Field(None, max_length=1000)


class CheckoutCreate(BaseModel):
    booking_id: int
    expected_return_date: Optional[UtcDatetime] = None
    checkout_notes: Optional[str] = Field(None, max_length=2000)
    condition_on_checkout: Literal["excellent", "good", "fair", "poor"] = "good"
    items: list[CheckoutItemCreate] = Field(default_factory=list)


class CheckoutStatusUpdate(BaseModel):
    status: Literal["returned", "overdue", "lost", "damaged"]
    condition_on_return: Optional[Literal["excellent", "good", "fair", "poor", "damaged", "lost"]] = None
    return_notes: Optional[str] = Field(None, max_length=2000)
    version: Optional[int] = None


class CheckoutItemResponse(BaseModel):
    id: int
    equipment_id: int
    quantity: int
    condition_notes: Optional[str]

    model_config = {"from_attributes": True}


class CheckoutResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    checkout_date: datetime
    expected_return_date: datetime
    actual_return_date: Optional[datetime]
    status: str
    checkout_notes: Optional[str]
    return_notes: Optional[str]
    condition_on_checkout: str
    condition_on_return: Optional[str]
    approved_by: Optional[int]
    returned_to: Optional[int]
    total_items: int
    items: list[CheckoutItemResponse] = Field(default_factory=list)
    version: int
    has_violation: bool = False
    pending_validation: bool = True

    model_config = {"from_attributes": True}


class CheckoutTransitionResponse(BaseModel):
    checkout: CheckoutResponse
    warnings: list[CascadeWarning] = Field(default_factory=list)


class CheckoutDeleteResponse(BaseModel):
    message: str
    checkout_id: int
    booking_id: int
    warnings: list[CascadeWarning] = Field(default_factory=list)


class ViolationCreate(BaseModel):
    violation_type: Literal["late_return", "damage", "loss", "misuse", "other"] = "late_return"
    severity: Literal["minor", "major", "critical"] = "minor"
    title: str = Field(..., max_length=255)
    description: str = Field(..., max_length=5000)
    penalty_amount: Decimal = Field(default=Decimal("0"), ge=0)


class ViolationResolve(BaseModel):
    status: Literal["resolved", "disputed", "waived"]
    penalty_paid: Optional[bool] = None
    version: Optional[int] = None


class ViolationResponse(BaseModel):
    id: int
    checkout_id: Optional[int]
    user_id: int
    violation_type: str
    severity: str
    title: str
    description: str
    penalty_amount: Decimal
    penalty_paid: bool
    reported_by: Optional[int]
    resolved_by: Optional[int]
    resolved_at: Optional[datetime]
    status: str
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}
