"""
Checkout and violation endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_store
from app.core.security import Actor, get_current_actor
from app.schemas.checkout import (
    CheckoutCreate,
    CheckoutDeleteResponse,
    CheckoutResponse,
    CheckoutStatusUpdate,
    CheckoutTransitionResponse,
    ViolationCreate,
    ViolationResolve,
    ViolationResponse,
)
from app.schemas.common import TransitionRequest, warnings_of
from app.services import checkout_service
from app.services.interfaces.store import RecordStore

router = APIRouter(tags=["Checkouts"])


async def _checkout_response(store: RecordStore, checkout) -> CheckoutResponse:
    response = CheckoutResponse.model_validate(checkout)
    response.has_violation = await checkout_service.has_violation(store, checkout.id)
    response.pending_validation = checkout.approved_by is None
    return response


@router.post("/checkouts", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def open_checkout_endpoint(
    checkout_data: CheckoutCreate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Check out an approved booking (409 if the booking is not approved)."""
    checkout = await checkout_service.open_checkout(store, actor, checkout_data)
    return await _checkout_response(store, checkout)


@router.get("/checkouts/{checkout_id}", response_model=CheckoutResponse)
async def get_checkout_endpoint(
    checkout_id: int,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    checkout = await checkout_service.get_checkout(store, actor, checkout_id)
    return await _checkout_response(store, checkout)


@router.post("/checkouts/{checkout_id}/approve", response_model=CheckoutResponse)
async def approve_checkout_endpoint(
    checkout_id: int,
    body: Optional[TransitionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    version = body.version if body else None
    checkout = await checkout_service.approve_checkout(store, actor, checkout_id, expected_version=version)
    return await _checkout_response(store, checkout)


@router.post("/checkouts/{checkout_id}/status", response_model=CheckoutTransitionResponse)
async def update_checkout_status_endpoint(
    checkout_id: int,
    update: CheckoutStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Move the physical status. `returned` completes the booking and frees the room."""
    result = await checkout_service.update_checkout_status(store, actor, checkout_id, update)
    return CheckoutTransitionResponse(
        checkout=await _checkout_response(store, result.record),
        warnings=warnings_of(result),
    )


@router.delete("/checkouts/{checkout_id}", response_model=CheckoutDeleteResponse)
async def delete_checkout_endpoint(
    checkout_id: int,
    version: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    result = await checkout_service.delete_checkout(store, actor, checkout_id, expected_version=version)
    return CheckoutDeleteResponse(
        message="Checkout deleted successfully",
        checkout_id=checkout_id,
        booking_id=result.record["booking_id"],
        warnings=warnings_of(result),
    )


@router.post(
    "/checkouts/{checkout_id}/violations",
    response_model=ViolationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def attach_violation_endpoint(
    checkout_id: int,
    violation_data: ViolationCreate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await checkout_service.attach_violation(store, actor, checkout_id, violation_data)


@router.post("/violations/{violation_id}/resolve", response_model=ViolationResponse)
async def resolve_violation_endpoint(
    violation_id: int,
    resolution: ViolationResolve,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await checkout_service.resolve_violation(store, actor, violation_id, resolution)
