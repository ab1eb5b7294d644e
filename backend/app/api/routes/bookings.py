"""
Booking lifecycle endpoints.

Transition endpoints answer 200 even when a dependent step (room
availability) failed; such failures are listed under `warnings`.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_store
from app.core.security import Actor, get_current_actor
from app.schemas.booking import (
    BookingCreate,
    BookingDeleteResponse,
    BookingReschedule,
    BookingResponse,
    BookingTransitionResponse,
    ConflictQuery,
    ConflictReport,
)
from app.schemas.common import TransitionRequest, warnings_of
from app.services import booking_service
from app.services.interfaces.store import RecordStore

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def _transition_response(result) -> BookingTransitionResponse:
    return BookingTransitionResponse(
        booking=BookingResponse.model_validate(result.record),
        warnings=warnings_of(result),
    )


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """
    Request a room for [start_time, end_time).

    Rejected with 409 if the interval overlaps an approved booking of the
    same room; back-to-back intervals are fine.
    """
    return await booking_service.create_booking(store, actor, booking_data)


@router.post("/conflicts", response_model=ConflictReport)
async def check_conflicts_endpoint(
    query: ConflictQuery,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    found = await booking_service.find_conflicts(
        store, query.room_id, query.start_time, query.end_time, exclude_id=query.exclude_id
    )
    return ConflictReport(room_id=query.room_id, overlaps=bool(found), conflicting_ids=found)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    return await booking_service.get_booking(store, actor, booking_id)


@router.patch("/{booking_id}", response_model=BookingResponse)
async def reschedule_booking_endpoint(
    booking_id: int,
    changes: BookingReschedule,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Move a pending booking. Only the requester or an admin."""
    return await booking_service.reschedule_booking(store, actor, booking_id, changes)


@router.post("/{booking_id}/approve", response_model=BookingTransitionResponse)
async def approve_booking_endpoint(
    booking_id: int,
    body: Optional[TransitionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    version = body.version if body else None
    result = await booking_service.approve_booking(store, actor, booking_id, expected_version=version)
    return _transition_response(result)


@router.post("/{booking_id}/reject", response_model=BookingTransitionResponse)
async def reject_booking_endpoint(
    booking_id: int,
    body: Optional[TransitionRequest] = None,
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    version = body.version if body else None
    result = await booking_service.reject_booking(store, actor, booking_id, expected_version=version)
    return _transition_response(result)


@router.delete("/{booking_id}", response_model=BookingDeleteResponse)
async def delete_booking_endpoint(
    booking_id: int,
    version: Optional[int] = Query(None),
    actor: Actor = Depends(get_current_actor),
    store: RecordStore = Depends(get_store),
):
    """Delete a booking with its checkouts. Frees the room if it was approved."""
    result = await booking_service.delete_booking(store, actor, booking_id, expected_version=version)
    return BookingDeleteResponse(
        message="Booking deleted successfully",
        booking_id=booking_id,
        prior_status=result.record["prior_status"],
        warnings=warnings_of(result),
    )
