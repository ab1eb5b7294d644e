"""
Booking lifecycle: create, reschedule, approve, reject, delete.

CONCURRENCY STRATEGY: Compare-and-swap, no retry
================================================

Problem:
  Two admins approve overlapping bookings for the same room at the same time,
  or one approves while the other rejects. Both read status=pending, both
  write, and the room ends up double-allocated or its availability flag
  contradicts the booking that won.

Solution:
  1. Read the booking and remember its version (or take the version the
     caller last saw, failing fast if it already moved)
  2. Claim the room: a version bump on the room row, so concurrent approvals
     of different overlapping bookings serialize on it
  3. Re-run the overlap check against the room's approved bookings
  4. UPDATE bookings SET status = ..., version = version + 1
     WHERE id = :id AND version = :read_version
  5. rowcount == 0 on either row -> VersionConflictError, nothing is written

  A lost approval race is not retried automatically:
  the losing admin decided on stale data and must look again.

Cascades:
  The status change is the primary mutation. Room availability follows as a
  dependent step through CascadeSaga; if that step fails the status change
  stands and the response carries a CascadeFailure warning.
"""

from typing import Optional

from app.core.exceptions import AuthorizationError, ConflictError, InvalidTransitionError
from app.core.logging import get_logger
from app.core.metrics import record_conflict_check, record_transition
from app.core.security import ADMIN_ROLES, Actor, require_role
from app.models.booking import APPROVED, COMPLETED, PENDING, REJECTED, Booking
from app.models.room import Room
from app.schemas.booking import BookingCreate, BookingReschedule
from app.services.cascade import CascadeSaga, TransitionResult, set_room_availability
from app.services.checkout_service import remove_checkout_records
from app.services.conflict_detector import Allocation, conflicting_ids, validate_interval
from app.services.interfaces.store import RecordStore
from app.services.room_service import ensure_room_scope
from app.services.transitions import ensure_transition, ensure_version

logger = get_logger(__name__)

BOOKING_TRANSITIONS = {
    PENDING: (APPROVED, REJECTED),
    APPROVED: (REJECTED, COMPLETED),
    REJECTED: (REJECTED,),
    COMPLETED: (),
}


def _as_allocation(booking: Booking) -> Allocation:
    return Allocation(id=booking.id, resource_id=booking.room_id, start=booking.start_time, end=booking.end_time)


async def approved_pool(store: RecordStore, room_id: int) -> list[Allocation]:
    """Approved bookings of one room, as detector input."""
    bookings = await store.find(Booking, Booking.room_id == room_id, Booking.status == APPROVED)
    return [_as_allocation(b) for b in bookings]


async def find_conflicts(
    store: RecordStore,
    room_id: Optional[int],
    start,
    end,
    exclude_id: Optional[int] = None,
) -> list[int]:
    """Sorted ids of approved bookings on `room_id` overlapping [start, end)."""
    validate_interval(start, end)
    if room_id is None:
        return []
    pool = await approved_pool(store, room_id)
    found = sorted(conflicting_ids(pool, room_id, start, end, exclude_id=exclude_id))
    record_conflict_check("booking", bool(found))
    return found


async def _ensure_no_conflict(store: RecordStore, room_id, start, end, exclude_id=None) -> None:
    found = await find_conflicts(store, room_id, start, end, exclude_id=exclude_id)
    if found:
        logger.info("booking_conflict", room_id=room_id, start=str(start), end=str(end), conflicting_ids=found)
        raise ConflictError(f"Room {room_id} is already booked in that interval", conflicting_ids=found)


async def _claim_room(store: RecordStore, room_id: Optional[int]) -> None:
    """
    Compare-and-swap the room row before checking for overlaps.

    Two approvals of different overlapping bookings would otherwise both pass
    the overlap check under READ COMMITTED. Bumping the room version makes the
    later one block on the row and then lose with VersionConflictError.
    """
    if room_id is None:
        return
    room = await store.get_or_raise(Room, room_id)
    await store.update_fields(Room, room_id, {}, expected_version=room.version)


def _guard_transition(booking: Booking, target: str, transition: str) -> None:
    try:
        ensure_transition("Booking", booking.status, target, BOOKING_TRANSITIONS)
    except InvalidTransitionError:
        record_transition("booking", transition, success=False)
        raise


def _ensure_owner_or_admin(actor: Actor, booking: Booking, action: str) -> None:
    if actor.is_admin or booking.user_id == actor.id:
        return
    raise AuthorizationError(f"Only the requester or an admin may {action}", booking_id=booking.id)


async def create_booking(store: RecordStore, actor: Actor, data: BookingCreate) -> Booking:
    """Insert a pending booking for the acting user."""
    validate_interval(data.start_time, data.end_time)
    if data.room_id is not None:
        await store.get_or_raise(Room, data.room_id)
        await _ensure_no_conflict(store, data.room_id, data.start_time, data.end_time)

    booking = await store.insert(
        Booking(
            user_id=actor.id,
            room_id=data.room_id,
            start_time=data.start_time,
            end_time=data.end_time,
            purpose=data.purpose,
            sks=data.sks,
            class_type=data.class_type,
            status=PENDING,
            equipment_requested=list(data.equipment_requested),
            notes=data.notes,
        )
    )
    record_transition("booking", "create")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=actor.id,
        room_id=booking.room_id,
        start=str(booking.start_time),
        end=str(booking.end_time),
    )
    return booking


async def reschedule_booking(
    store: RecordStore,
    actor: Actor,
    booking_id: int,
    data: BookingReschedule,
) -> Booking:
    """Move a pending booking to another interval and/or room."""
    booking = await store.get_or_raise(Booking, booking_id)
    _ensure_owner_or_admin(actor, booking, "reschedule this booking")
    if booking.user_id != actor.id:
        await ensure_room_scope(store, actor, booking.room_id, "reschedule bookings")
    version = ensure_version("Booking", booking, data.version)
    if booking.status != PENDING:
        record_transition("booking", "reschedule", success=False)
        raise InvalidTransitionError(
            f"Only pending bookings can be rescheduled (booking is '{booking.status}')",
            current_status=booking.status,
        )

    room_id = data.room_id if data.room_id is not None else booking.room_id
    start = data.start_time or booking.start_time
    end = data.end_time or booking.end_time
    validate_interval(start, end)
    if room_id != booking.room_id:
        await store.get_or_raise(Room, room_id)
        if booking.user_id != actor.id:
            await ensure_room_scope(store, actor, room_id, "reschedule bookings")
    await _ensure_no_conflict(store, room_id, start, end, exclude_id=booking_id)

    updated = await store.update_fields(
        Booking,
        booking_id,
        {"room_id": room_id, "start_time": start, "end_time": end},
        expected_version=version,
    )
    record_transition("booking", "reschedule")
    logger.info("booking_rescheduled", booking_id=booking_id, room_id=room_id, start=str(start), end=str(end))
    return updated


async def approve_booking(
    store: RecordStore,
    actor: Actor,
    booking_id: int,
    expected_version: Optional[int] = None,
) -> TransitionResult:
    """pending -> approved; the room becomes unavailable."""
    require_role(actor, ADMIN_ROLES, "approve bookings")
    booking = await store.get_or_raise(Booking, booking_id)
    await ensure_room_scope(store, actor, booking.room_id, "approve bookings")
    version = ensure_version("Booking", booking, expected_version)
    _guard_transition(booking, APPROVED, "approve")
    await _claim_room(store, booking.room_id)
    await _ensure_no_conflict(store, booking.room_id, booking.start_time, booking.end_time, exclude_id=booking_id)

    await store.update_fields(Booking, booking_id, {"status": APPROVED}, expected_version=version)
    room_id = booking.room_id

    saga = CascadeSaga(store, "approve_booking")
    await set_room_availability(saga, room_id, False)

    record = await store.reload(Booking, booking_id)
    record_transition("booking", "approve")
    logger.info(
        "booking_approved",
        booking_id=booking_id,
        room_id=room_id,
        approved_by=actor.id,
        cascade_ok=not saga.failures,
    )
    return saga.result(record)


async def reject_booking(
    store: RecordStore,
    actor: Actor,
    booking_id: int,
    expected_version: Optional[int] = None,
) -> TransitionResult:
    """
    pending|approved|rejected -> rejected; the room becomes available.

    Rejecting an already rejected booking is accepted and re-asserts the
    room's availability, which makes the call safe to repeat.
    """
    require_role(actor, ADMIN_ROLES, "reject bookings")
    booking = await store.get_or_raise(Booking, booking_id)
    await ensure_room_scope(store, actor, booking.room_id, "reject bookings")
    version = ensure_version("Booking", booking, expected_version)
    _guard_transition(booking, REJECTED, "reject")
    prior_status = booking.status
    room_id = booking.room_id

    await store.update_fields(Booking, booking_id, {"status": REJECTED}, expected_version=version)

    saga = CascadeSaga(store, "reject_booking")
    await set_room_availability(saga, room_id, True)

    record = await store.reload(Booking, booking_id)
    record_transition("booking", "reject")
    logger.info(
        "booking_rejected",
        booking_id=booking_id,
        room_id=room_id,
        prior_status=prior_status,
        rejected_by=actor.id,
        cascade_ok=not saga.failures,
    )
    return saga.result(record)


async def delete_booking(
    store: RecordStore,
    actor: Actor,
    booking_id: int,
    expected_version: Optional[int] = None,
) -> TransitionResult:
    """
    Remove a booking in any state together with its checkouts and their items.

    Violations raised against those checkouts are kept. The room is released
    only if the booking was holding it (prior status approved).
    """
    booking = await store.get_or_raise(Booking, booking_id)
    _ensure_owner_or_admin(actor, booking, "delete this booking")
    if booking.user_id != actor.id:
        await ensure_room_scope(store, actor, booking.room_id, "delete bookings")
    ensure_version("Booking", booking, expected_version)
    prior_status = booking.status
    room_id = booking.room_id

    removed_checkouts = await remove_checkout_records(store, booking_id)
    await store.delete(Booking, booking_id)

    saga = CascadeSaga(store, "delete_booking")
    if prior_status == APPROVED:
        await set_room_availability(saga, room_id, True)

    record_transition("booking", "delete")
    logger.info(
        "booking_deleted",
        booking_id=booking_id,
        room_id=room_id,
        prior_status=prior_status,
        checkouts_removed=removed_checkouts,
        deleted_by=actor.id,
        cascade_ok=not saga.failures,
    )
    return saga.result({"id": booking_id, "room_id": room_id, "prior_status": prior_status})


async def get_booking(store: RecordStore, actor: Actor, booking_id: int) -> Booking:
    booking = await store.get_or_raise(Booking, booking_id)
    _ensure_owner_or_admin(actor, booking, "view this booking")
    return booking
