"""
Checkout lifecycle and violations.

A checkout can only be opened against an approved booking. Two things then
evolve independently:

  - `status`, the physical state of the loan
        active  -> returned | overdue | lost | damaged
        overdue -> returned | lost | damaged
        damaged -> returned
  - `approved_by`, the admin validation gate

Reaching `returned` completes the parent booking and frees its room. Deleting a
checkout undoes that: the booking goes back to approved and the room is held
again. Both follow-ups run as cascade steps (see app.services.cascade).

Violations are appended to a checkout and never change its status.
"""

from datetime import datetime, timezone
from typing import Optional

from app.core.exceptions import AuthorizationError, InvalidTransitionError, ValidationError
from app.core.logging import get_logger
from app.core.metrics import record_transition
from app.core.security import ADMIN_ROLES, Actor, require_role
from app.models.booking import APPROVED, COMPLETED, Booking
from app.models.checkout import (
    ACTIVE,
    DAMAGED,
    LOST,
    OVERDUE,
    RETURNED,
    Checkout,
    CheckoutItem,
    Violation,
)
from app.models.room import Equipment
from app.schemas.checkout import CheckoutCreate, CheckoutStatusUpdate, ViolationCreate, ViolationResolve
from app.services.cascade import CascadeSaga, TransitionResult, set_room_availability
from app.services.interfaces.store import RecordStore
from app.services.room_service import ensure_room_scope
from app.services.transitions import ensure_transition, ensure_version

logger = get_logger(__name__)

CHECKOUT_TRANSITIONS = {
    ACTIVE: (RETURNED, OVERDUE, LOST, DAMAGED),
    OVERDUE: (RETURNED, LOST, DAMAGED),
    DAMAGED: (RETURNED,),
    RETURNED: (),
    LOST: (),
}

VIOLATION_TRANSITIONS = {
    "active": ("resolved", "disputed", "waived"),
    "disputed": ("resolved", "waived"),
    "resolved": (),
    "waived": (),
}
VIOLATION_CLOSED = ("resolved", "waived")


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _set_booking_status(saga: CascadeSaga, booking_id: int, status: str, step: str) -> bool:
    store = saga.store

    async def apply():
        booking = await store.get_or_raise(Booking, booking_id)
        if booking.status != status:
            await store.update_fields(Booking, booking_id, {"status": status}, expected_version=booking.version)

    return await saga.step(step, "bookings", booking_id, "status", status, apply)


async def _detach_violations(store: RecordStore, checkout_id: int) -> int:
    violations = await store.find(Violation, Violation.checkout_id == checkout_id)
    for violation in violations:
        await store.update_fields(Violation, violation.id, {"checkout_id": None}, expected_version=violation.version)
    return len(violations)


async def _remove_checkout(store: RecordStore, checkout_id: int) -> None:
    await _detach_violations(store, checkout_id)
    await store.delete_where(CheckoutItem, CheckoutItem.checkout_id == checkout_id)
    await store.delete(Checkout, checkout_id)


async def _ensure_checkout_scope(store: RecordStore, actor: Actor, checkout: Checkout, action: str) -> None:
    booking = await store.get(Booking, checkout.booking_id)
    await ensure_room_scope(store, actor, booking.room_id if booking is not None else None, action)


async def remove_checkout_records(store: RecordStore, booking_id: int) -> int:
    """Delete every checkout of a booking with its items. Returns the number of checkouts removed."""
    checkouts = await store.find(Checkout, Checkout.booking_id == booking_id)
    for checkout in checkouts:
        await _remove_checkout(store, checkout.id)
    return len(checkouts)


async def open_checkout(store: RecordStore, actor: Actor, data: CheckoutCreate) -> Checkout:
    booking = await store.get_or_raise(Booking, data.booking_id)
    if not actor.is_admin and booking.user_id != actor.id:
        raise AuthorizationError("Only the requester or an admin may check out a booking", booking_id=booking.id)
    if booking.status != APPROVED:
        record_transition("checkout", "open", success=False)
        raise InvalidTransitionError(
            f"Booking {booking.id} must be approved before checkout (is '{booking.status}')",
            current_status=booking.status,
        )

    for item in data.items:
        await store.get_or_raise(Equipment, item.equipment_id)

    checkout = await store.insert(
        Checkout(
            booking_id=booking.id,
            user_id=booking.user_id,
            expected_return_date=data.expected_return_date or booking.end_time,
            status=ACTIVE,
            checkout_notes=data.checkout_notes,
            condition_on_checkout=data.condition_on_checkout,
            total_items=sum(item.quantity for item in data.items),
        )
    )
    for item in data.items:
        await store.insert(
            CheckoutItem(
                checkout_id=checkout.id,
                equipment_id=item.equipment_id,
                quantity=item.quantity,
                condition_notes=item.condition_notes,
            )
        )

    record_transition("checkout", "open")
    logger.info(
        "checkout_opened",
        checkout_id=checkout.id,
        booking_id=booking.id,
        user_id=booking.user_id,
        items=len(data.items),
    )
    return await store.reload(Checkout, checkout.id)


async def approve_checkout(
    store: RecordStore,
    actor: Actor,
    checkout_id: int,
    expected_version: Optional[int] = None,
) -> Checkout:
    """Admin validation of a checkout. Status is left alone."""
    require_role(actor, ADMIN_ROLES, "validate checkouts")
    checkout = await store.get_or_raise(Checkout, checkout_id)
    await _ensure_checkout_scope(store, actor, checkout, "validate checkouts")
    version = ensure_version("Checkout", checkout, expected_version)

    await store.update_fields(Checkout, checkout_id, {"approved_by": actor.id}, expected_version=version)
    record_transition("checkout", "approve")
    logger.info("checkout_approved", checkout_id=checkout_id, approved_by=actor.id, status=checkout.status)
    return await store.reload(Checkout, checkout_id)


async def update_checkout_status(
    store: RecordStore,
    actor: Actor,
    checkout_id: int,
    data: CheckoutStatusUpdate,
) -> TransitionResult:
    require_role(actor, ADMIN_ROLES, "change checkout status")
    checkout = await store.get_or_raise(Checkout, checkout_id)
    await _ensure_checkout_scope(store, actor, checkout, "change checkout status")
    version = ensure_version("Checkout", checkout, data.version)
    try:
        ensure_transition("Checkout", checkout.status, data.status, CHECKOUT_TRANSITIONS)
    except InvalidTransitionError:
        record_transition("checkout", data.status, success=False)
        raise

    prior_status = checkout.status
    booking_id = checkout.booking_id
    values = {"status": data.status}
    if data.condition_on_return is not None:
        values["condition_on_return"] = data.condition_on_return
    if data.return_notes is not None:
        values["return_notes"] = data.return_notes
    if data.status == RETURNED:
        values["actual_return_date"] = _now()
        values["returned_to"] = actor.id

    await store.update_fields(Checkout, checkout_id, values, expected_version=version)

    saga = CascadeSaga(store, "return_checkout" if data.status == RETURNED else "update_checkout_status")
    if data.status == RETURNED:
        booking = await store.get(Booking, booking_id)
        room_id = booking.room_id if booking is not None else None
        await _set_booking_status(saga, booking_id, COMPLETED, "booking_completion")
        await set_room_availability(saga, room_id, True)

    record = await store.reload(Checkout, checkout_id)
    record_transition("checkout", data.status)
    logger.info(
        "checkout_status_changed",
        checkout_id=checkout_id,
        booking_id=booking_id,
        prior_status=prior_status,
        status=data.status,
        changed_by=actor.id,
        cascade_ok=not saga.failures,
    )
    return saga.result(record)


async def delete_checkout(
    store: RecordStore,
    actor: Actor,
    checkout_id: int,
    expected_version: Optional[int] = None,
) -> TransitionResult:
    """
    Delete a checkout and its items, then put the parent booking back to
    approved and hold its room again.
    """
    require_role(actor, ADMIN_ROLES, "delete checkouts")
    checkout = await store.get_or_raise(Checkout, checkout_id)
    await _ensure_checkout_scope(store, actor, checkout, "delete checkouts")
    ensure_version("Checkout", checkout, expected_version)
    booking_id = checkout.booking_id
    prior_status = checkout.status

    await _remove_checkout(store, checkout_id)

    saga = CascadeSaga(store, "delete_checkout")
    booking = await store.get(Booking, booking_id)
    room_id = booking.room_id if booking is not None else None
    await _set_booking_status(saga, booking_id, APPROVED, "booking_restore")
    await set_room_availability(saga, room_id, False)

    record_transition("checkout", "delete")
    logger.info(
        "checkout_deleted",
        checkout_id=checkout_id,
        booking_id=booking_id,
        prior_status=prior_status,
        deleted_by=actor.id,
        cascade_ok=not saga.failures,
    )
    return saga.result({"id": checkout_id, "booking_id": booking_id, "prior_status": prior_status})


async def has_violation(store: RecordStore, checkout_id: int) -> bool:
    return bool(await store.find(Violation, Violation.checkout_id == checkout_id))


async def get_checkout(store: RecordStore, actor: Actor, checkout_id: int) -> Checkout:
    checkout = await store.reload(Checkout, checkout_id)
    if not actor.is_admin and checkout.user_id != actor.id:
        raise AuthorizationError("Only the requester or an admin may view this checkout", checkout_id=checkout_id)
    return checkout


async def attach_violation(store: RecordStore, actor: Actor, checkout_id: int, data: ViolationCreate) -> Violation:
    require_role(actor, ADMIN_ROLES, "report violations")
    title = data.title.strip()
    description = data.description.strip()
    if not title or not description:
        raise ValidationError("Violation title and description are required")

    checkout = await store.get_or_raise(Checkout, checkout_id)
    await _ensure_checkout_scope(store, actor, checkout, "report violations")
    violation = await store.insert(
        Violation(
            checkout_id=checkout.id,
            user_id=checkout.user_id,
            violation_type=data.violation_type,
            severity=data.severity,
            title=title,
            description=description,
            penalty_amount=data.penalty_amount,
            penalty_paid=False,
            reported_by=actor.id,
            status="active",
        )
    )
    logger.info(
        "violation_reported",
        violation_id=violation.id,
        checkout_id=checkout.id,
        user_id=checkout.user_id,
        violation_type=data.violation_type,
        severity=data.severity,
        reported_by=actor.id,
    )
    return violation


async def resolve_violation(store: RecordStore, actor: Actor, violation_id: int, data: ViolationResolve) -> Violation:
    require_role(actor, ADMIN_ROLES, "resolve violations")
    violation = await store.get_or_raise(Violation, violation_id)
    version = ensure_version("Violation", violation, data.version)
    ensure_transition("Violation", violation.status, data.status, VIOLATION_TRANSITIONS)

    values = {"status": data.status}
    if data.status in VIOLATION_CLOSED:
        values["resolved_by"] = actor.id
        values["resolved_at"] = _now()
    if data.penalty_paid is not None:
        values["penalty_paid"] = data.penalty_paid

    updated = await store.update_fields(Violation, violation_id, values, expected_version=version)
    logger.info("violation_status_changed", violation_id=violation_id, status=data.status, changed_by=actor.id)
    return updated
