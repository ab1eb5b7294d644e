"""
Tests for checkout lifecycle, its cascades onto booking and room, and
violations.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from app.core.exceptions import AuthorizationError, InvalidTransitionError, ValidationError
from app.infrastructure.sql_store import SqlAlchemyStore
from app.models import Booking, Checkout, CheckoutItem, Room, Violation
from app.models.system import REPAIR_APPLIED, REPAIR_PENDING, CascadeRepair
from app.schemas.booking import BookingCreate
from app.schemas.checkout import (
    CheckoutCreate,
    CheckoutItemCreate,
    CheckoutStatusUpdate,
    ViolationCreate,
    ViolationResolve,
)
from app.services import booking_service, checkout_service
from app.services.cascade import replay_pending_repairs

from conftest import at


async def approved_booking(store, seed, room_id=None):
    booking = await booking_service.create_booking(
        store,
        seed.student,
        BookingCreate(room_id=room_id or seed.room_a, start_time=at(10, 9), end_time=at(10, 12), purpose="Lab session"),
    )
    await booking_service.approve_booking(store, seed.dept_admin, booking.id)
    return booking.id


async def approved_booking_on_foreign_room(store, seed):
    booking = await booking_service.create_booking(
        store,
        seed.student,
        BookingCreate(room_id=seed.foreign_room, start_time=at(10, 9), end_time=at(10, 12), purpose="Lab session"),
    )
    await booking_service.approve_booking(store, seed.super_admin, booking.id)
    return booking.id


async def open_for(store, seed, booking_id):
    return await checkout_service.open_checkout(
        store,
        seed.student,
        CheckoutCreate(booking_id=booking_id, items=[CheckoutItemCreate(equipment_id=seed.projector, quantity=2)]),
    )


def violation(**overrides):
    data = {"title": "Late return", "description": "Returned two hours late", "penalty_amount": Decimal("5.00")}
    data.update(overrides)
    return ViolationCreate(**data)


@pytest.mark.asyncio
async def test_open_checkout_requires_approved_booking(store, seed):
    pending = await booking_service.create_booking(
        store,
        seed.student,
        BookingCreate(room_id=seed.room_a, start_time=at(10, 9), end_time=at(10, 10), purpose="Lab session"),
    )

    with pytest.raises(InvalidTransitionError):
        await checkout_service.open_checkout(store, seed.student, CheckoutCreate(booking_id=pending.id))


@pytest.mark.asyncio
async def test_open_checkout_with_items(store, seed):
    booking_id = await approved_booking(store, seed)

    checkout = await open_for(store, seed, booking_id)

    assert checkout.status == "active"
    assert checkout.approved_by is None
    assert checkout.total_items == 2
    assert [item.equipment_id for item in checkout.items] == [seed.projector]
    assert checkout.expected_return_date == at(10, 12)


@pytest.mark.asyncio
async def test_approve_checkout_leaves_status(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))

    approved = await checkout_service.approve_checkout(store, seed.dept_admin, checkout.id)

    assert approved.approved_by == seed.dept_admin.id
    assert approved.status == "active"


@pytest.mark.asyncio
async def test_return_completes_booking_and_frees_room(store, seed):
    booking_id = await approved_booking(store, seed)
    checkout = await open_for(store, seed, booking_id)

    result = await checkout_service.update_checkout_status(
        store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned", condition_on_return="good")
    )

    assert result.cascade_ok
    assert result.record.status == "returned"
    assert result.record.actual_return_date is not None
    assert result.record.returned_to == seed.dept_admin.id
    assert (await store.reload(Booking, booking_id)).status == "completed"
    assert (await store.reload(Room, seed.room_a)).is_available


@pytest.mark.asyncio
async def test_status_transitions_are_enforced(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))
    await checkout_service.update_checkout_status(store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="lost"))

    with pytest.raises(InvalidTransitionError):
        await checkout_service.update_checkout_status(
            store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned")
        )


@pytest.mark.asyncio
async def test_damaged_can_still_be_returned(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))
    await checkout_service.update_checkout_status(
        store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="damaged")
    )

    result = await checkout_service.update_checkout_status(
        store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned", condition_on_return="damaged")
    )
    assert result.record.status == "returned"


@pytest.mark.asyncio
async def test_delete_checkout_restores_booking(store, seed):
    booking_id = await approved_booking(store, seed)
    checkout = await open_for(store, seed, booking_id)
    await checkout_service.update_checkout_status(
        store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned")
    )

    result = await checkout_service.delete_checkout(store, seed.dept_admin, checkout.id)

    assert result.cascade_ok
    assert await store.get(Checkout, checkout.id) is None
    assert await store.find(CheckoutItem, CheckoutItem.checkout_id == checkout.id) == []
    assert (await store.reload(Booking, booking_id)).status == "approved"
    assert not (await store.reload(Room, seed.room_a)).is_available


@pytest.mark.asyncio
async def test_violation_does_not_touch_checkout_status(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))

    reported = await checkout_service.attach_violation(store, seed.dept_admin, checkout.id, violation())

    assert reported.status == "active"
    assert reported.user_id == seed.student.id
    assert reported.reported_by == seed.dept_admin.id
    assert (await store.reload(Checkout, checkout.id)).status == "active"
    assert await checkout_service.has_violation(store, checkout.id)


@pytest.mark.asyncio
async def test_blank_violation_is_rejected(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))

    with pytest.raises(ValidationError):
        await checkout_service.attach_violation(store, seed.dept_admin, checkout.id, violation(title="   "))
    assert await store.find(Violation) == []


@pytest.mark.asyncio
async def test_violation_lifecycle(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))
    reported = await checkout_service.attach_violation(store, seed.dept_admin, checkout.id, violation())

    disputed = await checkout_service.resolve_violation(
        store, seed.dept_admin, reported.id, ViolationResolve(status="disputed")
    )
    assert disputed.resolved_at is None

    resolved = await checkout_service.resolve_violation(
        store, seed.dept_admin, reported.id, ViolationResolve(status="resolved", penalty_paid=True)
    )
    assert resolved.status == "resolved"
    assert resolved.penalty_paid is True
    assert resolved.resolved_by == seed.dept_admin.id

    with pytest.raises(InvalidTransitionError):
        await checkout_service.resolve_violation(store, seed.dept_admin, reported.id, ViolationResolve(status="waived"))


@pytest.mark.asyncio
async def test_deleting_booking_removes_checkouts_but_keeps_violations(store, seed):
    booking_id = await approved_booking(store, seed)
    checkout = await open_for(store, seed, booking_id)
    reported = await checkout_service.attach_violation(store, seed.dept_admin, checkout.id, violation())

    await booking_service.delete_booking(store, seed.dept_admin, booking_id)

    assert await store.find(Checkout) == []
    assert await store.find(CheckoutItem) == []
    kept = await store.reload(Violation, reported.id)
    assert kept.checkout_id is None
    assert (await store.reload(Room, seed.room_a)).is_available


@pytest.mark.asyncio
async def test_students_cannot_validate_checkouts(store, seed):
    checkout = await open_for(store, seed, await approved_booking(store, seed))

    with pytest.raises(AuthorizationError):
        await checkout_service.approve_checkout(store, seed.student, checkout.id)


@pytest.mark.asyncio
async def test_checkout_api_flow(client: AsyncClient, seed, student_headers, admin_headers):
    created = await client.post(
        "/api/v1/bookings/",
        json={
            "room_id": seed.room_b,
            "start_time": "2030-01-12T08:00:00",
            "end_time": "2030-01-12T10:00:00",
            "purpose": "Robotics practical",
        },
        headers=student_headers,
    )
    booking_id = created.json()["id"]
    await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)

    opened = await client.post(
        "/api/v1/checkouts",
        json={"booking_id": booking_id, "items": [{"equipment_id": seed.projector}]},
        headers=student_headers,
    )
    assert opened.status_code == 201
    checkout = opened.json()
    assert checkout["pending_validation"] is True
    assert checkout["has_violation"] is False

    reported = await client.post(
        f"/api/v1/checkouts/{checkout['id']}/violations",
        json={"title": "Cable missing", "description": "HDMI cable not returned", "violation_type": "loss"},
        headers=admin_headers,
    )
    assert reported.status_code == 201

    fetched = await client.get(f"/api/v1/checkouts/{checkout['id']}", headers=student_headers)
    assert fetched.json()["has_violation"] is True
    assert fetched.json()["status"] == "active"

    returned = await client.post(
        f"/api/v1/checkouts/{checkout['id']}/status",
        json={"status": "returned", "condition_on_return": "fair"},
        headers=admin_headers,
    )
    assert returned.status_code == 200
    assert returned.json()["checkout"]["status"] == "returned"
    assert returned.json()["warnings"] == []

    deleted = await client.delete(f"/api/v1/checkouts/{checkout['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["booking_id"] == booking_id

    booking = await client.get(f"/api/v1/bookings/{booking_id}", headers=student_headers)
    assert booking.json()["status"] == "approved"


class FailingBookingStatusStore(SqlAlchemyStore):
    """A store whose booking status writes fail, as if the bookings row were locked."""

    async def update_fields(self, model, record_id, values, expected_version=None):
        if model is Booking and "status" in values:
            raise OperationalError("UPDATE bookings", {}, Exception("could not obtain lock"))
        return await super().update_fields(model, record_id, values, expected_version)


@pytest.mark.asyncio
async def test_failed_booking_restore_keeps_checkout_deletion(db_session, store, seed):
    booking_id = await approved_booking(store, seed)
    checkout = await open_for(store, seed, booking_id)
    await checkout_service.update_checkout_status(
        store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned")
    )

    result = await checkout_service.delete_checkout(FailingBookingStatusStore(db_session), seed.dept_admin, checkout.id)

    assert not result.cascade_ok
    warning = result.warnings[0]
    assert (warning.operation, warning.step, warning.target_table, warning.target_id) == (
        "delete_checkout",
        "booking_restore",
        "bookings",
        booking_id,
    )
    assert await store.get(Checkout, checkout.id) is None
    assert (await store.reload(Booking, booking_id)).status == "completed"
    # the room step still ran
    assert not (await store.reload(Room, seed.room_a)).is_available

    repairs = await store.find(CascadeRepair)
    assert [(r.target_table, r.target_id, r.field, r.desired_value, r.status) for r in repairs] == [
        ("bookings", booking_id, "status", "approved", REPAIR_PENDING)
    ]

    settled = await replay_pending_repairs(store, seed.dept_admin)

    assert [r.status for r in settled] == [REPAIR_APPLIED]
    assert (await store.reload(Booking, booking_id)).status == "approved"


@pytest.mark.asyncio
async def test_department_admin_cannot_manage_foreign_checkouts(store, seed):
    booking_id = await approved_booking_on_foreign_room(store, seed)
    checkout = await open_for(store, seed, booking_id)

    with pytest.raises(AuthorizationError):
        await checkout_service.approve_checkout(store, seed.dept_admin, checkout.id)
    with pytest.raises(AuthorizationError):
        await checkout_service.update_checkout_status(
            store, seed.dept_admin, checkout.id, CheckoutStatusUpdate(status="returned")
        )
    with pytest.raises(AuthorizationError):
        await checkout_service.delete_checkout(store, seed.dept_admin, checkout.id)
    with pytest.raises(AuthorizationError):
        await checkout_service.attach_violation(store, seed.dept_admin, checkout.id, violation())

    approved = await checkout_service.approve_checkout(store, seed.super_admin, checkout.id)
    assert approved.approved_by == seed.super_admin.id