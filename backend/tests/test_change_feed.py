"""
Tests for change notification: events reach subscribers only after the
transaction that produced them commits.
"""

import asyncio
import json

import pytest

from app.core.config import get_settings
from app.models import Booking
from app.schemas.booking import BookingCreate
from app.services import booking_service, notification_service
from app.services.notification_service import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed, change_feed

from conftest import at


def booking_data(seed):
    return BookingCreate(room_id=seed.room_a, start_time=at(10, 9), end_time=at(10, 10), purpose="Seminar")


@pytest.mark.asyncio
async def test_events_delivered_after_commit(db_session, store, seed):
    received = []
    store.subscribe("bookings", received.append)

    booking = await booking_service.create_booking(store, seed.student, booking_data(seed))
    assert received == []

    await db_session.commit()

    assert [(e.table, e.operation, e.record_id) for e in received] == [("bookings", INSERT, booking.id)]
    assert received[0].changes["status"] == "pending"


@pytest.mark.asyncio
async def test_rolled_back_changes_are_never_delivered(db_session, store, seed):
    received = []
    change_feed.subscribe("*", received.append)

    await booking_service.create_booking(store, seed.student, booking_data(seed))
    await db_session.rollback()
    await db_session.commit()

    assert received == []


@pytest.mark.asyncio
async def test_predicate_narrows_subscription(db_session, store, seed):
    approvals = []
    store.subscribe(
        "bookings",
        approvals.append,
        predicate=lambda e: e.operation == UPDATE and e.changes.get("status") == "approved",
    )
    rooms = []
    store.subscribe("rooms", rooms.append, predicate=lambda e: "is_available" in e.changes)

    booking = await booking_service.create_booking(store, seed.student, booking_data(seed))
    await booking_service.approve_booking(store, seed.dept_admin, booking.id)
    await booking_service.delete_booking(store, seed.dept_admin, booking.id)
    await db_session.commit()

    assert [e.record_id for e in approvals] == [booking.id]
    assert [e.changes["is_available"] for e in rooms] == [False, True]


@pytest.mark.asyncio
async def test_delete_event(db_session, store, seed):
    booking = await booking_service.create_booking(store, seed.student, booking_data(seed))
    await db_session.commit()

    deletes = []
    store.subscribe("bookings", deletes.append, predicate=lambda e: e.operation == DELETE)
    await booking_service.delete_booking(store, seed.student, booking.id)
    await db_session.commit()

    assert [e.record_id for e in deletes] == [booking.id]
    assert await db_session.get(Booking, booking.id) is None


def test_failing_subscriber_does_not_stop_delivery():
    feed = ChangeFeed()
    received = []

    def broken(event):
        raise RuntimeError("view refresh failed")

    feed.subscribe("rooms", broken)
    feed.subscribe("rooms", received.append)

    feed.dispatch([ChangeEvent(table="rooms", operation=UPDATE, record_id=1, changes={"is_available": False})])

    assert len(received) == 1


def test_unsubscribe():
    feed = ChangeFeed()
    received = []
    subscription = feed.subscribe("rooms", received.append)
    subscription.unsubscribe()

    feed.dispatch([ChangeEvent(table="rooms", operation=UPDATE, record_id=1)])

    assert received == []


def test_change_event_serializes_to_json():
    payload = ChangeEvent(table="bookings", operation=INSERT, record_id=7, changes={"start_time": at(10, 9)}).to_json()
    assert '"record_id": 7' in payload
    assert "2030-01-10 09:00:00" in payload


class RecordingRedis:
    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


@pytest.mark.asyncio
async def test_committed_changes_are_published_to_redis(db_session, store, seed, monkeypatch):
    redis = RecordingRedis()

    async def fake_get_redis():
        return redis

    settings = get_settings().model_copy(update={"REDIS_ENABLED": True})
    monkeypatch.setattr(notification_service, "get_settings", lambda: settings)
    monkeypatch.setattr(notification_service, "get_redis", fake_get_redis)

    booking = await booking_service.create_booking(store, seed.student, booking_data(seed))
    assert notification_service._publish_tasks == set()

    await db_session.commit()
    in_flight = list(notification_service._publish_tasks)
    assert len(in_flight) == 1

    await asyncio.gather(*in_flight)
    await asyncio.sleep(0)

    prefix = settings.CHANGE_CHANNEL_PREFIX
    assert [(channel, message["record_id"]) for channel, message in redis.published] == [
        (f"{prefix}:bookings", booking.id)
    ]
    assert notification_service._publish_tasks == set()
