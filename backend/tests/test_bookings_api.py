"""
HTTP tests for booking endpoints, including the end-to-end approval scenario.
"""

import pytest
from httpx import AsyncClient

from app.models import Room

from conftest import headers_for


def body(room_id, start, end, **extra):
    return {"room_id": room_id, "start_time": start, "end_time": end, "purpose": "Thesis defense", **extra}


async def room_available(db_session, room_id) -> bool:
    room = await db_session.get(Room, room_id, populate_existing=True)
    return room.is_available


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, seed, student_headers):
    response = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00", sks=2, class_type="practical"),
        headers=student_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["user_id"] == seed.student.id
    assert data["sks"] == 2
    assert data["version"] == 1


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, seed):
    response = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token_is_rejected(client: AsyncClient, seed):
    response = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_zero_length_booking_is_a_validation_error(client: AsyncClient, seed, student_headers):
    response = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T09:00:00"),
        headers=student_headers,
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_end_to_end_approval_blocks_overlapping_request(
    client: AsyncClient, db_session, seed, student_headers, admin_headers
):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers=student_headers,
    )
    booking_id = created.json()["id"]

    approved = await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)
    assert approved.status_code == 200
    assert approved.json()["booking"]["status"] == "approved"
    assert approved.json()["warnings"] == []
    assert not await room_available(db_session, seed.room_a)

    second = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:30:00", "2030-01-10T10:00:00"),
        headers=headers_for(seed.other_student),
    )
    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["error"] == "ConflictError"
    assert detail["conflicting_ids"] == [booking_id]


@pytest.mark.asyncio
async def test_conflict_query_boundaries(client: AsyncClient, seed, student_headers, admin_headers):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:30:00", "2030-01-10T10:30:00"),
        headers=student_headers,
    )
    booking_id = created.json()["id"]
    await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)

    async def query(start, end):
        response = await client.post(
            "/api/v1/bookings/conflicts",
            json={"room_id": seed.room_a, "start_time": start, "end_time": end},
            headers=student_headers,
        )
        assert response.status_code == 200
        return response.json()

    hit = await query("2030-01-10T09:00:00", "2030-01-10T10:00:00")
    assert hit["overlaps"] is True
    assert hit["conflicting_ids"] == [booking_id]
    assert (await query("2030-01-10T08:00:00", "2030-01-10T09:00:00"))["overlaps"] is False
    assert (await query("2030-01-10T10:30:00", "2030-01-10T11:00:00"))["overlaps"] is False


@pytest.mark.asyncio
async def test_reject_and_delete_through_api(client: AsyncClient, db_session, seed, student_headers, admin_headers):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_b, "2030-01-11T13:00:00", "2030-01-11T15:00:00"),
        headers=student_headers,
    )
    booking_id = created.json()["id"]
    await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)

    rejected = await client.post(f"/api/v1/bookings/{booking_id}/reject", headers=admin_headers)
    assert rejected.status_code == 200
    assert rejected.json()["booking"]["status"] == "rejected"
    assert await room_available(db_session, seed.room_b)

    deleted = await client.delete(f"/api/v1/bookings/{booking_id}", headers=student_headers)
    assert deleted.status_code == 200
    assert deleted.json()["prior_status"] == "rejected"

    missing = await client.get(f"/api/v1/bookings/{booking_id}", headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["detail"]["error"] == "NotFoundError"


@pytest.mark.asyncio
async def test_student_cannot_approve(client: AsyncClient, seed, student_headers):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers=student_headers,
    )
    response = await client.post(f"/api/v1/bookings/{created.json()['id']}/approve", headers=student_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["error"] == "AuthorizationError"


@pytest.mark.asyncio
async def test_approve_with_stale_version(client: AsyncClient, seed, student_headers, admin_headers):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers=student_headers,
    )
    booking_id = created.json()["id"]
    await client.patch(
        f"/api/v1/bookings/{booking_id}",
        json={"start_time": "2030-01-10T08:00:00"},
        headers=student_headers,
    )

    response = await client.post(
        f"/api/v1/bookings/{booking_id}/approve", json={"version": 1}, headers=admin_headers
    )
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "VersionConflictError"


@pytest.mark.asyncio
async def test_create_and_read_room(client: AsyncClient, seed, admin_headers, student_headers):
    response = await client.post(
        "/api/v1/rooms/",
        json={"name": "Seminar C", "code": "SEM-C", "capacity": 25, "facilities": ["whiteboard"]},
        headers=admin_headers,
    )
    assert response.status_code == 201
    room = response.json()
    assert room["is_available"] is True
    assert room["department_id"] == seed.department_id

    fetched = await client.get(f"/api/v1/rooms/{room['id']}", headers=student_headers)
    assert fetched.json()["code"] == "SEM-C"

    duplicate = await client.post(
        "/api/v1/rooms/",
        json={"name": "Seminar C2", "code": "SEM-C", "capacity": 25},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    health = await client.get("/health")
    assert health.json()["status"] == "healthy"

    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "lifecycle_transitions_total" in metrics.text


@pytest.mark.asyncio
async def test_utc_suffixed_request_conflicts_with_stored_booking(
    client: AsyncClient, seed, student_headers, admin_headers
):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers=student_headers,
    )
    booking_id = created.json()["id"]
    await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)

    overlapping = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:30:00Z", "2030-01-10T10:30:00Z"),
        headers=student_headers,
    )
    assert overlapping.status_code == 409
    assert overlapping.json()["detail"]["conflicting_ids"] == [booking_id]

    # 12:00+02:00 is 10:00Z, right after the approved booking
    adjacent = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T12:00:00+02:00", "2030-01-10T13:00:00+02:00"),
        headers=student_headers,
    )
    assert adjacent.status_code == 201


@pytest.mark.asyncio
async def test_mixed_awareness_interval(client: AsyncClient, seed, student_headers):
    inverted = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T10:00:00Z", "2030-01-10T09:00:00"),
        headers=student_headers,
    )
    assert inverted.status_code == 422
    assert inverted.json()["detail"]["error"] == "ValidationError"

    valid = await client.post(
        "/api/v1/bookings/",
        json=body(seed.room_a, "2030-01-10T09:00:00Z", "2030-01-10T10:00:00"),
        headers=student_headers,
    )
    assert valid.status_code == 201

    report = await client.post(
        "/api/v1/bookings/conflicts",
        json={"room_id": seed.room_a, "start_time": "2030-01-10T09:30:00+00:00", "end_time": "2030-01-10T11:00:00"},
        headers=student_headers,
    )
    assert report.status_code == 200
    assert report.json()["overlaps"] is False


@pytest.mark.asyncio
async def test_department_admin_cannot_approve_foreign_room(
    client: AsyncClient, seed, admin_headers, super_admin_headers
):
    created = await client.post(
        "/api/v1/bookings/",
        json=body(seed.foreign_room, "2030-01-10T09:00:00", "2030-01-10T10:00:00"),
        headers=headers_for(seed.student),
    )
    booking_id = created.json()["id"]

    denied = await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=admin_headers)
    assert denied.status_code == 403
    assert denied.json()["detail"]["error"] == "AuthorizationError"

    approved = await client.post(f"/api/v1/bookings/{booking_id}/approve", headers=super_admin_headers)
    assert approved.status_code == 200


@pytest.mark.asyncio
async def test_department_admin_cannot_create_room_for_another_department(
    client: AsyncClient, seed, admin_headers, super_admin_headers
):
    room = {"name": "Optics Lab", "code": "PH-2", "capacity": 20, "department_id": seed.other_department_id}

    denied = await client.post("/api/v1/rooms/", json=room, headers=admin_headers)
    assert denied.status_code == 403

    created = await client.post("/api/v1/rooms/", json=room, headers=super_admin_headers)
    assert created.status_code == 201
    assert created.json()["department_id"] == seed.other_department_id
