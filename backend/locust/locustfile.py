"""
Locust Load Test Suite

Assumes a seeded database (users and rooms exist). Tokens are minted locally
with the shared secret, since issuance belongs to the external auth service.

Environment:
  SECRET_KEY        same value as the API
  STUDENT_IDS       comma separated user ids with role student   (default 1,2,3)
  ADMIN_ID          a super_admin user id                        (default 100)
  ROOM_IDS          comma separated room ids                     (default 1,2,3)

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Approval race on one room
  locust -f locustfile.py --tags throughput   # Conflict queries and reads
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random
from datetime import datetime, timedelta, timezone

import jwt
from locust import HttpUser, task, between, tag, events

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
STUDENT_IDS = [int(i) for i in os.getenv("STUDENT_IDS", "1,2,3").split(",")]
ADMIN_ID = int(os.getenv("ADMIN_ID", "100"))
ROOM_IDS = [int(i) for i in os.getenv("ROOM_IDS", "1,2,3").split(",")]

# Every ConcurrencyUser requests this exact slot on the first room
CONTESTED_START = datetime(2031, 3, 3, 9, 0, tzinfo=timezone.utc)
CONTESTED_END = CONTESTED_START + timedelta(hours=2)

BOOKING_IDS = []


def bearer(user_id: int, role: str) -> dict:
    token = jwt.encode(
        {"sub": str(user_id), "role": role, "exp": datetime.now(timezone.utc) + timedelta(hours=2)},
        SECRET_KEY,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


def random_slot():
    day = datetime(2031, 4, 1, tzinfo=timezone.utc) + timedelta(days=random.randint(0, 60))
    start = day + timedelta(hours=random.randint(7, 17))
    return start, start + timedelta(hours=random.choice([1, 2, 3]))


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"Contested slot: room {ROOM_IDS[0]} {CONTESTED_START.isoformat()} - {CONTESTED_END.isoformat()}")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many pending requests, many approvals, one slot

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings
      WHERE room_id = X AND status = 'approved'
        AND start_time < '<end>' AND end_time > '<start>';
    Should be ≤ 1
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.student_headers = bearer(random.choice(STUDENT_IDS), "student")
        self.admin_headers = bearer(ADMIN_ID, "super_admin")

    @tag("concurrency")
    @task
    def request_and_approve(self):
        """Create a pending booking for the contested slot, then race to approve it."""
        with self.client.post("/api/v1/bookings/",
            json={
                "room_id": ROOM_IDS[0],
                "start_time": CONTESTED_START.isoformat(),
                "end_time": CONTESTED_END.isoformat(),
                "purpose": "Contested lecture",
            },
            headers=self.student_headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                booking_id = resp.json()["id"]
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: slot already approved
                return
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
                return

        with self.client.post(f"/api/v1/bookings/{booking_id}/approve",
            headers=self.admin_headers,
            name="/api/v1/bookings/{id}/approve",
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 409]:
                resp.success()  # 409: overlap or lost compare-and-swap
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - conflict queries and reads

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = bearer(random.choice(STUDENT_IDS), "student")

    @tag("throughput", "read")
    @task(10)
    def query_conflicts(self):
        start, end = random_slot()
        self.client.post("/api/v1/bookings/conflicts",
            json={"room_id": random.choice(ROOM_IDS), "start_time": start.isoformat(), "end_time": end.isoformat()},
            headers=self.headers)

    @tag("throughput", "read")
    @task(3)
    def get_room(self):
        self.client.get(f"/api/v1/rooms/{random.choice(ROOM_IDS)}",
            headers=self.headers,
            name="/api/v1/rooms/{id}")

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = bearer(random.choice(STUDENT_IDS), "student")

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_room(self):
        start, end = random_slot()
        with self.client.post("/api/v1/bookings/",
            json={"room_id": 999999, "start_time": start.isoformat(), "end_time": end.isoformat(), "purpose": "x"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def zero_length_interval(self):
        start, _ = random_slot()
        with self.client.post("/api/v1/bookings/",
            json={"room_id": ROOM_IDS[0], "start_time": start.isoformat(), "end_time": start.isoformat(), "purpose": "x"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def inverted_interval(self):
        start, end = random_slot()
        with self.client.post("/api/v1/bookings/",
            json={"room_id": ROOM_IDS[0], "start_time": end.isoformat(), "end_time": start.isoformat(), "purpose": "x"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def student_approves(self):
        with self.client.post("/api/v1/bookings/1/approve",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [403])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        start, end = random_slot()
        with self.client.post("/api/v1/bookings/",
            json={"room_id": ROOM_IDS[0], "start_time": start.isoformat(), "end_time": end.isoformat(), "purpose": "x"},
            catch_response=True
        ) as resp:
            self._expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly conflict checks before requesting (70%)
      - Some booking requests (20%)
      - Occasional admin decisions (10%)
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = bearer(random.choice(STUDENT_IDS), "student")
        self.admin_headers = bearer(ADMIN_ID, "super_admin")

    @task(35)
    def check_slot(self):
        start, end = random_slot()
        self.client.post("/api/v1/bookings/conflicts",
            json={"room_id": random.choice(ROOM_IDS), "start_time": start.isoformat(), "end_time": end.isoformat()},
            headers=self.headers)

    @task(10)
    def request_booking(self):
        start, end = random_slot()
        resp = self.client.post("/api/v1/bookings/",
            json={
                "room_id": random.choice(ROOM_IDS),
                "start_time": start.isoformat(),
                "end_time": end.isoformat(),
                "purpose": "Study group",
            },
            headers=self.headers)
        if resp.status_code == 201:
            BOOKING_IDS.append(resp.json()["id"])

    @task(5)
    def decide(self):
        if BOOKING_IDS:
            booking_id = random.choice(BOOKING_IDS)
            action = random.choice(["approve", "reject"])
            self.client.post(f"/api/v1/bookings/{booking_id}/{action}",
                headers=self.admin_headers,
                name=f"/api/v1/bookings/{{id}}/{action}")
