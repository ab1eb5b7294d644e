#!/usr/bin/env python3
"""
Approval race against a running Room Reservation API.

Creates CONCURRENT_REQUESTS pending bookings that all overlap on one room,
then fires every approval at once from separate admin sessions. The room
invariant says at most one of them may end up approved; everything else must
come back 409 (overlap or lost compare-and-swap).

Needs a seeded database: STUDENT_ID and ADMIN_ID users and ROOM_ID room.
"""

import asyncio
import os
import time
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import aiohttp
import jwt

API_URL = os.getenv("API_URL", "http://localhost:8000")
SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
STUDENT_ID = int(os.getenv("STUDENT_ID", "1"))
ADMIN_ID = int(os.getenv("ADMIN_ID", "100"))
ROOM_ID = int(os.getenv("ROOM_ID", "1"))
CONCURRENT_REQUESTS = 50


def bearer(user_id: int, role: str) -> dict:
    token = jwt.encode(
        {"sub": str(user_id), "role": role, "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        SECRET_KEY,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


class ApprovalRace:
    def __init__(self):
        self.results = {
            "approved": 0,
            "conflicts": 0,
            "version_conflicts": 0,
            "failed": 0,
            "errors": 0,
            "cascade_warnings": 0,
            "response_times": []
        }
        self.slot_start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=60)

    async def create_pending(self, session: aiohttp.ClientSession, n: int) -> Optional[int]:
        """Request an interval that overlaps every other request by at least 30 minutes."""
        start = self.slot_start + timedelta(minutes=n % 30)
        async with session.post(f"{API_URL}/api/v1/bookings/",
            json={
                "room_id": ROOM_ID,
                "start_time": start.isoformat(),
                "end_time": (start + timedelta(hours=1)).isoformat(),
                "purpose": f"Race request {n}",
            },
            headers=bearer(STUDENT_ID, "student")
        ) as resp:
            if resp.status == 201:
                return (await resp.json())["id"]
            print(f"✗ Request {n} not created: {resp.status}")
            return None

    async def approve(self, session: aiohttp.ClientSession, booking_id: int):
        start = time.time()
        try:
            async with session.post(f"{API_URL}/api/v1/bookings/{booking_id}/approve",
                headers=bearer(ADMIN_ID, "super_admin")
            ) as resp:
                elapsed = (time.time() - start) * 1000
                self.results["response_times"].append(elapsed)
                body = await resp.json()

                if resp.status == 200:
                    self.results["approved"] += 1
                    self.results["cascade_warnings"] += len(body.get("warnings", []))
                    print(f"✓ Booking {booking_id} approved ({elapsed:.0f}ms)")
                elif resp.status == 409:
                    error = body.get("detail", {}).get("error")
                    if error == "VersionConflictError":
                        self.results["version_conflicts"] += 1
                    else:
                        self.results["conflicts"] += 1
                    print(f"✗ Booking {booking_id} {error} ({elapsed:.0f}ms)")
                else:
                    self.results["failed"] += 1
                    print(f"✗ Booking {booking_id} failed: {resp.status} ({elapsed:.0f}ms)")
        except Exception as e:
            self.results["errors"] += 1
            print(f"✗ Booking {booking_id} error: {e}")

    async def run(self):
        print(f"\n{'='*60}")
        print(f"APPROVAL RACE: {CONCURRENT_REQUESTS} overlapping requests → room {ROOM_ID}")
        print(f"{'='*60}\n")

        async with aiohttp.ClientSession() as session:
            print("Phase 1: Creating pending requests...")
            created: List[Optional[int]] = await asyncio.gather(
                *[self.create_pending(session, i) for i in range(CONCURRENT_REQUESTS)]
            )
            booking_ids = [b for b in created if b]
            print(f"✓ Created {len(booking_ids)} pending bookings\n")

            if not booking_ids:
                print("✗ Nothing to approve")
                return

            print(f"Phase 2: {len(booking_ids)} approvals at once...")
            print("-" * 60)
            start_time = time.time()
            await asyncio.gather(*[self.approve(session, b) for b in booking_ids])
            total_time = time.time() - start_time

            print("\n" + "="*60)
            print("RESULTS")
            print("="*60)
            print(f"Total time:          {total_time:.2f}s")
            print(f"Approved:            {self.results['approved']}")
            print(f"Overlap (409):       {self.results['conflicts']}")
            print(f"Lost CAS (409):      {self.results['version_conflicts']}")
            print(f"Failed:              {self.results['failed']}")
            print(f"Errors:              {self.results['errors']}")
            print(f"Cascade warnings:    {self.results['cascade_warnings']}")

            if self.results["response_times"]:
                times = sorted(self.results["response_times"])
                print(f"\nResponse times:")
                print(f"  Avg: {sum(times)/len(times):.0f}ms")
                print(f"  P50: {times[len(times)//2]:.0f}ms")
                print(f"  P95: {times[int(len(times)*0.95)]:.0f}ms")
                print(f"  P99: {times[int(len(times)*0.99)]:.0f}ms")

            print("\n" + "="*60)
            if self.results["approved"] <= 1:
                print(f"✓ PASS: no double allocation")
                print(f"  {self.results['approved']} approved ≤ 1")
            else:
                print(f"✗ FAIL: DOUBLE ALLOCATION DETECTED!")
                print(f"  {self.results['approved']} overlapping bookings approved")
            print("="*60 + "\n")

if __name__ == "__main__":
    race = ApprovalRace()
    asyncio.run(race.run())
