"""
Cascading side effects of lifecycle transitions.

A transition has one primary mutation (booking/checkout status) and zero or
more dependent ones (room availability, booking restoration). The primary
change is applied first and is authoritative. Each dependent step then runs
inside its own savepoint through CascadeSaga:

  - success: the step is committed with the request transaction
  - failure: the savepoint is rolled back, the primary change is kept, a
    CascadeRepair row records the compensating action that is still owed,
    and the caller receives a CascadeFailure warning

Pending repairs are settled either by the next successful write to the same
room availability (which marks them superseded) or explicitly through
`replay_pending_repairs`.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import NotFoundError, VersionConflictError
from app.core.logging import get_logger
from app.core.metrics import record_cascade_failure
from app.core.security import ADMIN_ROLES, Actor, require_role
from app.models.booking import APPROVED, Booking
from app.models.room import Room
from app.models.system import (
    REPAIR_APPLIED,
    REPAIR_PENDING,
    REPAIR_SUPERSEDED,
    CascadeRepair,
)
from app.services.interfaces.store import RecordStore

logger = get_logger(__name__)

# Failures a dependent step may hit without invalidating the primary change
CASCADE_ERRORS = (SQLAlchemyError, NotFoundError, VersionConflictError)


@dataclass(frozen=True)
class CascadeFailure:
    """A dependent mutation that failed after its primary mutation succeeded."""

    operation: str
    step: str
    target_table: str
    target_id: Optional[int]
    reason: str
    repair_id: Optional[int] = None

    def as_warning(self) -> dict:
        return {
            "error": "CascadeFailure",
            "message": (
                f"{self.operation} succeeded, but {self.step} failed; "
                f"{self.target_table} {self.target_id} may be stale"
            ),
            "operation": self.operation,
            "step": self.step,
            "target_table": self.target_table,
            "target_id": self.target_id,
            "reason": self.reason,
            "repair_id": self.repair_id,
        }


@dataclass
class TransitionResult:
    record: Any
    warnings: List[CascadeFailure] = field(default_factory=list)

    @property
    def cascade_ok(self) -> bool:
        return not self.warnings


class CascadeSaga:
    """Runs the dependent steps of one lifecycle operation."""

    def __init__(self, store: RecordStore, operation: str):
        self.store = store
        self.operation = operation
        self.failures: List[CascadeFailure] = []
        self.completed_steps: List[str] = []

    async def step(
        self,
        name: str,
        target_table: str,
        target_id: int,
        field_name: str,
        desired_value,
        action: Callable[[], Awaitable[None]],
    ) -> bool:
        try:
            async with self.store.savepoint():
                await action()
        except CASCADE_ERRORS as e:
            reason = str(e)
            repair_id = await self._record_repair(name, target_table, target_id, field_name, desired_value, reason)
            self.failures.append(
                CascadeFailure(
                    operation=self.operation,
                    step=name,
                    target_table=target_table,
                    target_id=target_id,
                    reason=reason,
                    repair_id=repair_id,
                )
            )
            record_cascade_failure(self.operation, name)
            logger.warning(
                "cascade_step_failed",
                operation=self.operation,
                step=name,
                target_table=target_table,
                target_id=target_id,
                error=reason,
                repair_id=repair_id,
            )
            return False

        self.completed_steps.append(name)
        return True

    async def _record_repair(self, step, target_table, target_id, field_name, desired_value, reason) -> Optional[int]:
        try:
            async with self.store.savepoint():
                repair = await self.store.insert(
                    CascadeRepair(
                        operation=self.operation,
                        step=step,
                        target_table=target_table,
                        target_id=target_id,
                        field=field_name,
                        desired_value=desired_value,
                        status=REPAIR_PENDING,
                        error=reason,
                    )
                )
                return repair.id
        except SQLAlchemyError as e:
            logger.error("cascade_repair_not_recorded", operation=self.operation, step=step, error=str(e))
            return None

    def result(self, record) -> TransitionResult:
        return TransitionResult(record=record, warnings=list(self.failures))


async def supersede_repairs(store: RecordStore, target_table: str, target_id: int, field_name: str) -> int:
    """Mark pending repairs of a target as settled by a newer successful write."""
    pending = await store.find(
        CascadeRepair,
        CascadeRepair.target_table == target_table,
        CascadeRepair.target_id == target_id,
        CascadeRepair.field == field_name,
        CascadeRepair.status == REPAIR_PENDING,
    )
    for repair in pending:
        await store.update_fields(CascadeRepair, repair.id, {"status": REPAIR_SUPERSEDED}, expected_version=repair.version)
    return len(pending)


async def set_room_availability(
    saga: CascadeSaga,
    room_id: Optional[int],
    available: bool,
    step: str = "room_availability",
) -> bool:
    """Dependent step: flip Room.is_available. No-op for room-less bookings."""
    if room_id is None:
        return True
    store = saga.store

    async def apply():
        room = await store.get_or_raise(Room, room_id)
        await store.update_fields(Room, room_id, {"is_available": available}, expected_version=room.version)
        await supersede_repairs(store, "rooms", room_id, "is_available")

    return await saga.step(step, "rooms", room_id, "is_available", available, apply)


async def room_should_be_available(store: RecordStore, room_id: int) -> bool:
    """The room invariant: available iff no approved booking references it."""
    approved = await store.find(Booking, Booking.room_id == room_id, Booking.status == APPROVED)
    return not approved


async def replay_pending_repairs(store: RecordStore, actor: Actor) -> List[CascadeRepair]:
    """
    Settle every pending repair.

    Room availability is recomputed from the invariant rather than replayed
    verbatim, since later transitions may have changed what the flag should be.
    Booking restorations are re-applied if the booking still exists.
    """
    require_role(actor, ADMIN_ROLES, "replay cascade repairs")

    pending = await store.find(CascadeRepair, CascadeRepair.status == REPAIR_PENDING, order_by=CascadeRepair.id)
    settled = []
    for repair in pending:
        if repair.target_table == "rooms":
            room = await store.get(Room, repair.target_id)
            if room is None:
                outcome = REPAIR_SUPERSEDED
            else:
                available = await room_should_be_available(store, room.id)
                await store.update_fields(Room, room.id, {"is_available": available}, expected_version=room.version)
                outcome = REPAIR_APPLIED
        elif repair.target_table == "bookings":
            booking = await store.get(Booking, repair.target_id)
            if booking is None:
                outcome = REPAIR_SUPERSEDED
            else:
                await store.update_fields(
                    Booking, booking.id, {repair.field: repair.desired_value}, expected_version=booking.version
                )
                outcome = REPAIR_APPLIED
        else:
            logger.warning("cascade_repair_unknown_target", repair_id=repair.id, target_table=repair.target_table)
            continue

        settled.append(
            await store.update_fields(CascadeRepair, repair.id, {"status": outcome}, expected_version=repair.version)
        )
        logger.info(
            "cascade_repair_settled",
            repair_id=repair.id,
            target_table=repair.target_table,
            target_id=repair.target_id,
            outcome=outcome,
            actor_id=actor.id,
        )
    return settled
