"""
Interval conflict detection.

Allocations are half-open intervals [start, end): two allocations on the same
resource conflict iff  s1 < e2  and  s2 < e1. Back-to-back allocations
(09:00-10:00 and 10:00-11:00) therefore never conflict.

Everything here is a pure query over an in-memory pool. Callers load the pool
(approved bookings of a room, exams of a date) and decide what to do with the
answer; nothing in this module touches the database or mutates its inputs.

Allocations without a window (take-home exams) never conflict and are never
conflicted with.

Timestamps are compared in UTC. Naive values are taken to be UTC already:
SQLite hands back naive datetimes where Postgres timestamptz hands back aware
ones, and a request may carry either.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Hashable, Iterable, Optional, Set

from app.core.exceptions import ValidationError


@dataclass(frozen=True)
class Allocation:
    id: int
    resource_id: Optional[Hashable]
    start: Optional[datetime]
    end: Optional[datetime]

    @property
    def has_window(self) -> bool:
        return self.start is not None and self.end is not None


def as_utc(value):
    """UTC-aware copy of a datetime; naive values are read as UTC. Other values pass through."""
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validate_interval(start, end) -> None:
    """Reject empty or inverted intervals before they reach the detector."""
    if start is None or end is None:
        raise ValidationError("Both start and end are required")
    start, end = as_utc(start), as_utc(end)
    if start == end:
        raise ValidationError("Interval is empty: start equals end", start=str(start), end=str(end))
    if start > end:
        raise ValidationError("Interval is inverted: start is after end", start=str(start), end=str(end))


def intervals_overlap(s1, e1, s2, e2) -> bool:
    return s1 < e2 and s2 < e1


def conflicting_ids(
    pool: Iterable[Allocation],
    resource_id,
    start,
    end,
    exclude_id: Optional[int] = None,
) -> Set[int]:
    """Ids of allocations in `pool` on `resource_id` that overlap [start, end)."""
    if start is None or end is None or resource_id is None:
        return set()

    start, end = as_utc(start), as_utc(end)
    found = set()
    for allocation in pool:
        if allocation.resource_id != resource_id:
            continue
        if exclude_id is not None and allocation.id == exclude_id:
            continue
        if not allocation.has_window:
            continue
        if intervals_overlap(start, end, as_utc(allocation.start), as_utc(allocation.end)):
            found.add(allocation.id)
    return found


def overlaps(
    pool: Iterable[Allocation],
    resource_id,
    start,
    end,
    exclude_id: Optional[int] = None,
) -> bool:
    return bool(conflicting_ids(pool, resource_id, start, end, exclude_id))


def exam_window(exam_date: date, start: Optional[time], end: Optional[time]):
    """Turn an exam's date + times into a datetime window (None for take-home)."""
    if start is None or end is None:
        return None, None
    return datetime.combine(exam_date, start), datetime.combine(exam_date, end)
