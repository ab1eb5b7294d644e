"""
Tests for the pure interval conflict detector.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.core.exceptions import ValidationError
from app.services.conflict_detector import (
    Allocation,
    as_utc,
    conflicting_ids,
    exam_window,
    overlaps,
    validate_interval,
)


def h(hour, minute=0):
    return datetime(2030, 1, 10, hour, minute)


POOL = [
    Allocation(id=1, resource_id=10, start=h(9), end=h(10)),
    Allocation(id=2, resource_id=10, start=h(13), end=h(15)),
    Allocation(id=3, resource_id=20, start=h(9), end=h(12)),
    Allocation(id=4, resource_id=10, start=None, end=None),
]


def test_back_to_back_intervals_do_not_conflict():
    assert not overlaps(POOL, 10, h(10), h(11))
    assert not overlaps(POOL, 10, h(8), h(9))


def test_one_minute_overlap_conflicts():
    assert conflicting_ids(POOL, 10, h(9, 59), h(11)) == {1}


def test_containing_interval_reports_every_overlap():
    assert conflicting_ids(POOL, 10, h(8), h(16)) == {1, 2}


def test_other_resources_are_ignored():
    assert conflicting_ids(POOL, 30, h(8), h(16)) == set()
    assert conflicting_ids(POOL, 20, h(11), h(13)) == {3}


def test_exclude_id_skips_the_edited_allocation():
    assert conflicting_ids(POOL, 10, h(9), h(10), exclude_id=1) == set()
    assert conflicting_ids(POOL, 10, h(9), h(14), exclude_id=1) == {2}


def test_windowless_entries_never_conflict():
    assert 4 not in conflicting_ids(POOL, 10, h(0), h(23))
    assert conflicting_ids(POOL, 10, None, None) == set()


def test_pool_is_not_mutated():
    pool = list(POOL)
    conflicting_ids(pool, 10, h(8), h(16), exclude_id=2)
    assert pool == POOL


@pytest.mark.parametrize("start,end", [(h(10), h(10)), (h(11), h(10)), (None, h(10))])
def test_empty_or_inverted_intervals_are_rejected(start, end):
    with pytest.raises(ValidationError) as exc_info:
        validate_interval(start, end)
    assert exc_info.value.status_code == 422


def test_exam_window_for_sit_in_and_take_home():
    start, end = exam_window(date(2030, 1, 10), time(8), time(10))
    assert (start, end) == (h(8), h(10))
    assert exam_window(date(2030, 1, 10), None, None) == (None, None)


def test_aware_candidate_against_naive_pool():
    # pool entries come back naive (UTC) from SQLite
    assert conflicting_ids(POOL, 10, as_utc(h(9, 30)), as_utc(h(10, 30))) == {1}
    assert not overlaps(POOL, 10, as_utc(h(10)), as_utc(h(13)))


def test_offset_candidate_is_compared_in_utc():
    plus_two = timezone(timedelta(hours=2))
    aware_pool = [Allocation(id=1, resource_id=10, start=as_utc(h(9)), end=as_utc(h(10)))]

    # 11:00+02:00 is 09:00Z: overlaps
    assert overlaps(aware_pool, 10, h(11).replace(tzinfo=plus_two), h(11, 30).replace(tzinfo=plus_two))
    # 12:00+02:00 is 10:00Z: touches the end, no overlap
    assert not overlaps(aware_pool, 10, h(12).replace(tzinfo=plus_two), h(13).replace(tzinfo=plus_two))
    # naive candidate against an aware pool
    assert overlaps(aware_pool, 10, h(9, 30), h(9, 45))


def test_mixed_awareness_interval_is_validated():
    validate_interval(h(9).replace(tzinfo=timezone.utc), h(10))
    with pytest.raises(ValidationError):
        validate_interval(h(10).replace(tzinfo=timezone.utc), h(9))
    with pytest.raises(ValidationError):
        validate_interval(h(9).replace(tzinfo=timezone.utc), h(9))


def test_as_utc():
    assert as_utc(h(9)) == datetime(2030, 1, 10, 9, tzinfo=timezone.utc)
    assert as_utc(datetime(2030, 1, 10, 11, tzinfo=timezone(timedelta(hours=2)))).hour == 9
    assert as_utc(time(9)) == time(9)
    assert as_utc(None) is None
