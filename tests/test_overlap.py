"""
Interval overlap rules: closed day intervals, touching on the same day is a
conflict, starting the next day is not.
"""
from datetime import date

from services.overlap import Interval, find_conflicts, has_conflict, overlaps


JAN_TO_JUN = Interval(date(2024, 1, 1), date(2024, 6, 1))


def test_disjoint_intervals_do_not_overlap():
    assert not overlaps(JAN_TO_JUN, Interval(date(2024, 7, 1), date(2024, 9, 1)))
    assert not overlaps(Interval(date(2023, 1, 1), date(2023, 12, 31)), JAN_TO_JUN)


def test_partial_overlap_is_detected_both_ways():
    later = Interval(date(2024, 3, 1), date(2024, 9, 1))
    assert overlaps(JAN_TO_JUN, later)
    assert overlaps(later, JAN_TO_JUN)


def test_containment_overlaps():
    assert overlaps(JAN_TO_JUN, Interval(date(2024, 2, 1), date(2024, 2, 15)))
    assert overlaps(Interval(date(2024, 2, 1), date(2024, 2, 15)), JAN_TO_JUN)


def test_shared_boundary_day_is_a_conflict():
    assert overlaps(JAN_TO_JUN, Interval(date(2024, 6, 1), date(2024, 8, 1)))


def test_next_day_start_is_free():
    assert not overlaps(JAN_TO_JUN, Interval(date(2024, 6, 2), date(2024, 8, 1)))


def test_find_conflicts_keeps_input_order():
    existing = [
        Interval(date(2024, 5, 1), date(2024, 5, 31)),
        Interval(date(2024, 8, 1), date(2024, 8, 31)),
        Interval(date(2024, 2, 1), date(2024, 2, 29)),
    ]
    conflicts = find_conflicts(existing, Interval(date(2024, 1, 15), date(2024, 5, 10)))
    assert conflicts == [existing[0], existing[2]]


def test_has_conflict_on_empty_set():
    assert not has_conflict([], JAN_TO_JUN)
    assert has_conflict([JAN_TO_JUN], Interval(date(2024, 1, 1), date(2024, 1, 1)))
