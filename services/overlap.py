# services/overlap.py
"""
Interval overlap checks for equipment allocation.

Rental intervals are calendar days with an inclusive end date, so two
rentals conflict when they share at least one day:

     candidate.start <= existing.end and candidate.end >= existing.start

A rental ending on the 31st and one starting on the 31st conflict; one
starting on the 1st of the next month does not. Creation and extension use
the same rule.
"""
from datetime import date
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
     start: date
     end: date


def overlaps(a: Interval, b: Interval) -> bool:
     """True when the two closed day intervals share at least one day."""
     return a.start <= b.end and a.end >= b.start


def find_conflicts(existing: Iterable[Interval], candidate: Interval) -> list[Interval]:
     """Return every existing interval that overlaps the candidate, in input order."""
     return [interval for interval in existing if overlaps(candidate, interval)]


def has_conflict(existing: Iterable[Interval], candidate: Interval) -> bool:
     """
     Decide whether the candidate collides with any existing interval.

     O(n) over the intervals of one equipment unit. Callers pass only
     intervals of ACTIVE rentals and must run the check inside the
     transaction that holds the equipment lock.
     """
     return any(overlaps(candidate, interval) for interval in existing)
