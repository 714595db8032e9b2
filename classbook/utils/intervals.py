"""
Intervalos semiabiertos [start, end) para comparar franjas horarias.
"""
from datetime import datetime, timedelta
from typing import Iterable, NamedTuple, Optional, Tuple


class Interval(NamedTuple):
    start: datetime
    end: datetime

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> "Interval":
        return cls(start, start + timedelta(minutes=duration_minutes))


def intervals_overlap(a: Interval, b: Interval) -> bool:
    """
    True si los intervalos se solapan.

    Los extremos que se tocan no cuentan: [06:00, 06:45) y [06:45, 07:30) no
    se solapan. La relación es simétrica.
    """
    return a.start < b.end and a.end > b.start


def find_overlapping_pair(intervals: Iterable[Interval]) -> Optional[Tuple[Interval, Interval]]:
    """Primer par solapado dentro de un conjunto de intervalos, o None."""
    ordered = sorted(intervals)
    # Ordenados por inicio basta con comparar vecinos
    for current, following in zip(ordered, ordered[1:]):
        if intervals_overlap(current, following):
            return current, following
    return None
