from datetime import datetime

from classbook.utils.intervals import Interval, intervals_overlap, find_overlapping_pair


def _interval(start_hour, start_minute, minutes):
    return Interval.from_duration(datetime(2024, 1, 1, start_hour, start_minute), minutes)


def test_from_duration_sets_end():
    interval = _interval(6, 0, 45)
    assert interval.end == datetime(2024, 1, 1, 6, 45)


def test_partial_overlap_is_detected():
    assert intervals_overlap(_interval(6, 0, 45), _interval(6, 30, 45))


def test_overlap_is_symmetric():
    pairs = [
        (_interval(6, 0, 45), _interval(6, 30, 45)),
        (_interval(6, 0, 120), _interval(6, 30, 15)),
        (_interval(6, 0, 45), _interval(9, 0, 45)),
    ]
    for a, b in pairs:
        assert intervals_overlap(a, b) == intervals_overlap(b, a)


def test_touching_endpoints_do_not_overlap():
    assert not intervals_overlap(_interval(6, 0, 45), _interval(6, 45, 45))


def test_containment_overlaps():
    assert intervals_overlap(_interval(6, 0, 120), _interval(6, 30, 15))


def test_find_overlapping_pair_unsorted_input():
    intervals = [_interval(9, 0, 30), _interval(6, 0, 45), _interval(6, 30, 30)]
    pair = find_overlapping_pair(intervals)
    assert pair == (_interval(6, 0, 45), _interval(6, 30, 30))


def test_find_overlapping_pair_none():
    intervals = [_interval(6, 0, 45), _interval(6, 45, 45), _interval(8, 0, 30)]
    assert find_overlapping_pair(intervals) is None
    assert find_overlapping_pair([]) is None
