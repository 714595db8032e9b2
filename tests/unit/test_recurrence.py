"""
Tests de la expansión de reglas de recurrencia.
"""
from datetime import datetime, timedelta, timezone

import pytest

from classbook.core.exceptions import InvalidRecurrenceError, ValidationError
from classbook.models.schedule import DayOfWeek
from classbook.services.recurrence import (
    DEFAULT_MAX_OCCURRENCES,
    MAX_OCCURRENCES,
    RecurrenceDescriptor,
    effective_cap,
    expand_occurrences,
    parse_recurrence_rule
)

MONDAY_6AM = datetime(2024, 1, 1, 6, 0)


def _expand(rule, seed=MONDAY_6AM, duration=45, cap=None):
    return expand_occurrences(seed, duration, parse_recurrence_rule(rule), cap)


class TestParseRecurrenceRule:
    """Interpretación de la gramática KEY=VALUE."""

    def test_full_rule(self):
        descriptor = parse_recurrence_rule("FREQ=WEEKLY;BYDAY=MO,WE,FR;BYHOUR=7;BYMINUTE=30;COUNT=6")
        assert descriptor == RecurrenceDescriptor(
            frequency="WEEKLY",
            weekdays=(DayOfWeek.MONDAY, DayOfWeek.WEDNESDAY, DayOfWeek.FRIDAY),
            hour=7,
            minute=30,
            count=6
        )

    def test_keys_and_codes_are_case_insensitive(self):
        descriptor = parse_recurrence_rule("freq=weekly;byday=tu,th")
        assert descriptor.frequency == "WEEKLY"
        assert descriptor.weekdays == (DayOfWeek.TUESDAY, DayOfWeek.THURSDAY)

    def test_duplicate_weekdays_are_collapsed(self):
        descriptor = parse_recurrence_rule("FREQ=WEEKLY;BYDAY=MO,MO,FR")
        assert descriptor.weekdays == (DayOfWeek.MONDAY, DayOfWeek.FRIDAY)

    def test_unknown_keys_are_ignored(self):
        descriptor = parse_recurrence_rule("FREQ=WEEKLY;INTERVAL=2;WKST=MO")
        assert descriptor == RecurrenceDescriptor(frequency="WEEKLY")

    def test_trailing_semicolon_is_allowed(self):
        assert parse_recurrence_rule("FREQ=WEEKLY;COUNT=2;").count == 2

    def test_until_date_is_naive(self):
        descriptor = parse_recurrence_rule("FREQ=WEEKLY;UNTIL=20240331")
        assert descriptor.until == datetime(2024, 3, 31)

    def test_until_utc_instant_is_aware(self):
        descriptor = parse_recurrence_rule("FREQ=WEEKLY;UNTIL=20240331T235959Z")
        assert descriptor.until == datetime(2024, 3, 31, 23, 59, 59, tzinfo=timezone.utc)

    @pytest.mark.parametrize("rule", [
        "BYDAY=MO",
        "",
        "FREQ=WEEKLY;BYDAY=XX",
        "FREQ=WEEKLY;BYHOUR=24",
        "FREQ=WEEKLY;BYMINUTE=-1",
        "FREQ=WEEKLY;COUNT=0",
        "FREQ=WEEKLY;COUNT=many",
        "FREQ=WEEKLY;COUNT=367",
        "FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR,SA,SU;COUNT=100000;UNTIL=22001231",
        "FREQ=WEEKLY;UNTIL=2024-03-31",
        "FREQ=WEEKLY;UNTIL=20241399",
        "FREQ=WEEKLY;BYDAY",
    ])
    def test_malformed_rules_are_rejected(self, rule):
        with pytest.raises(InvalidRecurrenceError):
            parse_recurrence_rule(rule)


class TestExpandOccurrences:
    """Expansión de una semilla y una regla en sesiones concretas."""

    def test_without_descriptor_returns_single_occurrence(self):
        occurrences = expand_occurrences(MONDAY_6AM, 45)
        assert len(occurrences) == 1
        assert occurrences[0].start == MONDAY_6AM
        assert occurrences[0].end == MONDAY_6AM + timedelta(minutes=45)

    def test_monday_wednesday_friday_count_six(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=6")

        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 1, 6, 0),
            datetime(2024, 1, 3, 6, 0),
            datetime(2024, 1, 5, 6, 0),
            datetime(2024, 1, 8, 6, 0),
            datetime(2024, 1, 10, 6, 0),
            datetime(2024, 1, 12, 6, 0),
        ]
        assert all(o.end - o.start == timedelta(minutes=45) for o in occurrences)

    def test_daily_frequency_is_rejected(self):
        with pytest.raises(ValidationError):
            _expand("FREQ=DAILY")

    def test_monthly_frequency_is_rejected(self):
        with pytest.raises(InvalidRecurrenceError):
            _expand("FREQ=MONTHLY;COUNT=3")

    def test_expansion_is_deterministic_and_ordered(self):
        rule = "FREQ=WEEKLY;BYDAY=SU,FR,MO;COUNT=10"
        first = _expand(rule)
        second = _expand(rule)

        assert first == second
        starts = [o.start for o in first]
        assert starts == sorted(starts)

    def test_defaults_to_seed_weekday_and_time(self):
        wednesday = datetime(2024, 1, 3, 18, 15)
        occurrences = _expand("FREQ=WEEKLY;COUNT=3", seed=wednesday)
        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 3, 18, 15),
            datetime(2024, 1, 10, 18, 15),
            datetime(2024, 1, 17, 18, 15),
        ]

    def test_byhour_byminute_override_seed_time(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO,WE;BYHOUR=18;BYMINUTE=30;COUNT=2")
        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 1, 18, 30),
            datetime(2024, 1, 3, 18, 30),
        ]

    def test_occurrences_before_seed_are_skipped(self):
        # 05:00 del lunes semilla es anterior a la semilla (06:00)
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO;BYHOUR=5;COUNT=2")
        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 8, 5, 0),
            datetime(2024, 1, 15, 5, 0),
        ]

    def test_default_window_is_84_days(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO")
        assert len(occurrences) == 13
        assert occurrences[-1].start == MONDAY_6AM + timedelta(days=84)

    def test_default_cap_is_24(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR,SA,SU")
        assert len(occurrences) == DEFAULT_MAX_OCCURRENCES

    def test_explicit_cap_wins_over_count(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=10", cap=4)
        assert len(occurrences) == 4

    def test_until_date_excludes_later_starts(self):
        # UNTIL=20240116 es medianoche: el martes 16 a las 06:00 queda fuera
        occurrences = _expand("FREQ=WEEKLY;BYDAY=TU;UNTIL=20240116")
        assert [o.start for o in occurrences] == [
            datetime(2024, 1, 2, 6, 0),
            datetime(2024, 1, 9, 6, 0),
        ]

    def test_until_instant_includes_same_day(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=TU;UNTIL=20240116T235959Z")
        assert len(occurrences) == 3
        assert all(o.start <= datetime(2024, 1, 16, 23, 59, 59) for o in occurrences)

    def test_aware_seed_keeps_timezone(self):
        seed = datetime(2024, 1, 1, 6, 0, tzinfo=timezone.utc)
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO;UNTIL=20240115", seed=seed)
        assert [o.start for o in occurrences] == [seed, seed + timedelta(days=7)]

    def test_contradictory_rule_falls_back_to_single_occurrence(self):
        occurrences = _expand("FREQ=WEEKLY;BYDAY=MO;UNTIL=20231201")
        assert occurrences == expand_occurrences(MONDAY_6AM, 45)

    def test_length_never_exceeds_cap_and_never_after_until(self):
        until = datetime(2024, 2, 15)
        for count in (1, 5, 30):
            occurrences = _expand(f"FREQ=WEEKLY;BYDAY=MO,TH;COUNT={count};UNTIL=20240215")
            assert len(occurrences) <= count
            assert all(o.start <= until for o in occurrences)

    def test_invalid_duration_is_rejected(self):
        with pytest.raises(ValidationError):
            expand_occurrences(MONDAY_6AM, 0)

    def test_invalid_cap_is_rejected(self):
        with pytest.raises(ValidationError):
            expand_occurrences(MONDAY_6AM, 45, parse_recurrence_rule("FREQ=WEEKLY"), 0)

    def test_cap_above_maximum_is_rejected(self):
        with pytest.raises(ValidationError):
            expand_occurrences(
                MONDAY_6AM, 45, parse_recurrence_rule("FREQ=WEEKLY"), MAX_OCCURRENCES + 1
            )

    def test_count_at_maximum_is_accepted(self):
        occurrences = _expand(
            f"FREQ=WEEKLY;BYDAY=MO,TU,WE,TH,FR,SA,SU;COUNT={MAX_OCCURRENCES};UNTIL=20251231"
        )
        assert len(occurrences) == MAX_OCCURRENCES

    def test_until_at_end_of_calendar_is_rejected(self):
        with pytest.raises(InvalidRecurrenceError):
            _expand("FREQ=WEEKLY;BYDAY=MO;UNTIL=99991231", seed=datetime(9999, 12, 1, 6))

    def test_default_window_past_end_of_calendar_is_rejected(self):
        with pytest.raises(InvalidRecurrenceError):
            _expand("FREQ=WEEKLY;BYDAY=MO", seed=datetime(9999, 12, 1, 6))


def test_effective_cap_precedence():
    descriptor = RecurrenceDescriptor(frequency="WEEKLY", count=8)
    assert effective_cap(descriptor, 3) == 3
    assert effective_cap(descriptor) == 8
    assert effective_cap(RecurrenceDescriptor(frequency="WEEKLY")) == DEFAULT_MAX_OCCURRENCES
    assert effective_cap(None) == DEFAULT_MAX_OCCURRENCES
