"""Tests for the term calendar."""

from datetime import date
from types import SimpleNamespace

from app.models.class_session import Weekday
from app.services.term_calendar import (
    first_occurrence,
    is_occurrence,
    iter_occurrences,
    occurrence_dates,
    total_occurrences,
)


def term(start: date, end: date) -> SimpleNamespace:
    return SimpleNamespace(start_date=start, end_date=end)


class TestOccurrenceDates:
    def test_mondays_in_january(self):
        # 2024-01-01 is a Monday
        dates = occurrence_dates(term(date(2024, 1, 1), date(2024, 1, 29)), Weekday.MONDAY)
        assert dates == [
            date(2024, 1, 1),
            date(2024, 1, 8),
            date(2024, 1, 15),
            date(2024, 1, 22),
            date(2024, 1, 29),
        ]

    def test_first_occurrence_after_term_start(self):
        dates = occurrence_dates(term(date(2024, 1, 1), date(2024, 1, 31)), Weekday.WEDNESDAY)
        assert dates[0] == date(2024, 1, 3)
        assert len(dates) == 5

    def test_term_end_is_inclusive(self):
        dates = occurrence_dates(term(date(2024, 1, 2), date(2024, 1, 8)), Weekday.MONDAY)
        assert dates == [date(2024, 1, 8)]

    def test_short_term_never_reaching_weekday(self):
        # Tuesday to Thursday
        window = term(date(2024, 1, 2), date(2024, 1, 4))
        assert occurrence_dates(window, Weekday.SATURDAY) == []
        assert total_occurrences(window, Weekday.SATURDAY) == 0

    def test_single_day_term(self):
        window = term(date(2024, 1, 6), date(2024, 1, 6))
        assert occurrence_dates(window, Weekday.SATURDAY) == [date(2024, 1, 6)]

    def test_sequence_is_restartable(self):
        window = term(date(2024, 1, 1), date(2024, 3, 31))
        first = list(iter_occurrences(window, Weekday.FRIDAY))
        second = list(iter_occurrences(window, Weekday.FRIDAY))
        assert first == second
        assert first == sorted(first)

    def test_every_date_falls_on_weekday_within_term(self):
        window = term(date(2024, 2, 14), date(2024, 6, 30))
        for weekday in Weekday:
            for day in occurrence_dates(window, weekday):
                assert day.weekday() == weekday.python_weekday
                assert window.start_date <= day <= window.end_date


class TestTotalOccurrences:
    def test_matches_expanded_dates(self):
        window = term(date(2024, 1, 1), date(2024, 3, 31))
        for weekday in Weekday:
            assert total_occurrences(window, weekday) == len(occurrence_dates(window, weekday))

    def test_inverted_term_has_no_occurrences(self):
        assert total_occurrences(term(date(2024, 2, 1), date(2024, 1, 1)), Weekday.MONDAY) == 0


class TestHelpers:
    def test_first_occurrence_same_day(self):
        assert first_occurrence(date(2024, 1, 1), Weekday.MONDAY) == date(2024, 1, 1)

    def test_first_occurrence_wraps_week(self):
        # Tuesday start, next Monday is six days later
        assert first_occurrence(date(2024, 1, 2), Weekday.MONDAY) == date(2024, 1, 8)

    def test_is_occurrence(self):
        window = term(date(2024, 1, 1), date(2024, 1, 29))
        assert is_occurrence(window, Weekday.MONDAY, date(2024, 1, 15))
        assert not is_occurrence(window, Weekday.MONDAY, date(2024, 1, 16))
        assert not is_occurrence(window, Weekday.MONDAY, date(2024, 2, 5))

    def test_weekday_from_date(self):
        assert Weekday.from_date(date(2024, 1, 6)) == Weekday.SATURDAY
        assert Weekday.from_date(date(2024, 1, 7)) is None
