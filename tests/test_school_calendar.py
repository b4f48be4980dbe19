# termini_insights/tests/test_school_calendar.py
# SCHOOL CALENDAR TESTS

from datetime import date

import pytest

from analytics import school_calendar as cal

# Fixtures are sourced from conftest.py


@pytest.mark.parametrize("on_date, expected", [
    (date(2025, 9, 1), 2025),
    (date(2025, 8, 31), 2024),
    (date(2025, 3, 12), 2024),
])
def test_current_school_year(on_date, expected):
    assert cal.get_current_school_year(on_date) == expected


def test_school_year_label_and_range():
    assert cal.get_school_year_label(2025) == "2025/2026"
    bounds = cal.get_school_year_range(2024)
    assert bounds['start'] == date(2024, 9, 22)
    assert bounds['end'] == date(2025, 6, 20)


def test_holiday_periods_are_chronological():
    holidays = cal.get_holiday_periods(2024)
    assert [h['type'] for h in holidays] == ['autumn', 'winter', 'spring', 'summer']
    assert holidays[1]['end'] == date(2025, 1, 11)


def test_september_falls_in_previous_summer_break():
    holiday = cal.is_holiday_date(date(2025, 9, 10))
    assert holiday is not None
    assert holiday['type'] == 'summer'
    assert cal.is_holiday_date(date(2025, 9, 10), school_year_start=2025) is None


def test_term_day_is_not_a_holiday():
    assert cal.is_holiday_date(date(2025, 3, 12)) is None
    assert cal.get_current_holiday(date(2025, 1, 2))['type'] == 'winter'


def test_next_holiday():
    assert cal.get_next_holiday(date(2025, 3, 12))['start'] == date(2025, 4, 17)
    assert cal.get_next_holiday(date(2025, 6, 1))['type'] == 'summer'
    assert cal.get_next_holiday(date(2025, 7, 15))['type'] == 'autumn'


def test_holidays_overlapping():
    assert [h['type'] for h in cal.holidays_overlapping(date(2025, 4, 1), date(2025, 4, 30))] == ['spring']
    assert cal.holidays_overlapping(date(2025, 2, 1), date(2025, 2, 28)) == []


def test_semester_and_active_period():
    assert cal.get_semester(date(2025, 1, 15))['number'] == 1
    assert cal.get_semester(date(2025, 3, 1))['number'] == 2
    assert cal.is_active_school_period(date(2025, 7, 10)) is False
    assert cal.is_active_school_period(date(2025, 10, 10)) is True


def test_working_days_skip_holidays():
    assert cal.get_working_days_in_period(date(2025, 4, 14), date(2025, 4, 27)) == 3
    assert cal.get_working_days_in_period(date(2025, 4, 27), date(2025, 4, 14)) == 0


def test_available_school_years(sessions_df, session_factory):
    assert cal.get_available_school_years(sessions_df) == [2024]
    assert cal.get_available_school_years(session_factory({'2024-06': 1, '2024-10': 1})) == [2024, 2023]
    assert cal.get_available_school_years(None) == []


def test_filter_sessions_by_school_year(sessions_df):
    assert len(cal.filter_sessions_by_school_year(sessions_df, 2024)) == 7
    assert cal.filter_sessions_by_school_year(sessions_df, 2023).empty


def test_format_school_year_period():
    assert cal.format_school_year_period(date(2025, 3, 12)) == {
        'status': 'active', 'label': '2nd semester 2024/2025', 'message': 'Second semester'}
    assert cal.format_school_year_period(date(2025, 4, 20))['status'] == 'holiday'
    assert cal.get_expected_session_days() == [1, 2, 3]
