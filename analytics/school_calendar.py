# termini_insights/analytics/school_calendar.py
# SCHOOL YEAR, SEMESTER & HOLIDAY CALENDAR

"""
School-year arithmetic used for narrative insights. A school year is
identified by the calendar year it starts in (2025 means September 2025 to
June 2026); holiday windows are configured relative to that start year in
`settings.SCHOOL_CALENDAR`.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

import pandas as pd

from config import settings
from data_processing.loaders import RecordsInput, ensure_sessions_frame

logger = logging.getLogger(__name__)


def _to_date(value: Any) -> date:
    return pd.Timestamp(value).date()


def get_current_school_year(on_date=None) -> int:
    """Start year of the school year containing the date (new year from September)."""
    day = _to_date(on_date if on_date is not None else date.today())
    return day.year if day.month >= settings.SCHOOL_CALENDAR.start_month else day.year - 1


def get_school_year_label(start_year: int) -> str:
    return f"{start_year}/{start_year + 1}"


def get_school_year_range(start_year: int) -> Dict[str, Any]:
    cal = settings.SCHOOL_CALENDAR
    return {
        'start': date(start_year, cal.start_month, cal.start_day),
        'end': date(start_year + 1, cal.end_month, cal.end_day),
        'label': get_school_year_label(start_year),
    }


def get_holiday_periods(school_year_start: int) -> List[Dict[str, Any]]:
    """Holiday windows (inclusive dates) of one school year, in chronological order."""
    return [
        {
            'name': h.name,
            'name_short': h.name_short,
            'type': h.type,
            'start': date(school_year_start + h.start_year_offset, h.start_month, h.start_day),
            'end': date(school_year_start + h.end_year_offset, h.end_month, h.end_day),
        }
        for h in settings.SCHOOL_CALENDAR.holidays
    ]


def is_holiday_date(on_date, school_year_start: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Returns the holiday covering the date, or None. Without an explicit school
    year the previous one is checked too, since the summer break of one school
    year runs into the September of the next.
    """
    day = _to_date(on_date)
    if school_year_start is not None:
        years = [school_year_start]
    else:
        current = get_current_school_year(day)
        years = [current - 1, current]
    for year in years:
        for holiday in get_holiday_periods(year):
            if holiday['start'] <= day <= holiday['end']:
                return holiday
    return None


def get_current_holiday(on_date=None) -> Optional[Dict[str, Any]]:
    return is_holiday_date(on_date if on_date is not None else date.today())


def get_next_holiday(on_date=None) -> Optional[Dict[str, Any]]:
    """First holiday starting strictly after the date, searching this and next school year."""
    day = _to_date(on_date if on_date is not None else date.today())
    school_year = get_current_school_year(day)
    for holiday in get_holiday_periods(school_year) + get_holiday_periods(school_year + 1):
        if holiday['start'] > day:
            return holiday
    return None


def holidays_overlapping(start, end) -> List[Dict[str, Any]]:
    """All holiday windows intersecting the inclusive [start, end] range."""
    first, last = _to_date(start), _to_date(end)
    years = range(get_current_school_year(first) - 1, get_current_school_year(last) + 1)
    return [h for year in years for h in get_holiday_periods(year)
            if h['start'] <= last and h['end'] >= first]


def is_active_school_period(on_date) -> bool:
    """False during the summer-break months."""
    return _to_date(on_date).month not in settings.SCHOOL_CALENDAR.summer_break_months


def get_semester(on_date=None) -> Dict[str, Any]:
    """First semester runs September through January, the second February through June."""
    month = _to_date(on_date if on_date is not None else date.today()).month
    if month >= settings.SCHOOL_CALENDAR.start_month or month == 1:
        return {'number': 1, 'name': 'First semester', 'name_short': '1st semester'}
    return {'number': 2, 'name': 'Second semester', 'name_short': '2nd semester'}


def get_available_school_years(sessions: RecordsInput) -> List[int]:
    """School years that have at least one dated session, newest first."""
    if sessions is None:
        return []
    df = ensure_sessions_frame(sessions)
    dates = df['parsed_date'].dropna()
    if dates.empty:
        return []
    school_years = dates.dt.year.where(dates.dt.month >= settings.SCHOOL_CALENDAR.start_month, dates.dt.year - 1)
    return sorted({int(y) for y in school_years}, reverse=True)


def filter_sessions_by_school_year(sessions: RecordsInput, school_year_start: int) -> pd.DataFrame:
    df = ensure_sessions_frame(sessions)
    bounds = get_school_year_range(school_year_start)
    dates = df['parsed_date']
    return df.loc[(dates >= pd.Timestamp(bounds['start'])) & (dates <= pd.Timestamp(bounds['end']))]


def get_working_days_in_period(start, end, school_year_start: Optional[int] = None) -> int:
    """Weekdays in [start, end] that are not school holidays."""
    first, last = _to_date(start), _to_date(end)
    if last < first:
        return 0
    school_year = school_year_start if school_year_start is not None else get_current_school_year(first)
    return sum(
        1 for day in pd.date_range(first, last, freq='D')
        if day.dayofweek < 5 and is_holiday_date(day, school_year) is None
    )


def get_expected_session_days() -> List[int]:
    """Weekdays (Monday=0) on which sessions are normally scheduled."""
    return list(settings.SCHOOL_CALENDAR.expected_session_weekdays)


def format_school_year_period(on_date=None) -> Dict[str, str]:
    day = _to_date(on_date if on_date is not None else date.today())
    holiday = get_current_holiday(day)
    if holiday:
        return {
            'status': 'holiday',
            'label': holiday['name'],
            'message': f"Holidays until {holiday['end'].isoformat()}",
        }
    semester = get_semester(day)
    return {
        'status': 'active',
        'label': f"{semester['name_short']} {get_school_year_label(get_current_school_year(day))}",
        'message': semester['name'],
    }
