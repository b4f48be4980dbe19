# termini_insights/analytics/volunteer_profile.py
# PER-VOLUNTEER PROFILE HELPERS

import logging
import math
from typing import Any, Dict, Mapping, Optional

import pandas as pd

from config import settings
from data_processing.bucketing import explode_attendance, location_labels
from data_processing.helpers import convert_to_numeric, resolve_as_of, round_half_up
from data_processing.loaders import RecordsInput, ensure_sessions_frame, ensure_volunteers_frame

logger = logging.getLogger(__name__)


def _hours_of(volunteer: Optional[Any]) -> float:
    if volunteer is None:
        return 0.0
    hours = volunteer.get('hours') if isinstance(volunteer, (Mapping, pd.Series)) else getattr(volunteer, 'hours', None)
    return max(float(convert_to_numeric(hours, default_value=0.0)), 0.0)


def _sort_newest_first(sessions_df: pd.DataFrame) -> pd.DataFrame:
    return sessions_df.sort_values('parsed_date', ascending=False, kind='stable', na_position='last')


def get_volunteer_sessions(volunteer_name: Optional[str], sessions: RecordsInput) -> pd.DataFrame:
    """Sessions the volunteer attended, newest first; undated sessions last."""
    df = ensure_sessions_frame(sessions)
    if not volunteer_name or sessions is None:
        return df.iloc[0:0]
    attended = df.loc[df['volunteers_list'].map(lambda names: volunteer_name in names)]
    return _sort_newest_first(attended)


def get_volunteer_activity_map(volunteers: RecordsInput, sessions: RecordsInput) -> Dict[str, Dict[str, Any]]:
    """name -> {last_active, session_count} for every known volunteer."""
    if volunteers is None or sessions is None:
        return {}
    vols = ensure_volunteers_frame(volunteers)
    attendance = explode_attendance(ensure_sessions_frame(sessions))
    counts = attendance.groupby('name').size()
    last_active = attendance.dropna(subset=['parsed_date']).groupby('name')['parsed_date'].max()
    activity = {}
    for name in vols['name']:
        last = last_active.get(name)
        activity[name] = {
            'last_active': last.date() if last is not None and not pd.isna(last) else None,
            'session_count': int(counts.get(name, 0)),
        }
    return activity


def get_activity_trend(volunteer_sessions: RecordsInput, as_of=None) -> str:
    """'up', 'down' or 'neutral' comparing the last 30 days with the 30 days before."""
    if volunteer_sessions is None:
        return 'neutral'
    df = ensure_sessions_frame(volunteer_sessions)
    if len(df) < 2:
        return 'neutral'
    now = resolve_as_of(as_of)
    one_month_ago, two_months_ago = now - pd.Timedelta(days=30), now - pd.Timedelta(days=60)
    dates = df['parsed_date']
    last_month = int((dates >= one_month_ago).sum())
    previous_month = int(((dates >= two_months_ago) & (dates < one_month_ago)).sum())
    if last_month > previous_month:
        return 'up'
    if last_month < previous_month:
        return 'down'
    return 'neutral'


def get_personal_stats(volunteer_sessions: RecordsInput, as_of=None) -> Optional[Dict[str, Any]]:
    """Favourite location, location spread and session cadence. None when there are no sessions."""
    if volunteer_sessions is None:
        return None
    df = ensure_sessions_frame(volunteer_sessions)
    if df.empty:
        return None

    location_counts = location_labels(df).value_counts(sort=False)
    favorite = location_counts.idxmax()
    first_session = df['parsed_date'].min()
    if pd.isna(first_session):
        months_active, first_session_date = 1, None
    else:
        elapsed_days = (resolve_as_of(as_of) - first_session) / pd.Timedelta(days=1)
        months_active = max(1, math.floor(elapsed_days / 30))
        first_session_date = first_session.date()

    return {
        'favorite_location': {'name': favorite, 'count': int(location_counts[favorite])},
        'total_locations': int(len(location_counts)),
        'avg_sessions_per_month': round_half_up(len(df) / months_active, 1),
        'months_active': months_active,
        'first_session_date': first_session_date,
    }


def get_achievements(volunteer: Optional[Any], volunteer_sessions: RecordsInput,
                     personal_stats: Optional[Dict[str, Any]], activity_status: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    hours = _hours_of(volunteer)
    months_active = (personal_stats or {}).get('months_active', 0)
    session_count = len(ensure_sessions_frame(volunteer_sessions)) if volunteer_sessions is not None else 0
    return {
        'first_session': session_count > 0,
        'ten_hours': hours >= 10,
        'twenty_hours': hours >= 20,
        'thirty_hours': hours >= 30,
        'forty_hours': hours >= 40,
        'veteran': months_active >= 12,
        'consistent': months_active >= 3 and (activity_status or {}).get('status') == 'active',
    }


def get_next_milestone(volunteer: Optional[Any]) -> Optional[Dict[str, float]]:
    """The next personal hour goal not yet reached, or None when all are met."""
    hours = _hours_of(volunteer)
    for goal in settings.ANALYTICS.volunteer_hour_goals:
        if hours < goal:
            return {'goal': goal, 'remaining': goal - hours}
    return None
