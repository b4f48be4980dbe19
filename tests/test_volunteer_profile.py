# termini_insights/tests/test_volunteer_profile.py
# VOLUNTEER PROFILE TESTS

from datetime import date

import pandas as pd

from analytics import (
    get_achievements,
    get_activity_trend,
    get_next_milestone,
    get_personal_stats,
    get_volunteer_activity_map,
    get_volunteer_sessions,
)

# Fixtures are sourced from conftest.py


def test_volunteer_sessions_newest_first(sessions_df):
    ana = get_volunteer_sessions('Ana', sessions_df)
    assert len(ana) == 4
    assert ana['parsed_date'].iloc[0] == pd.Timestamp('2025-03-06')
    assert pd.isna(ana['parsed_date'].iloc[-1])
    assert get_volunteer_sessions('', sessions_df).empty
    assert get_volunteer_sessions('Ana', None).empty


def test_activity_map(volunteers_df, sessions_df):
    activity = get_volunteer_activity_map(volunteers_df, sessions_df)
    assert activity['Ana'] == {'last_active': date(2025, 3, 6), 'session_count': 4}
    assert activity['Petra'] == {'last_active': None, 'session_count': 0}
    assert 'Zoran' not in activity
    assert get_volunteer_activity_map(None, sessions_df) == {}


def test_activity_trend(sessions_df, as_of):
    ana = get_volunteer_sessions('Ana', sessions_df)
    assert get_activity_trend(ana, as_of) == 'up'
    assert get_activity_trend(ana.iloc[:1], as_of) == 'neutral'
    ivan = get_volunteer_sessions('Ivan', sessions_df)
    assert get_activity_trend(ivan, as_of) == 'up'
    assert get_activity_trend(ivan, pd.Timestamp('2025-05-01')) == 'down'


def test_personal_stats(sessions_df, as_of):
    stats = get_personal_stats(get_volunteer_sessions('Ana', sessions_df), as_of)
    assert stats['favorite_location'] == {'name': 'Library', 'count': 3}
    assert stats['total_locations'] == 2
    assert stats['months_active'] == 1
    assert stats['avg_sessions_per_month'] == 4.0
    assert stats['first_session_date'] == date(2025, 2, 12)
    assert get_personal_stats([], as_of) is None


def test_achievements(volunteer_records, sessions_df, as_of):
    ana_sessions = get_volunteer_sessions('Ana', sessions_df)
    stats = get_personal_stats(ana_sessions, as_of)
    achievements = get_achievements(volunteer_records[0], ana_sessions, stats, {'status': 'active'})
    assert achievements['first_session'] is True
    assert achievements['ten_hours'] is True
    assert achievements['twenty_hours'] is False
    assert achievements['veteran'] is False
    assert achievements['consistent'] is False

    veteran = get_achievements({'hours': 45}, ana_sessions, {'months_active': 14}, {'status': 'active'})
    assert veteran['forty_hours'] and veteran['veteran'] and veteran['consistent']


def test_next_milestone():
    assert get_next_milestone({'hours': 12}) == {'goal': 20, 'remaining': 8}
    assert get_next_milestone({'hours': 0}) == {'goal': 10, 'remaining': 10}
    assert get_next_milestone({'hours': 45}) is None
    assert get_next_milestone(None) == {'goal': 10, 'remaining': 10}
