# termini_insights/tests/test_activity.py
# ACTIVITY CLASSIFIER TESTS

import pandas as pd
import pytest

from analytics import ActivityStatus, classify_volunteers, get_activity_status

# Fixtures are sourced from conftest.py


def test_high_lifetime_hours_are_active(session_records, as_of):
    result = get_activity_status({'name': 'Ana', 'hours': 12}, session_records, as_of)
    assert result == {'status': 'active', 'label': 'Active', 'dot_color': 'emerald'}


def test_recent_hours_alone_make_a_volunteer_active(as_of):
    sessions = [{'date': '10.3.2025.', 'childrenCount': 4, 'volunteerCount': 1, 'volunteers': ['Nova'], 'hours': 5}]
    assert get_activity_status({'name': 'Nova', 'hours': 0}, sessions, as_of)['status'] == 'active'


def test_past_contributor_without_recent_hours_is_dormant(as_of):
    long_ago = (as_of - pd.Timedelta(days=100)).strftime('%d.%m.%Y.')
    sessions = [{'date': long_ago, 'childrenCount': 4, 'volunteerCount': 1, 'volunteers': ['Ivan'], 'hours': 6}]
    result = get_activity_status({'name': 'Ivan', 'hours': 6}, sessions, as_of)
    assert result['status'] == 'dormant'
    assert result['dot_color'] == 'red'


def test_sessions_outside_the_window_do_not_count(as_of):
    old = (as_of - pd.Timedelta(days=61)).strftime('%d.%m.%Y.')
    sessions = [{'date': old, 'childrenCount': 4, 'volunteerCount': 1, 'volunteers': ['Nova'], 'hours': 8}]
    assert get_activity_status({'name': 'Nova', 'hours': 0}, sessions, as_of)['status'] == 'inactive'


@pytest.mark.parametrize("volunteer, sessions", [
    (None, []),
    ({'name': 'Ana', 'hours': 12}, None),
    ({'name': '', 'hours': 0}, []),
])
def test_missing_inputs_are_inactive(volunteer, sessions, as_of):
    assert get_activity_status(volunteer, sessions, as_of)['status'] == 'inactive'


def test_classify_volunteers_matches_single_classifier(volunteers_df, sessions_df, volunteer_records, session_records, as_of):
    statuses = classify_volunteers(volunteers_df, sessions_df, as_of)
    assert statuses.tolist() == ['active', 'dormant', 'inactive', 'inactive', 'inactive']
    for record, status in zip(volunteer_records, statuses):
        assert get_activity_status(record, session_records, as_of)['status'] == status


def test_classify_volunteers_on_empty_frame(volunteers_df, sessions_df, as_of):
    assert classify_volunteers(volunteers_df.iloc[0:0], sessions_df, as_of).empty
    assert ActivityStatus('dormant') is ActivityStatus.DORMANT
