# termini_insights/tests/test_aggregation.py
# STATISTICS BUNDLE TESTS

import json
from datetime import datetime, timezone

import pytest

from analytics import (
    StatisticsEngine,
    calculate_statistics,
    get_cached_statistics,
    get_children_by_location_chart,
    get_hours_by_school_chart,
    get_quick_stats,
)

# Fixtures are sourced from conftest.py

BUNDLE_KEYS = {
    'summary', 'session_counts', 'by_location', 'by_school', 'by_month', 'by_grade', 'top_volunteers',
    'activity_breakdown', 'trends', 'available_years', 'available_locations', 'available_schools',
    'heatmap_data', 'retention_rate', 'session_duration_stats', 'stacked_location_data', 'ranking_history',
    'insights', 'predictions', 'anomalies', 'recommendations', 'milestones', 'weekly_leaderboard',
    'monthly_leaderboard',
}


@pytest.fixture(scope="module")
def bundle(volunteer_records, session_records, as_of):
    return calculate_statistics(volunteer_records, session_records, as_of=as_of, source_context="test")


def test_bundle_has_every_section(bundle):
    assert set(bundle) == BUNDLE_KEYS


def test_summary_excludes_cancelled_sessions(bundle):
    summary = bundle['summary']
    assert summary['total_sessions'] == 7
    assert summary['total_sessions'] <= bundle['session_counts']['total']
    assert summary['total_children'] == 45
    assert summary['total_volunteer_attendances'] == 11
    assert summary['avg_children_per_session'] == 6.4
    assert summary['avg_volunteers_per_session'] == 1.6
    assert summary['avg_ratio'] == 4.2
    assert summary['total_locations'] == 2


def test_summary_volunteer_counts(bundle):
    summary = bundle['summary']
    assert summary['total_volunteers'] == 5
    assert (summary['active_volunteers'], summary['dormant_volunteers'], summary['inactive_volunteers']) == (1, 1, 3)
    assert summary['active_percentage'] == 20
    assert summary['total_hours'] == 21.0
    assert summary['avg_hours_per_volunteer'] == 4.2


def test_session_counts_invariant(bundle):
    counts = bundle['session_counts']
    assert counts == {'total': 8, 'active': 7, 'cancelled': 1}


def test_by_location_maps_blank_to_unknown(bundle):
    by_name = {row['name']: row for row in bundle['by_location']}
    assert by_name['Library'] == {'name': 'Library', 'sessions': 5, 'children': 28, 'volunteers': 8}
    assert by_name['Unknown']['children'] == 5
    assert bundle['by_location'][0]['name'] == 'Library'


def test_trends_cover_twelve_months(bundle):
    trends = bundle['trends']
    assert len(trends['labels']) == 12
    assert trends['months'][-1] == '2025-03'
    assert trends['sessions'][-3:] == [1, 2, 2]
    assert sum(trends['sessions']) == 6


def test_by_month_is_newest_first(bundle):
    keys = [row['key'] for row in bundle['by_month']]
    assert keys == ['2025-03', '2025-02', '2025-01', '2024-12']
    assert bundle['by_month'][0]['label'] == 'March 2025'


def test_by_grade_orders_numeric_grades(bundle):
    numeric = [row['grade'] for row in bundle['by_grade'] if row['grade'] != 'Unknown']
    assert numeric == ['1', '2', '3', '4']
    assert sum(row['count'] for row in bundle['by_grade']) == 5


def test_top_volunteers_ranked_by_hours(bundle):
    top = bundle['top_volunteers']
    assert [v['name'] for v in top[:3]] == ['Ana', 'Ivan', 'Marko']
    assert top[0]['rank'] == 1
    petra = next(v for v in top if v['name'] == 'Petra')
    assert petra['school'] == '-'


def test_activity_breakdown_order(bundle):
    assert [(row['status'], row['value']) for row in bundle['activity_breakdown']] == [
        ('active', 1), ('inactive', 3), ('dormant', 1)]


def test_available_filters(bundle):
    assert bundle['available_years'] == [2025, 2024]
    assert bundle['available_locations'] == ['Library', 'Youth Centre']
    assert bundle['available_schools'] == ['Gymnasium North', 'Tech School']


def test_leaderboards_rank_known_volunteers(bundle):
    weekly = bundle['weekly_leaderboard']
    assert [(row['name'], row['hours'], row['badge']) for row in weekly] == [('Ana', 3.0, 'gold')]
    monthly = bundle['monthly_leaderboard']
    assert [(row['name'], row['hours']) for row in monthly] == [('Ana', 5.0), ('Ivan', 2.0)]
    assert monthly[1]['badge'] == 'silver'


def test_ranking_history_has_six_snapshots(bundle):
    history = bundle['ranking_history']
    assert len(history) == 6
    assert history[-1]['month_key'] == '2025-03'
    assert history[-1]['rankings'][0]['name'] == 'Ana'


def test_heatmap_and_duration_stats(bundle):
    assert bundle['heatmap_data']['2025-03-06'] == {'date': '2025-03-06', 'sessions': 1, 'children': 12, 'volunteers': 2}
    assert bundle['session_duration_stats'] == {'avg': 2.1, 'min': 2.0, 'max': 3.0, 'total': 15.0}


def test_stacked_location_data(bundle):
    stacked = bundle['stacked_location_data']
    assert stacked['locations'] == ['Library', 'Youth Centre']
    library = next(d for d in stacked['datasets'] if d['label'] == 'Library')
    assert len(library['data']) == 12
    assert library['data'][-1] == 8


def test_bundle_is_json_serialisable(bundle):
    json.dumps(bundle, default=str)

# --- Filters ---
def test_year_filter(volunteer_records, session_records, as_of):
    summary = calculate_statistics(volunteer_records, session_records, {'year': 2024}, as_of)['summary']
    assert summary['total_sessions'] == 1
    assert summary['total_children'] == 7


def test_location_filter(volunteer_records, session_records, as_of):
    summary = calculate_statistics(volunteer_records, session_records, {'locations': ['Youth Centre']}, as_of)['summary']
    assert summary['total_sessions'] == 1
    assert summary['total_children'] == 12


def test_date_range_filter_overrides_year(volunteer_records, session_records, as_of):
    filters = {'dateRange': {'start': datetime(2025, 2, 1), 'end': datetime(2025, 2, 28)}, 'year': 2024}
    summary = calculate_statistics(volunteer_records, session_records, filters, as_of)['summary']
    assert summary['total_sessions'] == 2


def test_school_filter_narrows_volunteers_only(volunteer_records, session_records, as_of):
    summary = calculate_statistics(volunteer_records, session_records, {'schools': ['Tech School']}, as_of)['summary']
    assert summary['total_volunteers'] == 2
    assert summary['total_sessions'] == 7


def test_invalid_filters_widen_instead_of_failing(volunteer_records, session_records, as_of):
    bundle = calculate_statistics(volunteer_records, session_records, {'year': 'abc'}, as_of)
    assert bundle['summary']['total_sessions'] == 7
    summary = calculate_statistics(volunteer_records, session_records, {'locations': 'Youth Centre'}, as_of)['summary']
    assert summary['total_sessions'] == 1


def test_timezone_aware_date_range(volunteer_records, session_records, as_of):
    filters = {'dateRange': {'start': datetime(2025, 2, 1, tzinfo=timezone.utc),
                             'end': datetime(2025, 2, 28, tzinfo=timezone.utc)}}
    summary = calculate_statistics(volunteer_records, session_records, filters, as_of)['summary']
    assert summary['total_sessions'] == 2

# --- Retention & Degradation ---
def test_retention_rate(as_of):
    sessions = [
        {'date': '10.6.2024.', 'childrenCount': 5, 'volunteerCount': 2, 'volunteers': ['Ana', 'Ivan']},
        {'date': '10.2.2025.', 'childrenCount': 5, 'volunteerCount': 2, 'volunteers': ['Ana', 'Maja']},
    ]
    retention = calculate_statistics([], sessions, as_of=as_of)['retention_rate']
    assert retention == {'rate': 50, 'retained': 1, 'total': 2, 'new_volunteers': 1}


def test_empty_inputs_give_zeroed_bundle(as_of):
    bundle = calculate_statistics(None, None, as_of=as_of)
    assert bundle['summary']['total_sessions'] == 0
    assert bundle['summary']['active_percentage'] == 0
    assert bundle['by_location'] == []
    assert bundle['trends']['sessions'] == [0] * 12
    assert bundle['anomalies'] == []


def test_failing_section_degrades_to_default(volunteer_records, session_records, as_of, monkeypatch):
    engine = StatisticsEngine(volunteer_records, session_records, as_of=as_of)

    def explode():
        raise RuntimeError("boom")

    monkeypatch.setattr(engine, '_by_location', explode)
    bundle = engine.run()
    assert bundle['by_location'] == []
    assert bundle['summary']['total_sessions'] == 7
    assert len(engine.errors) == 1

# --- Chart Helpers ---
def test_chart_helpers(volunteer_records, session_records):
    assert get_quick_stats(volunteer_records, session_records)['total_sessions'] == 7
    hours_chart = get_hours_by_school_chart(volunteer_records)
    assert hours_chart['labels'][0] == 'Gymnasium North'
    assert hours_chart['data'][0] == 18.0
    children_chart = get_children_by_location_chart(session_records)
    assert children_chart['labels'][0] == 'Library'

# --- Cached Wrapper ---
def test_cached_statistics_matches_direct_call(volunteers_df, sessions_df):
    cached = get_cached_statistics(volunteers_df, sessions_df, None, '2025-03-12')
    assert cached['summary']['total_sessions'] == 7
    assert cached['session_counts'] == {'total': 8, 'active': 7, 'cancelled': 1}
