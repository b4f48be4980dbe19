# termini_insights/analytics/comparison.py
# PERIOD-OVER-PERIOD COMPARISON ENGINE

"""
Side-by-side statistics for two arbitrary periods: per-metric percentage
changes and winners, location and volunteer movers, and daily activity
series. Period 1 is treated as the current period and period 2 as the
baseline it is measured against.
"""
import logging
from typing import Any, Dict, List

import pandas as pd

from config import settings
from data_processing.bucketing import bucket_sessions, explode_attendance, filter_by_period, location_labels
from data_processing.helpers import convert_to_numeric, resolve_as_of, round_half_up
from data_processing.loaders import RecordsInput, ensure_sessions_frame, ensure_volunteers_frame
from data_processing.models import Period, coerce_period
from data_processing.sessions import drop_cancelled
from .leaderboards import build_name_index

logger = logging.getLogger(__name__)

WINNER_METRICS = ['sessions', 'children', 'volunteers', 'unique_volunteers', 'avg_children_per_session', 'avg_ratio']
CHANGE_METRICS = ['sessions', 'children', 'volunteers', 'unique_volunteers', 'avg_children_per_session',
                  'avg_volunteers_per_session', 'avg_ratio', 'total_hours']
_EMPTY_LOCATION = {'sessions': 0, 'children': 0, 'volunteers': 0}
_EMPTY_VOLUNTEER = {'sessions': 0, 'hours': 0.0}


def calculate_change(current: Any, previous: Any) -> int:
    """Percentage change from previous to current; 100 when growing from zero, 0 when both are zero."""
    curr = float(convert_to_numeric(current, default_value=0.0))
    prev = float(convert_to_numeric(previous, default_value=0.0))
    if prev == 0:
        return 100 if curr > 0 else 0
    return round_half_up((curr - prev) / prev * 100)


def _period_stats(sessions_df: pd.DataFrame) -> Dict[str, Any]:
    n = len(sessions_df)
    children = int(sessions_df['children_count'].sum()) if n else 0
    volunteers = int(sessions_df['volunteer_count'].sum()) if n else 0
    with_data = sessions_df.loc[(sessions_df['children_count'] > 0) & (sessions_df['volunteer_count'] > 0)]
    return {
        'sessions': n,
        'children': children,
        'volunteers': volunteers,
        'unique_volunteers': int(explode_attendance(sessions_df)['name'].nunique()),
        'avg_children_per_session': round_half_up(children / n, 1) if n else 0,
        'avg_volunteers_per_session': round_half_up(volunteers / n, 1) if n else 0,
        'avg_ratio': (round_half_up((with_data['children_count'] / with_data['volunteer_count']).mean(), 1)
                      if not with_data.empty else 0),
        'total_hours': float(sessions_df['hours'].sum()) if n else 0.0,
    }


def _location_comparison(sessions1: pd.DataFrame, sessions2: pd.DataFrame) -> List[Dict[str, Any]]:
    breakdowns = [bucket_sessions(df, location_labels(df)) for df in (sessions1, sessions2)]
    first, second = (b.to_dict('index') for b in breakdowns)
    locations = list(dict.fromkeys([*first, *second]))
    rows = [
        {
            'location': loc,
            'period1': first.get(loc, dict(_EMPTY_LOCATION)),
            'period2': second.get(loc, dict(_EMPTY_LOCATION)),
            'change': calculate_change(first.get(loc, _EMPTY_LOCATION)['children'],
                                       second.get(loc, _EMPTY_LOCATION)['children']),
        }
        for loc in locations
    ]
    return sorted(rows, key=lambda r: abs(r['change']), reverse=True)


def _volunteer_performance(sessions_df: pd.DataFrame) -> Dict[str, Dict[str, Any]]:
    """Sessions and hours per name; a name listed twice in one session counts twice."""
    attendance = explode_attendance(sessions_df, distinct=False)
    if attendance.empty:
        return {}
    perf = attendance.groupby('name', sort=False).agg(sessions=('session_id', 'size'), hours=('hours', 'sum'))
    return {name: {'sessions': int(row['sessions']), 'hours': float(row['hours'])}
            for name, row in zip(perf.index, perf.to_dict('records'))}


def _volunteer_comparison(volunteers_df: pd.DataFrame, sessions1: pd.DataFrame, sessions2: pd.DataFrame) -> List[Dict[str, Any]]:
    first, second = _volunteer_performance(sessions1), _volunteer_performance(sessions2)
    schools = build_name_index(volunteers_df)['school'] if not volunteers_df.empty else pd.Series(dtype=object)
    rows = [
        {
            'name': name,
            'school': schools.get(name) or '-',
            'period1': first.get(name, dict(_EMPTY_VOLUNTEER)),
            'period2': second.get(name, dict(_EMPTY_VOLUNTEER)),
            'change': calculate_change(first.get(name, _EMPTY_VOLUNTEER)['hours'],
                                       second.get(name, _EMPTY_VOLUNTEER)['hours']),
        }
        for name in dict.fromkeys([*first, *second])
    ]
    return sorted(rows, key=lambda r: r['change'], reverse=True)


def _daily_activity(sessions_df: pd.DataFrame, period: Period) -> List[Dict[str, Any]]:
    """Per-day sessions and children across a bounded period; empty for unbounded periods."""
    if not period.is_bounded:
        return []
    days = pd.date_range(period.start_ts.normalize(), period.end_ts.normalize(), freq='D')
    dated = sessions_df.loc[sessions_df['parsed_date'].notna()]
    per_day = (dated.groupby(dated['parsed_date'].dt.normalize())
               .agg(sessions=('hours', 'size'), children=('children_count', 'sum'))
               if not dated.empty else pd.DataFrame(columns=['sessions', 'children']))
    per_day = per_day.reindex(days, fill_value=0)
    return [
        {'date': day.strftime('%Y-%m-%d'), 'label': str(day.day),
         'sessions': int(row['sessions']), 'children': int(row['children'])}
        for day, row in zip(per_day.index, per_day.to_dict('records'))
    ]


def _winners(stats1: Dict[str, Any], stats2: Dict[str, Any]) -> Dict[str, int]:
    winners = {}
    for metric in WINNER_METRICS:
        v1, v2 = float(stats1[metric] or 0), float(stats2[metric] or 0)
        winners[metric] = 1 if v1 > v2 else 2 if v2 > v1 else 0
    return winners


def _comparison_insights(stats1: Dict[str, Any], stats2: Dict[str, Any]) -> List[Dict[str, Any]]:
    cfg = settings.ANALYTICS
    insights = []
    sessions_change = calculate_change(stats1['sessions'], stats2['sessions'])
    if abs(sessions_change) >= cfg.comparison_sessions_change_pct:
        insights.append({
            'type': 'positive' if sessions_change > 0 else 'negative',
            'metric': 'sessions',
            'text': (f"Sessions up {sessions_change}%." if sessions_change > 0
                     else f"Sessions down {abs(sessions_change)}%. More activity is needed."),
        })
    children_change = calculate_change(stats1['children'], stats2['children'])
    if abs(children_change) >= cfg.comparison_children_change_pct:
        insights.append({
            'type': 'positive' if children_change > 0 else 'negative',
            'metric': 'children',
            'text': (f"Reached {children_change}% more children than before." if children_change > 0
                     else f"Children reached dropped by {abs(children_change)}%."),
        })
    if calculate_change(stats1['unique_volunteers'], stats2['unique_volunteers']) > 0:
        insights.append({
            'type': 'positive',
            'metric': 'unique_volunteers',
            'text': f"{stats1['unique_volunteers'] - stats2['unique_volunteers']} new active volunteers.",
        })
    return insights


def compare_periods(volunteers: RecordsInput, sessions: RecordsInput, period1: Any, period2: Any,
                    source_context: str = "ComparisonEngine") -> Dict[str, Any]:
    """
    Compares two periods over the non-cancelled sessions. Each period is a
    Period or a mapping with start/end/label; an unbounded period covers all
    sessions. Empty periods produce zeroed stats, never an error.
    """
    p1, p2 = coerce_period(period1), coerce_period(period2)
    vols = ensure_volunteers_frame(volunteers)
    active = drop_cancelled(ensure_sessions_frame(sessions))

    sessions1 = filter_by_period(active, p1.start_ts, p1.end_ts)
    sessions2 = filter_by_period(active, p2.start_ts, p2.end_ts)
    logger.info(f"({source_context}) Comparing '{p1.label}' ({len(sessions1)} sessions) "
                f"with '{p2.label}' ({len(sessions2)} sessions).")

    stats1, stats2 = _period_stats(sessions1), _period_stats(sessions2)
    locations = _location_comparison(sessions1, sessions2)
    volunteer_rows = _volunteer_comparison(vols, sessions1, sessions2)
    winners = _winners(stats1, stats2)
    period1_wins = sum(1 for w in winners.values() if w == 1)
    period2_wins = sum(1 for w in winners.values() if w == 2)
    movers = settings.ANALYTICS.comparison_movers_count
    decliners = [v for v in volunteer_rows if v['change'] < 0]

    return {
        'period1': {**p1.to_dict(), 'stats': stats1},
        'period2': {**p2.to_dict(), 'stats': stats2},
        'changes': {metric: calculate_change(stats1[metric], stats2[metric]) for metric in CHANGE_METRICS},
        'location_comparison': locations,
        'volunteer_comparison': volunteer_rows,
        'daily_activity1': _daily_activity(sessions1, p1),
        'daily_activity2': _daily_activity(sessions2, p2),
        'winners': winners,
        'overall_winner': 1 if period1_wins > period2_wins else 2 if period2_wins > period1_wins else 0,
        'period1_wins': period1_wins,
        'period2_wins': period2_wins,
        'insights': _comparison_insights(stats1, stats2),
        'top_improvers': [v for v in volunteer_rows if v['change'] > 0][:movers],
        'top_decliners': decliners[-movers:][::-1] if decliners else [],
        'best_location': next((loc for loc in locations if loc['change'] > 0), None),
        'worst_location': next((loc for loc in reversed(locations) if loc['change'] < 0), None),
    }

# --- Presets ---

def get_comparison_presets(as_of=None) -> Dict[str, Dict[str, Any]]:
    """
    Ready-made period pairs: this week/month/quarter/year so far against the
    whole previous one. Weeks start on Monday.
    """
    now = resolve_as_of(as_of)
    today = now.normalize()

    week_start = today - pd.Timedelta(days=today.dayofweek)
    month_start = today.replace(day=1)
    quarter_start = pd.Timestamp(year=today.year, month=3 * ((today.month - 1) // 3) + 1, day=1)
    year_start = pd.Timestamp(year=today.year, month=1, day=1)

    def pair(label: str, short_label: str, current_start: pd.Timestamp, previous_start: pd.Timestamp,
             current_label: str, previous_label: str) -> Dict[str, Any]:
        return {
            'label': label,
            'short_label': short_label,
            'period1': Period(start=current_start.to_pydatetime(), end=now.to_pydatetime(), label=current_label),
            'period2': Period(start=previous_start.to_pydatetime(),
                              end=(current_start - pd.Timedelta(days=1)).to_pydatetime(), label=previous_label),
        }

    return {
        'week': pair("This week vs last week", "Week", week_start, week_start - pd.Timedelta(days=7),
                     "This week", "Last week"),
        'month': pair("This month vs last month", "Month", month_start, month_start - pd.DateOffset(months=1),
                      "This month", "Last month"),
        'quarter': pair("This quarter vs last quarter", "Quarter", quarter_start, quarter_start - pd.DateOffset(months=3),
                        "This quarter", "Last quarter"),
        'year': pair("This year vs last year", "Year", year_start, year_start - pd.DateOffset(years=1),
                     "This year", "Last year"),
    }
