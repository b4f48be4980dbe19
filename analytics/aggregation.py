# termini_insights/analytics/aggregation.py
# STATISTICS ENGINE - FULL DASHBOARD BUNDLE

import logging
import re
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from config import settings
from data_processing.bucketing import (bucket_sessions, explode_attendance, filter_by_locations, filter_by_period,
                                       filter_by_year, location_labels, month_keys, monthly_series,
                                       trailing_month_starts, month_key, month_label)
from data_processing.helpers import resolve_as_of, round_half_up
from data_processing.loaders import RecordsInput, ensure_sessions_frame, ensure_volunteers_frame
from data_processing.models import StatisticsFilters, coerce_filters
from data_processing.sessions import cancelled_mask
from .activity import ActivityStatus, classify_volunteers, status_payload
from .forecasting import detect_anomalies, forecast_sessions
from .insights import build_context, generate_insights, generate_recommendations
from .leaderboards import (calculate_milestones, calculate_monthly_leaderboard, calculate_ranking_history,
                           calculate_weekly_leaderboard)

logger = logging.getLogger(__name__)


def _avg(total: float, count: int, ndigits: int = 1) -> float:
    return round_half_up(total / count, ndigits) if count else 0


def _ratio_mean(sessions_df: pd.DataFrame) -> float:
    """Mean children-per-volunteer over sessions where both counts are positive."""
    with_data = sessions_df.loc[(sessions_df['children_count'] > 0) & (sessions_df['volunteer_count'] > 0)]
    if with_data.empty:
        return 0
    return round_half_up((with_data['children_count'] / with_data['volunteer_count']).mean(), 1)


_LEADING_DIGITS = re.compile(r'\s*(\d+)')


def _grade_sort_key(grade: str) -> int:
    match = _LEADING_DIGITS.match(str(grade))
    return int(match.group(1)) if match else 0


class StatisticsEngine:
    """
    Builds the full statistics bundle from a volunteer and a session
    collection. Inputs are normalised once, cancelled sessions removed and the
    filters applied; each sub-aggregate then runs independently, and a failure
    in one is logged and replaced by its empty default.
    """
    def __init__(self, volunteers: RecordsInput, sessions: RecordsInput,
                 filters: Optional[Any] = None, as_of=None, source_context: str = "StatisticsEngine"):
        self.source_context = source_context
        self.as_of = resolve_as_of(as_of)
        self.filters: StatisticsFilters = coerce_filters(filters, source_context)
        self.volunteers = ensure_volunteers_frame(volunteers)
        self.sessions = ensure_sessions_frame(sessions)
        self.errors: List[str] = []

        self.active_sessions = self.sessions.loc[~cancelled_mask(self.sessions)]
        self.filtered_sessions = self._filter_sessions(self.active_sessions)
        self.filtered_volunteers = self._filter_volunteers(self.volunteers)
        self.statuses = classify_volunteers(self.filtered_volunteers, self.active_sessions, self.as_of)

    # --- Filtering ---

    def _filter_sessions(self, sessions_df: pd.DataFrame) -> pd.DataFrame:
        f = self.filters
        if f.has_date_range:
            df = filter_by_period(sessions_df, f.date_range.start, f.date_range.end)
        else:
            df = filter_by_year(sessions_df, f.year)
        return filter_by_locations(df, f.locations)

    def _filter_volunteers(self, volunteers_df: pd.DataFrame) -> pd.DataFrame:
        if not self.filters.schools or volunteers_df.empty:
            return volunteers_df
        return volunteers_df.loc[volunteers_df['school'].isin(self.filters.schools)]

    # --- Sub-aggregates ---

    def _session_counts(self) -> Dict[str, int]:
        total = len(self.sessions)
        cancelled = total - len(self.active_sessions)
        return {'total': total, 'active': total - cancelled, 'cancelled': cancelled}

    def _summary(self) -> Dict[str, Any]:
        vols, fs = self.filtered_volunteers, self.filtered_sessions
        n = len(vols)
        counts = self.statuses.value_counts()
        active = int(counts.get(ActivityStatus.ACTIVE.value, 0))
        total_hours = float(vols['hours'].sum()) if n else 0.0
        total_children = int(fs['children_count'].sum()) if not fs.empty else 0
        total_attendances = int(fs['volunteer_count'].sum()) if not fs.empty else 0
        return {
            'total_volunteers': n,
            'active_volunteers': active,
            'dormant_volunteers': int(counts.get(ActivityStatus.DORMANT.value, 0)),
            'inactive_volunteers': int(counts.get(ActivityStatus.INACTIVE.value, 0)),
            'active_percentage': round_half_up(active / n * 100) if n else 0,
            'total_hours': total_hours,
            'total_sessions': len(fs),
            'total_children': total_children,
            'total_volunteer_attendances': total_attendances,
            'avg_children_per_session': _avg(total_children, int((fs['children_count'] > 0).sum())),
            'avg_volunteers_per_session': _avg(total_attendances, int((fs['volunteer_count'] > 0).sum())),
            'avg_ratio': _ratio_mean(fs),
            'avg_hours_per_volunteer': _avg(total_hours, n),
            'total_locations': int(fs.loc[fs['location'] != '', 'location'].nunique()),
        }

    def _by_location(self) -> List[Dict[str, Any]]:
        fs = self.filtered_sessions
        if fs.empty:
            return []
        buckets = bucket_sessions(fs, location_labels(fs)).sort_values('sessions', ascending=False, kind='stable')
        return [{'name': name, **row} for name, row in zip(buckets.index, buckets.to_dict('records'))]

    def _by_school(self) -> List[Dict[str, Any]]:
        vols = self.filtered_volunteers
        if vols.empty:
            return []
        attended = explode_attendance(self.filtered_sessions).groupby('name').size()
        frame = pd.DataFrame({
            'school': vols['school'].where(vols['school'] != '', settings.UNKNOWN_LABEL),
            'hours': vols['hours'],
            'sessions': vols['name'].map(attended).fillna(0).astype(int),
        })
        grouped = (frame.groupby('school', sort=False)
                   .agg(volunteers=('hours', 'size'), hours=('hours', 'sum'), sessions=('sessions', 'sum'))
                   .sort_values('volunteers', ascending=False, kind='stable'))
        return [{'name': name, **row} for name, row in zip(grouped.index, grouped.to_dict('records'))]

    def _by_month(self) -> List[Dict[str, Any]]:
        fs = self.filtered_sessions.loc[self.filtered_sessions['parsed_date'].notna()]
        if fs.empty:
            return []
        buckets = bucket_sessions(fs, month_keys(fs)).sort_index(ascending=False)
        result = []
        for key, row in zip(buckets.index, buckets.to_dict('records')):
            start = pd.Timestamp(f"{key}-01")
            result.append({'key': key, 'year': start.year, 'month': start.month,
                           'label': month_label(start, style='long'), 'short_label': month_label(start), **row})
        return result

    def _by_grade(self) -> List[Dict[str, Any]]:
        vols = self.filtered_volunteers
        if vols.empty:
            return []
        grades = vols['grade'].map(lambda g: settings.UNKNOWN_LABEL if g is None or g == '' else str(g))
        counts = grades.value_counts(sort=False)
        ordered = sorted(counts.index, key=_grade_sort_key)
        return [
            {'grade': grade, 'label': grade if grade == settings.UNKNOWN_LABEL else f"Grade {grade}",
             'count': int(counts[grade])}
            for grade in ordered
        ]

    def _top_volunteers(self) -> List[Dict[str, Any]]:
        vols = self.filtered_volunteers
        if vols.empty:
            return []
        top = vols.sort_values('hours', ascending=False, kind='stable').head(settings.ANALYTICS.top_volunteers_count)
        return [
            {'rank': rank + 1, 'name': row['name'], 'school': row['school'] or '-', 'grade': row['grade'],
             'hours': float(row['hours']), 'locations': list(row['locations'])}
            for rank, row in enumerate(top.to_dict('records'))
        ]

    def _activity_breakdown(self) -> List[Dict[str, Any]]:
        counts = self.statuses.value_counts()
        return [
            {**status_payload(status), 'value': int(counts.get(status.value, 0))}
            for status in (ActivityStatus.ACTIVE, ActivityStatus.INACTIVE, ActivityStatus.DORMANT)
        ]

    def _trends(self) -> Dict[str, List[Any]]:
        series = monthly_series(self.active_sessions, self.as_of, settings.ANALYTICS.trend_months)
        return {
            'labels': series['label'].tolist(),
            'months': series.index.tolist(),
            'sessions': series['sessions'].tolist(),
            'children': series['children'].tolist(),
            'volunteers': series['volunteers'].tolist(),
        }

    def _heatmap(self) -> Dict[str, Dict[str, Any]]:
        fs = self.filtered_sessions.loc[self.filtered_sessions['parsed_date'].notna()]
        if fs.empty:
            return {}
        buckets = bucket_sessions(fs, fs['parsed_date'].dt.strftime('%Y-%m-%d'), sort=True)
        return {day: {'date': day, **row} for day, row in zip(buckets.index, buckets.to_dict('records'))}

    def _retention(self) -> Dict[str, Any]:
        window = settings.ANALYTICS.retention_window_months
        recent_start = self.as_of - pd.DateOffset(months=window)
        cohort_start = self.as_of - pd.DateOffset(months=2 * window)
        attendance = explode_attendance(self.active_sessions)
        dates = attendance['parsed_date']
        cohort = set(attendance.loc[(dates >= cohort_start) & (dates < recent_start), 'name'])
        active_now = set(attendance.loc[dates >= recent_start, 'name'])
        retained = len(cohort & active_now)
        return {
            'rate': round_half_up(retained / len(cohort) * 100) if cohort else 0,
            'retained': retained,
            'total': len(cohort),
            'new_volunteers': len(active_now - cohort),
        }

    def _session_duration_stats(self) -> Dict[str, float]:
        hours = self.filtered_sessions['hours']
        hours = hours.loc[hours > 0]
        if hours.empty:
            return {'avg': 0, 'min': 0, 'max': 0, 'total': 0}
        return {
            'avg': round_half_up(hours.mean(), 1),
            'min': float(hours.min()),
            'max': float(hours.max()),
            'total': float(hours.sum()),
        }

    def _stacked_location_data(self) -> Dict[str, Any]:
        cfg = settings.ANALYTICS
        starts = trailing_month_starts(self.as_of, cfg.trend_months)
        keys = [month_key(s) for s in starts]
        fs = self.filtered_sessions.loc[self.filtered_sessions['location'] != '']
        locations = list(dict.fromkeys(fs['location']))
        dated = fs.loc[fs['parsed_date'].notna()]
        if dated.empty:
            pivot = pd.DataFrame(0, index=keys, columns=locations)
        else:
            pivot = (dated.assign(key=month_keys(dated))
                     .pivot_table(index='key', columns='location', values='children_count', aggfunc='sum', fill_value=0)
                     .reindex(index=keys, columns=locations, fill_value=0))
        return {
            'labels': [month_label(s) for s in starts],
            'months': keys,
            'locations': locations,
            'datasets': [{'label': loc, 'data': [int(v) for v in pivot[loc].fillna(0)]}
                         for loc in locations[:cfg.stacked_location_limit]],
        }

    def _available_years(self) -> List[int]:
        years = self.active_sessions['parsed_date'].dropna().dt.year
        return sorted({int(y) for y in years}, reverse=True)

    def _available_locations(self) -> List[str]:
        return sorted({loc for loc in self.active_sessions['location'] if loc})

    def _available_schools(self) -> List[str]:
        return sorted({school for school in self.volunteers['school'] if school})

    # --- Orchestration ---

    def _safe(self, key: str, compute: Callable[[], Any], default: Any) -> Any:
        try:
            return compute()
        except Exception as e:
            msg = f"Sub-aggregate '{key}' failed to compute."
            self.errors.append(msg)
            logger.error(f"({self.source_context}) {msg}: {e}", exc_info=True)
            return default

    def run(self) -> Dict[str, Any]:
        logger.info(f"({self.source_context}) Computing statistics for {len(self.volunteers)} volunteers, "
                    f"{len(self.sessions)} sessions as of {self.as_of.date()}.")
        context = self._safe('context', lambda: build_context(
            self.filtered_volunteers, self.filtered_sessions, self.active_sessions, self.as_of, self.statuses), None)

        plan: Dict[str, Any] = {
            'summary': (self._summary, {}),
            'session_counts': (self._session_counts, {'total': 0, 'active': 0, 'cancelled': 0}),
            'by_location': (self._by_location, []),
            'by_school': (self._by_school, []),
            'by_month': (self._by_month, []),
            'by_grade': (self._by_grade, []),
            'top_volunteers': (self._top_volunteers, []),
            'activity_breakdown': (self._activity_breakdown, []),
            'trends': (self._trends, {'labels': [], 'months': [], 'sessions': [], 'children': [], 'volunteers': []}),
            'available_years': (self._available_years, []),
            'available_locations': (self._available_locations, []),
            'available_schools': (self._available_schools, []),
            'heatmap_data': (self._heatmap, {}),
            'retention_rate': (self._retention, {'rate': 0, 'retained': 0, 'total': 0, 'new_volunteers': 0}),
            'session_duration_stats': (self._session_duration_stats, {'avg': 0, 'min': 0, 'max': 0, 'total': 0}),
            'stacked_location_data': (self._stacked_location_data, {'labels': [], 'months': [], 'locations': [], 'datasets': []}),
            'ranking_history': (lambda: calculate_ranking_history(self.volunteers, self.active_sessions, self.as_of), []),
            'insights': (lambda: generate_insights(context) if context else [], []),
            'predictions': (lambda: forecast_sessions(self.active_sessions, self.as_of), {}),
            'anomalies': (lambda: detect_anomalies(self.active_sessions), []),
            'recommendations': (lambda: generate_recommendations(context) if context else [], []),
            'milestones': (lambda: calculate_milestones(self.volunteers, self.active_sessions), []),
            'weekly_leaderboard': (lambda: calculate_weekly_leaderboard(self.volunteers, self.active_sessions, self.as_of), []),
            'monthly_leaderboard': (lambda: calculate_monthly_leaderboard(self.volunteers, self.active_sessions, self.as_of), []),
        }
        bundle = {key: self._safe(key, compute, default) for key, (compute, default) in plan.items()}

        if self.errors:
            logger.warning(f"({self.source_context}) Statistics bundle completed with {len(self.errors)} degraded sections.")
        else:
            logger.info(f"({self.source_context}) Statistics bundle completed.")
        return bundle


def calculate_statistics(volunteers: RecordsInput, sessions: RecordsInput, filters: Optional[Any] = None,
                         as_of=None, source_context: str = "StatisticsEngine") -> Dict[str, Any]:
    """
    Public factory function to compute the full statistics bundle.

    Args:
        volunteers: Volunteer records or a volunteers frame.
        sessions: Session records or a sessions frame (cancelled ones included).
        filters: StatisticsFilters or a mapping with date_range/year/locations/schools.
        as_of: Reference instant for every trailing window. Defaults to now.
        source_context: Prefix used in log messages.
    """
    return StatisticsEngine(volunteers, sessions, filters, as_of, source_context).run()

# --- Chart-ready helpers ---

def get_quick_stats(volunteers: RecordsInput, sessions: RecordsInput) -> Dict[str, Any]:
    """Headline numbers over all non-cancelled sessions."""
    vols = ensure_volunteers_frame(volunteers)
    active = ensure_sessions_frame(sessions)
    active = active.loc[~cancelled_mask(active)]
    return {
        'total_volunteers': len(vols),
        'total_hours': float(vols['hours'].sum()) if not vols.empty else 0.0,
        'total_sessions': len(active),
        'total_children': int(active['children_count'].sum()) if not active.empty else 0,
        'total_locations': int(active.loc[active['location'] != '', 'location'].nunique()),
    }


def get_hours_by_school_chart(volunteers: RecordsInput) -> Dict[str, List[Any]]:
    vols = ensure_volunteers_frame(volunteers)
    if vols.empty:
        return {'labels': [], 'data': []}
    schools = vols['school'].where(vols['school'] != '', settings.UNKNOWN_LABEL)
    totals = (vols['hours'].groupby(schools, sort=False).sum()
              .sort_values(ascending=False, kind='stable')
              .head(settings.ANALYTICS.hours_by_school_chart_limit))
    return {'labels': totals.index.tolist(), 'data': [float(v) for v in totals]}


def get_children_by_location_chart(sessions: RecordsInput) -> Dict[str, List[Any]]:
    df = ensure_sessions_frame(sessions)
    if df.empty:
        return {'labels': [], 'data': []}
    totals = (df['children_count'].groupby(location_labels(df), sort=False).sum()
              .sort_values(ascending=False, kind='stable')
              .head(settings.ANALYTICS.children_by_location_chart_limit))
    return {'labels': totals.index.tolist(), 'data': [int(v) for v in totals]}
