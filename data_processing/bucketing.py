# termini_insights/data_processing/bucketing.py
# SHARED PERIOD FILTERING & BUCKETING

"""
Period slicing, month bucketing and attendance explosion shared by the
statistics and comparison engines. All functions take normalised frames
(see loaders.ensure_sessions_frame) and never mutate them.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from config import settings

from .helpers import naive_timestamp

logger = logging.getLogger(__name__)

MetricSpec = Dict[str, Tuple[str, str]]

SESSION_METRICS: MetricSpec = {
    'sessions': ('hours', 'size'),
    'children': ('children_count', 'sum'),
    'volunteers': ('volunteer_count', 'sum'),
}

ATTENDANCE_COLUMNS = ['session_id', 'name', 'hours', 'parsed_date', 'location', 'children_count']

# --- Period Slicing ---

def filter_by_period(sessions_df: pd.DataFrame, start=None, end=None) -> pd.DataFrame:
    """Inclusive [start, end] slice on parsed_date. Unbounded when either bound is missing."""
    if start is None or end is None or sessions_df.empty:
        return sessions_df
    dates = sessions_df['parsed_date']
    mask = (dates >= naive_timestamp(start)) & (dates <= naive_timestamp(end))
    return sessions_df.loc[mask]


def filter_by_since(sessions_df: pd.DataFrame, since: pd.Timestamp) -> pd.DataFrame:
    if sessions_df.empty:
        return sessions_df
    return sessions_df.loc[sessions_df['parsed_date'] >= since]


def filter_by_year(sessions_df: pd.DataFrame, year: Optional[int]) -> pd.DataFrame:
    if year is None or sessions_df.empty:
        return sessions_df
    return sessions_df.loc[sessions_df['parsed_date'].dt.year == int(year)]


def filter_by_locations(sessions_df: pd.DataFrame, locations: Optional[Iterable[str]]) -> pd.DataFrame:
    allowed = list(locations or [])
    if not allowed or sessions_df.empty:
        return sessions_df
    return sessions_df.loc[sessions_df['location'].isin(allowed)]

# --- Month Helpers ---

def month_start(ts: pd.Timestamp) -> pd.Timestamp:
    return pd.Timestamp(year=ts.year, month=ts.month, day=1)


def month_key(ts: pd.Timestamp) -> str:
    return f"{ts.year:04d}-{ts.month:02d}"


def month_label(ts: pd.Timestamp, style: str = 'short') -> str:
    """'short' -> 'Jan 25', 'medium' -> 'Jan 2025', 'long' -> 'January 2025'."""
    if style == 'long':
        return f"{settings.MONTH_NAMES[ts.month - 1]} {ts.year}"
    short_name = settings.MONTH_NAMES_SHORT[ts.month - 1]
    if style == 'medium':
        return f"{short_name} {ts.year}"
    return f"{short_name} {str(ts.year)[-2:]}"


def trailing_month_starts(as_of: pd.Timestamp, months: int) -> List[pd.Timestamp]:
    """The `months` calendar months ending with as_of's month, oldest first."""
    current = month_start(as_of)
    return [current - pd.DateOffset(months=offset) for offset in range(months - 1, -1, -1)]


def month_keys(sessions_df: pd.DataFrame) -> pd.Series:
    """YYYY-MM key per session; NaN for undated sessions."""
    return sessions_df['parsed_date'].dt.strftime('%Y-%m')

# --- Bucketing ---

def bucket_sessions(sessions_df: pd.DataFrame, key: Union[str, pd.Series], metrics: MetricSpec = SESSION_METRICS, sort: bool = False) -> pd.DataFrame:
    """
    Groups sessions by a column name or an aligned key Series and aggregates
    each metric (output name -> (source column, aggfunc)). Groups keep
    first-appearance order unless `sort` is set.
    """
    if sessions_df.empty:
        return pd.DataFrame({name: pd.Series(dtype='int64') for name in metrics})
    named_aggs = {name: pd.NamedAgg(column=col, aggfunc=func) for name, (col, func) in metrics.items()}
    return sessions_df.groupby(key, sort=sort).agg(**named_aggs)


def monthly_series(sessions_df: pd.DataFrame, as_of: pd.Timestamp, months: int, metrics: MetricSpec = SESSION_METRICS) -> pd.DataFrame:
    """
    Trailing monthly buckets indexed by YYYY-MM, oldest first. Months without
    sessions are present with zero values, so the frame always has `months` rows.
    """
    starts = trailing_month_starts(as_of, months)
    keys = [month_key(s) for s in starts]
    dated = sessions_df.loc[sessions_df['parsed_date'].notna()]
    buckets = bucket_sessions(dated, month_keys(dated), metrics)
    series = buckets.reindex(keys, fill_value=0).fillna(0).astype('int64')
    series.insert(0, 'month_start', starts)
    series.insert(1, 'label', [month_label(s) for s in starts])
    series.index.name = 'key'
    return series


def location_labels(sessions_df: pd.DataFrame) -> pd.Series:
    """Session location with blanks mapped to the unknown label."""
    return sessions_df['location'].where(sessions_df['location'] != '', settings.UNKNOWN_LABEL)

# --- Attendance ---

def explode_attendance(sessions_df: pd.DataFrame, distinct: bool = True) -> pd.DataFrame:
    """
    One row per (session, volunteer name). Names are kept as given, including
    names with no matching volunteer record. With `distinct`, a name repeated
    inside one session counts once; otherwise every list entry is a row.
    """
    if sessions_df.empty:
        return pd.DataFrame(columns=ATTENDANCE_COLUMNS)
    exploded = (sessions_df
                .assign(session_id=sessions_df.index)
                [['session_id', 'volunteers_list', 'hours', 'parsed_date', 'location', 'children_count']]
                .explode('volunteers_list')
                .rename(columns={'volunteers_list': 'name'}))
    exploded = exploded.loc[exploded['name'].notna()]
    if distinct:
        exploded = exploded.drop_duplicates(subset=['session_id', 'name'])
    return exploded.reset_index(drop=True)

