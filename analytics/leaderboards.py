# termini_insights/analytics/leaderboards.py
# LEADERBOARDS, RANKING HISTORY & ORGANISATION MILESTONES

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from config import settings
from data_processing.bucketing import explode_attendance, filter_by_since, month_key, month_label, month_start
from data_processing.helpers import round_half_up

logger = logging.getLogger(__name__)

BADGES = ['gold', 'silver', 'bronze']


def build_name_index(volunteers_df: pd.DataFrame) -> pd.DataFrame:
    """
    Name -> volunteer lookup, built once per call. The first record wins for
    duplicate names; session names missing from the index are ignored.
    """
    return volunteers_df.drop_duplicates(subset='name', keep='first').set_index('name')


def _known_attendance(volunteers_df: pd.DataFrame, sessions_df: pd.DataFrame) -> pd.DataFrame:
    attendance = explode_attendance(sessions_df)
    return attendance.loc[attendance['name'].isin(volunteers_df['name'])]


def _rank_leaderboard(volunteers_df: pd.DataFrame, sessions_df: pd.DataFrame, since: pd.Timestamp) -> List[Dict[str, Any]]:
    """Top volunteers by hours accrued since `since`; ties keep volunteer-list order."""
    if volunteers_df.empty:
        return []
    index = build_name_index(volunteers_df)
    attendance = _known_attendance(volunteers_df, filter_by_since(sessions_df, since))
    totals = attendance.groupby('name').agg(hours=('hours', 'sum'), sessions=('session_id', 'size'))
    board = index[['school']].join(totals, how='left').fillna({'hours': 0.0, 'sessions': 0})
    board = (board.loc[board['hours'] > 0]
             .sort_values('hours', ascending=False, kind='stable')
             .head(settings.ANALYTICS.leaderboard_size))
    return [
        {
            'rank': position + 1,
            'name': name,
            'hours': float(row['hours']),
            'sessions': int(row['sessions']),
            'school': row['school'],
            'badge': BADGES[position] if position < len(BADGES) else None,
        }
        for position, (name, row) in enumerate(board.iterrows())
    ]


def calculate_weekly_leaderboard(volunteers_df: pd.DataFrame, active_sessions_df: pd.DataFrame, as_of: pd.Timestamp) -> List[Dict[str, Any]]:
    return _rank_leaderboard(volunteers_df, active_sessions_df, as_of - pd.Timedelta(days=7))


def calculate_monthly_leaderboard(volunteers_df: pd.DataFrame, active_sessions_df: pd.DataFrame, as_of: pd.Timestamp) -> List[Dict[str, Any]]:
    return _rank_leaderboard(volunteers_df, active_sessions_df, month_start(as_of))


def calculate_ranking_history(volunteers_df: pd.DataFrame, active_sessions_df: pd.DataFrame, as_of: pd.Timestamp) -> List[Dict[str, Any]]:
    """
    Monthly snapshots (oldest first) of the top volunteers by cumulative
    session hours up to the end of each month. Only known volunteers rank.
    """
    cfg = settings.ANALYTICS
    if volunteers_df.empty:
        return []
    names = pd.Index(volunteers_df['name'].drop_duplicates())
    attendance = _known_attendance(volunteers_df, active_sessions_df)
    attendance = attendance.loc[attendance['parsed_date'].notna()]

    history = []
    current = month_start(as_of)
    for offset in range(cfg.ranking_history_months - 1, -1, -1):
        start = current - pd.DateOffset(months=offset)
        next_start = start + pd.DateOffset(months=1)
        accrued = attendance.loc[attendance['parsed_date'] < next_start].groupby('name')['hours'].sum()
        cumulative = accrued.reindex(names, fill_value=0.0).sort_values(ascending=False, kind='stable')
        top = cumulative.head(cfg.ranking_history_size)
        history.append({
            'month': month_label(start),
            'month_key': month_key(start),
            'rankings': [{'name': name, 'rank': rank + 1, 'hours': float(hours)}
                         for rank, (name, hours) in enumerate(top.items())],
        })
    return history


def _milestone(kind: str, value: int, label: str, achieved: bool, **extra: Any) -> Dict[str, Any]:
    return {'type': kind, 'value': value, 'achieved': achieved, 'label': label, **extra}


def calculate_milestones(volunteers_df: pd.DataFrame, active_sessions_df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Organisation-wide tiers reached for volunteer hours, sessions held and
    children reached. Unreached hour tiers within the near fraction are
    included with progress. Achieved tiers come first, highest value first.
    """
    cfg = settings.ANALYTICS
    total_hours = float(volunteers_df['hours'].sum()) if not volunteers_df.empty else 0.0
    total_children = int(active_sessions_df['children_count'].sum()) if not active_sessions_df.empty else 0
    total_sessions = len(active_sessions_df)

    milestones: List[Dict[str, Any]] = []
    for tier in cfg.milestone_hours:
        label = f"{tier} volunteer hours"
        if total_hours >= tier:
            milestones.append(_milestone('hours', tier, label, True))
        elif tier - total_hours < tier * cfg.milestone_near_fraction:
            milestones.append(_milestone('hours', tier, label, False,
                                         progress=round_half_up(total_hours / tier * 100),
                                         remaining=tier - total_hours))
    milestones += [_milestone('sessions', tier, f"{tier} sessions held", True)
                   for tier in cfg.milestone_sessions if total_sessions >= tier]
    milestones += [_milestone('children', tier, f"{tier} child attendances", True)
                   for tier in cfg.milestone_children if total_children >= tier]

    return sorted(milestones, key=lambda m: (not m['achieved'], -m['value']))


def get_top_school(volunteers_df: pd.DataFrame) -> Optional[Dict[str, Any]]:
    """School supplying the most volunteers (first listed wins ties); blanks are skipped."""
    schools = volunteers_df.loc[volunteers_df['school'] != '', 'school'] if not volunteers_df.empty else pd.Series(dtype=object)
    if schools.empty:
        return None
    counts = schools.value_counts(sort=False)
    return {'school': counts.idxmax(), 'count': int(counts.max())}
