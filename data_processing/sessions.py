# termini_insights/data_processing/sessions.py
# SESSION STATUS UTILITIES

"""
Identifies cancelled ("phantom") sessions - scheduled slots recorded with no
children, no volunteer count and no volunteer names - and partitions or
counts session collections by status.
"""
import logging
from typing import Any, Dict, Literal, Mapping, Optional

import pandas as pd

from .helpers import convert_to_numeric, split_list_value
from .loaders import RecordsInput, ensure_sessions_frame

logger = logging.getLogger(__name__)

StatusMode = Literal['all', 'active', 'cancelled']

_FIELD_ALIASES = {
    'children_count': ('children_count', 'childrenCount'),
    'volunteer_count': ('volunteer_count', 'volunteerCount'),
    'volunteers_list': ('volunteers_list', 'volunteersList', 'volunteers'),
}


def _field(session: Any, name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        if isinstance(session, (Mapping, pd.Series)):
            if key in session:
                return session[key]
        elif hasattr(session, key):
            return getattr(session, key)
    return None


def is_cancelled_session(session: Any) -> bool:
    """True when a single record has no children, no volunteer count and an empty name list."""
    if session is None:
        return False
    children = convert_to_numeric(_field(session, 'children_count'), default_value=0)
    volunteers = convert_to_numeric(_field(session, 'volunteer_count'), default_value=0)
    names = split_list_value(_field(session, 'volunteers_list'))
    return children <= 0 and volunteers <= 0 and not names


def cancelled_mask(sessions_df: pd.DataFrame) -> pd.Series:
    """Vectorised cancelled test over a normalised sessions frame."""
    if sessions_df.empty:
        return pd.Series(False, index=sessions_df.index, dtype=bool)
    return ((sessions_df['children_count'] <= 0)
            & (sessions_df['volunteer_count'] <= 0)
            & (sessions_df['volunteers_list'].map(len) == 0))


def get_session_status(session: Any) -> str:
    return 'cancelled' if is_cancelled_session(session) else 'active'


def drop_cancelled(sessions_df: pd.DataFrame) -> pd.DataFrame:
    return sessions_df.loc[~cancelled_mask(sessions_df)]


def filter_sessions_by_status(sessions: RecordsInput, status: StatusMode = 'all') -> Optional[pd.DataFrame]:
    """
    Returns the sessions matching `status`. 'all' keeps everything,
    'cancelled' keeps phantom slots and any other value keeps active sessions.
    """
    if sessions is None:
        return None
    df = ensure_sessions_frame(sessions)
    if status == 'all':
        return df
    mask = cancelled_mask(df)
    return df.loc[mask] if status == 'cancelled' else df.loc[~mask]


def get_session_counts(sessions: RecordsInput) -> Dict[str, int]:
    """Counts sessions by status; `active` is always `total - cancelled`."""
    if sessions is None:
        return {'total': 0, 'active': 0, 'cancelled': 0}
    df = ensure_sessions_frame(sessions)
    total = len(df)
    cancelled = int(cancelled_mask(df).sum())
    return {'total': total, 'active': total - cancelled, 'cancelled': cancelled}
