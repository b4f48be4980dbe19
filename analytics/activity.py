# termini_insights/analytics/activity.py
# VOLUNTEER ACTIVITY CLASSIFIER

import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from config import settings
from data_processing.bucketing import explode_attendance, filter_by_since
from data_processing.helpers import convert_to_numeric, resolve_as_of
from data_processing.loaders import RecordsInput, ensure_sessions_frame

logger = logging.getLogger(__name__)


class ActivityStatus(Enum):
    ACTIVE = "active"
    DORMANT = "dormant"
    INACTIVE = "inactive"


def status_payload(status: ActivityStatus) -> Dict[str, str]:
    return {
        'status': status.value,
        'label': settings.ACTIVITY_LABELS[status.value],
        'dot_color': settings.ACTIVITY_DOT_COLORS[status.value],
    }


def _classify(total_hours: float, recent_hours: float) -> ActivityStatus:
    thresholds = settings.ANALYTICS.activity
    if total_hours >= thresholds.total_hours_active or recent_hours >= thresholds.recent_hours_active:
        return ActivityStatus.ACTIVE
    if total_hours >= thresholds.total_hours_dormant and recent_hours < thresholds.recent_hours_active:
        return ActivityStatus.DORMANT
    return ActivityStatus.INACTIVE


def _recent_hours_by_name(active_sessions_df: pd.DataFrame, as_of: pd.Timestamp) -> pd.Series:
    """Hours accrued per volunteer name inside the recent-activity window."""
    cutoff = as_of - pd.Timedelta(days=settings.ANALYTICS.activity.recent_period_days)
    attendance = explode_attendance(filter_by_since(active_sessions_df, cutoff))
    if attendance.empty:
        return pd.Series(dtype=float)
    return attendance.groupby('name')['hours'].sum()


def get_activity_status(volunteer: Optional[Any], sessions: RecordsInput, as_of=None) -> Dict[str, str]:
    """
    Classifies one volunteer as active, dormant or inactive from their stored
    lifetime hours and the hours of sessions they attended in the last 60 days.
    A missing volunteer or session collection yields 'inactive'.
    """
    if volunteer is None or sessions is None:
        return status_payload(ActivityStatus.INACTIVE)

    if isinstance(volunteer, (Mapping, pd.Series)):
        name, hours = volunteer.get('name'), volunteer.get('hours')
    else:
        name, hours = getattr(volunteer, 'name', None), getattr(volunteer, 'hours', None)

    total_hours = max(float(convert_to_numeric(hours, default_value=0.0)), 0.0)
    recent_hours = 0.0
    if name:
        recent = _recent_hours_by_name(ensure_sessions_frame(sessions), resolve_as_of(as_of))
        recent_hours = float(recent.get(str(name).strip(), 0.0))
    return status_payload(_classify(total_hours, recent_hours))


def classify_volunteers(volunteers_df: pd.DataFrame, sessions_df: pd.DataFrame, as_of: pd.Timestamp) -> pd.Series:
    """
    Vectorised classifier over normalised frames. Returns the status value
    ('active' / 'dormant' / 'inactive') per volunteer, aligned to volunteers_df.
    """
    if volunteers_df.empty:
        return pd.Series(dtype=object, index=volunteers_df.index)

    thresholds = settings.ANALYTICS.activity
    recent = volunteers_df['name'].map(_recent_hours_by_name(sessions_df, as_of)).fillna(0.0)
    total = volunteers_df['hours'].fillna(0.0)

    is_active = (total >= thresholds.total_hours_active) | (recent >= thresholds.recent_hours_active)
    is_dormant = (total >= thresholds.total_hours_dormant) & (recent < thresholds.recent_hours_active)
    statuses = np.select(
        [is_active, is_dormant],
        [ActivityStatus.ACTIVE.value, ActivityStatus.DORMANT.value],
        default=ActivityStatus.INACTIVE.value,
    )
    logger.debug(f"Classified {len(volunteers_df)} volunteers as of {as_of.date()}.")
    return pd.Series(statuses, index=volunteers_df.index, dtype=object)
