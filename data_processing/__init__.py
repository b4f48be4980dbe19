# termini_insights/data_processing/__init__.py
# PUBLIC API OF THE INGESTION & BUCKETING LAYER

"""
Initializes the data_processing package, defining its public API.

Everything here works on plain pandas frames: ingestion normalises raw
volunteer and session records once, and the bucketing helpers are shared by
every engine in the `analytics` package.
"""

# --- Core Data Pipeline & Utilities from helpers.py ---
from .helpers import (
    DataPipeline,
    convert_to_numeric,
    hash_dataframe,
    naive_timestamp,
    parse_session_date,
    resolve_as_of,
    robust_json_load,
    round_half_up,
)

# --- Filter & Period Models from models.py ---
from .models import (
    DateRange,
    Period,
    StatisticsFilters,
    coerce_filters,
    coerce_period,
)

# --- Ingestion from loaders.py ---
from .loaders import (
    ensure_sessions_frame,
    ensure_volunteers_frame,
    load_sessions,
    load_volunteers,
)

# --- Session Status Utilities from sessions.py ---
from .sessions import (
    cancelled_mask,
    filter_sessions_by_status,
    get_session_counts,
    get_session_status,
    is_cancelled_session,
)

# --- Shared Period Filtering & Bucketing from bucketing.py ---
from .bucketing import (
    bucket_sessions,
    explode_attendance,
    filter_by_period,
    monthly_series,
)


__all__ = [
    # helpers.py
    "DataPipeline",
    "convert_to_numeric",
    "hash_dataframe",
    "naive_timestamp",
    "parse_session_date",
    "resolve_as_of",
    "robust_json_load",
    "round_half_up",

    # models.py
    "DateRange",
    "Period",
    "StatisticsFilters",
    "coerce_filters",
    "coerce_period",

    # loaders.py
    "ensure_sessions_frame",
    "ensure_volunteers_frame",
    "load_sessions",
    "load_volunteers",

    # sessions.py
    "cancelled_mask",
    "filter_sessions_by_status",
    "get_session_counts",
    "get_session_status",
    "is_cancelled_session",

    # bucketing.py
    "bucket_sessions",
    "explode_attendance",
    "filter_by_period",
    "monthly_series",
]
