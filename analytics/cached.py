# termini_insights/analytics/cached.py
# STREAMLIT CACHING LAYER

from typing import Any, Dict, Optional

import pandas as pd
import streamlit as st

from config import settings
from data_processing.helpers import hash_dataframe
from .aggregation import calculate_statistics
from .comparison import compare_periods


@st.cache_data(ttl=settings.CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_statistics(volunteers_df: pd.DataFrame, sessions_df: pd.DataFrame,
                          filters: Optional[Dict[str, Any]] = None, as_of: Optional[str] = None) -> Dict[str, Any]:
    """Cached wrapper for calculate_statistics. `as_of` is an ISO string so it hashes stably."""
    return calculate_statistics(volunteers_df, sessions_df, filters, as_of, source_context="CachedStatistics")


@st.cache_data(ttl=settings.CACHE_TTL_SECONDS, hash_funcs={pd.DataFrame: hash_dataframe})
def get_cached_comparison(volunteers_df: pd.DataFrame, sessions_df: pd.DataFrame,
                          period1: Dict[str, Any], period2: Dict[str, Any]) -> Dict[str, Any]:
    """Cached wrapper for compare_periods over plain start/end/label mappings."""
    return compare_periods(volunteers_df, sessions_df, period1, period2, source_context="CachedComparison")
