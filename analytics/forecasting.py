# termini_insights/analytics/forecasting.py
# SESSION FORECASTING & ANOMALY DETECTION

"""
A deliberately simple, explainable forecasting layer over monthly session
counts: an ordinary least-squares line through the trailing months and a
population z-score test for unusual months.
"""
import logging
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd

from config import settings
from data_processing.bucketing import month_key, month_keys, month_label, month_start, monthly_series
from data_processing.helpers import resolve_as_of, round_half_up
from data_processing.loaders import RecordsInput, ensure_sessions_frame
from data_processing.sessions import drop_cancelled

logger = logging.getLogger(__name__)


def fit_linear_trend(values: List[float]) -> Tuple[float, float]:
    """
    Least-squares fit of y against x = 0..n-1.
    Returns (slope, intercept); a flat line through the mean when the fit is degenerate.
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n == 0:
        return 0.0, 0.0
    x = np.arange(n, dtype=float)
    sum_x, sum_y = x.sum(), y.sum()
    denominator = n * (x * x).sum() - sum_x ** 2
    if denominator == 0:
        return 0.0, float(sum_y / n)
    slope = (n * (x * y).sum() - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return float(slope), float(intercept)


def classify_trend(slope: float) -> str:
    threshold = settings.ANALYTICS.forecast_trend_slope_threshold
    if slope > threshold:
        return 'growing'
    if slope < -threshold:
        return 'declining'
    return 'stable'


def forecast_sessions(sessions: RecordsInput, as_of=None) -> Dict[str, Any]:
    """
    Projects session counts for the next months from the trailing monthly
    series. `confidence` is a fixed heuristic (base + per-point bonus, clamped),
    not a statistical interval.
    """
    cfg = settings.ANALYTICS
    as_of = resolve_as_of(as_of)
    active = drop_cancelled(ensure_sessions_frame(sessions))

    history = monthly_series(active, as_of, cfg.forecast_history_months)
    values = history['sessions'].tolist()
    n = len(values)
    slope, intercept = fit_linear_trend(values)
    trend = classify_trend(slope)

    direction = 'up' if slope > 0 else 'down' if slope < 0 else 'stable'
    next_month = month_start(as_of)
    predicted = []
    for i in range(1, cfg.forecast_horizon_months + 1):
        target = next_month + pd.DateOffset(months=i)
        projected = round_half_up(max(0.0, intercept + slope * (n + i - 1)))
        predicted.append({
            'month': month_label(target, style='medium'),
            'month_key': month_key(target),
            'sessions': projected,
            'trend': direction,
        })

    low, high = cfg.forecast_confidence_bounds
    confidence = int(min(high, max(low, cfg.forecast_confidence_base + n * cfg.forecast_confidence_per_point)))

    return {
        'historical': [
            {'month': row['label'], 'month_key': key, 'sessions': int(row['sessions'])}
            for key, row in history.iterrows()
        ],
        'predicted': predicted,
        'trend': trend,
        'confidence': confidence,
        'confidence_method': 'heuristic',
        'slope': slope,
        'intercept': intercept,
    }


def detect_anomalies(sessions: RecordsInput) -> List[Dict[str, Any]]:
    """
    Flags months whose session count deviates more than the z threshold from
    the population mean of all populated months. Needs at least three months.
    """
    cfg = settings.ANALYTICS
    active = drop_cancelled(ensure_sessions_frame(sessions))
    dated = active.loc[active['parsed_date'].notna()]
    if dated.empty:
        return []

    counts = dated.groupby(month_keys(dated)).size().sort_index()
    if len(counts) < cfg.anomaly_min_months:
        return []

    values = counts.to_numpy(dtype=float)
    mean = values.mean()
    std = values.std() or 1.0
    expected = round_half_up(mean)

    anomalies = []
    for key, value in counts.items():
        z_score = (value - mean) / std
        if abs(z_score) <= cfg.anomaly_z_threshold:
            continue
        label = month_label(pd.Timestamp(f"{key}-01"), style='long')
        is_spike = z_score > 0
        anomalies.append({
            'type': 'spike' if is_spike else 'drop',
            'month': key,
            'label': label,
            'value': int(value),
            'expected': expected,
            'z_score': round_half_up(z_score, 2),
            'description': (f"Unusually {'high' if is_spike else 'low'} activity in {label}: "
                            f"{int(value)} sessions (expected ~{expected})"),
        })
    logger.debug(f"Anomaly scan over {len(counts)} months found {len(anomalies)} outliers.")
    return anomalies
