# termini_insights/tests/test_forecasting.py
# FORECAST & ANOMALY TESTS

import pytest

from analytics import detect_anomalies, forecast_sessions
from analytics.forecasting import classify_trend, fit_linear_trend

# Fixtures are sourced from conftest.py


def test_fit_linear_trend_exact_line():
    slope, intercept = fit_linear_trend([1, 2, 3, 4, 5, 6])
    assert slope == pytest.approx(1.0)
    assert intercept == pytest.approx(1.0)


def test_fit_linear_trend_degenerate_inputs():
    assert fit_linear_trend([]) == (0.0, 0.0)
    assert fit_linear_trend([4]) == (0.0, 4.0)


@pytest.mark.parametrize("slope, expected", [(0.6, 'growing'), (-0.6, 'declining'), (0.5, 'stable'), (0.0, 'stable')])
def test_classify_trend_thresholds(slope, expected):
    assert classify_trend(slope) == expected


def test_increasing_series_is_growing(session_factory, as_of):
    sessions = session_factory({'2024-10': 1, '2024-11': 2, '2024-12': 3, '2025-01': 4, '2025-02': 5, '2025-03': 6})
    forecast = forecast_sessions(sessions, as_of)
    assert forecast['trend'] == 'growing'
    assert forecast['slope'] == pytest.approx(1.0)
    assert [p['month_key'] for p in forecast['predicted']] == ['2025-04', '2025-05', '2025-06']
    assert forecast['predicted'][0] == {'month': 'Apr 2025', 'month_key': '2025-04', 'sessions': 7, 'trend': 'up'}
    assert [h['sessions'] for h in forecast['historical']] == [1, 2, 3, 4, 5, 6]
    assert forecast['confidence'] == 95
    assert forecast['confidence_method'] == 'heuristic'


def test_constant_series_is_stable(session_factory, as_of):
    sessions = session_factory({key: 3 for key in ['2024-10', '2024-11', '2024-12', '2025-01', '2025-02', '2025-03']})
    forecast = forecast_sessions(sessions, as_of)
    assert forecast['slope'] == pytest.approx(0.0)
    assert forecast['trend'] == 'stable'
    assert all(p['sessions'] == 3 and p['trend'] == 'stable' for p in forecast['predicted'])


def test_forecast_never_negative(session_factory, as_of):
    sessions = session_factory({'2024-10': 9, '2024-11': 6, '2024-12': 3})
    forecast = forecast_sessions(sessions, as_of)
    assert forecast['trend'] == 'declining'
    assert all(p['sessions'] >= 0 for p in forecast['predicted'])


def test_forecast_on_no_sessions(as_of):
    forecast = forecast_sessions([], as_of)
    assert forecast['trend'] == 'stable'
    assert [p['sessions'] for p in forecast['predicted']] == [0, 0, 0]
    assert len(forecast['historical']) == 6

# --- Anomalies ---
def test_anomalies_need_three_months(session_factory):
    assert detect_anomalies(session_factory({'2025-01': 1, '2025-02': 40})) == []
    assert detect_anomalies(None) == []


def test_spike_detected(session_factory):
    counts = {f"2024-{m:02d}": 5 for m in range(1, 10)}
    counts['2024-10'] = 30
    anomalies = detect_anomalies(session_factory(counts))
    assert len(anomalies) == 1
    spike = anomalies[0]
    assert spike['type'] == 'spike'
    assert spike['month'] == '2024-10'
    assert spike['value'] == 30
    assert spike['expected'] == 8
    assert spike['z_score'] == pytest.approx(3.0)
    assert 'October 2024' in spike['description']


def test_drop_detected(session_factory):
    counts = {f"2024-{m:02d}": 10 for m in range(1, 10)}
    counts['2024-10'] = 1
    anomalies = detect_anomalies(session_factory(counts))
    assert [(a['type'], a['month']) for a in anomalies] == [('drop', '2024-10')]
    assert anomalies[0]['z_score'] == pytest.approx(-3.0)


def test_constant_counts_have_no_anomalies(session_factory):
    assert detect_anomalies(session_factory({f"2024-{m:02d}": 4 for m in range(1, 7)})) == []
