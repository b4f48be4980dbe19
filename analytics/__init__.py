# termini_insights/analytics/__init__.py
# PUBLIC API OF THE STATISTICS ENGINES

"""
Initializes the analytics package, making the statistics, comparison,
forecasting and profile engines available at the top level.

Every entry point accepts raw records or normalised frames and an explicit
`as_of` reference instant, and returns plain nested data.
"""

# From activity.py
from .activity import ActivityStatus, classify_volunteers, get_activity_status

# From aggregation.py
from .aggregation import (
    StatisticsEngine,
    calculate_statistics,
    get_children_by_location_chart,
    get_hours_by_school_chart,
    get_quick_stats,
)

# From comparison.py
from .comparison import calculate_change, compare_periods, get_comparison_presets

# From forecasting.py
from .forecasting import detect_anomalies, forecast_sessions

# From insights.py
from .insights import build_context, generate_insights, generate_recommendations

# From school_calendar.py
from .school_calendar import (
    format_school_year_period,
    get_current_holiday,
    get_current_school_year,
    get_next_holiday,
    get_semester,
)

# From volunteer_profile.py
from .volunteer_profile import (
    get_achievements,
    get_activity_trend,
    get_next_milestone,
    get_personal_stats,
    get_volunteer_activity_map,
    get_volunteer_sessions,
)

# From cached.py (for UI use)
from .cached import get_cached_comparison, get_cached_statistics

__all__ = [
    # Activity classification
    "ActivityStatus",
    "classify_volunteers",
    "get_activity_status",

    # Statistics bundle
    "StatisticsEngine",
    "calculate_statistics",
    "get_children_by_location_chart",
    "get_hours_by_school_chart",
    "get_quick_stats",

    # Comparison
    "calculate_change",
    "compare_periods",
    "get_comparison_presets",

    # Forecasting
    "detect_anomalies",
    "forecast_sessions",

    # Insights
    "build_context",
    "generate_insights",
    "generate_recommendations",

    # School calendar
    "format_school_year_period",
    "get_current_holiday",
    "get_current_school_year",
    "get_next_holiday",
    "get_semester",

    # Volunteer profiles
    "get_achievements",
    "get_activity_trend",
    "get_next_milestone",
    "get_personal_stats",
    "get_volunteer_activity_map",
    "get_volunteer_sessions",

    # Cached wrappers
    "get_cached_comparison",
    "get_cached_statistics",
]
