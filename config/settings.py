# termini_insights/config/settings.py
# CENTRALIZED CONFIGURATION HUB

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class ActivityThresholds(BaseModel):
    total_hours_active: float = 10.0; recent_hours_active: float = 5.0
    total_hours_dormant: float = 5.0; recent_period_days: int = 60

class HolidayConfig(BaseModel):
    """A holiday window expressed relative to the school year's start year."""
    name: str
    name_short: str
    type: str
    start_month: int; start_day: int; start_year_offset: int = 0
    end_month: int; end_day: int; end_year_offset: int = 0

class SchoolCalendarConfig(BaseModel):
    start_month: int = 9; start_day: int = 22
    end_month: int = 6; end_day: int = 20
    summer_break_months: List[int] = [7, 8]
    expected_session_weekdays: List[int] = [1, 2, 3]  # Tue, Wed, Thu (Mon=0)
    holidays: List[HolidayConfig] = [
        HolidayConfig(name="Autumn holidays", name_short="Autumn", type="autumn",
                      start_month=10, start_day=31, end_month=11, end_day=3),
        HolidayConfig(name="Winter holidays", name_short="Winter", type="winter",
                      start_month=12, start_day=24, end_month=1, end_day=11, end_year_offset=1),
        HolidayConfig(name="Spring holidays", name_short="Spring", type="spring",
                      start_month=4, start_day=17, start_year_offset=1, end_month=4, end_day=25, end_year_offset=1),
        HolidayConfig(name="Summer holidays", name_short="Summer", type="summer",
                      start_month=6, start_day=21, start_year_offset=1, end_month=9, end_day=21, end_year_offset=1),
    ]

class AnalyticsConfig(BaseModel):
    activity: ActivityThresholds = ActivityThresholds()
    default_session_hours: float = 2.0
    top_volunteers_count: int = 15; leaderboard_size: int = 10
    trend_months: int = 12; stacked_location_limit: int = 8
    ranking_history_months: int = 6; ranking_history_size: int = 10
    retention_window_months: int = 6
    forecast_history_months: int = 6; forecast_horizon_months: int = 3
    forecast_trend_slope_threshold: float = 0.5
    forecast_confidence_base: int = 70; forecast_confidence_per_point: int = 5
    forecast_confidence_bounds: List[int] = [50, 95]
    anomaly_z_threshold: float = 2.0; anomaly_min_months: int = 3
    insight_session_change_threshold_pct: int = 10
    insight_active_high_pct: int = 70; insight_active_low_pct: int = 50
    insight_holiday_lookahead_days: int = 14
    recommendation_holiday_lookahead_days: int = 7
    recommendation_children_per_volunteer_ratio: float = 5.0
    recommendation_dormant_count: int = 5
    recommendation_school_share: float = 0.4
    comparison_sessions_change_pct: int = 20; comparison_children_change_pct: int = 15
    comparison_movers_count: int = 3
    hours_by_school_chart_limit: int = 6; children_by_location_chart_limit: int = 8
    milestone_hours: List[int] = [100, 250, 500, 1000, 2500, 5000, 10000]
    milestone_sessions: List[int] = [50, 100, 250, 500, 1000]
    milestone_children: List[int] = [500, 1000, 2500, 5000, 10000]
    milestone_near_fraction: float = 0.2
    volunteer_hour_goals: List[int] = [10, 20, 30, 40]

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='TERMINI_', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', extra='ignore')

    PROJECT_ROOT_DIR: Path = Path(__file__).resolve().parent.parent
    APP_NAME: str = "Termini Insights"; APP_VERSION: str = "1.0.0"
    ORGANIZATION_NAME: str = "Volunteer Coordination Office"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    VOLUNTEERS_PATH: Optional[Path] = Field(None, description="Set via TERMINI_VOLUNTEERS_PATH env var")
    SESSIONS_PATH: Optional[Path] = Field(None, description="Set via TERMINI_SESSIONS_PATH env var")
    SESSION_DATE_FORMAT_REGEX: str = r"(\d{1,2})\.(\d{1,2})\.(\d{4})\."
    UNKNOWN_LABEL: str = "Unknown"

    ANALYTICS: AnalyticsConfig = AnalyticsConfig()
    SCHOOL_CALENDAR: SchoolCalendarConfig = SchoolCalendarConfig()

    CACHE_TTL_SECONDS: int = 3600

    MONTH_NAMES: List[str] = ["January", "February", "March", "April", "May", "June",
                              "July", "August", "September", "October", "November", "December"]
    ACTIVITY_LABELS: Dict[str, str] = {"active": "Active", "dormant": "Dormant", "inactive": "Inactive"}
    ACTIVITY_DOT_COLORS: Dict[str, str] = {"active": "emerald", "dormant": "red", "inactive": "amber"}

    @computed_field
    @property
    def MONTH_NAMES_SHORT(self) -> List[str]: return [m[:3] for m in self.MONTH_NAMES]

try:
    settings = Settings()
    settings_logger.info(f"Settings loaded successfully. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
