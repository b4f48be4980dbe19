# termini_insights/analytics/insights.py
# RULE-BASED INSIGHT & RECOMMENDATION ENGINE

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from config import settings
from data_processing.bucketing import month_start
from data_processing.helpers import round_half_up
from .activity import ActivityStatus, classify_volunteers
from .leaderboards import get_top_school
from .school_calendar import get_current_holiday, get_next_holiday, holidays_overlapping

logger = logging.getLogger(__name__)

# --- Enums and Dataclasses for Robustness and Clarity ---
class InsightType(Enum):
    POSITIVE = "positive"
    WARNING = "warning"
    INFO = "info"

class Priority(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

@dataclass(frozen=True)
class InsightContext:
    """Everything a rule may look at; computed once per bundle."""
    as_of: pd.Timestamp
    volunteers: pd.DataFrame
    filtered_sessions: pd.DataFrame
    statuses: pd.Series
    current_holiday: Optional[Dict[str, Any]] = None
    next_holiday: Optional[Dict[str, Any]] = None

    @property
    def days_until_next_holiday(self) -> Optional[int]:
        if self.next_holiday is None:
            return None
        return (pd.Timestamp(self.next_holiday['start']) - self.as_of).days

@dataclass(frozen=True)
class Rule:
    name: str
    evaluate: Callable[[InsightContext], Optional[Dict[str, Any]]]

@dataclass
class RuleEngine:
    """Evaluates independent rules; a failing rule is logged and skipped, never fatal."""
    context: InsightContext
    rules: List[Rule] = field(default_factory=list)

    def run(self) -> List[Dict[str, Any]]:
        results = []
        for rule in self.rules:
            try:
                entry = rule.evaluate(self.context)
            except Exception as e:
                logger.error(f"Rule '{rule.name}' failed to evaluate: {e}", exc_info=True)
                continue
            if entry is not None:
                results.append({**entry, 'rule': rule.name})
        return results


def build_context(volunteers_df: pd.DataFrame, filtered_sessions_df: pd.DataFrame, active_sessions_df: pd.DataFrame,
                  as_of: pd.Timestamp, statuses: Optional[pd.Series] = None) -> InsightContext:
    if statuses is None:
        statuses = classify_volunteers(volunteers_df, active_sessions_df, as_of)
    return InsightContext(
        as_of=as_of,
        volunteers=volunteers_df,
        filtered_sessions=filtered_sessions_df,
        statuses=statuses,
        current_holiday=get_current_holiday(as_of),
        next_holiday=get_next_holiday(as_of),
    )


def _insight(kind: InsightType, title: str, description: str) -> Dict[str, Any]:
    return {'type': kind.value, 'title': title, 'description': description}


def _recommendation(priority: Priority, title: str, description: str, action: str) -> Dict[str, Any]:
    return {'priority': priority.value, 'title': title, 'description': description, 'action': action}


def _children_by_location(sessions_df: pd.DataFrame) -> pd.Series:
    located = sessions_df.loc[sessions_df['location'] != '']
    return located.groupby('location', sort=False)['children_count'].sum()

# --- Insight Rules ---

def _current_holiday_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    holiday = ctx.current_holiday
    if not holiday:
        return None
    return _insight(InsightType.INFO, holiday['name'],
                    f"Volunteering is paused. Sessions resume after {holiday['end'].isoformat()}.")


def _upcoming_holiday_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    days = ctx.days_until_next_holiday
    if ctx.current_holiday or days is None or not 0 < days <= settings.ANALYTICS.insight_holiday_lookahead_days:
        return None
    return _insight(InsightType.INFO, f"{ctx.next_holiday['name']} coming up",
                    f"{days} days until the holidays begin.")


def _session_trend_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    """Month-over-month session change; drops are not flagged when the previous month had holidays."""
    if ctx.current_holiday:
        return None
    this_start = month_start(ctx.as_of)
    last_start = this_start - pd.DateOffset(months=1)
    dates = ctx.filtered_sessions['parsed_date']
    this_month = int(((dates >= this_start) & (dates < this_start + pd.DateOffset(months=1))).sum())
    last_month = int(((dates >= last_start) & (dates < this_start)).sum())
    if last_month == 0 or this_month == last_month:
        return None

    change = round_half_up(abs(this_month - last_month) / last_month * 100)
    if change < settings.ANALYTICS.insight_session_change_threshold_pct:
        return None
    if this_month > last_month:
        return _insight(InsightType.POSITIVE, "Activity is growing",
                        f"Sessions are up {change}% compared with last month.")
    last_end = this_start - pd.Timedelta(days=1)
    if holidays_overlapping(last_start, last_end):
        return None
    return _insight(InsightType.WARNING, "Activity is dropping",
                    f"Sessions are down {change}% compared with last month.")


def _top_location_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    children = _children_by_location(ctx.filtered_sessions)
    if children.empty:
        return None
    top = children.idxmax()
    return _insight(InsightType.INFO, "Most popular location",
                    f"{top} has the most children ({int(children[top])} in total).")


def _active_share_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    if ctx.volunteers.empty:
        return None
    cfg = settings.ANALYTICS
    active_pct = round_half_up((ctx.statuses == ActivityStatus.ACTIVE.value).sum() / len(ctx.volunteers) * 100)
    if active_pct >= cfg.insight_active_high_pct:
        return _insight(InsightType.POSITIVE, "High volunteer activity",
                        f"{active_pct}% of volunteers are active.")
    if active_pct < cfg.insight_active_low_pct:
        return _insight(InsightType.WARNING, "Low volunteer activity",
                        f"Only {active_pct}% of volunteers are active. Consider reaching out to inactive volunteers.")
    return None


def _top_volunteer_insight(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    if ctx.volunteers.empty:
        return None
    top = ctx.volunteers.loc[ctx.volunteers['hours'].idxmax()]
    return _insight(InsightType.INFO, "Top volunteer",
                    f"{top['name']} leads with {top['hours']:g} volunteer hours.")


INSIGHT_RULES = [
    Rule("current_holiday", _current_holiday_insight),
    Rule("upcoming_holiday", _upcoming_holiday_insight),
    Rule("session_trend", _session_trend_insight),
    Rule("top_location", _top_location_insight),
    Rule("active_share", _active_share_insight),
    Rule("top_volunteer", _top_volunteer_insight),
]

# --- Recommendation Rules ---

def _holiday_recommendation(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    if ctx.current_holiday:
        return _recommendation(Priority.INFO, "Prepare for the restart",
                               f"Use the break to plan the schedule after {ctx.current_holiday['end'].isoformat()}.",
                               "Plan schedule")
    days = ctx.days_until_next_holiday
    if days is not None and 0 < days <= settings.ANALYTICS.recommendation_holiday_lookahead_days:
        return _recommendation(Priority.MEDIUM, "Holidays are approaching",
                               f"{ctx.next_holiday['name']} start in {days} days. Let volunteers know and agree on a schedule.",
                               "Notify volunteers")
    return None


def _high_demand_recommendation(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    sessions = ctx.filtered_sessions.loc[ctx.filtered_sessions['location'] != '']
    if sessions.empty:
        return None
    totals = sessions.groupby('location', sort=False)[['children_count', 'volunteer_count']].sum()
    ratio = totals['children_count'] / totals['volunteer_count'].where(totals['volunteer_count'] != 0, 1)
    high_demand = ratio[ratio > settings.ANALYTICS.recommendation_children_per_volunteer_ratio]
    if high_demand.empty:
        return None
    return _recommendation(Priority.HIGH, "More volunteers needed",
                           f"{high_demand.index[0]} has a high number of children per volunteer. "
                           f"Consider adding sessions or volunteers.",
                           "Add volunteers")


def _dormant_recommendation(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    dormant = int((ctx.statuses == ActivityStatus.DORMANT.value).sum())
    if dormant <= settings.ANALYTICS.recommendation_dormant_count:
        return None
    return _recommendation(Priority.MEDIUM, "Reactivate volunteers",
                           f"{dormant} volunteers have not been active for a while. Get in touch with them.",
                           "Review list")


def _school_diversity_recommendation(ctx: InsightContext) -> Optional[Dict[str, Any]]:
    top = get_top_school(ctx.volunteers)
    total = len(ctx.volunteers)
    if top is None or top['count'] <= total * settings.ANALYTICS.recommendation_school_share:
        return None
    share = round_half_up(top['count'] / total * 100)
    return _recommendation(Priority.LOW, "Diversify recruitment",
                           f"{share}% of volunteers come from {top['school']}. Consider recruiting from other schools.",
                           "Widen network")


RECOMMENDATION_RULES = [
    Rule("holiday_schedule", _holiday_recommendation),
    Rule("high_demand_location", _high_demand_recommendation),
    Rule("dormant_volunteers", _dormant_recommendation),
    Rule("school_diversity", _school_diversity_recommendation),
]

# --- Public Entry Points ---

def generate_insights(context: InsightContext) -> List[Dict[str, Any]]:
    return RuleEngine(context, INSIGHT_RULES).run()


def generate_recommendations(context: InsightContext) -> List[Dict[str, Any]]:
    return RuleEngine(context, RECOMMENDATION_RULES).run()
