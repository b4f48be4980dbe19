# termini_insights/data_processing/models.py
# TYPE-SAFE FILTER & PERIOD MODELS

import logging
from datetime import date, datetime
from typing import Any, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .helpers import naive_timestamp

logger = logging.getLogger(__name__)

DateLike = Union[datetime, date]


class Period(BaseModel):
    """A date range used for slicing sessions. A missing bound means unbounded (all time)."""
    model_config = ConfigDict(frozen=True)

    start: Optional[DateLike] = None
    end: Optional[DateLike] = None
    label: str = ""

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def start_ts(self) -> Optional[pd.Timestamp]:
        return naive_timestamp(self.start)

    @property
    def end_ts(self) -> Optional[pd.Timestamp]:
        return naive_timestamp(self.end)

    def to_dict(self) -> dict:
        return {
            'start': self.start.isoformat() if self.start is not None else None,
            'end': self.end.isoformat() if self.end is not None else None,
            'label': self.label,
        }


class DateRange(BaseModel):
    start: Optional[DateLike] = None
    end: Optional[DateLike] = None


class StatisticsFilters(BaseModel):
    """
    Optional, AND-combined filters for the statistics bundle. A date range is
    only honoured when both bounds are present; otherwise `year` applies.
    `schools` narrows the volunteer collection only.
    """
    date_range: Optional[DateRange] = None
    year: Optional[int] = None
    locations: List[str] = Field(default_factory=list)
    schools: List[str] = Field(default_factory=list)

    @property
    def has_date_range(self) -> bool:
        return self.date_range is not None and self.date_range.start is not None and self.date_range.end is not None


def coerce_period(value: Any, label: str = "") -> Period:
    """Accepts a Period, a mapping with start/end/label, or None (unbounded)."""
    if isinstance(value, Period):
        return value
    if value is None:
        return Period(label=label)
    if isinstance(value, dict):
        data = {'label': label, **value}
        return Period.model_validate(data)
    raise TypeError(f"Cannot interpret {type(value).__name__} as a Period.")


def coerce_filters(value: Any, source_context: str = "FilterCoercion") -> StatisticsFilters:
    """
    Accepts StatisticsFilters, a plain mapping (camelCase `dateRange` allowed) or None.

    A bare string for `locations`/`schools` is read as a single-item list.
    Fields that still fail validation are logged and dropped, so a bad filter
    widens the result instead of failing the whole bundle.
    """
    if isinstance(value, StatisticsFilters):
        return value
    if not value:
        return StatisticsFilters()
    data = dict(value)
    if 'dateRange' in data and 'date_range' not in data:
        data['date_range'] = data.pop('dateRange')
    data = {k: v for k, v in data.items() if v is not None}
    for key in ('locations', 'schools'):
        if isinstance(data.get(key), str):
            data[key] = [data[key]]
    try:
        return StatisticsFilters.model_validate(data)
    except ValidationError as e:
        bad_fields = {err['loc'][0] for err in e.errors() if err.get('loc')}
        logger.warning(f"({source_context}) Ignoring invalid filter fields {sorted(map(str, bad_fields))}: {e.error_count()} error(s).")
    cleaned = {k: v for k, v in data.items() if k not in bad_fields}
    try:
        return StatisticsFilters.model_validate(cleaned)
    except ValidationError:
        logger.warning(f"({source_context}) Filters could not be recovered; using no filters.")
        return StatisticsFilters()
