# termini_insights/data_processing/loaders.py
# INGESTION BOUNDARY - NORMALISED VOLUNTEER & SESSION FRAMES

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, Field

from config import settings
from .helpers import DataPipeline, parse_session_date, robust_json_load

logger = logging.getLogger(__name__)

RecordsInput = Optional[Union[pd.DataFrame, Iterable[Dict[str, Any]]]]

# --- Pydantic Models for Type-Safe Source Configuration ---

class SourceConfig(BaseModel):
    """Defines how one raw collection is coalesced into its fixed schema."""
    path_setting: str
    rename_map: Dict[str, str] = Field(default_factory=dict)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    list_cols: List[str] = Field(default_factory=list)
    output_cols: List[str] = Field(default_factory=list)
    read_options: Dict[str, Any] = Field(default_factory=lambda: {'low_memory': False})

# --- Centralized Data Source Configuration ---

DATA_CONFIG: Dict[str, SourceConfig] = {
    'volunteers': SourceConfig(
        path_setting='VOLUNTEERS_PATH',
        rename_map={'location': 'locations'},
        defaults={'name': '', 'school': '', 'phone': '', 'hours': 0.0},
        list_cols=['locations'],
        output_cols=['name', 'school', 'grade', 'phone', 'hours', 'locations'],
    ),
    'sessions': SourceConfig(
        path_setting='SESSIONS_PATH',
        rename_map={'volunteers': 'volunteers_list'},
        defaults={'date': '', 'location': '', 'children_count': 0, 'volunteer_count': 0,
                  'hours': settings.ANALYTICS.default_session_hours},
        list_cols=['volunteers_list'],
        output_cols=['date', 'parsed_date', 'location', 'children_count', 'volunteer_count', 'volunteers_list', 'hours'],
    ),
}

# --- Normalisation ---

def _to_frame(records: RecordsInput) -> pd.DataFrame:
    if records is None:
        return pd.DataFrame()
    if isinstance(records, pd.DataFrame):
        return records
    try:
        return pd.DataFrame.from_records([dict(r) for r in records if r is not None])
    except (TypeError, ValueError) as e:
        logger.error(f"Could not interpret records as a table: {e}")
        return pd.DataFrame()


def _normalize_grade(value: Any) -> Optional[Union[int, str]]:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return int(value) if float(value).is_integer() else str(value)
    text = str(value).strip()
    if not text:
        return None
    return int(text) if text.isdigit() else text


def ensure_volunteers_frame(volunteers: RecordsInput) -> pd.DataFrame:
    """
    Coalesces a volunteer collection (records or a frame) into the fixed
    schema: name, school, grade, phone, hours (float >= 0), locations (list).
    Rows without a name are dropped. Idempotent on already-normalised frames.
    """
    config = DATA_CONFIG['volunteers']
    df = (DataPipeline(_to_frame(volunteers))
          .clean_column_names()
          .rename_columns(config.rename_map)
          .ensure_columns({**config.defaults, 'grade': None, 'locations': None})
          .standardize_missing_values(config.defaults)
          .replace_invalid({'hours': (lambda s: s < 0, 0.0)})
          .split_list_columns(config.list_cols)
          .drop_where(lambda d: d['name'] == '')
          .to_df())
    df['grade'] = pd.Series([_normalize_grade(g) for g in df['grade']], index=df.index, dtype=object)
    df['hours'] = df['hours'].astype(float)
    return df[config.output_cols].reset_index(drop=True)


def ensure_sessions_frame(sessions: RecordsInput) -> pd.DataFrame:
    """
    Coalesces a session collection into the fixed schema. Counts become
    non-negative ints (default 0), hours positive floats (default 2),
    volunteer names a list, and `parsed_date` a datetime64 column (NaT when
    the display date cannot be parsed). Never raises on bad values.
    """
    config = DATA_CONFIG['sessions']
    default_hours = settings.ANALYTICS.default_session_hours
    pipeline = (DataPipeline(_to_frame(sessions))
                .clean_column_names()
                .rename_columns(config.rename_map)
                .ensure_columns({**config.defaults, 'volunteers_list': None}))
    df = pipeline.to_df()

    # An explicit parsed date wins; otherwise the display string is parsed.
    if 'parsed_date' in df.columns:
        parsed = df['parsed_date'].map(parse_session_date)
        parsed = parsed.where(parsed.notna(), df['date'].map(parse_session_date))
    else:
        parsed = df['date'].map(parse_session_date)
    df['parsed_date'] = parsed

    df = (DataPipeline(df)
          .standardize_missing_values(config.defaults)
          .replace_invalid({
              'children_count': (lambda s: s < 0, 0),
              'volunteer_count': (lambda s: s < 0, 0),
              'hours': (lambda s: s <= 0, default_hours),
          })
          .split_list_columns(config.list_cols)
          .convert_date_columns(['parsed_date'])
          .to_df())
    df['children_count'] = df['children_count'].astype(int)
    df['volunteer_count'] = df['volunteer_count'].astype(int)
    df['hours'] = df['hours'].astype(float)
    return df[config.output_cols].reset_index(drop=True)

# --- File Loading Functions ---

def _resolve_path(config: SourceConfig, filepath_override: Optional[Union[str, Path]]) -> Optional[Path]:
    candidate = filepath_override or getattr(settings, config.path_setting, None)
    if not candidate:
        logger.error(f"No path configured. Set TERMINI_{config.path_setting} or pass a file path.")
        return None
    return Path(candidate).resolve()


def _read_records(config_key: str, filepath_override: Optional[Union[str, Path]]) -> RecordsInput:
    """Reads a JSON (list of records, or {"data": [...]}) or CSV export."""
    config = DATA_CONFIG[config_key]
    path_to_load = _resolve_path(config, filepath_override)
    if path_to_load is None or not path_to_load.is_file():
        logger.error(f"({config_key}) Data file not found at: {path_to_load}")
        return None

    if path_to_load.suffix.lower() == '.json':
        payload = robust_json_load(path_to_load)
        if isinstance(payload, dict):
            payload = payload.get('data') or payload.get(config_key)
        if not isinstance(payload, list):
            logger.error(f"({config_key}) Expected a list of records in {path_to_load}.")
            return None
        return payload

    try:
        return pd.read_csv(path_to_load, **config.read_options)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        logger.error(f"({config_key}) Could not read CSV from {path_to_load}: {e}", exc_info=True)
        return None


def load_volunteers(filepath_override: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Loads and normalises the volunteer export. Failures yield an empty frame."""
    df = ensure_volunteers_frame(_read_records('volunteers', filepath_override))
    logger.info(f"(volunteers) Successfully loaded and processed {len(df)} records.")
    return df


def load_sessions(filepath_override: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Loads and normalises the session export. Failures yield an empty frame."""
    df = ensure_sessions_frame(_read_records('sessions', filepath_override))
    logger.info(f"(sessions) Successfully loaded and processed {len(df)} records.")
    return df
