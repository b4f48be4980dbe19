# termini_insights/data_processing/helpers.py
# FLUENT CLEANING PIPELINE & SHARED UTILITIES

"""
A collection of robust utility functions and a fluent DataPipeline class used
at the ingestion boundary to turn loosely-typed volunteer and session records
into fully-populated, analytics-ready DataFrames.
"""
import hashlib
import json
import logging
import math
import re
from collections import Counter
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, Union

import numpy as np
import pandas as pd

from config import settings

logger = logging.getLogger(__name__)

# --- Standalone Utility Functions ---

NA_REGEX_PATTERN = re.compile(
    r'(?i)^\s*(nan|none|n/a|#n/a|np\.nan|nat|<na>|null|nil|na|undefined|unknown|-|)\s*$'
)
SESSION_DATE_PATTERN = re.compile(settings.SESSION_DATE_FORMAT_REGEX)
_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


def convert_to_numeric(data_input: Any, default_value: Any = np.nan, target_type: Optional[Type] = None) -> Any:
    """
    Robustly converts various inputs to a numeric pandas Series or scalar,
    handling common "Not Available" string representations.
    """
    is_series = isinstance(data_input, pd.Series)
    series = data_input if is_series else pd.Series([data_input], dtype=object)

    if pd.api.types.is_object_dtype(series.dtype):
        series = series.replace(NA_REGEX_PATTERN, np.nan, regex=True)

    numeric_series = pd.to_numeric(series, errors='coerce')
    if not pd.isna(default_value):
        numeric_series = numeric_series.fillna(default_value)

    if target_type is int and pd.api.types.is_numeric_dtype(numeric_series.dtype):
        numeric_series = numeric_series.astype(pd.Int64Dtype() if numeric_series.isnull().any() else int)
    elif target_type is float:
        numeric_series = numeric_series.astype(float)

    return numeric_series if is_series else (numeric_series.iloc[0] if not numeric_series.empty else default_value)


def round_half_up(value: Any, ndigits: int = 0) -> Union[int, float]:
    """Rounds halves away from negative infinity, matching dashboard display rounding."""
    if value is None or pd.isna(value):
        return 0 if ndigits == 0 else 0.0
    factor = 10 ** ndigits
    rounded = math.floor(float(value) * factor + 0.5) / factor
    return int(rounded) if ndigits == 0 else float(rounded)


def naive_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Timestamp with any timezone dropped (wall time kept); None passes through."""
    if value is None:
        return None
    ts = pd.Timestamp(value)
    return ts.tz_localize(None) if ts.tzinfo is not None else ts


def resolve_as_of(as_of: Optional[Union[date, datetime, str, pd.Timestamp]] = None) -> pd.Timestamp:
    """
    Resolves the reference instant for window-based analytics. Engines receive
    it explicitly; the wall clock is only read when a caller passes nothing.
    """
    if as_of is None:
        return pd.Timestamp.now()
    return naive_timestamp(as_of)


def parse_session_date(value: Any) -> pd.Timestamp:
    """
    Parses a session date into a naive, day-precision Timestamp.

    Accepts native dates/datetimes, the source's `d.m.yyyy.` display strings
    and ISO 8601 strings. Anything else (a `d.m.yyyy` string without the
    trailing dot, impossible calendar dates such as 31.2.2025.) is treated as
    missing and returns NaT.
    """
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return pd.NaT
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return naive_timestamp(value).normalize()
    text = str(value).strip()
    match = SESSION_DATE_PATTERN.search(text)
    try:
        if match:
            day, month, year = (int(part) for part in match.groups())
            return pd.Timestamp(year=year, month=month, day=day)
        ts = pd.to_datetime(text, format='ISO8601', errors='coerce')
    except (ValueError, OverflowError):
        return pd.NaT
    if pd.isna(ts):
        return pd.NaT
    return naive_timestamp(ts).normalize()


def split_list_value(value: Any, sep: str = ',') -> List[str]:
    """Normalises a comma-separated string or any iterable of names into a clean list."""
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[Any] = value.split(sep)
    elif isinstance(value, (list, tuple, set, np.ndarray, pd.Series)):
        items = value
    else:
        return [] if pd.isna(value) else [str(value).strip()] if str(value).strip() else []
    return [str(item).strip() for item in items if item is not None and not (isinstance(item, float) and math.isnan(item)) and str(item).strip()]


def robust_json_load(file_path: Union[str, Path]) -> Optional[Union[Dict, List]]:
    """Loads JSON data from a file with robust error handling and UTF-8 encoding."""
    path_obj = Path(file_path)
    if not path_obj.is_file():
        logger.error(f"JSON load failed: File not found at {path_obj.resolve()}")
        return None
    try:
        with path_obj.open('r', encoding='utf-8') as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(f"Error decoding JSON from {path_obj.resolve()}: {e}")
        return None
    except OSError as e:
        logger.error(f"An unexpected error occurred while reading {path_obj.resolve()}: {e}", exc_info=True)
        return None


def hash_dataframe(df: Optional[pd.DataFrame]) -> Optional[str]:
    """Creates a consistent SHA256 hash for a DataFrame, suitable for caching."""
    if df is None:
        return None
    if not isinstance(df, pd.DataFrame):
        logger.warning(f"hash_dataframe expected a DataFrame, got {type(df)}. Hashing string representation.")
        return hashlib.sha256(str(df).encode('utf-8')).hexdigest()
    if df.empty:
        col_string = '_'.join(sorted(map(str, df.columns)))
        return hashlib.sha256(f"empty_df:{col_string}".encode()).hexdigest()
    try:
        df_sorted = df.reindex(sorted(df.columns), axis=1)
        # List-valued columns (volunteers_list, locations) are unhashable as-is.
        for col in df_sorted.columns:
            if pd.api.types.is_object_dtype(df_sorted[col].dtype):
                df_sorted[col] = df_sorted[col].map(repr)
        return hashlib.sha256(pd.util.hash_pandas_object(df_sorted, index=True).values).hexdigest()
    except (TypeError, ValueError) as e:
        logger.warning(f"Standard DataFrame hashing failed: {e}. Falling back to a less precise hash.")
        summary = str(df.head(2).to_dict()) + str(df.shape) + str(df.columns.tolist())
        return hashlib.sha256(summary.encode('utf-8')).hexdigest()


class DataPipeline:
    """
    A fluent interface for applying a sequence of data processing operations.

    Usage:
        sessions_df = (DataPipeline(raw_df)
                       .clean_column_names()
                       .ensure_columns({'children_count': 0})
                       .standardize_missing_values({'children_count': 0, 'location': ''})
                       .convert_date_columns(['parsed_date'], parser=parse_session_date)
                       .to_df())
    """
    def __init__(self, df: pd.DataFrame):
        if not isinstance(df, pd.DataFrame):
            raise TypeError("DataPipeline must be initialized with a pandas DataFrame.")
        self.df = df.copy()

    def to_df(self) -> pd.DataFrame:
        """Returns the processed DataFrame."""
        return self.df

    def clean_column_names(self) -> 'DataPipeline':
        """
        Converts column names to snake_case (camelCase keys from the data source
        become underscore-separated), strips punctuation and de-duplicates.
        """
        if len(self.df.columns) == 0:
            return self

        new_cols = (pd.Index(self.df.columns).astype(str)
                    .str.replace(_CAMEL_BOUNDARY, '_', regex=True).str.lower()
                    .str.replace(r'[^0-9a-zA-Z_]+', '_', regex=True)
                    .str.replace(r'__+', '_', regex=True).str.strip('_'))
        new_cols = [f"unnamed_col_{i}" if not name else name for i, name in enumerate(new_cols)]

        counts = Counter(new_cols)
        if max(counts.values()) > 1:
            seen_counts: Counter = Counter()
            final_cols = []
            for name in new_cols:
                if counts[name] > 1:
                    seen_counts[name] += 1
                    final_cols.append(f"{name}_{seen_counts[name]-1}")
                else:
                    final_cols.append(name)
            self.df.columns = final_cols
        else:
            self.df.columns = new_cols
        return self

    def rename_columns(self, rename_map: Dict[str, str]) -> 'DataPipeline':
        """Renames source columns, skipping targets that already exist."""
        applicable = {src: dst for src, dst in rename_map.items()
                      if src in self.df.columns and dst not in self.df.columns}
        if applicable:
            self.df = self.df.rename(columns=applicable)
        return self

    def ensure_columns(self, defaults: Dict[str, Any]) -> 'DataPipeline':
        """Adds any missing schema columns, filled with their neutral default."""
        for col, default in defaults.items():
            if col not in self.df.columns:
                self.df[col] = pd.Series([default] * len(self.df), index=self.df.index, dtype=object)
        return self

    def standardize_missing_values(self, default_values: Dict[str, Any]) -> 'DataPipeline':
        """
        Standardizes various "Not Available" formats to np.nan and then fills
        with provided defaults, inferring type from the default value.
        """
        if not default_values:
            return self

        for col, default in default_values.items():
            if col in self.df.columns:
                if isinstance(default, (int, float, np.number)):
                    target_type = int if isinstance(default, int) else float
                    self.df[col] = convert_to_numeric(self.df[col].astype(object), default_value=default, target_type=target_type)
                else:
                    series = self.df[col].astype(object).replace(NA_REGEX_PATTERN, np.nan, regex=True)
                    self.df[col] = series.fillna(str(default)).astype(str).str.strip()
        return self

    def replace_invalid(self, rules: Dict[str, Tuple[Callable[[pd.Series], pd.Series], Any]]) -> 'DataPipeline':
        """Replaces values failing a column predicate (e.g. negative counts) with the default."""
        for col, (is_invalid, default) in rules.items():
            if col in self.df.columns and not self.df.empty:
                mask = is_invalid(self.df[col])
                if mask.any():
                    self.df.loc[mask, col] = default
        return self

    def split_list_columns(self, list_columns: List[str], sep: str = ',') -> 'DataPipeline':
        """Turns comma-separated strings (or any iterable) into clean Python lists."""
        for col in list_columns:
            if col in self.df.columns:
                self.df[col] = pd.Series([split_list_value(v, sep) for v in self.df[col]], index=self.df.index, dtype=object)
        return self

    def convert_date_columns(self, date_columns: List[str], parser: Optional[Callable[[Any], pd.Timestamp]] = None, errors: str = 'coerce') -> 'DataPipeline':
        """Converts specified columns to datetime objects, coercing errors to NaT."""
        if not date_columns:
            return self

        for col in date_columns:
            if col in self.df.columns:
                values = self.df[col].map(parser) if parser is not None else self.df[col]
                self.df[col] = pd.to_datetime(values, errors=errors)
        return self

    def drop_where(self, predicate: Callable[[pd.DataFrame], pd.Series]) -> 'DataPipeline':
        """Drops rows matching the predicate."""
        if not self.df.empty:
            self.df = self.df.loc[~predicate(self.df)]
        return self
