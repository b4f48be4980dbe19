# termini_insights/tests/conftest.py
# PYTEST FIXTURES

import sys
from pathlib import Path

# --- Path Setup for Module Imports ---
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pandas as pd
import pytest

from data_processing import ensure_sessions_frame, ensure_volunteers_frame

# --- Reference Instant ---

@pytest.fixture(scope="session")
def as_of() -> pd.Timestamp:
    """A school-term Wednesday, well away from any holiday window."""
    return pd.Timestamp("2025-03-12")

# --- Core Data Fixtures ---

@pytest.fixture(scope="session")
def volunteer_records() -> list:
    """Raw volunteer records as exported by the scheduling app (camelCase, loose types)."""
    return [
        {'name': 'Ana', 'school': 'Gymnasium North', 'grade': '3', 'phone': '091 111', 'hours': 12, 'location': 'Library, Youth Centre'},
        {'name': 'Ivan', 'school': 'Gymnasium North', 'grade': 2, 'phone': None, 'hours': 6, 'location': ['Library']},
        {'name': 'Marko', 'school': 'Tech School', 'grade': '4', 'hours': '3'},
        {'name': 'Petra', 'school': '', 'grade': None, 'hours': -4},
        {'name': 'Luka', 'school': 'Tech School', 'grade': 1, 'hours': 0},
    ]


@pytest.fixture(scope="session")
def session_records() -> list:
    """
    Raw session records around the reference instant. The 5.3. slot is a
    cancelled placeholder; Zoran attends but has no volunteer record.
    """
    return [
        {'date': '4.3.2025.', 'location': 'Library', 'childrenCount': 8, 'volunteerCount': 2, 'volunteers': ['Ana', 'Ivan'], 'hours': 2},
        {'date': '5.3.2025.', 'location': 'Youth Centre', 'childrenCount': 0, 'volunteerCount': 0, 'volunteers': []},
        {'date': '6.3.2025.', 'location': 'Youth Centre', 'childrenCount': 12, 'volunteerCount': 2, 'volunteers': 'Ana, Zoran', 'hours': 3},
        {'date': '11.2.2025.', 'location': 'Library', 'childrenCount': 6, 'volunteerCount': 1, 'volunteers': ['Marko'], 'hours': None},
        {'date': '12.2.2025.', 'location': 'Library', 'childrenCount': 4, 'volunteerCount': 2, 'volunteers': ['Ana', 'Marko']},
        {'date': '14.1.2025.', 'location': '', 'childrenCount': 5, 'volunteerCount': 1, 'volunteers': ['Luka'], 'hours': 2},
        {'date': '3.12.2024.', 'location': 'Library', 'childrenCount': 7, 'volunteerCount': 2, 'volunteers': ['Ivan', 'Luka'], 'hours': 2},
        {'date': 'not a date', 'location': 'Library', 'childrenCount': 3, 'volunteerCount': 1, 'volunteers': ['Ana'], 'hours': 2},
    ]


@pytest.fixture(scope="session")
def volunteers_df(volunteer_records) -> pd.DataFrame:
    return ensure_volunteers_frame(volunteer_records)


@pytest.fixture(scope="session")
def sessions_df(session_records) -> pd.DataFrame:
    return ensure_sessions_frame(session_records)


def make_sessions(counts_by_month: dict, location: str = 'Library') -> list:
    """One record per session: {'2025-01': 3} -> three sessions on the 7th of that month."""
    records = []
    for key, count in counts_by_month.items():
        year, month = (int(part) for part in key.split('-'))
        records += [
            {'date': f"7.{month}.{year}.", 'location': location, 'childrenCount': 4, 'volunteerCount': 1, 'volunteers': ['Ana']}
            for _ in range(count)
        ]
    return records


@pytest.fixture(scope="session")
def session_factory():
    return make_sessions
