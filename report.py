# termini_insights/report.py
# COMMAND-LINE REPORT ENTRY POINT

"""
Loads volunteer and session exports (JSON or CSV) and prints the statistics
bundle, or a period comparison, as JSON.

    python report.py --volunteers data/volunteers.json --sessions data/sessions.json
    python report.py --compare month --as-of 2025-05-15
"""
import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

_project_root = Path(__file__).resolve().parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pandas as pd

from config import settings
from data_processing import load_sessions, load_volunteers, resolve_as_of
from analytics.aggregation import calculate_statistics
from analytics.comparison import compare_periods, get_comparison_presets

# --- Global Configuration ---
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format=settings.LOG_FORMAT,
    datefmt=settings.LOG_DATE_FORMAT,
    handlers=[logging.StreamHandler(sys.stderr)],
    force=True
)
logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if hasattr(value, 'item'):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{settings.APP_NAME} v{settings.APP_VERSION} - volunteer statistics report")
    parser.add_argument("--volunteers", type=Path, help="Volunteer export (defaults to TERMINI_VOLUNTEERS_PATH).")
    parser.add_argument("--sessions", type=Path, help="Session export (defaults to TERMINI_SESSIONS_PATH).")
    parser.add_argument("--as-of", help="Reference date (YYYY-MM-DD) for all trailing windows. Defaults to now.")
    parser.add_argument("--year", type=int, help="Only include sessions from this calendar year.")
    parser.add_argument("--location", action="append", dest="locations", default=[], help="Location allow-list (repeatable).")
    parser.add_argument("--school", action="append", dest="schools", default=[], help="School allow-list (repeatable).")
    parser.add_argument("--compare", choices=["week", "month", "quarter", "year"],
                        help="Print a period comparison against the previous period instead of the full bundle.")
    parser.add_argument("--indent", type=int, default=2, help="JSON indentation.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    as_of = resolve_as_of(args.as_of)

    volunteers = load_volunteers(args.volunteers)
    sessions = load_sessions(args.sessions)
    if volunteers.empty and sessions.empty:
        logger.error("No volunteer or session data could be loaded. Nothing to report.")
        return 1

    if args.compare:
        preset = get_comparison_presets(as_of)[args.compare]
        result = compare_periods(volunteers, sessions, preset['period1'], preset['period2'], source_context="report")
    else:
        filters = {'year': args.year, 'locations': args.locations, 'schools': args.schools}
        result = calculate_statistics(volunteers, sessions, filters, as_of, source_context="report")

    json.dump(result, sys.stdout, indent=args.indent, ensure_ascii=False, default=_json_default)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
