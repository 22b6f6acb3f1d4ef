"""
Common imports and utilities for all pipeline phases.
"""

import json
import platform
from datetime import datetime

import pandas as pd

from helpers_hof import constants
from helpers_hof.cohort_utils import MatchedCohort
from helpers_hof.io_utils import SourceLoadError

# Windows emoji compatibility
IS_WINDOWS = platform.system() == 'Windows'
SYMBOLS = {
    'arrow': '->' if IS_WINDOWS else '→',
    'success': '[PASS]' if IS_WINDOWS else '✅',
    'fail': '[FAIL]' if IS_WINDOWS else '❌',
    'info': '[INFO]' if IS_WINDOWS else '📊',
    'check': '[CHECK]' if IS_WINDOWS else '🔍',
    'skip': '[SKIP]' if IS_WINDOWS else '⏭️',
}

# Emitted row sets, in the order phase 4 writes them
ROW_SETS = [
    constants.DURATION_LIFETIME,
    constants.DURATION_CAREER,
    constants.DURATION_RETIREMENT_AGE,
    'cohort_pairs',
    'cohort_controls',
    'time_varying',
]


def _read_output(path, what: str) -> pd.DataFrame:
    if not path.exists():
        raise SourceLoadError(f"{what} not found at {path}; run the earlier phases first")
    return pd.read_parquet(path)


def ensure_records(context) -> pd.DataFrame:
    """Normalized records from the context, or from phase 1 output when resuming."""
    if context.get("records") is None:
        context["records"] = _read_output(context["paths"]["records"], "Normalized records")
        context["logger"].info(f"{SYMBOLS['arrow']} Reloaded {len(context['records']):,} normalized records")
    return context["records"]


def ensure_observations(context) -> pd.DataFrame:
    if context.get("observations") is None:
        context["observations"] = _read_output(context["paths"]["observations"], "Survival observations")
        context["logger"].info(f"{SYMBOLS['arrow']} Reloaded {len(context['observations']):,} observations")
    return context["observations"]


def ensure_cohort(context) -> MatchedCohort:
    if context.get("cohort") is None:
        paths = context["paths"]
        context["cohort"] = MatchedCohort.from_frames(
            _read_output(paths["pairs"], "Matched pairs"),
            _read_output(paths["controls"], "Matched controls"),
            _read_output(paths["treatments"], "Matched treatments"),
        )
        context["logger"].info(f"{SYMBOLS['arrow']} Reloaded matched cohort {context['cohort'].summary()}")
    return context["cohort"]


def ensure_row_sets(context):
    if context.get("row_sets") is None:
        rows_dir = context["paths"]["rows_dir"]
        context["row_sets"] = {
            name: pd.read_csv(rows_dir / f"{name}.csv")
            for name in ROW_SETS
            if (rows_dir / f"{name}.csv").exists()
        }
        if not context["row_sets"]:
            raise SourceLoadError(f"No survival rows found under {rows_dir}; run phase 4 first")
    return context["row_sets"]


def write_json(payload, path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str), encoding='utf-8')


def step_metadata(**metadata):
    return {**metadata, 'timestamp': datetime.now().isoformat()}
