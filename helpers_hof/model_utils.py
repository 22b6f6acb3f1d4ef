"""
Survival model fitting and summaries.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

import numpy as np
import pandas as pd
from lifelines import CoxPHFitter, CoxTimeVaryingFitter, KaplanMeierFitter
from lifelines.exceptions import ConvergenceError
from lifelines.statistics import logrank_test

from helpers_hof.data_utils import convert_json_serializable

SURVIVAL_AT_AGES = (60, 70, 80, 90)


def fit_kaplan_meier(rows: pd.DataFrame, group_col: str = 'hof', entry_col: Optional[str] = None,
                     times: Sequence[float] = SURVIVAL_AT_AGES) -> Dict[str, Dict[str, Any]]:
    """Kaplan-Meier estimate per group; entry_col left-truncates each subject."""
    results = {}
    for group, frame in rows.groupby(group_col):
        kmf = KaplanMeierFitter()
        kmf.fit(frame['duration'], event_observed=frame['event'],
                entry=frame[entry_col] if entry_col else None,
                label=f"{group_col}={group}")
        at_times = kmf.survival_function_at_times(list(times))
        results[str(group)] = {
            'n': int(len(frame)),
            'events': int(frame['event'].sum()),
            'median_survival': float(kmf.median_survival_time_),
            'survival_at': {str(t): float(p) for t, p in zip(times, at_times.values)},
        }
    return results


def compare_groups_logrank(rows: pd.DataFrame, group_col: str = 'hof') -> Optional[Dict[str, float]]:
    """Two-group log-rank test; None unless exactly two groups are present."""
    groups = [frame for _, frame in rows.groupby(group_col)]
    if len(groups) != 2:
        return None
    a, b = groups
    result = logrank_test(a['duration'], b['duration'], event_observed_A=a['event'], event_observed_B=b['event'])
    return {'test_statistic': float(result.test_statistic), 'p_value': float(result.p_value)}


def _cox_summary(fitter) -> Dict[str, Dict[str, float]]:
    summary = fitter.summary
    return {
        str(name): {
            'coef': float(row['coef']),
            'hazard_ratio': float(np.exp(row['coef'])),
            'ci_lower': float(np.exp(row['coef lower 95%'])),
            'ci_upper': float(np.exp(row['coef upper 95%'])),
            'p': float(row['p']),
        }
        for name, row in summary.iterrows()
    }


def fit_cox(rows: pd.DataFrame, covariates: Iterable[str] = ('hof',), entry_col: Optional[str] = None,
            cluster_col: Optional[str] = None, penalizer: float = 0.0) -> Dict[str, Any]:
    """
    Cox proportional hazards on emitted survival rows.

    Rows with a missing covariate are dropped. cluster_col requests robust
    standard errors (e.g. matched_set when controls repeat across sets).
    """
    requested = list(covariates)
    # Covariates with no values or no variation cannot be estimated
    covariates = [c for c in requested if rows[c].dropna().nunique() > 1]
    cols = ['duration', 'event'] + covariates
    if entry_col:
        cols.append(entry_col)
    if cluster_col:
        cols.append(cluster_col)
    data = rows[cols].dropna(subset=covariates).copy()
    for col in covariates:
        data[col] = data[col].astype('float64')
    if not covariates or data.empty or data['event'].sum() == 0:
        raise ValueError(f"nothing to fit: {len(data)} rows, covariates {covariates}")

    cph = CoxPHFitter(penalizer=penalizer)
    cph.fit(data, duration_col='duration', event_col='event',
            entry_col=entry_col, cluster_col=cluster_col)
    return {
        'n': int(len(data)),
        'dropped_missing_covariates': int(len(rows) - len(data)),
        'unused_covariates': [c for c in requested if c not in covariates],
        'events': int(data['event'].sum()),
        'concordance': float(cph.concordance_index_),
        'covariates': _cox_summary(cph),
    }


def fit_time_varying_cox(long_rows: pd.DataFrame, penalizer: float = 0.0) -> Dict[str, Any]:
    """Cox model with Hall of Fame membership switching on at induction."""
    ctv = CoxTimeVaryingFitter(penalizer=penalizer)
    ctv.fit(long_rows[['subject_id', 'start', 'stop', 'event', 'hof']],
            id_col='subject_id', event_col='event', start_col='start', stop_col='stop')
    return {
        'n_subjects': int(long_rows['subject_id'].nunique()),
        'n_intervals': int(len(long_rows)),
        'events': int(long_rows['event'].sum()),
        'covariates': _cox_summary(ctv),
    }


def _attempt(name: str, fn, logger: logging.Logger, *args, **kwargs) -> Dict[str, Any]:
    try:
        result = fn(*args, **kwargs)
        logger.info(f"✓ Fitted {name}")
        return result
    except (ConvergenceError, np.linalg.LinAlgError, ValueError, ZeroDivisionError) as e:
        # A degenerate row set (one group, no events) is a result, not a pipeline failure
        logger.warning(f"⚠️ Could not fit {name}: {e}")
        return {'error': str(e)}


def fit_survival_models(row_sets: Dict[str, pd.DataFrame], covariates: Iterable[str],
                        logger: logging.Logger) -> Dict[str, Any]:
    """
    Fit every model the emitted row sets support.

    Args:
        row_sets: keyed by emitted set name; 'lifetime', 'career' and
            'retirement_age' are plain survival rows, 'cohort_pairs' and
            'cohort_controls' carry entry, 'time_varying' is long format.
    """
    covariates = list(covariates)
    report: Dict[str, Any] = {}

    for name in ('lifetime', 'career', 'retirement_age'):
        rows = row_sets.get(name)
        if rows is None or rows.empty:
            continue
        report[name] = {
            'kaplan_meier': _attempt(f"{name} Kaplan-Meier", fit_kaplan_meier, logger, rows),
            'logrank': compare_groups_logrank(rows),
            'cox': _attempt(f"{name} Cox", fit_cox, logger, rows,
                            covariates=['hof'] + [c for c in covariates if c in rows.columns],
                            penalizer=0.01),
        }

    for name, cluster in (('cohort_pairs', 'matched_set'), ('cohort_controls', None)):
        rows = row_sets.get(name)
        if rows is None or rows.empty:
            continue
        report[name] = {
            'kaplan_meier': _attempt(f"{name} Kaplan-Meier", fit_kaplan_meier, logger, rows,
                                     group_col='group', entry_col='entry'),
            'cox': _attempt(f"{name} Cox", fit_cox, logger, rows, covariates=['group'],
                            entry_col='entry', cluster_col=cluster),
        }

    long_rows = row_sets.get('time_varying')
    if long_rows is not None and not long_rows.empty:
        report['time_varying'] = _attempt("time-varying Cox", fit_time_varying_cox, logger, long_rows)

    return report


def save_model_report(report: Dict[str, Any], path, logger: Optional[logging.Logger] = None) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        json.dump(convert_json_serializable(report), f, indent=2)
    if logger:
        logger.info(f"✓ Saved model report to {path}")
    return str(path)
