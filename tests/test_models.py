"""
Tests for the lifelines model wrappers.
"""
import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from helpers_hof.model_utils import (
    compare_groups_logrank,
    fit_cox,
    fit_kaplan_meier,
    fit_survival_models,
    fit_time_varying_cox,
    save_model_report,
)


@pytest.fixture
def survival_rows():
    """Sixty subjects; the hof group lives longer on average."""
    rng = np.random.RandomState(7)
    hof = np.tile([0, 1], 30)
    duration = rng.exponential(np.where(hof == 1, 80.0, 55.0)) + 1.0
    event = rng.binomial(1, 0.7, size=len(hof))
    event[:2] = 1
    return pd.DataFrame({
        'subject_id': [f"s{i:03d}" for i in range(len(hof))],
        'duration': duration,
        'event': event,
        'hof': hof,
        'bmi': rng.normal(25.0, 2.0, size=len(hof)),
    })


@pytest.fixture
def long_rows(survival_rows):
    """Time-varying rows: every hof subject switches at half its lifetime."""
    rows = []
    for rec in survival_rows.to_dict('records'):
        if rec['hof']:
            half = rec['duration'] / 2
            rows.append({'subject_id': rec['subject_id'], 'start': 0.0, 'stop': half, 'event': 0, 'hof': 0})
            rows.append({'subject_id': rec['subject_id'], 'start': half, 'stop': rec['duration'],
                         'event': rec['event'], 'hof': 1})
        else:
            rows.append({'subject_id': rec['subject_id'], 'start': 0.0, 'stop': rec['duration'],
                         'event': rec['event'], 'hof': 0})
    return pd.DataFrame(rows)


class TestKaplanMeier:

    def test_per_group_estimates(self, survival_rows):
        result = fit_kaplan_meier(survival_rows)
        assert set(result) == {'0', '1'}
        assert result['1']['n'] == 30
        for group in result.values():
            probabilities = list(group['survival_at'].values())
            assert all(0.0 <= p <= 1.0 for p in probabilities)
            assert probabilities == sorted(probabilities, reverse=True)

    def test_left_truncated(self, survival_rows):
        rows = survival_rows.assign(entry=survival_rows['duration'] * 0.25)
        result = fit_kaplan_meier(rows, entry_col='entry')
        assert result['0']['events'] == int(rows.loc[rows['hof'] == 0, 'event'].sum())


class TestLogRank:

    def test_two_groups(self, survival_rows):
        result = compare_groups_logrank(survival_rows)
        assert 0.0 <= result['p_value'] <= 1.0
        assert result['test_statistic'] >= 0.0

    def test_single_group(self, survival_rows):
        assert compare_groups_logrank(survival_rows[survival_rows['hof'] == 1]) is None


class TestCox:

    def test_hazard_ratio(self, survival_rows):
        result = fit_cox(survival_rows, covariates=['hof', 'bmi'])
        assert result['n'] == 60
        assert set(result['covariates']) == {'hof', 'bmi'}
        hof = result['covariates']['hof']
        assert hof['hazard_ratio'] == pytest.approx(np.exp(hof['coef']))
        assert hof['ci_lower'] <= hof['hazard_ratio'] <= hof['ci_upper']

    def test_missing_covariate_rows_dropped(self, survival_rows):
        rows = survival_rows.copy()
        rows.loc[:9, 'bmi'] = np.nan
        result = fit_cox(rows, covariates=['hof', 'bmi'])
        assert result['n'] == 50
        assert result['dropped_missing_covariates'] == 10

    def test_constant_covariate_is_unused(self, survival_rows):
        rows = survival_rows.assign(seasons=10)
        result = fit_cox(rows, covariates=['hof', 'seasons'])
        assert result['unused_covariates'] == ['seasons']
        assert set(result['covariates']) == {'hof'}

    def test_no_events(self, survival_rows):
        with pytest.raises(ValueError):
            fit_cox(survival_rows.assign(event=0))

    def test_time_varying(self, long_rows):
        result = fit_time_varying_cox(long_rows)
        assert result['n_subjects'] == 60
        assert result['n_intervals'] == 90
        assert set(result['covariates']) == {'hof'}


class TestFitSurvivalModels:

    def test_report_sections(self, survival_rows, long_rows, logger):
        cohort = survival_rows.rename(columns={'hof': 'group'}).assign(
            entry=survival_rows['duration'] * 0.25,
            matched_set=[f"t{i // 4:03d}" for i in range(len(survival_rows))],
        )
        report = fit_survival_models({
            'lifetime': survival_rows,
            'cohort_pairs': cohort,
            'time_varying': long_rows,
        }, covariates=['bmi', 'seasons'], logger=logger)

        assert set(report) == {'lifetime', 'cohort_pairs', 'time_varying'}
        assert 'hof' in report['lifetime']['cox']['covariates']
        assert report['lifetime']['logrank'] is not None
        assert 'error' not in report['time_varying']

    def test_degenerate_rows_do_not_raise(self, survival_rows, logger):
        rows = survival_rows.assign(hof=1)
        report = fit_survival_models({'career': rows}, covariates=[], logger=logger)
        assert report['career']['logrank'] is None
        assert 'error' in report['career']['cox']

    def test_save_report(self, tmp_path, survival_rows, logger):
        report = fit_survival_models({'lifetime': survival_rows}, covariates=['bmi'], logger=logger)
        path = save_model_report(report, tmp_path / "models" / "model_summary.json")
        saved = json.loads(Path(path).read_text())
        assert saved['lifetime']['kaplan_meier']['1']['n'] == 30
