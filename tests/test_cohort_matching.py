"""
Tests for age-matched control cohorts.
"""
from dataclasses import replace

import pandas as pd
import pytest

from helpers_hof.cohort_utils import (
    CohortIntegrityError,
    MatchedCohort,
    alive_at_sql,
    build_matched_cohort,
)
from helpers_hof.duckdb_utils import get_duckdb_connection


@pytest.fixture
def conn(logger):
    connection = get_duckdb_connection(logger=logger)
    yield connection
    connection.close()


@pytest.fixture
def cohort_rows():
    """
    Two 1904 inductees (1967, 1970) sharing a pool of 1904 controls, one
    1950 inductee with a living control and one 1960 inductee with none.
    """
    return [
        {'subject_id': 'trta0101', 'birth_date': '1904-03-01', 'death_date': '1990-05-01',
         'hall_of_fame': 'In', 'induction_year': '1967'},
        {'subject_id': 'trtb0101', 'birth_date': '1904-07-01', 'death_date': '1995-01-01',
         'hall_of_fame': 'In', 'induction_year': '1970'},
        {'subject_id': 'ctlc0101', 'birth_date': '1904-01-15', 'death_date': '1985-06-01'},
        {'subject_id': 'ctlf0101', 'birth_date': '1904-11-11', 'death_date': '1968-02-02'},
        {'subject_id': 'ctld0101', 'birth_date': '1904-05-05', 'death_date': '1967-08-08'},
        {'subject_id': 'ctle0101', 'birth_date': '1904-02-02', 'death_date': '1966-12-12'},
        {'subject_id': 'ctlu0101', 'birth_date': '1904-09-09', 'cemetery': 'Calvary'},
        {'subject_id': 'trtc0101', 'birth_date': '1950-04-04', 'hall_of_fame': 'In', 'induction_year': '2000'},
        {'subject_id': 'ctlg0101', 'birth_date': '1950-08-08'},
        {'subject_id': 'ctlh0101', 'birth_date': '1950-09-09', 'death_city': 'Reno'},
        {'subject_id': 'trtd0101', 'birth_date': '1960-01-01', 'hall_of_fame': 'In', 'induction_year': '2015'},
    ]


@pytest.fixture
def cohort(conn, pipeline_frames, cohort_rows, config):
    records, observations = pipeline_frames(cohort_rows)
    return build_matched_cohort(conn, records, observations, config)


def pair_set(cohort):
    return set(map(tuple, cohort.pair_view()[['treatment_id', 'control_id']].values.tolist()))


class TestMatching:
    """Same birth year, alive at the treatment's index year, never a treatment"""

    def test_pairs(self, cohort):
        assert pair_set(cohort) == {
            ('trta0101', 'ctlc0101'),
            ('trta0101', 'ctlf0101'),
            ('trtb0101', 'ctlc0101'),
            ('trtc0101', 'ctlg0101'),
        }

    def test_shared_control_appears_once_per_treatment(self, cohort):
        pairs = cohort.pair_view()
        assert (pairs['control_id'] == 'ctlc0101').sum() == 2
        assert not pairs.duplicated(subset=['treatment_id', 'control_id']).any()

    def test_control_view_counts_each_control_once(self, cohort):
        controls = cohort.control_view().set_index('control_id')
        assert controls.index.is_unique
        assert controls.loc['ctlc0101', 'n_matched_treatments'] == 2
        assert controls.loc['ctlc0101', 'first_index_year'] == 1967
        assert controls.loc['ctlf0101', 'n_matched_treatments'] == 1
        assert controls.loc['ctlg0101', 'first_index_year'] == 2000

    def test_treatment_view(self, cohort):
        treatments = cohort.treatment_view().set_index('treatment_id')
        assert treatments['n_controls'].to_dict() == {
            'trta0101': 2, 'trtb0101': 1, 'trtc0101': 1, 'trtd0101': 0,
        }
        assert treatments.loc['trtb0101', 'index_year'] == 1970

    def test_summary(self, cohort):
        summary = cohort.summary()
        assert summary['n_treatments'] == 4
        assert summary['n_treatments_with_controls'] == 3
        assert summary['n_pairs'] == 4
        assert summary['n_distinct_controls'] == 3
        assert summary['max_control_reuse'] == 2
        assert summary['mean_controls_per_treatment'] == 1.0

    def test_treatments_are_never_controls(self, cohort):
        treatments = set(cohort.treatment_view()['treatment_id'])
        assert not treatments & set(cohort.pair_view()['control_id'])

    def test_same_birth_year(self, cohort):
        pairs = cohort.pair_view()
        assert (pairs['birth_year'] == pairs['treatment_id'].map({
            'trta0101': 1904, 'trtb0101': 1904, 'trtc0101': 1950,
        })).all()


class TestAliveAtIndex:
    """Boundary years and unknown deaths"""

    def test_death_in_index_year_is_excluded_by_default(self, cohort):
        controls = set(cohort.pair_view()['control_id'])
        assert 'ctld0101' not in controls
        assert 'ctle0101' not in controls

    def test_inclusive_rule_admits_death_in_index_year(self, conn, pipeline_frames, cohort_rows, config):
        records, observations = pipeline_frames(cohort_rows)
        inclusive = build_matched_cohort(conn, records, observations,
                                         replace(config, alive_at_index_strict=False))
        pairs = pair_set(inclusive)
        assert ('trta0101', 'ctld0101') in pairs
        assert ('trtb0101', 'ctld0101') not in pairs
        assert ('trta0101', 'ctle0101') not in pairs
        assert len(pairs) == 5

    def test_unknown_death_is_never_alive(self, cohort):
        controls = set(cohort.pair_view()['control_id'])
        assert 'ctlu0101' not in controls
        assert 'ctlh0101' not in controls

    def test_inductee_who_died_before_induction_is_not_a_treatment(self, conn, pipeline_frames, config):
        records, observations = pipeline_frames([
            {'subject_id': 'post0101', 'birth_date': '1904-01-01', 'death_date': '1960-01-01',
             'hall_of_fame': 'In', 'induction_year': '1975'},
            {'subject_id': 'ctlc0101', 'birth_date': '1904-01-15', 'death_date': '1985-06-01'},
        ])
        cohort = build_matched_cohort(conn, records, observations, config)
        assert cohort.treatment_view().empty
        assert cohort.pair_view().empty
        assert cohort.summary()['max_control_reuse'] == 0

    def test_sql_predicate_operator(self):
        assert "c.death_year > t.index_year" in alive_at_sql('c', 't.index_year')
        assert "c.death_year >= t.index_year" in alive_at_sql('c', 't.index_year', strict=False)


class TestIntegrity:

    def test_duplicate_pairs_rejected(self):
        pairs = pd.DataFrame({'treatment_id': ['t1', 't1'], 'control_id': ['c1', 'c1'],
                              'birth_year': [1904, 1904], 'index_year': [1967, 1967]})
        controls = pd.DataFrame({'control_id': ['c1'], 'birth_year': [1904],
                                 'n_matched_treatments': [2], 'first_index_year': [1967]})
        treatments = pd.DataFrame({'treatment_id': ['t1'], 'birth_year': [1904],
                                   'index_year': [1967], 'n_controls': [2]})
        with pytest.raises(CohortIntegrityError):
            MatchedCohort.from_frames(pairs, controls, treatments)

    def test_treatment_as_control_rejected(self):
        pairs = pd.DataFrame({'treatment_id': ['t1'], 'control_id': ['t2'],
                              'birth_year': [1904], 'index_year': [1967]})
        controls = pd.DataFrame({'control_id': ['t2'], 'birth_year': [1904],
                                 'n_matched_treatments': [1], 'first_index_year': [1967]})
        treatments = pd.DataFrame({'treatment_id': ['t1', 't2'], 'birth_year': [1904, 1904],
                                   'index_year': [1967, 1970], 'n_controls': [1, 0]})
        with pytest.raises(CohortIntegrityError):
            MatchedCohort.from_frames(pairs, controls, treatments)

    def test_saved_views_round_trip(self, cohort):
        rebuilt = MatchedCohort.from_frames(cohort.pair_view(), cohort.control_view(), cohort.treatment_view())
        assert rebuilt.summary() == cohort.summary()
