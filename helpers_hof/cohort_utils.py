"""
Age-matched control cohorts for Hall of Fame inductees.

A control c matches treatment t iff both share a birth year, c is alive at
t's index (induction) year and c is not itself a treatment subject. The
matching join is a many-to-many on birth year, so two views are exposed
and never conflated:

    pair view     one row per (treatment, control); a control repeats once
                  per treatment it matches
    control view  one row per distinct control

"Alive at year Y" is the same predicate for treatments and controls: a
known death year after Y (strictly, unless configured otherwise), or no
death date and an affirmatively censored lifetime. An unknown lifetime
status never counts as alive.
"""

import logging
from typing import Any, Dict, Optional

import pandas as pd

from helpers_hof import constants
from helpers_hof.config import PipelineConfig
from helpers_hof.duckdb_utils import register_frame


class CohortIntegrityError(Exception):
    """The matched cohort violates a structural invariant (duplicate pairs, overlap)."""


PAIR_COLUMNS = ['treatment_id', 'control_id', 'birth_year', 'index_year']
CONTROL_COLUMNS = ['control_id', 'birth_year', 'n_matched_treatments', 'first_index_year']
TREATMENT_COLUMNS = ['treatment_id', 'birth_year', 'index_year', 'n_controls']


def alive_at_sql(alias: str, year_expr: str, strict: bool = True) -> str:
    """SQL predicate: subject `alias` is confirmed alive in year `year_expr`."""
    op = '>' if strict else '>='
    return (f"(({alias}.death_year IS NOT NULL AND {alias}.death_year {op} {year_expr}) "
            f"OR ({alias}.death_year IS NULL AND {alias}.lifetime_status = '{constants.STATUS_CENSORED}'))")


class MatchedCohort:
    """Materialized pair, control and treatment views of one matching run."""

    def __init__(self, pairs: pd.DataFrame, controls: pd.DataFrame, treatments: pd.DataFrame):
        self._pairs = pairs.reset_index(drop=True)
        self._controls = controls.reset_index(drop=True)
        self._treatments = treatments.reset_index(drop=True)

    def pair_view(self) -> pd.DataFrame:
        return self._pairs.copy()

    def control_view(self) -> pd.DataFrame:
        return self._controls.copy()

    def treatment_view(self) -> pd.DataFrame:
        return self._treatments.copy()

    def summary(self) -> Dict[str, Any]:
        n_treatments = len(self._treatments)
        n_pairs = len(self._pairs)
        return {
            'n_treatments': n_treatments,
            'n_treatments_with_controls': int((self._treatments['n_controls'] > 0).sum()),
            'n_pairs': n_pairs,
            'n_distinct_controls': len(self._controls),
            'mean_controls_per_treatment': round(n_pairs / n_treatments, 4) if n_treatments else 0.0,
            'max_control_reuse': int(self._controls['n_matched_treatments'].max()) if len(self._controls) else 0,
        }

    def validate(self) -> None:
        """
        Raises:
            CohortIntegrityError: a (treatment, control) pair repeats, a control
                is also a treatment, or the views disagree on counts.
        """
        dupes = self._pairs.duplicated(subset=['treatment_id', 'control_id'])
        if dupes.any():
            sample = self._pairs.loc[dupes, ['treatment_id', 'control_id']].head(5).values.tolist()
            raise CohortIntegrityError(f"{int(dupes.sum())} duplicate (treatment, control) pairs, e.g. {sample}")

        overlap = set(self._pairs['control_id']) & set(self._treatments['treatment_id'])
        if overlap:
            raise CohortIntegrityError(f"Treatment subjects matched as controls: {sorted(overlap)[:10]}")

        if int(self._controls['n_matched_treatments'].sum()) != len(self._pairs):
            raise CohortIntegrityError("Control view match counts do not add up to the pair view")
        if int(self._treatments['n_controls'].sum()) != len(self._pairs):
            raise CohortIntegrityError("Treatment view control counts do not add up to the pair view")

    @classmethod
    def from_frames(cls, pairs: pd.DataFrame, controls: pd.DataFrame, treatments: pd.DataFrame) -> "MatchedCohort":
        """Rebuild a cohort from previously saved views."""
        cohort = cls(pairs[PAIR_COLUMNS], controls[CONTROL_COLUMNS], treatments[TREATMENT_COLUMNS])
        cohort.validate()
        return cohort


def build_matched_cohort(conn, records: pd.DataFrame, observations: pd.DataFrame,
                         config: Optional[PipelineConfig] = None,
                         logger: Optional[logging.Logger] = None) -> MatchedCohort:
    """
    Match every living inductee to same-birth-year controls alive at induction.

    Args:
        conn: DuckDB connection; working tables hof_* are (re)created on it.
        records: normalized records.
        observations: derived observations; the lifetime status decides
            whether a subject with no death date is affirmatively alive.

    Raises:
        CohortIntegrityError: the resulting views fail validation.
    """
    config = config or PipelineConfig()
    strict = config.alive_at_index_strict

    subjects = records[['subject_id', 'birth_year', 'death_year', 'hall_of_fame', 'induction_year']].copy()
    lifetime = observations.loc[observations['duration_type'] == constants.DURATION_LIFETIME,
                                ['subject_id', 'event_status']]
    subjects = subjects.merge(lifetime, on='subject_id', how='left').rename(
        columns={'event_status': 'lifetime_status'})
    register_frame(conn, 'hof_subjects', subjects, logger)

    conn.execute(f"""
        CREATE OR REPLACE TABLE hof_treatments AS
        SELECT s.subject_id AS treatment_id, s.birth_year, s.induction_year AS index_year
        FROM hof_subjects s
        WHERE s.hall_of_fame = '{constants.HOF_IN}'
          AND s.induction_year IS NOT NULL
          AND s.birth_year IS NOT NULL
          AND {alive_at_sql('s', 's.induction_year', strict)}
    """)

    conn.execute(f"""
        CREATE OR REPLACE TABLE hof_pairs AS
        SELECT t.treatment_id, c.subject_id AS control_id, t.birth_year, t.index_year
        FROM hof_treatments t
        JOIN hof_subjects c ON c.birth_year = t.birth_year
        WHERE NOT EXISTS (SELECT 1 FROM hof_treatments x WHERE x.treatment_id = c.subject_id)
          AND {alive_at_sql('c', 't.index_year', strict)}
    """)

    pairs = conn.sql(
        "SELECT * FROM hof_pairs ORDER BY treatment_id, control_id"
    ).df()
    controls = conn.sql("""
        SELECT control_id, birth_year,
               COUNT(*) AS n_matched_treatments,
               MIN(index_year) AS first_index_year
        FROM hof_pairs
        GROUP BY control_id, birth_year
        ORDER BY control_id
    """).df()
    treatments = conn.sql("""
        SELECT t.treatment_id, t.birth_year, t.index_year,
               COUNT(p.control_id) AS n_controls
        FROM hof_treatments t
        LEFT JOIN hof_pairs p ON p.treatment_id = t.treatment_id
        GROUP BY t.treatment_id, t.birth_year, t.index_year
        ORDER BY t.treatment_id
    """).df()

    cohort = MatchedCohort(pairs[PAIR_COLUMNS], controls[CONTROL_COLUMNS], treatments[TREATMENT_COLUMNS])
    cohort.validate()

    if logger:
        inductees = int((records['hall_of_fame'] == constants.HOF_IN).sum())
        summary = cohort.summary()
        logger.info(f"→ Treatments: {summary['n_treatments']:,} of {inductees:,} inductees alive at induction "
                    f"({'death_year > index_year' if strict else 'death_year >= index_year'})")
        logger.info(f"→ Pairs: {summary['n_pairs']:,}; distinct controls: {summary['n_distinct_controls']:,}; "
                    f"max reuse: {summary['max_control_reuse']}")
    return cohort
