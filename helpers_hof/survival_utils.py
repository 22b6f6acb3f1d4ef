"""
Survival observations and survival-model input rows.

Each normalized record yields three observations:

    lifetime        birth -> death (event: died) or as-of date (censored)
    career          career start -> career end (event: retired)
    retirement_age  birth -> career end (event: retired)

Retirement is inferred: a subject is retired once the last game is more
than config.retirement_inactivity_years before the as-of date, otherwise
still active (censored at the as-of date).

Observations that cannot be computed carry duration NaN and event NA; they
are excluded from modeling with a counted reason, never treated as censored.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from helpers_hof import constants
from helpers_hof.config import PipelineConfig
from helpers_hof.data_utils import AuditLog
from helpers_hof.date_utils import parse_partial_date, years_between

OBSERVATION_COLUMNS = [
    'subject_id', 'duration_type', 'duration', 'event_observed', 'event_status',
    'reason', 'strata_covariate', 'as_of_date',
]

EXCLUDE_UNKNOWN_EVENT = 'unknown_event'
EXCLUDE_NULL_DURATION = 'null_duration'
EXCLUDE_NON_POSITIVE = 'non_positive_duration'


def _unknown(reason: str) -> Dict:
    return {'duration': np.nan, 'event_observed': pd.NA,
            'event_status': constants.STATUS_UNKNOWN, 'reason': reason}


def lifetime_observation(record, config: PipelineConfig) -> Dict:
    """Lifetime from birth to death (observed) or to the as-of date (censored)."""
    birth = record['birth_date']
    death = record['death_date']
    if pd.isna(birth):
        return _unknown(constants.REASON_PARSE_FAILURE)

    if not pd.isna(death):
        duration = years_between(birth, death)
        if duration < 0:
            return _unknown(constants.REASON_SANITY_BOUND)
        return {'duration': duration, 'event_observed': True,
                'event_status': constants.STATUS_DIED, 'reason': None}

    # Death implied by a burial/death location but undated
    if bool(record['has_death_context']):
        return _unknown(constants.REASON_AMBIGUOUS_EVENT)

    duration = years_between(birth, config.as_of_date)
    if duration < 0 or duration > config.age_ceiling_years:
        return _unknown(constants.REASON_SANITY_BOUND)
    return {'duration': duration, 'event_observed': False,
            'event_status': constants.STATUS_CENSORED, 'reason': None}


def _retirement_status(career_end, config: PipelineConfig) -> Tuple[bool, str]:
    inactive_for = years_between(career_end, config.as_of_date)
    if inactive_for > config.retirement_inactivity_years:
        return True, constants.STATUS_RETIRED
    return False, constants.STATUS_ACTIVE


def _career_interval(start, end, config: PipelineConfig) -> Dict:
    if pd.isna(start) or pd.isna(end):
        return _unknown(constants.REASON_PARSE_FAILURE)
    if end > config.as_of_date:
        return _unknown(constants.REASON_SANITY_BOUND)
    duration = years_between(start, end)
    if duration < 0:
        return _unknown(constants.REASON_SANITY_BOUND)
    retired, status = _retirement_status(end, config)
    return {'duration': duration, 'event_observed': retired, 'event_status': status, 'reason': None}


def career_observation(record, config: PipelineConfig) -> Dict:
    """Career length from first to last game."""
    return _career_interval(record['career_start_date'], record['career_end_date'], config)


def retirement_age_observation(record, config: PipelineConfig) -> Dict:
    """Age at the last game."""
    return _career_interval(record['birth_date'], record['career_end_date'], config)


OBSERVATION_BUILDERS = {
    constants.DURATION_LIFETIME: lifetime_observation,
    constants.DURATION_CAREER: career_observation,
    constants.DURATION_RETIREMENT_AGE: retirement_age_observation,
}


def derive_observations(records: pd.DataFrame, config: PipelineConfig,
                        audit: Optional[AuditLog] = None,
                        logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Long table of survival observations: one row per (subject, duration type).

    Sanity-bound violations and ambiguous event statuses are counted in the
    audit per duration type.
    """
    audit = audit if audit is not None else AuditLog()
    rows: List[Dict] = []
    for record in records.to_dict('records'):
        for duration_type, builder in OBSERVATION_BUILDERS.items():
            obs = builder(record, config)
            if obs['reason'] in (constants.REASON_SANITY_BOUND, constants.REASON_AMBIGUOUS_EVENT):
                audit.record(obs['reason'], duration_type)
            rows.append({
                'subject_id': record['subject_id'],
                'duration_type': duration_type,
                **obs,
                'strata_covariate': record['hall_of_fame'],
                'as_of_date': config.as_of_date,
            })

    observations = pd.DataFrame(rows, columns=OBSERVATION_COLUMNS)
    observations['duration'] = observations['duration'].astype('float64')
    observations['event_observed'] = observations['event_observed'].astype('boolean')
    observations['as_of_date'] = pd.to_datetime(observations['as_of_date'])

    if logger:
        for duration_type, group in observations.groupby('duration_type', sort=False):
            counts = group['event_status'].value_counts().to_dict()
            logger.info(f"→ {duration_type}: {len(group):,} observations {counts}")
    return observations


def _hof_flag(series: pd.Series) -> pd.Series:
    return (series == constants.HOF_IN).astype(int)


def _filter_modelable(frame: pd.DataFrame) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """Drop rows a survival fit cannot use, counting each row under one reason."""
    unknown_event = frame['event_observed'].isna()
    null_duration = ~unknown_event & frame['duration'].isna()
    non_positive = ~unknown_event & ~null_duration & (frame['duration'] <= 0)
    keep = ~(unknown_event | null_duration | non_positive)
    report = {
        'input': int(len(frame)),
        EXCLUDE_UNKNOWN_EVENT: int(unknown_event.sum()),
        EXCLUDE_NULL_DURATION: int(null_duration.sum()),
        EXCLUDE_NON_POSITIVE: int(non_positive.sum()),
        'emitted': int(keep.sum()),
    }
    return frame[keep].copy(), report


def emit_survival_rows(observations: pd.DataFrame, records: pd.DataFrame,
                       duration_type: str = constants.DURATION_LIFETIME,
                       covariates: Iterable[str] = constants.DEFAULT_COVARIATES,
                       audit: Optional[AuditLog] = None) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Rows for a survival fit: subject_id, duration (>0), event (0/1), hof (0/1)
    and the requested covariates.

    Returns:
        (rows, report) where report counts input rows, each exclusion reason
        and emitted rows.
    """
    obs = observations[observations['duration_type'] == duration_type]
    covariates = [c for c in covariates if c in records.columns]
    frame = obs.merge(records[['subject_id'] + covariates], on='subject_id', how='left')

    kept, report = _filter_modelable(frame)
    rows = pd.DataFrame({
        'subject_id': kept['subject_id'].to_numpy(),
        'duration': kept['duration'].astype('float64').to_numpy(),
        'event': kept['event_observed'].astype(int).to_numpy(),
        'hof': _hof_flag(kept['strata_covariate']).to_numpy(),
    })
    for col in covariates:
        rows[col] = kept[col].to_numpy()

    if audit is not None:
        for reason in (EXCLUDE_UNKNOWN_EVENT, EXCLUDE_NULL_DURATION, EXCLUDE_NON_POSITIVE):
            audit.record('excluded', f"{duration_type}:{reason}", report[reason])
    return rows, report


def index_date_for_year(year, config: PipelineConfig) -> pd.Timestamp:
    """Induction dates are known to the year; impute them like any year-only date."""
    ts, _ = parse_partial_date(int(year), config)
    return ts


def emit_cohort_rows(observations: pd.DataFrame, records: pd.DataFrame, cohort,
                     config: PipelineConfig, view: str = 'pairs',
                     audit: Optional[AuditLog] = None) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Lifetime rows for a matched cohort, left-truncated at the index date.

    view='pairs'    one row per treatment subject (its own matched set) plus
                    one row per (treatment, control) pair; matched_set is the
                    treatment id. Controls repeat across sets by design.
    view='controls' each treatment and each distinct control exactly once;
                    a control's entry uses its earliest matched index year.

    Columns: subject_id, matched_set, group (1 treatment, 0 control),
    index_year, entry (age at index), duration, event.
    """
    if view == 'pairs':
        treatments = cohort.treatment_view()
        members = pd.concat([
            pd.DataFrame({'subject_id': treatments['treatment_id'], 'matched_set': treatments['treatment_id'],
                          'group': 1, 'index_year': treatments['index_year']}),
            pd.DataFrame({'subject_id': cohort.pair_view()['control_id'],
                          'matched_set': cohort.pair_view()['treatment_id'],
                          'group': 0, 'index_year': cohort.pair_view()['index_year']}),
        ], ignore_index=True)
    elif view == 'controls':
        treatments = cohort.treatment_view()
        controls = cohort.control_view()
        members = pd.concat([
            pd.DataFrame({'subject_id': treatments['treatment_id'], 'matched_set': None,
                          'group': 1, 'index_year': treatments['index_year']}),
            pd.DataFrame({'subject_id': controls['control_id'], 'matched_set': None,
                          'group': 0, 'index_year': controls['first_index_year']}),
        ], ignore_index=True)
    else:
        raise ValueError(f"Unknown cohort view: {view}")

    lifetime = observations[observations['duration_type'] == constants.DURATION_LIFETIME]
    frame = (members
             .merge(lifetime[['subject_id', 'duration', 'event_observed']], on='subject_id', how='left')
             .merge(records[['subject_id', 'birth_date']], on='subject_id', how='left'))

    kept, report = _filter_modelable(frame)
    kept['entry'] = [
        years_between(birth, index_date_for_year(year, config))
        for birth, year in zip(kept['birth_date'], kept['index_year'])
    ]
    # Matching guarantees survival past the index year; anything else is a data error
    late_entry = kept['entry'] >= kept['duration']
    report[EXCLUDE_NON_POSITIVE] += int(late_entry.sum())
    report['emitted'] -= int(late_entry.sum())
    kept = kept[~late_entry]

    rows = pd.DataFrame({
        'subject_id': kept['subject_id'].to_numpy(),
        'matched_set': kept['matched_set'].to_numpy(),
        'group': kept['group'].astype(int).to_numpy(),
        'index_year': kept['index_year'].astype('int64').to_numpy(),
        'entry': kept['entry'].astype('float64').to_numpy(),
        'duration': kept['duration'].astype('float64').to_numpy(),
        'event': kept['event_observed'].astype(int).to_numpy(),
    })

    if audit is not None:
        for reason in (EXCLUDE_UNKNOWN_EVENT, EXCLUDE_NULL_DURATION, EXCLUDE_NON_POSITIVE):
            audit.record('excluded', f"cohort_{view}:{reason}", report[reason])
    return rows, report


def emit_time_varying_rows(observations: pd.DataFrame, records: pd.DataFrame,
                           config: PipelineConfig,
                           audit: Optional[AuditLog] = None) -> Tuple[pd.DataFrame, Dict[str, int]]:
    """
    Long-format lifetime rows with Hall of Fame membership as a time-varying
    covariate (start, stop, event, hof).

    Inductees alive at induction contribute an hof=0 interval up to their age
    at induction and an hof=1 interval after it; everyone else contributes a
    single hof=0 interval. Only the last interval can carry the event.
    """
    lifetime = observations[observations['duration_type'] == constants.DURATION_LIFETIME]
    frame = lifetime.merge(records[['subject_id', 'birth_date', 'hall_of_fame', 'induction_year']],
                           on='subject_id', how='left')
    kept, report = _filter_modelable(frame)

    rows: List[Dict] = []
    for rec in kept.to_dict('records'):
        event = int(bool(rec['event_observed']))
        switch_at = None
        if rec['hall_of_fame'] == constants.HOF_IN and not pd.isna(rec['induction_year']):
            switch_at = years_between(rec['birth_date'], index_date_for_year(rec['induction_year'], config))

        if switch_at is not None and 0 < switch_at < rec['duration']:
            rows.append({'subject_id': rec['subject_id'], 'start': 0.0, 'stop': switch_at,
                         'event': 0, 'hof': 0})
            rows.append({'subject_id': rec['subject_id'], 'start': switch_at, 'stop': rec['duration'],
                         'event': event, 'hof': 1})
        else:
            rows.append({'subject_id': rec['subject_id'], 'start': 0.0, 'stop': rec['duration'],
                         'event': event, 'hof': 0})

    if audit is not None:
        for reason in (EXCLUDE_UNKNOWN_EVENT, EXCLUDE_NULL_DURATION, EXCLUDE_NON_POSITIVE):
            audit.record('excluded', f"time_varying:{reason}", report[reason])
    return pd.DataFrame(rows, columns=['subject_id', 'start', 'stop', 'event', 'hof']), report
