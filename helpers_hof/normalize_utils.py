"""
Record normalizer: raw text table -> typed biographical records.

A field that cannot be parsed becomes null for that field only; the record
itself is never dropped. Running the normalizer on its own output returns
the same table.
"""

import logging
from typing import Optional

import pandas as pd

from helpers_hof import constants
from helpers_hof.config import PipelineConfig
from helpers_hof.corrections import CorrectionTable, apply_corrections
from helpers_hof.data_utils import AuditLog, safe_cast_to_int, validate_and_clean_strings
from helpers_hof.date_utils import parse_partial_date, year_of
from helpers_hof.io_utils import SourceLoadError, conform_raw_schema
from helpers_hof.survival_utils import lifetime_observation
from helpers_hof.record_utils import (
    compute_bmi,
    has_value,
    normalize_hall_of_fame,
    normalize_hand,
    parse_height,
    parse_weight,
)

DERIVED_COLUMNS = [
    'birth_date_precision', 'death_date_precision',
    'career_start_date_precision', 'career_end_date_precision',
    'height_inches', 'weight_pounds', 'bmi', 'bats_hand', 'throws_hand',
    'birth_year', 'death_year', 'has_death_context', 'inducted_alive',
]

# (earlier, later) pairs that must be ordered when both are known
ORDERED_DATE_PAIRS = [
    ('birth_date', 'career_start_date'),
    ('career_start_date', 'career_end_date'),
    ('career_end_date', 'death_date'),
    ('birth_date', 'death_date'),
]


def check_subject_ids(raw: pd.DataFrame, source: str = "source table") -> None:
    """subject_id must be present and unique; anything else is a load failure."""
    ids = raw['subject_id'].map(validate_and_clean_strings)
    if ids.isna().any():
        raise SourceLoadError(f"{source} has {int(ids.isna().sum())} rows without subject_id")
    duplicated = ids[ids.duplicated()].unique().tolist()
    if duplicated:
        raise SourceLoadError(f"{source} has duplicate subject_id values: {duplicated[:10]}")


def alive_at_year(death_year, lifetime_status, year, strict: bool = True):
    """
    Whether a subject is confirmed alive in the given year.

    A known death year decides it. Without one, only an affirmatively
    censored lifetime counts as alive; an unknown lifetime (death implied
    but undated, or age past the sanity ceiling) gives pd.NA. This is the
    same predicate the cohort matcher applies in SQL.
    """
    if year is None or pd.isna(year):
        return pd.NA
    if death_year is not None and not pd.isna(death_year):
        return bool(death_year > year) if strict else bool(death_year >= year)
    if lifetime_status == constants.STATUS_CENSORED:
        return True
    return pd.NA


def _parse_date_column(df: pd.DataFrame, field: str, config: PipelineConfig, audit: AuditLog):
    precision_col = f"{field}_precision"
    prior_precision = df[precision_col] if precision_col in df.columns else pd.Series(None, index=df.index)

    dates, precisions, failed = [], [], []
    for value, prior in zip(df[field], prior_precision):
        ts, precision = parse_partial_date(value, config)
        present = has_value(value)
        if isinstance(value, pd.Timestamp) and not pd.isna(value) and has_value(prior):
            precision = prior
        dates.append(ts)
        precisions.append(precision)
        failed.append(present and pd.isna(ts))

    audit.record('parse_failure', field, sum(failed))
    return (pd.Series(pd.to_datetime(dates), index=df.index),
            pd.Series(precisions, index=df.index, dtype=object),
            pd.Series(failed, index=df.index))


def normalize_records(raw: pd.DataFrame, config: Optional[PipelineConfig] = None,
                      corrections: Optional[CorrectionTable] = None,
                      audit: Optional[AuditLog] = None,
                      logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Parse and type a raw biographical table.

    Steps: schema check -> subject id check -> correction lookup -> date,
    height, weight, handedness and Hall of Fame parsing -> derived fields.

    Raises:
        SourceLoadError: required columns missing or subject ids not unique.
    """
    config = config or PipelineConfig()
    audit = audit if audit is not None else AuditLog()

    df = conform_raw_schema(raw, "biographical table")
    check_subject_ids(df)
    df['subject_id'] = df['subject_id'].map(validate_and_clean_strings)
    df = apply_corrections(df, corrections or {}, audit, logger).copy()

    death_parse_failed = None
    for field in constants.DATE_FIELDS:
        dates, precisions, failed = _parse_date_column(df, field, config, audit)
        df[field] = dates
        df[f"{field}_precision"] = precisions
        if field == 'death_date':
            death_parse_failed = failed

    heights = [parse_height(v, config.max_plausible_feet) for v in df['height']]
    audit.record('parse_failure', 'height',
                 sum(1 for v, h in zip(df['height'], heights) if has_value(v) and h is None))
    df['height_inches'] = pd.Series(heights, index=df.index, dtype='float64')

    weights = [parse_weight(v) for v in df['weight']]
    audit.record('parse_failure', 'weight',
                 sum(1 for v, w in zip(df['weight'], weights) if has_value(v) and w is None))
    df['weight_pounds'] = pd.Series(weights, index=df.index, dtype='float64')

    df['bmi'] = pd.Series([compute_bmi(w, h) for w, h in zip(df['weight_pounds'], df['height_inches'])],
                          index=df.index, dtype='float64')

    df['bats_hand'] = df['bats'].map(normalize_hand)
    df['throws_hand'] = df['throws'].map(normalize_hand)
    df['hall_of_fame'] = df['hall_of_fame'].map(normalize_hall_of_fame)

    induction_years = df['induction_year'].map(safe_cast_to_int)
    audit.record('parse_failure', 'induction_year',
                 int((df['induction_year'].map(has_value) & induction_years.isna()).sum()))
    df['induction_year'] = pd.array(induction_years.tolist(), dtype='Int64')
    df['seasons'] = pd.array(df['seasons'].map(safe_cast_to_int).tolist(), dtype='Int64')

    df['birth_year'] = pd.array([year_of(d) for d in df['birth_date']], dtype='Int64')
    df['death_year'] = pd.array([year_of(d) for d in df['death_date']], dtype='Int64')

    # Death is implied by any burial/death location, or by a death date that
    # was present but could not be parsed
    context = df[constants.DEATH_CONTEXT_FIELDS].apply(lambda col: col.map(has_value)).any(axis=1)
    context = context | death_parse_failed
    if 'has_death_context' in raw.columns:
        context = context | raw['has_death_context'].fillna(False).astype(bool).to_numpy()
    df['has_death_context'] = context.astype(bool)

    lifetime_status = [lifetime_observation(rec, config)['event_status']
                       for rec in df[['birth_date', 'death_date', 'has_death_context']].to_dict('records')]
    df['inducted_alive'] = pd.array([
        alive_at_year(dy, status, iy, config.alive_at_index_strict) if hof == constants.HOF_IN else pd.NA
        for hof, dy, status, iy in zip(df['hall_of_fame'], df['death_year'], lifetime_status,
                                       df['induction_year'])
    ], dtype='boolean')

    for earlier, later in ORDERED_DATE_PAIRS:
        bad = int((df[earlier].notna() & df[later].notna() & (df[earlier] > df[later])).sum())
        audit.record('ordering', f"{earlier}>{later}", bad)
    future = int((df['career_end_date'].notna() & (df['career_end_date'] > config.as_of_date)).sum())
    audit.record('ordering', 'career_end_date>as_of', future)

    ordered = constants.RAW_COLUMNS + DERIVED_COLUMNS
    extra = [c for c in df.columns if c not in ordered]
    df = df[ordered + extra].reset_index(drop=True)

    if logger:
        logger.info(f"→ Normalized {len(df):,} records "
                    f"({audit.count('parse_failure'):,} field parse failures, "
                    f"{audit.count('correction'):,} corrections)")
    return df
