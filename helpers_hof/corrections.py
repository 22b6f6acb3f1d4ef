"""
Enumerated record corrections.

Known data-entry errors in the source snapshot are fixed in exactly one
place: a correction table keyed by (subject_id, field) that is applied as a
single lookup step before any parsing. The table is configuration
(config/record_corrections.csv), not code:

    subject_id,field,corrected_value,note
    xxxxx101,birth_date,1885-03-12,day transcribed as 31 in source

An empty corrected_value sets the field to missing.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import pandas as pd

from helpers_hof.constants import CORRECTABLE_FIELDS
from helpers_hof.data_utils import AuditLog, validate_and_clean_strings
from helpers_hof.io_utils import SourceLoadError

CORRECTION_COLUMNS = ['subject_id', 'field', 'corrected_value', 'note']

CorrectionTable = Dict[Tuple[str, str], Optional[str]]


def load_corrections(path, logger: Optional[logging.Logger] = None) -> CorrectionTable:
    """
    Read the correction table into a {(subject_id, field): value} mapping.

    Raises:
        SourceLoadError: the file is unreadable, lacks required columns,
            names a field that cannot be corrected, or repeats a key.
    """
    if path is None:
        return {}
    path = Path(path)
    if not path.exists():
        raise SourceLoadError(f"Correction table not found: {path}")

    try:
        table = pd.read_csv(path, dtype=str, keep_default_na=False, comment='#')
    except (OSError, ValueError) as e:
        raise SourceLoadError(f"Could not read correction table {path}: {e}") from e

    missing = [c for c in CORRECTION_COLUMNS[:3] if c not in table.columns]
    if missing:
        raise SourceLoadError(f"Correction table {path} missing columns: {missing}")

    unknown = sorted(set(table['field'].str.strip()) - CORRECTABLE_FIELDS)
    if unknown:
        raise SourceLoadError(f"Correction table {path} names unknown fields: {unknown}")

    corrections: CorrectionTable = {}
    for row in table.itertuples(index=False):
        key = (row.subject_id.strip(), row.field.strip())
        if key in corrections:
            raise SourceLoadError(f"Correction table {path} repeats key {key}")
        corrections[key] = validate_and_clean_strings(row.corrected_value)

    if logger:
        logger.info(f"→ Loaded {len(corrections):,} record corrections from {path}")
    return corrections


def apply_corrections(raw: pd.DataFrame, corrections: CorrectionTable,
                      audit: Optional[AuditLog] = None,
                      logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Overwrite corrected fields on a copy of the raw table.

    Corrections whose subject is absent from the table are reported, not
    applied; corrected values replace the raw text before parsing.
    """
    if not corrections:
        return raw

    corrected = raw.copy()
    positions = pd.Series(range(len(corrected)), index=corrected['subject_id'].astype(str))

    for (subject_id, field), value in sorted(corrections.items()):
        if subject_id not in positions.index:
            if logger:
                logger.warning(f"⚠️ Correction for unknown subject {subject_id} ({field}) not applied")
            continue
        if field not in corrected.columns:
            corrected[field] = None
        if corrected[field].dtype != object:
            corrected[field] = corrected[field].astype(object)
        corrected.iloc[positions[subject_id], corrected.columns.get_loc(field)] = value
        if audit is not None:
            audit.record('correction', field)

    if logger and audit is not None:
        logger.info(f"→ Applied {audit.count('correction'):,} record corrections")
    return corrected
