"""
File loading and saving for biographical source tables.

Two public sources are supported and mapped onto one canonical raw schema
(constants.RAW_COLUMNS):

- Retrosheet biofile (legacy "PLAYERID,BIRTHDATE,PLAY.DEBUT,..." layout and
  the current "id,birthdate,debut_p,..." layout)
- Lahman's baseball database (People, HallOfFame and optionally Appearances)

Raw values stay as text here; typing happens in the normalizer.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

import pandas as pd

from helpers_hof.constants import RAW_COLUMNS, REQUIRED_RAW_COLUMNS
from helpers_hof.data_utils import safe_cast_to_int


class SourceLoadError(Exception):
    """A source table is missing or malformed at the table level (fatal)."""


# Retrosheet column names after lower-casing and replacing '.' or ' ' with '_'
RETROSHEET_COLUMN_MAP = {
    'playerid': 'subject_id', 'id': 'subject_id',
    'birthdate': 'birth_date', 'deathdate': 'death_date',
    'play_debut': 'career_start_date', 'debut_p': 'career_start_date',
    'play_lastgame': 'career_end_date', 'last_p': 'career_end_date',
    'birth_city': 'birth_city', 'birthcity': 'birth_city',
    'birth_state': 'birth_state', 'birthstate': 'birth_state',
    'birth_country': 'birth_country', 'birthcountry': 'birth_country',
    'death_city': 'death_city', 'deathcity': 'death_city',
    'death_state': 'death_state', 'deathstate': 'death_state',
    'death_country': 'death_country', 'deathcountry': 'death_country',
    'cemetery': 'cemetery',
    'ceme_city': 'cemetery_city', 'cem_city': 'cemetery_city',
    'ceme_state': 'cemetery_state', 'cem_state': 'cemetery_state',
    'ceme_country': 'cemetery_country', 'ceme_ctry': 'cemetery_country', 'cem_ctry': 'cemetery_country',
    'hof': 'hall_of_fame',
    'bats': 'bats', 'throws': 'throws', 'height': 'height', 'weight': 'weight',
}

LAHMAN_PEOPLE_MAP = {
    'playerID': 'subject_id',
    'debut': 'career_start_date', 'finalGame': 'career_end_date',
    'birthCity': 'birth_city', 'birthState': 'birth_state', 'birthCountry': 'birth_country',
    'deathCity': 'death_city', 'deathState': 'death_state', 'deathCountry': 'death_country',
    'height': 'height', 'weight': 'weight', 'bats': 'bats', 'throws': 'throws',
}

APPEARANCE_POSITIONS = {
    'G_p': 'P', 'G_c': 'C', 'G_1b': '1B', 'G_2b': '2B', 'G_3b': '3B',
    'G_ss': 'SS', 'G_lf': 'LF', 'G_cf': 'CF', 'G_rf': 'RF', 'G_dh': 'DH',
}


def load_table(path, logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Read a delimited text (.csv/.txt) or parquet file. Text columns are read
    as strings so partial dates and "6-2" heights survive untouched.

    Raises:
        SourceLoadError: missing file, unsupported suffix or unreadable content.
    """
    path = Path(path)
    if not path.exists():
        raise SourceLoadError(f"Source file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == '.parquet':
            df = pd.read_parquet(path)
        elif suffix in ('.csv', '.txt'):
            try:
                df = pd.read_csv(path, dtype=str, keep_default_na=False)
            except UnicodeDecodeError:
                # Older Lahman releases ship latin-1 text
                df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding='latin-1')
        else:
            raise SourceLoadError(f"Unsupported source format: {path}")
    except SourceLoadError:
        raise
    except (OSError, ValueError) as e:
        raise SourceLoadError(f"Could not read {path}: {e}") from e

    if logger:
        logger.info(f"→ Loaded {len(df):,} rows x {len(df.columns)} columns from {path}")
    return df


def conform_raw_schema(df: pd.DataFrame, source: str) -> pd.DataFrame:
    """Add absent optional columns as missing and check required ones."""
    missing = [c for c in REQUIRED_RAW_COLUMNS if c not in df.columns]
    if missing:
        raise SourceLoadError(f"{source} is missing required columns: {missing}")
    out = df.copy()
    for col in RAW_COLUMNS:
        if col not in out.columns:
            out[col] = None
    extra = [c for c in out.columns if c not in RAW_COLUMNS]
    return out[RAW_COLUMNS + extra]


def load_retrosheet_biofile(path, logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """Load a Retrosheet biofile into the canonical raw schema."""
    df = load_table(path, logger)
    renamed = {}
    for col in df.columns:
        key = col.strip().lower().replace('.', '_').replace(' ', '_')
        if key in RETROSHEET_COLUMN_MAP and RETROSHEET_COLUMN_MAP[key] not in renamed.values():
            renamed[col] = RETROSHEET_COLUMN_MAP[key]
    df = df[list(renamed)].rename(columns=renamed)
    return conform_raw_schema(df, f"Retrosheet biofile {path}")


def _compose_partial_date(year, month, day) -> Optional[str]:
    """Lahman splits dates into year/month/day columns; re-join the known part."""
    year = safe_cast_to_int(year)
    month = safe_cast_to_int(month)
    day = safe_cast_to_int(day)
    if year is None:
        return None
    if not month:
        return f"{year:04d}"
    if not day:
        return f"{year:04d}-{month:02d}"
    return f"{year:04d}-{month:02d}-{day:02d}"


def load_lahman_inductions(hall_of_fame_path, people_path=None, key: str = 'playerID',
                           categories: Iterable[str] = ('Player',),
                           logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """
    Earliest induction year per inducted subject from Lahman's HallOfFame.

    Args:
        key: 'playerID' for Lahman-keyed records, 'retroID' to key by the
            Retrosheet id (needs people_path for the id crosswalk).

    Returns:
        DataFrame[subject_id, induction_year]
    """
    hof = load_table(hall_of_fame_path, logger)
    hof.columns = [c if c != 'yearID' else 'yearid' for c in hof.columns]
    for col in ('playerID', 'yearid', 'inducted', 'category'):
        if col not in hof.columns:
            raise SourceLoadError(f"HallOfFame table {hall_of_fame_path} is missing column {col}")

    wanted = {c.lower() for c in categories}
    inducted = hof[
        (hof['inducted'].astype(str).str.strip().str.upper() == 'Y')
        & (hof['category'].astype(str).str.strip().str.lower().isin(wanted))
    ].copy()
    inducted['induction_year'] = inducted['yearid'].map(safe_cast_to_int)
    inducted = (inducted.dropna(subset=['induction_year'])
                .groupby('playerID', as_index=False)['induction_year'].min())

    if key == 'retroID':
        if people_path is None:
            raise ValueError("people_path is required to key inductions by retroID")
        people = load_table(people_path, logger)
        if 'retroID' not in people.columns:
            raise SourceLoadError(f"People table {people_path} has no retroID column")
        inducted = inducted.merge(people[['playerID', 'retroID']], on='playerID', how='inner')
        inducted = inducted[inducted['retroID'].astype(str).str.strip() != '']
        inducted = inducted.rename(columns={'retroID': 'subject_id'})[['subject_id', 'induction_year']]
    else:
        inducted = inducted.rename(columns={'playerID': 'subject_id'})

    inducted['induction_year'] = inducted['induction_year'].astype('Int64')
    return inducted.reset_index(drop=True)


def attach_induction_years(raw: pd.DataFrame, inductions: pd.DataFrame) -> pd.DataFrame:
    """
    Join induction years onto a raw table. Subjects with an induction year are
    marked Hall of Fame 'In'; existing induction years are kept.
    """
    out = raw.merge(inductions.rename(columns={'induction_year': '_induction_year'}),
                    on='subject_id', how='left')
    has_year = out['_induction_year'].notna()
    if 'induction_year' not in out.columns:
        out['induction_year'] = None
    existing = out['induction_year'].map(safe_cast_to_int)
    out['induction_year'] = existing.where(existing.notna(), out['_induction_year'])
    out.loc[has_year, 'hall_of_fame'] = 'In'
    return out.drop(columns=['_induction_year'])


def summarise_appearances(appearances: pd.DataFrame) -> pd.DataFrame:
    """Season count and most-played position per player from Lahman Appearances."""
    if 'playerID' not in appearances.columns or 'yearID' not in appearances.columns:
        raise SourceLoadError("Appearances table needs playerID and yearID columns")

    seasons = appearances.groupby('playerID')['yearID'].nunique().rename('seasons')

    position_cols = [c for c in APPEARANCE_POSITIONS if c in appearances.columns]
    if position_cols:
        games = appearances[['playerID'] + position_cols].copy()
        for col in position_cols:
            games[col] = pd.to_numeric(games[col], errors='coerce').fillna(0)
        totals = games.groupby('playerID')[position_cols].sum()
        primary = totals.idxmax(axis=1).map(APPEARANCE_POSITIONS)
        primary[totals.sum(axis=1) == 0] = None
        summary = pd.concat([seasons, primary.rename('primary_position')], axis=1)
    else:
        summary = seasons.to_frame()
        summary['primary_position'] = None

    return summary.reset_index().rename(columns={'playerID': 'subject_id'})


def load_lahman_people(people_path, hall_of_fame_path=None, appearances_path=None,
                       logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """Load Lahman People (+ HallOfFame, Appearances) into the canonical raw schema."""
    people = load_table(people_path, logger)
    if 'playerID' not in people.columns:
        raise SourceLoadError(f"People table {people_path} has no playerID column")

    raw = people.rename(columns={k: v for k, v in LAHMAN_PEOPLE_MAP.items() if k in people.columns})
    for prefix, field in (('birth', 'birth_date'), ('death', 'death_date')):
        parts = [f"{prefix}Year", f"{prefix}Month", f"{prefix}Day"]
        if all(p in people.columns for p in parts):
            raw[field] = [_compose_partial_date(y, m, d) for y, m, d in people[parts].itertuples(index=False)]
    raw = raw[[c for c in raw.columns if c in RAW_COLUMNS]]

    if 'hall_of_fame' not in raw.columns:
        raw['hall_of_fame'] = 'Out'
    if hall_of_fame_path is not None:
        raw = attach_induction_years(raw, load_lahman_inductions(hall_of_fame_path, logger=logger))

    if appearances_path is not None:
        summary = summarise_appearances(load_table(appearances_path, logger))
        raw = raw.merge(summary, on='subject_id', how='left')

    return conform_raw_schema(raw, f"Lahman People {people_path}")


def load_source(source: str, path, hall_of_fame_path=None, people_path=None,
                appearances_path=None, logger: Optional[logging.Logger] = None) -> pd.DataFrame:
    """Dispatch to the right loader by source name ('retrosheet', 'lahman' or 'canonical')."""
    if source == 'retrosheet':
        raw = load_retrosheet_biofile(path, logger)
        if hall_of_fame_path is not None:
            inductions = load_lahman_inductions(hall_of_fame_path, people_path=people_path,
                                                key='retroID', logger=logger)
            raw = attach_induction_years(raw, inductions)
        return raw
    if source == 'lahman':
        return load_lahman_people(path, hall_of_fame_path, appearances_path, logger)
    if source == 'canonical':
        return conform_raw_schema(load_table(path, logger), f"Canonical table {path}")
    raise ValueError(f"Unknown source: {source}")


def save_frame(df: pd.DataFrame, path, logger: Optional[logging.Logger] = None) -> str:
    """Save a DataFrame as parquet or CSV depending on the suffix."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        if path.suffix.lower() == '.parquet':
            df.to_parquet(path, index=False)
        else:
            df.to_csv(path, index=False)
        if logger:
            logger.info(f"Saved {len(df):,} rows to {path}")
    except (OSError, ValueError) as e:
        if logger:
            logger.error(f"Error saving {path}: {str(e)}")
        raise
    return str(path)


def output_paths(output_dir) -> Dict[str, Path]:
    """Standard output locations for a pipeline run."""
    root = Path(output_dir)
    return {
        'records': root / 'normalized_records.parquet',
        'observations': root / 'survival_observations.parquet',
        'pairs': root / 'matched_pairs.parquet',
        'controls': root / 'matched_controls.parquet',
        'treatments': root / 'matched_treatments.parquet',
        'rows_dir': root / 'survival_rows',
        'summaries_dir': root / 'summaries',
        'models': root / 'model_summary.json',
        'qa_report': root / 'qa_report.json',
    }
