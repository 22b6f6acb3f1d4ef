"""
Descriptive tables: physical trends, handedness and birthplaces.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from helpers_hof import constants


def debut_decade(records: pd.DataFrame) -> pd.Series:
    years = records['career_start_date'].dt.year
    return (years // 10 * 10).astype('Int64')


def physical_trends_by_decade(records: pd.DataFrame) -> pd.DataFrame:
    """Mean height, weight and BMI of players by debut decade."""
    frame = records.assign(debut_decade=debut_decade(records)).dropna(subset=['debut_decade'])
    trends = (frame.groupby('debut_decade')
              .agg(players=('subject_id', 'count'),
                   mean_height_inches=('height_inches', 'mean'),
                   mean_weight_pounds=('weight_pounds', 'mean'),
                   mean_bmi=('bmi', 'mean'))
              .reset_index())
    return trends.round({'mean_height_inches': 2, 'mean_weight_pounds': 2, 'mean_bmi': 2})


def handedness_crosstab(records: pd.DataFrame) -> pd.DataFrame:
    """Counts of batting hand (rows) by throwing hand (columns)."""
    table = pd.crosstab(records['bats_hand'], records['throws_hand'])
    order = [constants.HAND_LEFT, constants.HAND_RIGHT, constants.HAND_BOTH, constants.HAND_UNKNOWN]
    table = table.reindex(index=[h for h in order if h in table.index],
                          columns=[h for h in order if h in table.columns], fill_value=0)
    table.index.name = 'bats'
    table.columns.name = 'throws'
    return table.reset_index()


def birthplace_counts(records: pd.DataFrame) -> pd.DataFrame:
    """Players per birth country and state, most common first."""
    frame = records[['birth_country', 'birth_state']].fillna('Unknown')
    counts = frame.value_counts().rename('players').reset_index()
    return counts.sort_values(['players', 'birth_country', 'birth_state'],
                              ascending=[False, True, True]).reset_index(drop=True)


def write_summaries(records: pd.DataFrame, output_dir, logger: Optional[logging.Logger] = None) -> Dict[str, str]:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    tables = {
        'physical_trends_by_decade': physical_trends_by_decade(records),
        'handedness': handedness_crosstab(records),
        'birthplaces': birthplace_counts(records),
    }
    written = {}
    for name, table in tables.items():
        path = output_dir / f"{name}.csv"
        table.to_csv(path, index=False)
        written[name] = str(path)
        if logger:
            logger.info(f"✓ Saved {name} ({len(table):,} rows) to {path}")
    return written
