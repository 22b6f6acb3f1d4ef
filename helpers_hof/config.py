"""
Run configuration for the longevity pipeline.

Every threshold the stages use lives on PipelineConfig so the same pipeline
can be re-run against a newer data snapshot by changing configuration only.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

import pandas as pd

from helpers_hof import constants


@dataclass(frozen=True)
class PipelineConfig:
    as_of_date: pd.Timestamp = field(default_factory=lambda: pd.Timestamp(constants.DEFAULT_AS_OF_DATE))
    age_ceiling_years: float = constants.AGE_SANITY_CEILING_YEARS
    retirement_inactivity_years: float = constants.RETIREMENT_INACTIVITY_YEARS
    year_only_impute_month: int = constants.YEAR_ONLY_IMPUTE_MONTH
    year_only_impute_day: int = constants.YEAR_ONLY_IMPUTE_DAY
    month_only_impute_day: int = constants.MONTH_ONLY_IMPUTE_DAY
    max_plausible_feet: int = constants.MAX_PLAUSIBLE_FEET
    alive_at_index_strict: bool = constants.ALIVE_AT_INDEX_STRICT
    corrections_path: Optional[str] = constants.DEFAULT_CORRECTIONS_PATH

    def __post_init__(self):
        # Accept strings/dates for convenience; always store a normalized Timestamp
        object.__setattr__(self, 'as_of_date', pd.Timestamp(self.as_of_date).normalize())
        if self.age_ceiling_years <= 0:
            raise ValueError("age_ceiling_years must be positive")
        if self.retirement_inactivity_years < 0:
            raise ValueError("retirement_inactivity_years cannot be negative")

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """Build a config from constants (env-driven), ignoring None overrides."""
        return cls(**{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['as_of_date'] = self.as_of_date.date().isoformat()
        return data
