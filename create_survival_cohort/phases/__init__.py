"""
Pipeline phases for the survival cohort.

Each phase is in its own file and operates on the shared context dict.
"""

from .phase1_record_normalization import run_phase1_record_normalization
from .phase2_duration_calculation import run_phase2_duration_calculation
from .phase3_cohort_matching import run_phase3_cohort_matching
from .phase4_survival_emission import run_phase4_survival_emission
from .phase5_model_fitting import run_phase5_model_fitting

__all__ = [
    'run_phase1_record_normalization',
    'run_phase2_duration_calculation',
    'run_phase3_cohort_matching',
    'run_phase4_survival_emission',
    'run_phase5_model_fitting',
]
