"""
Shared fixtures for the survival cohort tests.
"""
import logging

import pandas as pd
import pytest

from helpers_hof.config import PipelineConfig
from helpers_hof.constants import RAW_COLUMNS
from helpers_hof.data_utils import AuditLog
from helpers_hof.normalize_utils import normalize_records
from helpers_hof.survival_utils import derive_observations


def make_raw(rows):
    """Raw biographical table with every canonical column present."""
    frame = pd.DataFrame(rows)
    for col in RAW_COLUMNS:
        if col not in frame.columns:
            frame[col] = None
    return frame[RAW_COLUMNS]


@pytest.fixture
def config():
    return PipelineConfig(as_of_date='2021-12-02', corrections_path=None)


@pytest.fixture
def audit():
    return AuditLog()


@pytest.fixture
def logger():
    test_logger = logging.getLogger("hof_tests")
    test_logger.setLevel(logging.DEBUG)
    return test_logger


@pytest.fixture
def raw_factory():
    return make_raw


@pytest.fixture
def pipeline_frames(config):
    """Normalize rows and derive observations in one step: (records, observations)."""
    def build(rows):
        records = normalize_records(make_raw(rows), config)
        return records, derive_observations(records, config)
    return build


@pytest.fixture
def end_to_end_rows():
    """Three records with known lifetime outcomes as of 2021-12-02."""
    return [
        {'subject_id': 'early101', 'birth_date': '1900', 'death_date': '1975-01-01', 'hall_of_fame': 'In'},
        {'subject_id': 'alive101', 'birth_date': '1920'},
        {'subject_id': 'old00101', 'birth_date': '1850'},
    ]
