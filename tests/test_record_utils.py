"""
Tests for height, weight, BMI, handedness and Hall of Fame parsing.
"""
import pytest

from helpers_hof import constants
from helpers_hof.record_utils import (
    compute_bmi,
    normalize_hall_of_fame,
    normalize_hand,
    parse_height,
    parse_weight,
)


class TestParseHeight:
    """FEET-INCHES heights to total inches"""

    def test_standard_heights(self):
        assert parse_height("6-2") == 74.0
        assert parse_height("5-11") == 71.0

    def test_zero_padded_inches(self):
        assert parse_height("6-02") == 74.0

    def test_feet_only(self):
        assert parse_height("6-") == 72.0

    def test_quote_notation(self):
        assert parse_height("6'2\"") == 74.0

    def test_numeric_inches(self):
        """Lahman stores height as inches already"""
        assert parse_height(74) == 74.0
        assert parse_height("74") == 74.0

    def test_implausible_heights(self):
        assert parse_height("8-1") is None
        assert parse_height("7-11") is None
        assert parse_height("6-12") is None
        assert parse_height("-11") is None
        assert parse_height("0-10") is None

    def test_missing_or_garbage(self):
        for value in (None, "", "tall", "6-x"):
            assert parse_height(value) is None


class TestParseWeight:

    def test_weight(self):
        assert parse_weight("180") == 180.0
        assert parse_weight(195.5) == 195.5

    def test_non_positive_or_missing(self):
        assert parse_weight("0") is None
        assert parse_weight("-5") is None
        assert parse_weight("") is None


class TestComputeBMI:
    """BMI from pounds and inches"""

    def test_standard_bmi(self):
        bmi = compute_bmi(180, 74)
        assert bmi == pytest.approx(180 / 74 ** 2 * 703)
        assert round(bmi, 1) == 23.1

    def test_heavier_is_higher(self):
        assert compute_bmi(220, 74) > compute_bmi(180, 74)

    def test_missing_inputs(self):
        assert compute_bmi(None, 74) is None
        assert compute_bmi(180, None) is None
        assert compute_bmi(180, 0) is None


class TestHandedness:

    def test_codes(self):
        assert normalize_hand("L") == constants.HAND_LEFT
        assert normalize_hand("r") == constants.HAND_RIGHT
        assert normalize_hand("B") == constants.HAND_BOTH
        assert normalize_hand("S") == constants.HAND_BOTH

    def test_unknown(self):
        assert normalize_hand(None) == constants.HAND_UNKNOWN
        assert normalize_hand("?") == constants.HAND_UNKNOWN

    def test_normalized_value_is_fixed_point(self):
        for hand in (constants.HAND_LEFT, constants.HAND_RIGHT, constants.HAND_BOTH):
            assert normalize_hand(hand) == hand


class TestHallOfFame:

    def test_in_codes(self):
        for value in ("In", "HOF", "Y", True, "hofp"):
            assert normalize_hall_of_fame(value) == constants.HOF_IN

    def test_out_by_default(self):
        for value in (None, "", "N", "Out", False):
            assert normalize_hall_of_fame(value) == constants.HOF_OUT
