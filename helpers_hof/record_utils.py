"""
Field-level parsers for biographical records: height, weight, BMI,
handedness and Hall of Fame membership.

Every parser returns None (never raises) for values it cannot interpret.
"""

import re
from typing import Optional

from helpers_hof import constants
from helpers_hof.data_utils import validate_and_clean_strings, safe_cast_to_float

_HEIGHT_SEPARATORS = re.compile(r"""\s*(?:-|'|’|\s)\s*""")


def parse_height(value, max_feet: int = constants.MAX_PLAUSIBLE_FEET) -> Optional[float]:
    """
    Convert a "FEET-INCHES" height into total inches.

    Examples:
        >>> parse_height("6-2")
        74.0
        >>> parse_height("6-02")
        74.0
        >>> parse_height("8-1") is None
        True
        >>> parse_height("-11") is None
        True

    Numeric values are taken to already be in inches (Lahman stores inches).
    Feet greater than max_feet, or a total above max_feet feet, are
    implausible and yield None.
    """
    value = validate_and_clean_strings(value)
    if value is None:
        return None

    if not isinstance(value, str):
        inches = safe_cast_to_float(value)
        return inches if inches is not None and 0 < inches <= max_feet * 12 else None

    text = value.rstrip('"” ')
    if re.fullmatch(r'\d+(?:\.\d+)?', text):
        inches = float(text)
        return inches if 0 < inches <= max_feet * 12 else None

    parts = _HEIGHT_SEPARATORS.split(text, maxsplit=1)
    if len(parts) != 2 or not parts[0]:
        return None

    feet = safe_cast_to_float(parts[0])
    inches = safe_cast_to_float(parts[1]) if parts[1] else 0.0
    if feet is None or inches is None:
        return None
    if feet <= 0 or feet > max_feet or inches < 0 or inches >= 12:
        return None
    total = feet * 12 + inches
    # "7-11" has a plausible feet part but an implausible total
    if total > max_feet * 12:
        return None
    return total


def parse_weight(value) -> Optional[float]:
    """Weight in pounds; non-positive values are treated as missing."""
    weight = safe_cast_to_float(value)
    return weight if weight is not None and weight > 0 else None


def compute_bmi(weight_pounds, height_inches) -> Optional[float]:
    """BMI = weight_lb / height_in² × 703; None if either input is missing."""
    weight = safe_cast_to_float(weight_pounds)
    height = safe_cast_to_float(height_inches)
    if weight is None or height is None or weight <= 0 or height <= 0:
        return None
    return weight / (height ** 2) * constants.BMI_IMPERIAL_FACTOR


def normalize_hand(value) -> str:
    value = validate_and_clean_strings(value)
    if value is None:
        return constants.HAND_UNKNOWN
    return constants.HAND_CODES.get(str(value).upper(), constants.HAND_UNKNOWN)


def normalize_hall_of_fame(value) -> str:
    value = validate_and_clean_strings(value)
    if value is None:
        return constants.HOF_OUT
    if isinstance(value, bool):
        return constants.HOF_IN if value else constants.HOF_OUT
    return constants.HOF_IN if str(value).upper() in constants.HOF_IN_CODES else constants.HOF_OUT


def has_value(value) -> bool:
    return validate_and_clean_strings(value) is not None
