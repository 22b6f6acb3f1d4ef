# survival_schema.py
"""
Schemas for the survival row sets written by phase 4.
- Column order matches the emitted CSV files
- Covariate columns (bmi, seasons, ...) follow the fixed columns of the
  plain survival row sets and are not listed here
"""

survival_row_schema = [
    ("subject_id", "str", "Player identifier (Retrosheet or Lahman id)"),
    ("duration", "float", "Years from origin to event or censoring (> 0)"),
    ("event", "int", "1 = event observed (died / retired), 0 = censored"),
    ("hof", "int", "1 = Hall of Fame inductee, 0 = not inducted"),
]

cohort_row_schema = [
    ("subject_id", "str", "Player identifier"),
    # NOTE: matched_set is the treatment id in the pairs view, empty in the controls view
    ("matched_set", "str", "Treatment subject whose matched set this row belongs to"),
    ("group", "int", "1 = treatment (inducted alive), 0 = matched control"),
    ("index_year", "int", "Induction year the row is matched on"),
    ("entry", "float", "Age at the index date (left truncation)"),
    ("duration", "float", "Age at death or at the as-of date"),
    ("event", "int", "1 = died, 0 = alive at the as-of date"),
]

time_varying_row_schema = [
    ("subject_id", "str", "Player identifier"),
    ("start", "float", "Interval start (age in years)"),
    ("stop", "float", "Interval end (age in years)"),
    ("event", "int", "1 = died at stop, 0 otherwise (only the last interval can be 1)"),
    ("hof", "int", "1 = interval after induction, 0 before or never inducted"),
]

ROW_SET_SCHEMAS = {
    "lifetime": survival_row_schema,
    "career": survival_row_schema,
    "retirement_age": survival_row_schema,
    "cohort_pairs": cohort_row_schema,
    "cohort_controls": cohort_row_schema,
    "time_varying": time_varying_row_schema,
}


def missing_schema_columns(name, columns):
    """Schema columns absent from an emitted row set (empty list when it conforms)."""
    return [col for col, _, _ in ROW_SET_SCHEMAS[name] if col not in columns]
