"""
Data processing, audit and validation utilities.
"""

import json
import logging
from collections import Counter
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd


class AuditLog:
    """
    Per-run counters for everything the pipeline did not compute cleanly.

    Categories:
        parse_failure      field-level parse failures, keyed by field
        correction         correction-table hits, keyed by field
        sanity_bound       sanity-bound violations, keyed by duration type
        ambiguous_event    undated-but-implied deaths, keyed by duration type
        ordering           date-ordering invariant violations, keyed by pair
        excluded           emitter exclusions, keyed by "<duration>:<reason>"
    """

    def __init__(self):
        self.counts: Dict[str, Counter] = {}

    def record(self, category: str, key: str, n: int = 1) -> None:
        if n <= 0:
            return
        self.counts.setdefault(category, Counter())[key] += int(n)

    def count(self, category: str, key: Optional[str] = None) -> int:
        bucket = self.counts.get(category, Counter())
        if key is None:
            return sum(bucket.values())
        return bucket.get(key, 0)

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {category: dict(sorted(bucket.items())) for category, bucket in sorted(self.counts.items())}

    def log_summary(self, logger: logging.Logger) -> None:
        if not self.counts:
            logger.info("→ Audit: no parse failures, corrections or exclusions")
            return
        for category, bucket in sorted(self.counts.items()):
            detail = ", ".join(f"{k}={v:,}" for k, v in sorted(bucket.items()))
            logger.info(f"→ Audit [{category}] {sum(bucket.values()):,} total ({detail})")


def validate_and_clean_strings(value):
    """
    Strip strings and map blanks to None. Non-strings pass through.
    """
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned if cleaned else None
    return value


def safe_cast_to_int(value, default=None):
    """
    Safely cast a value to integer, handling blank strings and other edge cases.
    Returns the integer value or default if casting fails.
    """
    value = validate_and_clean_strings(value)
    if value is None:
        return default

    if isinstance(value, str):
        try:
            return int(float(value))
        except (ValueError, TypeError):
            return default

    try:
        return int(value)
    except (ValueError, TypeError, OverflowError):
        return default


def safe_cast_to_float(value, default=None):
    """Float counterpart of safe_cast_to_int; NaN counts as missing."""
    value = validate_and_clean_strings(value)
    if value is None:
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    return default if np.isnan(result) else result


def convert_json_serializable(obj: Any) -> Any:
    """Convert numpy/pandas objects to JSON serializable format."""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    elif isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, (pd.Timestamp, datetime, date)):
        return obj.isoformat()
    elif obj is pd.NA or obj is pd.NaT:
        return None
    elif isinstance(obj, set):
        return sorted(obj)
    elif isinstance(obj, dict):
        return {str(k): convert_json_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_json_serializable(item) for item in obj]
    return obj


def count_nulls(df: pd.DataFrame, columns) -> Dict[str, int]:
    """Null counts for the given columns (missing columns are skipped)."""
    return {col: int(df[col].isna().sum()) for col in columns if col in df.columns}


def log_data_loss(step_name: str, before_count: int, after_count: int, logger):
    """Log row loss between steps"""
    lost_count = before_count - after_count
    loss_pct = (lost_count / before_count * 100) if before_count > 0 else 0
    logger.info(f"📊 {step_name}: {before_count:,} → {after_count:,} rows ({lost_count:,} lost, {loss_pct:.1f}%)")


def generate_qa_report(context: Dict[str, Any], output_dir: str, logger: logging.Logger) -> Optional[Dict[str, Any]]:
    """Generate a compact QA report for the run and write it next to the outputs."""
    logger.info("→ Generating QA report...")

    try:
        records = context.get("records")
        observations = context.get("observations")
        cohort = context.get("cohort")
        audit = context.get("audit")
        config = context.get("config")

        qa_report: Dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "config": config.to_dict() if config is not None else None,
            "audit": audit.to_dict() if audit is not None else {},
        }

        if records is not None:
            qa_report["records"] = {
                "total_rows": int(len(records)),
                "hall_of_fame": records["hall_of_fame"].value_counts().to_dict(),
                "null_counts": count_nulls(records, ["birth_date", "death_date", "career_start_date",
                                                     "career_end_date", "height_inches", "weight_pounds", "bmi"]),
            }

        if observations is not None:
            status = (observations.groupby(["duration_type", "event_status"]).size()
                      .reset_index(name="count"))
            qa_report["observations"] = status.to_dict("records")

        if cohort is not None:
            qa_report["cohort"] = cohort.summary()

        if context.get("emission_reports"):
            qa_report["emission"] = context["emission_reports"]

        qa_report = convert_json_serializable(qa_report)

        out_path = Path(output_dir) / "qa_report.json"
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(qa_report, indent=2), encoding="utf-8")

        logger.info(f"→ ✓ QA report saved to {out_path}")
        return qa_report

    except (OSError, KeyError, ValueError, TypeError) as e:
        logger.error(f"→ Error generating QA report: {str(e)}")
        return None
