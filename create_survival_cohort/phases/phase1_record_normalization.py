"""
Phase 1: Record Normalization.

Loads the biographical source table, applies the correction table and
parses every field into typed records.
"""

from helpers_hof.corrections import load_corrections
from helpers_hof.data_utils import count_nulls
from helpers_hof.io_utils import load_source, save_frame
from helpers_hof.normalize_utils import normalize_records

from .common import SYMBOLS, step_metadata


def run_phase1_record_normalization(context):
    """Phase 1: load, correct and normalize biographical records."""
    logger = context["logger"]
    config = context["config"]
    audit = context["audit"]
    paths = context["paths"]
    pipeline_state = context.get("pipeline_state")

    step_name = "phase1_record_normalization"

    if pipeline_state and pipeline_state.is_step_completed(step_name):
        logger.info(f"{SYMBOLS['success']} [PHASE 1] Already completed - skipping")
        return

    logger.info(f"{SYMBOLS['arrow']} [PHASE 1] Starting record normalization ({context['source']} source)...")

    try:
        raw = load_source(
            context["source"],
            context["input_path"],
            hall_of_fame_path=context.get("hall_of_fame_path"),
            people_path=context.get("people_path"),
            appearances_path=context.get("appearances_path"),
            logger=logger,
        )
        logger.info(f"→ [PHASE 1] Loaded {len(raw):,} raw records")

        corrections = load_corrections(config.corrections_path, logger)
        records = normalize_records(raw, config, corrections, audit, logger)

        nulls = count_nulls(records, ['birth_date', 'death_date', 'career_start_date', 'career_end_date'])
        logger.info(f"→ [PHASE 1] QA: null dates {nulls}")
        logger.info(f"→ [PHASE 1] QA: Hall of Fame {records['hall_of_fame'].value_counts().to_dict()}")

        save_frame(records, paths["records"], logger)
        context["records"] = records

        if pipeline_state:
            pipeline_state.mark_step_completed(step_name, step_metadata(
                records=len(records),
                corrections=audit.count('correction'),
                parse_failures=audit.count('parse_failure'),
                output=str(paths["records"]),
            ))

        logger.info(f"{SYMBOLS['success']} [PHASE 1] Record normalization completed")

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} [PHASE 1] Record normalization failed: {str(e)}")
        if pipeline_state:
            pipeline_state.mark_step_failed(step_name, str(e))
        raise
