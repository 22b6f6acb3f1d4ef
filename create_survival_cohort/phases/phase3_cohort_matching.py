"""
Phase 3: Cohort Matching.

Builds the birth-year matched control cohort for inductees alive at
induction, keeping the per-pair and per-control views apart.
"""

from helpers_hof.cohort_utils import build_matched_cohort
from helpers_hof.io_utils import save_frame

from .common import SYMBOLS, ensure_observations, ensure_records, step_metadata


def run_phase3_cohort_matching(context):
    """Phase 3: matched pairs, distinct controls and treatments."""
    logger = context["logger"]
    config = context["config"]
    conn = context["conn"]
    paths = context["paths"]
    pipeline_state = context.get("pipeline_state")

    step_name = "phase3_cohort_matching"

    if pipeline_state and pipeline_state.is_step_completed(step_name):
        logger.info(f"{SYMBOLS['success']} [PHASE 3] Already completed - skipping")
        return

    rule = 'death_year > index_year' if config.alive_at_index_strict else 'death_year >= index_year'
    logger.info(f"{SYMBOLS['arrow']} [PHASE 3] Starting cohort matching (alive rule: {rule})...")

    try:
        records = ensure_records(context)
        observations = ensure_observations(context)

        cohort = build_matched_cohort(conn, records, observations, config, logger)
        summary = cohort.summary()
        logger.info(f"→ [PHASE 3] QA: {summary}")

        save_frame(cohort.pair_view(), paths["pairs"], logger)
        save_frame(cohort.control_view(), paths["controls"], logger)
        save_frame(cohort.treatment_view(), paths["treatments"], logger)
        context["cohort"] = cohort

        if pipeline_state:
            pipeline_state.mark_step_completed(step_name, step_metadata(alive_rule=rule, **summary))

        logger.info(f"{SYMBOLS['success']} [PHASE 3] Cohort matching completed")

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} [PHASE 3] Cohort matching failed: {str(e)}")
        if pipeline_state:
            pipeline_state.mark_step_failed(step_name, str(e))
        raise
