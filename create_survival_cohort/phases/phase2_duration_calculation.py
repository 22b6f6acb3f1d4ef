"""
Phase 2: Duration Calculation.

Derives lifetime, career and retirement-age observations for every record.
"""

from helpers_hof.io_utils import save_frame
from helpers_hof.survival_utils import derive_observations

from .common import SYMBOLS, ensure_records, step_metadata


def run_phase2_duration_calculation(context):
    """Phase 2: survival observations per (subject, duration type)."""
    logger = context["logger"]
    config = context["config"]
    audit = context["audit"]
    paths = context["paths"]
    pipeline_state = context.get("pipeline_state")

    step_name = "phase2_duration_calculation"

    if pipeline_state and pipeline_state.is_step_completed(step_name):
        logger.info(f"{SYMBOLS['success']} [PHASE 2] Already completed - skipping")
        return

    logger.info(f"{SYMBOLS['arrow']} [PHASE 2] Starting duration calculation "
                f"(as of {config.as_of_date.date()})...")

    try:
        records = ensure_records(context)
        observations = derive_observations(records, config, audit, logger)

        status_counts = {
            f"{duration_type}:{status}": int(n)
            for (duration_type, status), n in observations.groupby(['duration_type', 'event_status']).size().items()
        }
        logger.info(f"→ [PHASE 2] QA: {status_counts}")

        save_frame(observations, paths["observations"], logger)
        context["observations"] = observations

        if pipeline_state:
            pipeline_state.mark_step_completed(step_name, step_metadata(
                observations=len(observations),
                status_counts=status_counts,
                output=str(paths["observations"]),
            ))

        logger.info(f"{SYMBOLS['success']} [PHASE 2] Duration calculation completed")

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} [PHASE 2] Duration calculation failed: {str(e)}")
        if pipeline_state:
            pipeline_state.mark_step_failed(step_name, str(e))
        raise
