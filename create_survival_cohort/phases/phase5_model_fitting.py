"""
Phase 5: Model Fitting (optional).

Kaplan-Meier, log-rank and Cox models on the emitted rows.
"""

from helpers_hof import constants
from helpers_hof.model_utils import fit_survival_models, save_model_report

from .common import SYMBOLS, ensure_row_sets, step_metadata


def run_phase5_model_fitting(context):
    """Phase 5: fit survival models when requested."""
    logger = context["logger"]
    paths = context["paths"]
    covariates = context.get("covariates") or constants.DEFAULT_COVARIATES
    pipeline_state = context.get("pipeline_state")

    step_name = "phase5_model_fitting"

    if not context.get("fit_models"):
        logger.info(f"{SYMBOLS['skip']} [PHASE 5] Model fitting not requested - skipping")
        return

    if pipeline_state and pipeline_state.is_step_completed(step_name):
        logger.info(f"{SYMBOLS['success']} [PHASE 5] Already completed - skipping")
        return

    logger.info(f"{SYMBOLS['arrow']} [PHASE 5] Starting survival model fitting...")

    try:
        row_sets = ensure_row_sets(context)
        report = fit_survival_models(row_sets, covariates, logger)
        save_model_report(report, paths["models"], logger)
        context["model_report"] = report

        failed = sorted(
            name for name, section in report.items()
            if isinstance(section, dict) and (
                'error' in section
                or any(isinstance(v, dict) and 'error' in v for v in section.values())
            )
        )
        if failed:
            logger.warning(f"⚠️ [PHASE 5] Some models could not be fitted: {failed}")

        if pipeline_state:
            pipeline_state.mark_step_completed(step_name, step_metadata(
                models=sorted(report), unfitted=failed, output=str(paths["models"])))

        logger.info(f"{SYMBOLS['success']} [PHASE 5] Model fitting completed")

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} [PHASE 5] Model fitting failed: {str(e)}")
        if pipeline_state:
            pipeline_state.mark_step_failed(step_name, str(e))
        raise
