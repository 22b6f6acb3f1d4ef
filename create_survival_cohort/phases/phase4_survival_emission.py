"""
Phase 4: Survival Record Emission.

Writes model-ready survival rows for every duration type, both matched
cohort views and the time-varying long format, together with the exclusion
report, descriptive summary tables and the QA report.
"""

from helpers_hof import constants
from helpers_hof.data_utils import convert_json_serializable, generate_qa_report, log_data_loss
from helpers_hof.io_utils import save_frame
from helpers_hof.summary_utils import write_summaries
from helpers_hof.survival_utils import emit_cohort_rows, emit_survival_rows, emit_time_varying_rows

from ..survival_schema import missing_schema_columns
from .common import (
    SYMBOLS,
    ensure_cohort,
    ensure_observations,
    ensure_records,
    step_metadata,
    write_json,
)


def run_phase4_survival_emission(context):
    """Phase 4: emit survival rows and run-level reports."""
    logger = context["logger"]
    config = context["config"]
    audit = context["audit"]
    paths = context["paths"]
    covariates = context.get("covariates") or constants.DEFAULT_COVARIATES
    pipeline_state = context.get("pipeline_state")

    step_name = "phase4_survival_emission"

    if pipeline_state and pipeline_state.is_step_completed(step_name):
        logger.info(f"{SYMBOLS['success']} [PHASE 4] Already completed - skipping")
        return

    logger.info(f"{SYMBOLS['arrow']} [PHASE 4] Starting survival row emission (covariates: {covariates})...")

    try:
        records = ensure_records(context)
        observations = ensure_observations(context)
        cohort = ensure_cohort(context)

        row_sets, reports = {}, {}
        for duration_type in constants.DURATION_TYPES:
            row_sets[duration_type], reports[duration_type] = emit_survival_rows(
                observations, records, duration_type, covariates, audit)
        for view in ('pairs', 'controls'):
            name = f"cohort_{view}"
            row_sets[name], reports[name] = emit_cohort_rows(
                observations, records, cohort, config, view, audit)
        row_sets['time_varying'], reports['time_varying'] = emit_time_varying_rows(
            observations, records, config, audit)

        for name, rows in row_sets.items():
            missing = missing_schema_columns(name, rows.columns)
            if missing:
                raise ValueError(f"Row set {name} is missing columns {missing}")
            save_frame(rows, paths["rows_dir"] / f"{name}.csv", logger)
            report = reports[name]
            log_data_loss(f"[PHASE 4] {name}", report['input'], report['emitted'], logger)
            logger.info(f"→ [PHASE 4] {name} exclusions: "
                        f"(unknown_event={report['unknown_event']:,}, null_duration={report['null_duration']:,}, "
                        f"non_positive_duration={report['non_positive_duration']:,})")

        write_json(convert_json_serializable(reports), paths["rows_dir"] / "exclusion_report.json")
        write_summaries(records, paths["summaries_dir"], logger)

        context["row_sets"] = row_sets
        context["emission_reports"] = reports
        audit.log_summary(logger)
        generate_qa_report(context, str(paths["qa_report"].parent), logger)

        if pipeline_state:
            pipeline_state.mark_step_completed(step_name, step_metadata(
                emitted={name: report['emitted'] for name, report in reports.items()},
                output=str(paths["rows_dir"]),
            ))

        logger.info(f"{SYMBOLS['success']} [PHASE 4] Survival row emission completed")

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} [PHASE 4] Survival row emission failed: {str(e)}")
        if pipeline_state:
            pipeline_state.mark_step_failed(step_name, str(e))
        raise
