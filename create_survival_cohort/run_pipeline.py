"""
Hall of Fame longevity survival-cohort pipeline.

Phases:
    1. Record normalization   raw biographical table -> typed records
    2. Duration calculation   lifetime / career / retirement-age observations
    3. Cohort matching        inductees alive at induction vs. same-birth-year controls
    4. Survival emission      model-ready rows, exclusion report, summaries, QA report
    5. Model fitting          Kaplan-Meier / Cox (only with --fit-models)

Outputs land in the output directory; step checkpoints in the state
directory allow --starting-step to resume from saved phase outputs.
"""

import argparse
import hashlib
import json
import logging
import platform
import sys
import traceback
from dataclasses import replace
from pathlib import Path

from helpers_hof import constants
from helpers_hof.config import PipelineConfig
from helpers_hof.data_utils import AuditLog
from helpers_hof.duckdb_utils import close_duckdb_connection, get_duckdb_connection
from helpers_hof.io_utils import output_paths
from helpers_hof.logging_utils import close_logger, save_logs_to_file, setup_logging
from helpers_hof.pipeline_state import PipelineState

from create_survival_cohort.phases import (
    run_phase1_record_normalization,
    run_phase2_duration_calculation,
    run_phase3_cohort_matching,
    run_phase4_survival_emission,
    run_phase5_model_fitting,
)

# Windows emoji compatibility
IS_WINDOWS = platform.system() == 'Windows'
SYMBOLS = {
    'rocket': '[START]' if IS_WINDOWS else '🚀',
    'info': '[INFO]' if IS_WINDOWS else '📊',
    'success': '[PASS]' if IS_WINDOWS else '✅',
    'fail': '[FAIL]' if IS_WINDOWS else '❌',
}

RUN_NAME = "create_survival_cohort"

STEP_EXECUTION_ORDER = [
    "phase1_record_normalization",   # Load, correct and parse biographical records
    "phase2_duration_calculation",   # Lifetime, career and retirement-age observations
    "phase3_cohort_matching",        # Birth-year matched controls for living inductees
    "phase4_survival_emission",      # Survival rows, exclusion report, summaries, QA
    "phase5_model_fitting",          # Optional lifelines models
]

step_functions = {
    "phase1_record_normalization": run_phase1_record_normalization,
    "phase2_duration_calculation": run_phase2_duration_calculation,
    "phase3_cohort_matching": run_phase3_cohort_matching,
    "phase4_survival_emission": run_phase4_survival_emission,
    "phase5_model_fitting": run_phase5_model_fitting,
}


def step_execution_dispatcher(starting_step, context):
    """
    Execute pipeline steps starting from the specified step.

    Args:
        starting_step (str): The step to start execution from
        context (dict): Pipeline context containing all necessary data
    """
    logger = context["logger"]

    try:
        start_index = STEP_EXECUTION_ORDER.index(starting_step)
    except ValueError:
        logger.error(f"→ [DISPATCHER] Invalid starting step: {starting_step}")
        logger.error(f"→ [DISPATCHER] Available steps: {STEP_EXECUTION_ORDER}")
        raise ValueError(f"Invalid starting step: {starting_step}")

    steps_to_execute = STEP_EXECUTION_ORDER[start_index:]
    logger.info(f"→ [DISPATCHER] Executing steps: {steps_to_execute}")

    for step_name in steps_to_execute:
        try:
            logger.info(f"→ [DISPATCHER] Executing {step_name}...")
            step_functions[step_name](context)
            logger.info(f"→ [DISPATCHER] Completed {step_name}")
        except Exception as e:
            logger.error(f"→ [DISPATCHER] Error in {step_name}: {str(e)}")
            logger.error(f"→ [DISPATCHER] Traceback: {traceback.format_exc()}")
            raise


def execute_pipeline(context):
    """Execute the complete pipeline by running all phases in order."""
    logger = context["logger"]
    logger.info("→ [PIPELINE] Starting 5-phase survival cohort pipeline...")
    step_execution_dispatcher(STEP_EXECUTION_ORDER[0], context)
    logger.info("→ [PIPELINE] Survival cohort pipeline completed successfully!")


def build_context(args, config: PipelineConfig, logger, pipeline_state, conn):
    output_dir = Path(args.output_dir)
    return {
        "source": args.source,
        "input_path": args.input,
        "hall_of_fame_path": args.hall_of_fame,
        "people_path": args.people,
        "appearances_path": args.appearances,
        "covariates": args.covariates,
        "fit_models": args.fit_models,
        "config": config,
        "audit": AuditLog(),
        "paths": output_paths(output_dir),
        "conn": conn,
        "logger": logger,
        "pipeline_state": pipeline_state,
    }


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Hall of Fame longevity survival-cohort pipeline")
    parser.add_argument("--source", default="retrosheet", choices=["retrosheet", "lahman", "canonical"],
                        help="Layout of the biographical input table")
    parser.add_argument("--input", required=True, help="Biographical table (Retrosheet biofile, Lahman People, ...)")
    parser.add_argument("--hall-of-fame", default=None, help="Lahman HallOfFame table for induction years")
    parser.add_argument("--people", default=None,
                        help="Lahman People table (maps Lahman ids to Retrosheet ids for --source retrosheet)")
    parser.add_argument("--appearances", default=None, help="Lahman Appearances table (seasons, position)")
    parser.add_argument("--as-of-date", default=None, help="Snapshot date for censoring (YYYY-MM-DD)")
    parser.add_argument("--corrections", default=None, help="Record correction table (CSV)")
    parser.add_argument("--no-corrections", action="store_true", help="Do not apply any record corrections")
    parser.add_argument("--alive-rule", default=None, choices=["strict", "inclusive"],
                        help="Alive at induction: death_year > index_year (strict) or >= (inclusive)")
    parser.add_argument("--covariates", nargs="*", default=None,
                        help=f"Covariates carried on survival rows (default: {constants.DEFAULT_COVARIATES})")
    parser.add_argument("--output-dir", default=constants.DEFAULT_OUTPUT_DIR, help="Output directory")
    parser.add_argument("--state-dir", default=constants.DEFAULT_STATE_DIR, help="Pipeline state directory")
    parser.add_argument("--log-dir", default=constants.DEFAULT_LOG_DIR, help="Log directory")
    parser.add_argument("--starting-step", default=STEP_EXECUTION_ORDER[0], choices=STEP_EXECUTION_ORDER,
                        help="Phase to start execution from")
    parser.add_argument("--fit-models", action="store_true", help="Fit survival models after emission")
    parser.add_argument("--reset-state", action="store_true", help="Discard checkpoints and start fresh")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser.parse_args(argv)


def run_fingerprint(args, config: PipelineConfig) -> str:
    """Short hash of everything that decides the phase outputs."""
    def resolved(path):
        return str(Path(path).resolve()) if path else None

    payload = {
        'source': args.source,
        'inputs': [resolved(p) for p in (args.input, args.hall_of_fame, args.people, args.appearances)],
        'covariates': args.covariates,
        'output_dir': resolved(args.output_dir),
        'config': config.to_dict(),
    }
    encoded = json.dumps(payload, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha256(encoded).hexdigest()[:16]


def config_from_args(args) -> PipelineConfig:
    """Env-driven config with CLI overrides applied on top."""
    config = PipelineConfig.from_env(
        as_of_date=args.as_of_date,
        corrections_path=args.corrections,
        alive_at_index_strict=None if args.alive_rule is None else args.alive_rule == "strict",
    )
    if args.no_corrections:
        config = replace(config, corrections_path=None)
    return config


def main(argv=None):
    """Main entry point for the survival cohort pipeline."""
    args = parse_args(argv)
    config = config_from_args(args)
    as_of = config.as_of_date.date().isoformat()

    logger, log_buffer = setup_logging(RUN_NAME, as_of, log_dir=args.log_dir)
    logger.setLevel(getattr(logging, args.log_level.upper(), logging.INFO))

    logger.info("=" * 80)
    logger.info(f"{SYMBOLS['rocket']} HALL OF FAME SURVIVAL COHORT PIPELINE")
    logger.info("=" * 80)
    logger.info(f"{SYMBOLS['info']} Source: {args.source} ({args.input})")
    logger.info(f"{SYMBOLS['info']} As-of date: {as_of}")
    logger.info(f"{SYMBOLS['info']} Starting Step: {args.starting_step}")
    logger.info(f"{SYMBOLS['info']} Config: {config.to_dict()}")
    logger.info("=" * 80)

    conn = None
    pipeline_state = None
    try:
        entity_id = f"{args.source}_as_of_{as_of}"
        pipeline_state = PipelineState(RUN_NAME, entity_id, logger, state_dir=args.state_dir)
        if args.reset_state:
            pipeline_state.reset()
        if pipeline_state.bind_run(run_fingerprint(args, config)):
            logger.info(f"{SYMBOLS['info']} Configuration differs from the saved run - rebuilding all phases")

        conn = get_duckdb_connection(logger=logger)
        context = build_context(args, config, logger, pipeline_state, conn)

        if args.starting_step == STEP_EXECUTION_ORDER[0]:
            execute_pipeline(context)
        else:
            step_execution_dispatcher(args.starting_step, context)

        pipeline_state.mark_pipeline_completed({
            'source': args.source,
            'as_of_date': as_of,
            'output_dir': str(args.output_dir),
        })

        logger.info("=" * 80)
        logger.info(f"{SYMBOLS['success']} SURVIVAL COHORT PIPELINE COMPLETED SUCCESSFULLY!")
        logger.info("=" * 80)
        save_logs_to_file(log_buffer, RUN_NAME, args.log_dir, logger=logger)
        return 0

    except Exception as e:
        logger.error(f"{SYMBOLS['fail']} Pipeline failed: {str(e)}")
        logger.error(f"{SYMBOLS['fail']} Traceback: {traceback.format_exc()}")
        if pipeline_state is not None:
            pipeline_state.mark_step_failed('pipeline', str(e))
        save_logs_to_file(log_buffer, RUN_NAME, args.log_dir, logger=logger, reason="error")
        sys.exit(1)

    finally:
        close_duckdb_connection(conn, logger)
        close_logger(logger)


if __name__ == "__main__":
    sys.exit(main())
