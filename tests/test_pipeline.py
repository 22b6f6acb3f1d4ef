"""
End-to-end runs of the survival cohort pipeline CLI.
"""
import json

import pandas as pd
import pytest

from create_survival_cohort.run_pipeline import STEP_EXECUTION_ORDER, config_from_args, main, parse_args


@pytest.fixture
def canonical_input(tmp_path, raw_factory):
    rows = [
        {'subject_id': 'trta0101', 'birth_date': '1904-03-01', 'death_date': '1990-05-01',
         'career_start_date': '1925-04-14', 'career_end_date': '1943-09-26', 'height': '6-1', 'weight': '190',
         'bats': 'R', 'throws': 'R', 'hall_of_fame': 'HOF', 'induction_year': '1967',
         'birth_country': 'USA', 'birth_state': 'OH'},
        {'subject_id': 'trtb0101', 'birth_date': '1904-07-01', 'death_date': '1995-01-01',
         'career_start_date': '1927-05-01', 'career_end_date': '1945-09-30', 'height': '5-11', 'weight': '175',
         'bats': 'L', 'throws': 'R', 'hall_of_fame': 'HOF', 'induction_year': '1970',
         'birth_country': 'USA', 'birth_state': 'PA'},
        {'subject_id': 'ctlc0101', 'birth_date': '1904-01-15', 'death_date': '1985-06-01',
         'career_start_date': '1928-06-01', 'career_end_date': '1931-07-04', 'height': '6-0', 'weight': '180',
         'bats': 'R', 'throws': 'R', 'birth_country': 'USA', 'birth_state': 'OH'},
        {'subject_id': 'ctlf0101', 'birth_date': '1904-11-11', 'death_date': '1968-02-02',
         'career_start_date': '1926-04-20', 'career_end_date': '1929-08-08', 'bats': 'B', 'throws': 'L',
         'birth_country': 'CAN', 'birth_state': 'ON'},
        {'subject_id': 'ctlu0101', 'birth_date': '1904-09-09', 'cemetery': 'Calvary'},
        {'subject_id': 'trtc0101', 'birth_date': '1950-04-04', 'career_start_date': '1972-04-07',
         'career_end_date': '1991-10-02', 'height': '6-3', 'weight': '215', 'hall_of_fame': 'HOF',
         'induction_year': '2000', 'birth_country': 'USA', 'birth_state': 'CA'},
        {'subject_id': 'ctlg0101', 'birth_date': '1950-08-08', 'career_start_date': '1973-05-05',
         'career_end_date': '1980-09-09', 'height': '6-0', 'weight': '185', 'birth_country': 'USA',
         'birth_state': 'CA'},
        {'subject_id': 'act00101', 'birth_date': '1992-02-02', 'career_start_date': '2014-04-01',
         'career_end_date': '2021-10-03', 'height': '6-2', 'weight': '210'},
        {'subject_id': 'old00101', 'birth_date': '1850'},
    ]
    path = tmp_path / "players.csv"
    raw_factory(rows).to_csv(path, index=False)
    return path


@pytest.fixture
def run_args(tmp_path, canonical_input):
    def build(*extra):
        return [
            '--source', 'canonical',
            '--input', str(canonical_input),
            '--as-of-date', '2021-12-02',
            '--no-corrections',
            '--output-dir', str(tmp_path / "out"),
            '--state-dir', str(tmp_path / "state"),
            '--log-dir', str(tmp_path / "logs"),
            *extra,
        ]
    return build


class TestPipelineRun:
    """Full runs write every phase output"""

    def test_full_run(self, tmp_path, run_args):
        assert main(run_args()) == 0

        out = tmp_path / "out"
        for name in ('normalized_records.parquet', 'survival_observations.parquet', 'matched_pairs.parquet',
                     'matched_controls.parquet', 'matched_treatments.parquet', 'qa_report.json'):
            assert (out / name).exists(), name
        for name in ('lifetime', 'career', 'retirement_age', 'cohort_pairs', 'cohort_controls', 'time_varying'):
            assert (out / "survival_rows" / f"{name}.csv").exists(), name
        for name in ('physical_trends_by_decade', 'handedness', 'birthplaces'):
            assert (out / "summaries" / f"{name}.csv").exists(), name
        assert not (out / "model_summary.json").exists()

        records = pd.read_parquet(out / "normalized_records.parquet")
        assert len(records) == 9

        pairs = pd.read_parquet(out / "matched_pairs.parquet")
        assert set(map(tuple, pairs[['treatment_id', 'control_id']].values.tolist())) == {
            ('trta0101', 'ctlc0101'), ('trta0101', 'ctlf0101'),
            ('trtb0101', 'ctlc0101'), ('trtc0101', 'ctlg0101'),
        }

        exclusions = json.loads((out / "survival_rows" / "exclusion_report.json").read_text())
        assert exclusions['lifetime']['input'] == 9
        assert exclusions['lifetime']['unknown_event'] == 2
        assert exclusions['lifetime']['emitted'] == 7

        qa = json.loads((out / "qa_report.json").read_text())
        assert qa['cohort']['n_pairs'] == 4
        assert qa['config']['as_of_date'] == '2021-12-02'

    def test_lifetime_rows(self, tmp_path, run_args):
        main(run_args())
        rows = pd.read_csv(tmp_path / "out" / "survival_rows" / "lifetime.csv").set_index('subject_id')
        assert rows.loc['trta0101', 'hof'] == 1
        assert rows.loc['trta0101', 'event'] == 1
        assert rows.loc['act00101', 'event'] == 0
        assert 'old00101' not in rows.index

    def test_fit_models(self, tmp_path, run_args):
        assert main(run_args('--fit-models')) == 0
        report = json.loads((tmp_path / "out" / "model_summary.json").read_text())
        assert 'lifetime' in report
        assert 'kaplan_meier' in report['lifetime']

    def test_resume_from_saved_outputs(self, tmp_path, run_args):
        assert main(run_args()) == 0
        rows_dir = tmp_path / "out" / "survival_rows"
        for path in rows_dir.glob("*.csv"):
            path.unlink()

        assert main(run_args('--starting-step', 'phase4_survival_emission', '--reset-state')) == 0
        assert (rows_dir / "cohort_pairs.csv").exists()

    def test_completed_steps_are_skipped(self, tmp_path, run_args):
        assert main(run_args()) == 0
        (tmp_path / "out" / "qa_report.json").unlink()
        assert main(run_args()) == 0
        assert not (tmp_path / "out" / "qa_report.json").exists()

    def test_changed_alive_rule_rebuilds_cohort(self, tmp_path, run_args, canonical_input):
        """A control who died in the induction year only matches under the inclusive rule"""
        players = pd.read_csv(canonical_input, dtype=str)
        extra = players.iloc[[0]].assign(subject_id='ctld0101', death_date='1967-03-01',
                                         hall_of_fame=None, induction_year=None)
        path = tmp_path / "players_with_ctld.csv"
        pd.concat([players, extra], ignore_index=True).to_csv(path, index=False)

        args = run_args()
        args[args.index('--input') + 1] = str(path)
        pairs_path = tmp_path / "out" / "matched_pairs.parquet"

        assert main(args + ['--alive-rule', 'strict']) == 0
        assert len(pd.read_parquet(pairs_path)) == 4

        assert main(args + ['--alive-rule', 'inclusive']) == 0
        pairs = pd.read_parquet(pairs_path)
        assert len(pairs) == 5
        assert 'ctld0101' in set(pairs['control_id'])
        qa = json.loads((tmp_path / "out" / "qa_report.json").read_text())
        assert qa['config']['alive_at_index_strict'] is False

    def test_new_output_dir_is_written(self, tmp_path, run_args):
        assert main(run_args()) == 0

        args = run_args()
        args[args.index('--output-dir') + 1] = str(tmp_path / "out2")
        assert main(args) == 0
        assert (tmp_path / "out2" / "matched_pairs.parquet").exists()
        assert (tmp_path / "out2" / "survival_rows" / "lifetime.csv").exists()

    def test_missing_input_exits_nonzero(self, tmp_path, run_args):
        args = run_args()
        args[args.index('--input') + 1] = str(tmp_path / "absent.csv")
        with pytest.raises(SystemExit) as excinfo:
            main(args)
        assert excinfo.value.code == 1
        failures = list((tmp_path / "state").glob("**/failures/*.json"))
        assert any(path.name == "phase1_record_normalization.json" for path in failures)


class TestArguments:

    def test_defaults(self):
        args = parse_args(['--input', 'biofile.csv'])
        assert args.source == 'retrosheet'
        assert args.starting_step == STEP_EXECUTION_ORDER[0]
        assert not args.fit_models

    def test_config_overrides(self):
        config = config_from_args(parse_args([
            '--input', 'biofile.csv', '--as-of-date', '2024-01-15', '--alive-rule', 'inclusive',
            '--no-corrections',
        ]))
        assert config.as_of_date == pd.Timestamp('2024-01-15')
        assert config.alive_at_index_strict is False
        assert config.corrections_path is None

    def test_unknown_step_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(['--input', 'biofile.csv', '--starting-step', 'phase9_publish'])
