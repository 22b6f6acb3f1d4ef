"""
Tests for pipeline checkpoints and resume state.
"""
import json

from helpers_hof.pipeline_state import PipelineState


def make_state(tmp_path, logger, entity_id="retrosheet_as_of_2021-12-02"):
    return PipelineState("create_survival_cohort", entity_id, logger, state_dir=str(tmp_path))


class TestPipelineState:

    def test_fresh_state(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        progress = state.get_progress()
        assert progress['status'] == 'running'
        assert progress['completed_steps'] == 0

    def test_completed_step_survives_reload(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.mark_step_completed("phase1_record_normalization", {'records': 3})

        reloaded = make_state(tmp_path, logger)
        assert reloaded.is_step_completed("phase1_record_normalization")
        assert not reloaded.is_step_completed("phase2_duration_calculation")

    def test_rerun_overwrites_step(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.mark_step_completed("phase1_record_normalization", {'records': 3})
        state.mark_step_completed("phase1_record_normalization", {'records': 4})
        assert state.get_progress()['step_names'] == ["phase1_record_normalization"]
        assert state.state['completed_steps'][0]['metadata'] == {'records': 4}

    def test_checkpoint_file_recovers_step(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.mark_step_completed("phase2_duration_calculation")
        state.state_path.unlink()

        recovered = make_state(tmp_path, logger)
        assert recovered.is_step_completed("phase2_duration_calculation")
        assert recovered.state['completed_steps'][0]['metadata'] == {'recovered_from_checkpoint': True}

    def test_failure_is_recorded(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.mark_step_failed("phase3_cohort_matching", "duplicate pairs")

        failure = json.loads((state.root / "failures" / "phase3_cohort_matching.json").read_text())
        assert failure['status'] == 'failed'
        assert failure['error'] == "duplicate pairs"
        assert state.get_progress()['status'] == 'failed'

    def test_reset_discards_checkpoints(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.mark_step_completed("phase1_record_normalization")
        state.reset()

        assert not state.is_step_completed("phase1_record_normalization")
        assert not make_state(tmp_path, logger).is_step_completed("phase1_record_normalization")

    def test_entity_ids_are_isolated(self, tmp_path, logger):
        make_state(tmp_path, logger).mark_step_completed("phase1_record_normalization")
        other = make_state(tmp_path, logger, entity_id="lahman_as_of_2021-12-02")
        assert not other.is_step_completed("phase1_record_normalization")

    def test_unreadable_state_starts_fresh(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.state_path.parent.mkdir(parents=True, exist_ok=True)
        state.state_path.write_text("{not json")
        assert make_state(tmp_path, logger).get_progress()['completed_steps'] == 0

    def test_same_fingerprint_keeps_checkpoints(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        assert not state.bind_run("a1b2")
        state.mark_step_completed("phase1_record_normalization")

        reloaded = make_state(tmp_path, logger)
        assert not reloaded.bind_run("a1b2")
        assert reloaded.is_step_completed("phase1_record_normalization")

    def test_changed_fingerprint_discards_checkpoints(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.bind_run("a1b2")
        state.mark_step_completed("phase1_record_normalization")

        reloaded = make_state(tmp_path, logger)
        assert reloaded.bind_run("c3d4")
        assert not reloaded.is_step_completed("phase1_record_normalization")
        assert reloaded.state['run_fingerprint'] == "c3d4"

    def test_checkpoint_from_other_run_is_not_recovered(self, tmp_path, logger):
        state = make_state(tmp_path, logger)
        state.bind_run("a1b2")
        state.mark_step_completed("phase2_duration_calculation")
        state.state_path.unlink()

        recovered = make_state(tmp_path, logger)
        recovered.bind_run("c3d4")
        assert not recovered.is_step_completed("phase2_duration_calculation")
