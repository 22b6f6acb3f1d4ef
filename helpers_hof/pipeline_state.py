"""
Pipeline state management for tracking progress of a pipeline run.

State is kept as JSON on the local filesystem:
    {state_dir}/{pipeline_name}/{entity_id}/state.json
    {state_dir}/{pipeline_name}/{entity_id}/checkpoints/{step_name}.json
    {state_dir}/{pipeline_name}/{entity_id}/failures/{step_name}.json
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

from helpers_hof.constants import DEFAULT_STATE_DIR


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PipelineState:
    """Track pipeline execution state for resume and audit."""

    def __init__(self, pipeline_name: str, entity_id: str, logger: Optional[logging.Logger] = None,
                 state_dir: Optional[str] = None):
        """
        Args:
            pipeline_name: Name of pipeline (e.g., 'create_survival_cohort')
            entity_id: Unique identifier for the run (e.g., 'as_of_2021-12-02')
            logger: Logger instance
            state_dir: Root directory for state files
        """
        self.pipeline_name = pipeline_name
        self.entity_id = entity_id.replace('/', '_')
        self.logger = logger or logging.getLogger(__name__)
        self.root = Path(state_dir or DEFAULT_STATE_DIR) / pipeline_name / self.entity_id
        self.state_path = self.root / "state.json"
        self.state = self._load_state()

    def _fresh_state(self) -> Dict[str, Any]:
        return {
            'pipeline_name': self.pipeline_name,
            'entity_id': self.entity_id,
            'created_at': _now(),
            'updated_at': _now(),
            'status': 'running',
            'completed_steps': [],
            'failed_steps': [],
            'metadata': {}
        }

    def _load_state(self) -> Dict[str, Any]:
        """Load existing state or return empty state."""
        if not self.state_path.exists():
            self.logger.info("📂 No existing state found, starting fresh")
            return self._fresh_state()
        try:
            state = json.loads(self.state_path.read_text(encoding='utf-8'))
            self.logger.info(f"📂 Loaded pipeline state: {len(state.get('completed_steps', []))} steps completed")
            return state
        except (OSError, ValueError) as e:
            self.logger.warning(f"⚠️ Could not load state: {e}, starting fresh")
            return self._fresh_state()

    def _write_json(self, path: Path, payload: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2, default=str), encoding='utf-8')

    def _save_state(self):
        try:
            self.state['updated_at'] = _now()
            self._write_json(self.state_path, self.state)
            self.logger.debug(f"💾 Saved pipeline state to {self.state_path}")
        except OSError as e:
            self.logger.error(f"❌ Failed to save state: {e}")

    def bind_run(self, fingerprint: str) -> bool:
        """
        Tie the saved checkpoints to one run configuration.

        Checkpoints written under a different fingerprint (other config,
        inputs, covariates or output directory) are discarded.

        Returns:
            True when earlier checkpoints were reset.
        """
        previous = self.state.get('run_fingerprint')
        changed = previous is not None and previous != fingerprint
        if changed:
            self.logger.warning(f"⚠️ Run configuration changed ({previous} -> {fingerprint}), "
                                f"discarding checkpoints")
            self.reset()
        self.state['run_fingerprint'] = fingerprint
        self._save_state()
        return changed

    def _checkpoint_matches_run(self, path: Path) -> bool:
        fingerprint = self.state.get('run_fingerprint')
        if fingerprint is None:
            return True
        try:
            saved = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, ValueError):
            return False
        return saved.get('run_fingerprint') == fingerprint

    def is_step_completed(self, step_name: str) -> bool:
        """Check the in-memory state, then the step checkpoint file."""
        completed = any(s['step_name'] == step_name for s in self.state['completed_steps'])
        if not completed:
            checkpoint = self.root / "checkpoints" / f"{step_name}.json"
            completed = checkpoint.exists() and self._checkpoint_matches_run(checkpoint)
            if completed:
                self.state['completed_steps'].append({
                    'step_name': step_name,
                    'completed_at': _now(),
                    'metadata': {'recovered_from_checkpoint': True}
                })
        return completed

    def mark_step_completed(self, step_name: str, metadata: Optional[Dict] = None):
        """Mark a step as completed with optional metadata (re-runs overwrite)."""
        step_data = {
            'step_name': step_name,
            'completed_at': _now(),
            'metadata': metadata or {}
        }
        self.state['completed_steps'] = [
            s for s in self.state['completed_steps'] if s['step_name'] != step_name
        ] + [step_data]
        self._save_state()
        try:
            self._write_json(self.root / "checkpoints" / f"{step_name}.json", {
                'pipeline_name': self.pipeline_name,
                'entity_id': self.entity_id,
                'status': 'completed',
                'run_fingerprint': self.state.get('run_fingerprint'),
                **step_data,
            })
        except OSError as e:
            self.logger.warning(f"⚠️ Could not save step checkpoint for '{step_name}': {e}")
        self.logger.info(f"✅ Marked step '{step_name}' as completed")

    def mark_step_failed(self, step_name: str, error: str):
        """Mark a step as failed with error details."""
        step_data = {
            'step_name': step_name,
            'failed_at': _now(),
            'error': str(error)
        }
        self.state['failed_steps'].append(step_data)
        self.state['status'] = 'failed'
        self._save_state()
        try:
            self._write_json(self.root / "failures" / f"{step_name}.json", {
                'pipeline_name': self.pipeline_name,
                'entity_id': self.entity_id,
                'status': 'failed',
                **step_data,
            })
        except OSError as e:
            self.logger.warning(f"⚠️ Could not save failure checkpoint for '{step_name}': {e}")
        self.logger.error(f"❌ Marked step '{step_name}' as failed: {error}")

    def mark_pipeline_completed(self, metadata: Optional[Dict] = None):
        """Mark entire pipeline as completed."""
        self.state['status'] = 'completed'
        self.state['completed_at'] = _now()
        if metadata:
            self.state['metadata'].update(metadata)
        self._save_state()
        self.logger.info(f"🎉 Pipeline '{self.pipeline_name}' completed for {self.entity_id}")

    def get_progress(self) -> Dict[str, Any]:
        """Get current progress summary."""
        return {
            'pipeline_name': self.pipeline_name,
            'entity_id': self.entity_id,
            'status': self.state['status'],
            'completed_steps': len(self.state['completed_steps']),
            'failed_steps': len(self.state['failed_steps']),
            'step_names': [s['step_name'] for s in self.state['completed_steps']]
        }

    def reset(self):
        """Reset pipeline state (use with caution)."""
        self.state = self._fresh_state()
        for sub in ("checkpoints", "failures"):
            for path in (self.root / sub).glob("*.json"):
                path.unlink()
        self._save_state()
        self.logger.warning(f"🔄 Reset pipeline state for {self.entity_id}")
