"""
Model Checkpointing

Saves trained ShipsNet models with torch.save, keeps a copy of the best
model, prunes old checkpoints and supports resuming training.
"""

import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import torch


class CheckpointManager:
    """
    Checkpoint management with automatic cleanup and best model tracking
    """

    BEST_MODEL_NAME = 'best_model.pth'
    HISTORY_NAME = 'checkpoint_history.json'

    def __init__(
        self,
        checkpoint_dir: Path,
        max_checkpoints: int = 5
    ):
        self.checkpoint_dir = Path(checkpoint_dir)
        self.checkpoint_dir.mkdir(parents=True, exist_ok=True)

        self.max_checkpoints = max_checkpoints
        self.checkpoint_history = []

        self.logger = logging.getLogger(__name__)

    def save_checkpoint(
        self,
        checkpoint_data: Dict,
        is_best: bool = False,
        filename: Optional[str] = None
    ) -> Path:
        """Save model checkpoint with metadata"""

        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"checkpoint_{timestamp}.pth"

        checkpoint_path = self.checkpoint_dir / filename

        checkpoint_data = dict(checkpoint_data)
        checkpoint_data.update({
            'timestamp': datetime.now().isoformat(),
            'checkpoint_path': str(checkpoint_path),
            'pytorch_version': torch.__version__
        })

        try:
            torch.save(checkpoint_data, checkpoint_path)
        except (OSError, RuntimeError) as e:
            self.logger.error(f"Failed to save checkpoint: {e}")
            raise

        self.logger.info(f"Checkpoint saved: {checkpoint_path}")

        self.checkpoint_history.append({
            'path': str(checkpoint_path),
            'timestamp': checkpoint_data['timestamp'],
            'epoch': checkpoint_data.get('epoch', 0),
            'is_best': is_best,
            'val_losses': checkpoint_data.get('val_losses', {}),
            'val_metrics': {
                k: v for k, v in checkpoint_data.get('val_metrics', {}).items()
                if k != 'confusion_matrix'
            }
        })

        if is_best:
            best_model_path = self.checkpoint_dir / self.BEST_MODEL_NAME
            shutil.copy2(checkpoint_path, best_model_path)
            self.logger.info(f"Best model updated: {best_model_path}")

        self._cleanup_old_checkpoints()
        self._save_checkpoint_history()

        return checkpoint_path

    def load_checkpoint(
        self,
        checkpoint_path: Optional[Path] = None,
        load_best: bool = False,
        device: Optional[torch.device] = None
    ) -> Dict:
        """Load model checkpoint"""

        if load_best:
            checkpoint_path = self.checkpoint_dir / self.BEST_MODEL_NAME
        elif checkpoint_path is None:
            checkpoint_path = self.get_latest_checkpoint()

        if checkpoint_path is None or not Path(checkpoint_path).exists():
            raise FileNotFoundError(f"Checkpoint not found: {checkpoint_path}")

        # checkpoints carry config dicts and metric lists alongside tensors
        checkpoint_data = torch.load(checkpoint_path, map_location=device or 'cpu', weights_only=False)
        self.logger.info(f"Checkpoint loaded: {checkpoint_path}")
        return checkpoint_data

    def get_latest_checkpoint(self) -> Optional[Path]:
        """Get path to the latest checkpoint"""
        checkpoints = list(self.checkpoint_dir.glob('checkpoint_*.pth'))
        if not checkpoints:
            return None

        return max(checkpoints, key=lambda p: (p.stat().st_mtime, p.name))

    def list_checkpoints(self) -> List[Path]:
        return sorted(self.checkpoint_dir.glob('checkpoint_*.pth'), key=lambda p: (p.stat().st_mtime, p.name))

    def _cleanup_old_checkpoints(self):
        """Remove old checkpoints to maintain max_checkpoints limit"""
        if self.max_checkpoints <= 0:
            return

        for checkpoint in self.list_checkpoints()[:-self.max_checkpoints]:
            try:
                checkpoint.unlink()
                self.logger.info(f"Removed old checkpoint: {checkpoint}")
            except OSError as e:
                self.logger.warning(f"Could not remove checkpoint {checkpoint}: {e}")

    def _save_checkpoint_history(self):
        history_file = self.checkpoint_dir / self.HISTORY_NAME

        try:
            with open(history_file, 'w') as f:
                json.dump(self.checkpoint_history, f, indent=2, default=float)
        except (OSError, TypeError) as e:
            self.logger.warning(f"Could not save checkpoint history: {e}")

    def resume_training(
        self,
        model: torch.nn.Module,
        optimizer: torch.optim.Optimizer,
        scheduler: Optional[object] = None
    ) -> Dict:
        """Resume training from latest checkpoint"""

        latest_checkpoint_path = self.get_latest_checkpoint()
        if latest_checkpoint_path is None:
            self.logger.info("No checkpoint found, starting fresh training")
            return {'epoch': 0}

        checkpoint_data = self.load_checkpoint(latest_checkpoint_path)

        model.load_state_dict(checkpoint_data['model_state_dict'])
        optimizer.load_state_dict(checkpoint_data['optimizer_state_dict'])

        if scheduler is not None and checkpoint_data.get('scheduler_state_dict'):
            scheduler.load_state_dict(checkpoint_data['scheduler_state_dict'])

        resume_info = {
            'epoch': checkpoint_data.get('epoch', 0) + 1,
            'best_val_accuracy': checkpoint_data.get('best_val_accuracy', 0.0),
            'best_val_loss': checkpoint_data.get('best_val_loss', float('inf')),
            'training_history': checkpoint_data.get('training_history', {}),
            'early_stopping_state': checkpoint_data.get('early_stopping_state'),
            'resume_from': str(latest_checkpoint_path)
        }

        self.logger.info(f"Training resumed from epoch {resume_info['epoch']}")
        return resume_info
