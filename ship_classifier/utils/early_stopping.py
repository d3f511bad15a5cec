"""
Early Stopping Implementation

Stops training when the monitored validation metric stops improving.
"""

import copy
import logging
from typing import Any, Dict, Optional

import numpy as np


class EarlyStopping:
    """
    Early stopping to halt training when validation metric stops improving
    """

    def __init__(
        self,
        patience: int = 7,
        min_delta: float = 0,
        restore_best_weights: bool = True,
        mode: str = 'min',
        verbose: bool = True
    ):
        """
        Args:
            patience: Number of epochs to wait after last time validation metric improved
            min_delta: Minimum change in monitored quantity to qualify as improvement
            restore_best_weights: Whether to keep a copy of the weights from the best epoch
            mode: 'min' for metrics where lower is better, 'max' for higher is better
            verbose: Whether to log messages
        """
        if mode not in ('min', 'max'):
            raise ValueError(f"Mode {mode} is unknown, use 'min' or 'max'")

        self.patience = patience
        self.min_delta = min_delta
        self.restore_best_weights = restore_best_weights
        self.mode = mode
        self.verbose = verbose

        self.logger = logging.getLogger(__name__)
        self.reset()

    def __call__(self, current_metric: float, model_weights: Optional[Dict[str, Any]] = None) -> bool:
        return self.should_stop(current_metric, model_weights)

    def should_stop(self, current_metric: float, model_weights: Optional[Dict[str, Any]] = None) -> bool:
        """
        Determine if early stopping criteria are met

        Args:
            current_metric: Current value of monitored metric
            model_weights: Current model state dict

        Returns:
            Boolean indicating whether to stop training
        """
        if self._is_improvement(current_metric):
            self.best_metric = current_metric
            self.wait = 0

            if self.restore_best_weights and model_weights is not None:
                self.best_weights = copy.deepcopy(model_weights)

            if self.verbose:
                self.logger.info(f"Metric improved to {current_metric:.4f}")

            return False

        self.wait += 1
        if self.verbose:
            self.logger.info(
                f"Metric did not improve from {self.best_metric:.4f}. "
                f"Patience: {self.wait}/{self.patience}"
            )

        if self.wait >= self.patience:
            if self.verbose:
                self.logger.info(
                    f"Early stopping triggered after {self.patience} epochs without improvement"
                )
            return True

        return False

    def _is_improvement(self, current_metric: float) -> bool:
        if self.mode == 'min':
            return current_metric < (self.best_metric - self.min_delta)
        return current_metric > (self.best_metric + self.min_delta)

    def get_best_metric(self) -> float:
        return self.best_metric

    def get_best_weights(self) -> Optional[Dict[str, Any]]:
        return self.best_weights

    def state_dict(self) -> Dict[str, Any]:
        return {
            'wait': self.wait,
            'best_metric': float(self.best_metric),
            'best_weights': self.best_weights
        }

    def load_state_dict(self, state: Dict[str, Any]):
        """Restore counters and best weights saved with state_dict"""
        self.wait = state.get('wait', 0)
        self.best_metric = state.get('best_metric', self.best_metric)
        self.best_weights = state.get('best_weights')

    def reset(self):
        """Reset early stopping state"""
        self.wait = 0
        self.best_metric = np.inf if self.mode == 'min' else -np.inf
        self.best_weights = None
