"""
Evaluation Metrics for Ship Classification

Accuracy, precision, recall, F1, specificity, ROC-AUC and average
precision for the ship / no-ship task, accumulated over an epoch.
"""

import logging
from typing import Dict, List, Optional

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import seaborn as sns
import torch
from sklearn.metrics import (
    accuracy_score, average_precision_score, confusion_matrix,
    f1_score, precision_score, recall_score, roc_auc_score, roc_curve
)

logger = logging.getLogger(__name__)


class ClassificationMetrics:
    """
    Metrics calculator for ship / no-ship classification
    """

    def __init__(
        self,
        num_classes: int = 2,
        class_names: Optional[List[str]] = None
    ):
        self.num_classes = num_classes
        self.class_names = class_names or [f'Class_{i}' for i in range(num_classes)]

        self.reset_accumulation()

    def reset_accumulation(self):
        """Reset accumulated predictions for new epoch"""
        self.accumulated_predictions = []
        self.accumulated_targets = []
        self.accumulated_probabilities = []

    def accumulate_batch(
        self,
        predictions: torch.Tensor,
        targets: torch.Tensor,
        probabilities: Optional[torch.Tensor] = None
    ):
        """Accumulate batch predictions for epoch-level metrics"""
        self.accumulated_predictions.extend(predictions.detach().cpu().numpy())
        self.accumulated_targets.extend(targets.detach().cpu().numpy())

        if probabilities is not None:
            self.accumulated_probabilities.extend(probabilities.detach().cpu().numpy())

    def calculate_batch_metrics(
        self,
        predictions: torch.Tensor,
        targets: torch.Tensor
    ) -> Dict[str, float]:
        """Calculate metrics for a single batch"""
        pred_np = predictions.detach().cpu().numpy()
        target_np = targets.detach().cpu().numpy()

        average = 'binary' if self.num_classes == 2 else 'weighted'

        return {
            'accuracy': float(accuracy_score(target_np, pred_np)),
            'precision': float(precision_score(target_np, pred_np, average=average, zero_division=0)),
            'recall': float(recall_score(target_np, pred_np, average=average, zero_division=0)),
            'f1_score': float(f1_score(target_np, pred_np, average=average, zero_division=0))
        }

    def calculate_epoch_metrics(self) -> Dict[str, float]:
        """Calculate comprehensive metrics for entire epoch"""
        if not self.accumulated_predictions:
            return {}

        predictions = np.array(self.accumulated_predictions)
        targets = np.array(self.accumulated_targets)
        labels = list(range(self.num_classes))

        metrics = {'accuracy': float(accuracy_score(targets, predictions))}

        if self.num_classes == 2:
            metrics['precision'] = float(precision_score(targets, predictions, zero_division=0))
            metrics['recall'] = float(recall_score(targets, predictions, zero_division=0))
            metrics['f1_score'] = float(f1_score(targets, predictions, zero_division=0))
            metrics['specificity'] = self._calculate_specificity(targets, predictions)

            # ROC-AUC / AP are undefined when only one class is present
            if self.accumulated_probabilities and len(np.unique(targets)) == 2:
                probs = self._positive_class_probabilities()
                metrics['roc_auc'] = float(roc_auc_score(targets, probs))
                metrics['average_precision'] = float(average_precision_score(targets, probs))
        else:
            metrics['precision'] = float(precision_score(targets, predictions, average='weighted', zero_division=0))
            metrics['recall'] = float(recall_score(targets, predictions, average='weighted', zero_division=0))
            metrics['f1_score'] = float(f1_score(targets, predictions, average='weighted', zero_division=0))

            per_class_f1 = f1_score(targets, predictions, labels=labels, average=None, zero_division=0)
            for i, class_name in enumerate(self.class_names):
                metrics[f'f1_{class_name}'] = float(per_class_f1[i])

        metrics['confusion_matrix'] = confusion_matrix(targets, predictions, labels=labels).tolist()

        return metrics

    def _positive_class_probabilities(self) -> np.ndarray:
        probs = np.array(self.accumulated_probabilities)
        if probs.ndim > 1 and probs.shape[1] == 2:
            probs = probs[:, 1]
        return probs

    def _calculate_specificity(self, targets: np.ndarray, predictions: np.ndarray) -> float:
        """Calculate specificity (True Negative Rate)"""
        tn, fp, fn, tp = confusion_matrix(targets, predictions, labels=[0, 1]).ravel()
        return float(tn / (tn + fp)) if (tn + fp) > 0 else 0.0

    def plot_confusion_matrix(
        self,
        save_path: Optional[str] = None,
        normalize: bool = False
    ) -> Optional[matplotlib.figure.Figure]:
        """Plot confusion matrix"""

        if not self.accumulated_predictions:
            logger.warning("No accumulated predictions to plot")
            return None

        cm = confusion_matrix(
            np.array(self.accumulated_targets),
            np.array(self.accumulated_predictions),
            labels=list(range(self.num_classes))
        )

        if normalize:
            cm = cm.astype('float') / np.maximum(cm.sum(axis=1)[:, np.newaxis], 1)
            title = 'Normalized Confusion Matrix'
            fmt = '.2f'
        else:
            title = 'Confusion Matrix'
            fmt = 'd'

        fig = plt.figure(figsize=(8, 6))
        sns.heatmap(
            cm,
            annot=True,
            fmt=fmt,
            cmap='Blues',
            xticklabels=self.class_names,
            yticklabels=self.class_names
        )
        plt.title(title)
        plt.xlabel('Predicted')
        plt.ylabel('Actual')

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')

        return fig

    def plot_roc_curve(self, save_path: Optional[str] = None) -> Optional[matplotlib.figure.Figure]:
        """Plot ROC curve for binary classification"""

        if self.num_classes != 2 or not self.accumulated_probabilities:
            logger.warning("ROC curve only available for binary classification with probabilities")
            return None

        targets = np.array(self.accumulated_targets)
        probs = self._positive_class_probabilities()

        fpr, tpr, _ = roc_curve(targets, probs)
        auc_score = roc_auc_score(targets, probs)

        fig = plt.figure(figsize=(8, 6))
        plt.plot(fpr, tpr, linewidth=2, label=f'ROC Curve (AUC = {auc_score:.3f})')
        plt.plot([0, 1], [0, 1], 'k--', linewidth=1, label='Random Classifier')
        plt.xlabel('False Positive Rate')
        plt.ylabel('True Positive Rate')
        plt.title('Receiver Operating Characteristic (ROC) Curve')
        plt.legend()
        plt.grid(True, alpha=0.3)

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches='tight')

        return fig
