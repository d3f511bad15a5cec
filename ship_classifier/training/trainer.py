"""
Model Training Framework for Ship Classification

Fit / evaluate / predict loop around a compiled ShipsNet model with
learning rate scheduling, early stopping, checkpointing, TensorBoard
and optional Weights & Biases logging.
"""

import logging
import time
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
import wandb
from torch.utils.data import DataLoader
from torch.utils.tensorboard import SummaryWriter
from tqdm import tqdm

from ..data.decoding import CLASS_NAMES, IMAGE_SHAPE, NUM_CLASSES
from ..exceptions import ShapeError
from ..utils.checkpoint import CheckpointManager
from ..utils.early_stopping import EarlyStopping
from ..utils.metrics import ClassificationMetrics
from ..utils.visualization import plot_training_history

logger = logging.getLogger(__name__)


class ModelTrainer:
    """
    Training Framework for ShipsNet Models

    Features:
    - Cross-entropy on one-hot targets
    - Learning rate scheduling
    - Early stopping with patience
    - Model checkpointing
    - TensorBoard logging
    - Weights & Biases integration
    - Gradient clipping
    - Mixed precision on CUDA
    """

    def __init__(
        self,
        model: nn.Module,
        train_loader: DataLoader,
        val_loader: Optional[DataLoader],
        config: Dict,
        device: torch.device,
        checkpoint_dir: Optional[Path] = None,
        log_dir: Optional[Path] = None,
        use_wandb: bool = False
    ):
        self.model = model.to(device)
        self.train_loader = train_loader
        self.val_loader = val_loader
        self.config = config
        self.device = device

        self._setup_optimizer()
        self._setup_loss_function()
        self._setup_scheduler()
        self._setup_logging(log_dir)

        self.metrics = ClassificationMetrics(
            num_classes=config.get('num_classes', NUM_CLASSES),
            class_names=CLASS_NAMES
        )

        # Training state
        self.start_epoch = 0
        self.current_epoch = 0
        self.best_val_loss = float('inf')
        self.best_val_accuracy = 0.0
        self._has_best = False
        self.training_history = defaultdict(list)
        self._last_eval_metrics: Optional[ClassificationMetrics] = None

        self.use_amp = config.get('use_amp', False) and device.type == 'cuda'
        self.scaler = torch.amp.GradScaler('cuda') if self.use_amp else None

        self.early_stopping = EarlyStopping(
            patience=config.get('early_stopping_patience', 10),
            min_delta=config.get('early_stopping_min_delta', 1e-4),
            restore_best_weights=config.get('restore_best_weights', True)
        )

        self.checkpoint_manager = CheckpointManager(
            checkpoint_dir=checkpoint_dir or Path('./checkpoints'),
            max_checkpoints=config.get('max_checkpoints', 5)
        )

        self.use_wandb = use_wandb
        if self.use_wandb:
            wandb.init(
                project=config.get('wandb_project', 'shipsnet'),
                config=config,
                name=config.get('experiment_name', 'ship_classification')
            )
            wandb.watch(self.model, log_freq=100)

    def _setup_optimizer(self):
        optimizer_name = self.config.get('optimizer', 'adam').lower()
        lr = self.config.get('learning_rate', 1e-3)
        weight_decay = self.config.get('weight_decay', 0.0)

        if optimizer_name == 'adam':
            self.optimizer = optim.Adam(self.model.parameters(), lr=lr, weight_decay=weight_decay)
        elif optimizer_name == 'adamw':
            self.optimizer = optim.AdamW(
                self.model.parameters(),
                lr=lr,
                weight_decay=weight_decay,
                betas=(0.9, 0.999),
                eps=1e-8
            )
        elif optimizer_name == 'sgd':
            self.optimizer = optim.SGD(
                self.model.parameters(),
                lr=lr,
                momentum=0.9,
                weight_decay=weight_decay,
                nesterov=True
            )
        else:
            raise ValueError(f"Unknown optimizer: {optimizer_name}")

    def _setup_loss_function(self):
        # Class weights for imbalanced datasets (ShipsNet is roughly 1 ship : 3 no-ship)
        class_weights = self.config.get('class_weights')
        if class_weights:
            class_weights = torch.tensor(class_weights, dtype=torch.float32, device=self.device)

        self.criterion = nn.CrossEntropyLoss(
            weight=class_weights,
            label_smoothing=self.config.get('label_smoothing', 0.0)
        )

    def _setup_scheduler(self):
        scheduler_name = self.config.get('scheduler', 'none')

        if scheduler_name == 'cosine':
            self.scheduler = optim.lr_scheduler.CosineAnnealingLR(
                self.optimizer,
                T_max=self.config.get('epochs', 20),
                eta_min=self.config.get('min_lr', 1e-6)
            )
        elif scheduler_name == 'plateau':
            self.scheduler = optim.lr_scheduler.ReduceLROnPlateau(
                self.optimizer,
                mode='min',
                factor=0.5,
                patience=self.config.get('scheduler_patience', 3),
                min_lr=self.config.get('min_lr', 1e-6)
            )
        elif scheduler_name in ('none', None):
            self.scheduler = None
        else:
            raise ValueError(f"Unknown scheduler: {scheduler_name}")

    def _setup_logging(self, log_dir: Optional[Path]):
        log_root = Path(log_dir or self.config.get('log_dir', './logs'))
        self.writer = SummaryWriter(log_dir=str(log_root / f"run_{int(time.time())}"))

    def _progress(self, loader: DataLoader, desc: str):
        return tqdm(loader, desc=desc, disable=not self.config.get('progress_bar', True), leave=False)

    def train_epoch(self) -> Tuple[Dict[str, float], Dict[str, float]]:
        """Train for one epoch"""
        self.model.train()
        self.metrics.reset_accumulation()

        total_loss = 0.0
        total_samples = 0

        progress_bar = self._progress(self.train_loader, f'Epoch {self.current_epoch}')

        for batch_idx, batch in enumerate(progress_bar):
            images = batch['image'].to(self.device)
            targets = batch['label'].to(self.device)
            ship_labels = batch['ship_label'].to(self.device)

            self.optimizer.zero_grad()

            if self.use_amp:
                with torch.autocast(device_type=self.device.type):
                    logits = self.model(images)
                    loss = self.criterion(logits, targets)

                self.scaler.scale(loss).backward()

                if self.config.get('gradient_clipping', 0) > 0:
                    self.scaler.unscale_(self.optimizer)
                    torch.nn.utils.clip_grad_norm_(self.model.parameters(), self.config['gradient_clipping'])

                self.scaler.step(self.optimizer)
                self.scaler.update()
            else:
                logits = self.model(images)
                loss = self.criterion(logits, targets)
                loss.backward()

                if self.config.get('gradient_clipping', 0) > 0:
                    torch.nn.utils.clip_grad_norm_(self.model.parameters(), self.config['gradient_clipping'])

                self.optimizer.step()

            with torch.no_grad():
                probabilities = torch.softmax(logits.float(), dim=1)
                self.metrics.accumulate_batch(torch.argmax(probabilities, dim=1), ship_labels, probabilities)

            batch_size = images.size(0)
            total_loss += loss.item() * batch_size
            total_samples += batch_size

            progress_bar.set_postfix({
                'Loss': f'{loss.item():.4f}',
                'LR': f'{self.optimizer.param_groups[0]["lr"]:.2e}'
            })

            global_step = self.current_epoch * len(self.train_loader) + batch_idx
            self.writer.add_scalar('Train/Batch_Loss', loss.item(), global_step)

        losses = {'loss': total_loss / max(total_samples, 1)}
        return losses, self.metrics.calculate_epoch_metrics()

    @torch.no_grad()
    def _run_evaluation(self, loader: DataLoader, desc: str) -> Tuple[Dict[str, float], Dict[str, float]]:
        self.model.eval()
        metrics = ClassificationMetrics(num_classes=self.metrics.num_classes, class_names=CLASS_NAMES)

        total_loss = 0.0
        total_samples = 0

        for batch in self._progress(loader, desc):
            images = batch['image'].to(self.device)
            targets = batch['label'].to(self.device)
            ship_labels = batch['ship_label'].to(self.device)

            logits = self.model(images)
            loss = self.criterion(logits, targets)

            probabilities = torch.softmax(logits, dim=1)
            metrics.accumulate_batch(torch.argmax(probabilities, dim=1), ship_labels, probabilities)

            total_loss += loss.item() * images.size(0)
            total_samples += images.size(0)

        self._last_eval_metrics = metrics
        losses = {'loss': total_loss / max(total_samples, 1)}
        return losses, metrics.calculate_epoch_metrics()

    def validate_epoch(self) -> Tuple[Dict[str, float], Dict[str, float]]:
        """Validate for one epoch"""
        if self.val_loader is None:
            return {}, {}
        return self._run_evaluation(self.val_loader, 'Validation')

    def evaluate(self, loader: DataLoader) -> Dict[str, float]:
        """Loss and classification metrics on a held-out loader"""
        losses, metrics = self._run_evaluation(loader, 'Evaluation')
        return {**losses, **metrics}

    @torch.no_grad()
    def predict(self, images: Union[np.ndarray, torch.Tensor], batch_size: int = 256) -> np.ndarray:
        """
        Class probabilities for a batch of images

        Accepts decoded (N, 80, 80, 3) arrays or (N, 3, 80, 80) tensors.
        Returns an (N, 2) array of softmax probabilities.
        """
        if isinstance(images, np.ndarray):
            if images.ndim == 3:
                images = images[np.newaxis]
            if images.shape[1:] != IMAGE_SHAPE:
                raise ShapeError(f"Expected images of shape (N, *{IMAGE_SHAPE}), got {images.shape}")
            images = torch.from_numpy(np.ascontiguousarray(images.transpose(0, 3, 1, 2), dtype=np.float32))

        self.model.eval()
        outputs = []
        for start in range(0, len(images), batch_size):
            batch = images[start:start + batch_size].to(self.device)
            outputs.append(torch.softmax(self.model(batch), dim=1).cpu())

        if not outputs:
            return np.empty((0, self.metrics.num_classes), dtype=np.float32)
        return torch.cat(outputs).numpy()

    def fit(self, epochs: int) -> Dict[str, List]:
        """
        Complete training loop
        """
        params = sum(p.numel() for p in self.model.parameters())
        logger.info(f"Starting training for {epochs} epochs on {self.device} ({params:,} parameters)")

        for epoch in range(self.start_epoch, epochs):
            self.current_epoch = epoch
            start_time = time.time()

            train_losses, train_metrics = self.train_epoch()
            val_losses, val_metrics = self.validate_epoch()

            epoch_time = time.time() - start_time

            # without validation data, monitor the training loss
            monitored_loss = val_losses.get('loss', train_losses['loss'])
            monitored_accuracy = val_metrics.get('accuracy', train_metrics.get('accuracy', 0.0))

            if self.scheduler:
                if isinstance(self.scheduler, optim.lr_scheduler.ReduceLROnPlateau):
                    self.scheduler.step(monitored_loss)
                else:
                    self.scheduler.step()

            self._update_history(train_losses, train_metrics, val_losses, val_metrics)
            self._log_epoch_results(epoch, train_losses, train_metrics, val_losses, val_metrics, epoch_time)

            is_best = not self._has_best or monitored_accuracy > self.best_val_accuracy
            if is_best:
                self.best_val_accuracy = monitored_accuracy
                self._has_best = True
            self.best_val_loss = min(self.best_val_loss, monitored_loss)

            should_stop = self.early_stopping.should_stop(monitored_loss, self.model.state_dict())

            checkpoint_data = self._checkpoint_state(epoch)
            checkpoint_data.update({
                'train_losses': train_losses,
                'val_losses': val_losses,
                'val_metrics': val_metrics
            })
            self.checkpoint_manager.save_checkpoint(
                checkpoint_data,
                is_best=is_best,
                filename=f'checkpoint_epoch_{epoch:03d}.pth'
            )

            if should_stop:
                logger.info(f"Early stopping triggered at epoch {epoch}")
                break

        best_weights = self.early_stopping.get_best_weights()
        if best_weights is not None:
            self.model.load_state_dict(best_weights)
            logger.info(f"Restored best weights (loss {self.early_stopping.get_best_metric():.4f})")

        self.writer.flush()
        logger.info("Training completed")
        return dict(self.training_history)

    def _checkpoint_state(self, epoch: int) -> Dict:
        return {
            'epoch': epoch,
            'model_state_dict': self.model.state_dict(),
            'optimizer_state_dict': self.optimizer.state_dict(),
            'scheduler_state_dict': self.scheduler.state_dict() if self.scheduler else None,
            'best_val_accuracy': self.best_val_accuracy,
            'best_val_loss': self.best_val_loss,
            'early_stopping_state': self.early_stopping.state_dict(),
            'training_history': dict(self.training_history),
            'training_config': self.config
        }

    def save_interrupted_checkpoint(self) -> Path:
        """
        Save the state of an interrupted run so that resume() picks it up.

        The in-progress epoch is not complete, so the checkpoint records the
        previous epoch and a resumed run repeats the interrupted one.
        """
        checkpoint_data = self._checkpoint_state(self.current_epoch - 1)
        checkpoint_data['interrupted'] = True
        return self.checkpoint_manager.save_checkpoint(
            checkpoint_data,
            filename=f'checkpoint_interrupted_epoch_{self.current_epoch:03d}.pth'
        )

    def resume(self) -> Dict:
        """Continue from the latest checkpoint in the checkpoint directory"""
        resume_info = self.checkpoint_manager.resume_training(self.model, self.optimizer, self.scheduler)
        self.start_epoch = resume_info['epoch']
        self.current_epoch = self.start_epoch
        self.best_val_accuracy = resume_info.get('best_val_accuracy', self.best_val_accuracy)
        self.best_val_loss = resume_info.get('best_val_loss', self.best_val_loss)
        self._has_best = self.start_epoch > 0

        self.training_history = defaultdict(list)
        for key, values in resume_info.get('training_history', {}).items():
            self.training_history[key] = list(values)

        if resume_info.get('early_stopping_state'):
            self.early_stopping.load_state_dict(resume_info['early_stopping_state'])
        return resume_info

    def _update_history(self, train_losses, train_metrics, val_losses, val_metrics):
        for prefix, values in (('train', train_losses), ('train', train_metrics),
                               ('val', val_losses), ('val', val_metrics)):
            for key, value in values.items():
                if key != 'confusion_matrix':
                    self.training_history[f'{prefix}_{key}'].append(float(value))
        self.training_history['learning_rate'].append(self.optimizer.param_groups[0]['lr'])

    def _log_epoch_results(
        self,
        epoch: int,
        train_losses: Dict,
        train_metrics: Dict,
        val_losses: Dict,
        val_metrics: Dict,
        epoch_time: float
    ):
        """Log epoch results to console, TensorBoard and wandb"""
        lr = self.optimizer.param_groups[0]['lr']

        message = (
            f"Epoch {epoch:03d} | Time: {epoch_time:.1f}s | LR: {lr:.2e} | "
            f"Train Loss: {train_losses['loss']:.4f} | Train Acc: {train_metrics.get('accuracy', 0):.3f}"
        )
        if val_losses:
            message += f" | Val Loss: {val_losses['loss']:.4f} | Val Acc: {val_metrics.get('accuracy', 0):.3f}"
        logger.info(message)

        scalars = {}
        for prefix, values in (('Train', {**train_losses, **train_metrics}),
                               ('Val', {**val_losses, **val_metrics})):
            for key, value in values.items():
                if key != 'confusion_matrix':
                    scalars[f'{prefix}/{key}'] = value

        for tag, value in scalars.items():
            self.writer.add_scalar(tag, value, epoch)
        self.writer.add_scalar('Train/Learning_Rate', lr, epoch)
        self.writer.add_scalar('Train/Epoch_Time', epoch_time, epoch)

        if self.use_wandb:
            wandb.log({**scalars, 'epoch': epoch, 'learning_rate': lr, 'epoch_time': epoch_time}, step=epoch)

    def save_training_plots(self, save_dir: Path) -> Path:
        """Save loss / accuracy curves and, if available, the last confusion matrix"""
        save_dir = Path(save_dir)
        save_dir.mkdir(parents=True, exist_ok=True)

        curves_path = save_dir / 'training_curves.png'
        plt.close(plot_training_history(self.training_history, save_path=curves_path))

        last_metrics = self._last_eval_metrics
        if last_metrics is not None and last_metrics.accumulated_predictions:
            plt.close(last_metrics.plot_confusion_matrix(save_path=save_dir / 'confusion_matrix.png'))

        logger.info(f"Training plots saved to {save_dir}")
        return curves_path

    def close(self):
        self.writer.close()
        if self.use_wandb:
            wandb.finish()
