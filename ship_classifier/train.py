#!/usr/bin/env python3
"""
ShipsNet - Main Training Script

CNN training pipeline for ship / no-ship classification of ShipsNet
satellite chips.

Usage:
    ship-classifier-train --config configs/base_config.json
    ship-classifier-train --config configs/base_config.json --resume
    ship-classifier-train --config configs/base_config.json --evaluate-only
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Optional, Tuple

import torch
import torch.nn as nn
from torch.utils.data import DataLoader

from .data.dataset import create_dataloaders
from .exceptions import ShipClassifierError
from .models.ship_classifier import count_parameters, create_ship_classifier
from .training.trainer import ModelTrainer
from .utils.checkpoint import CheckpointManager

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ('model', 'data', 'training')
MODEL_FACTORY_KEYS = ('model_type', 'input_shape', 'num_classes', 'layers')


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Setup logging configuration"""

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(log_format))
        logging.getLogger().addHandler(file_handler)


def load_config(config_path: str) -> Dict:
    """Load configuration from JSON file"""

    with open(config_path, 'r') as f:
        config = json.load(f)

    for section in REQUIRED_SECTIONS:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    if 'json_path' not in config['data']:
        raise ValueError("Missing required config field: data.json_path")

    return config


def setup_device(config: Dict) -> torch.device:
    """Setup compute device"""

    device_config = config.get('hardware', {}).get('device', 'auto')

    if device_config == 'auto':
        if torch.cuda.is_available():
            device = torch.device('cuda')
            logger.info(f"CUDA available: {torch.cuda.get_device_name()}")
        else:
            device = torch.device('cpu')
            logger.info("CUDA not available, using CPU")
    else:
        device = torch.device(device_config)

    return device


def create_model(config: Dict, device: torch.device) -> nn.Module:
    """Create and initialize model"""

    model_config = config['model']
    extra_kwargs = {k: v for k, v in model_config.items() if k not in MODEL_FACTORY_KEYS}

    model = create_ship_classifier(
        model_type=model_config.get('model_type', 'shipsnet'),
        input_shape=tuple(model_config.get('input_shape', (3, 80, 80))),
        num_classes=model_config.get('num_classes', 2),
        layers=model_config.get('layers'),
        **extra_kwargs
    )
    model = model.to(device)

    params = count_parameters(model)
    logger.info(f"Model: {model_config.get('model_type', 'shipsnet')}")
    logger.info(f"Total parameters: {params['total']:,}")
    logger.info(f"Trainable parameters: {params['trainable']:,}")

    return model


def create_data_loaders(config: Dict) -> Tuple[DataLoader, Optional[DataLoader], DataLoader]:
    """Create training, validation, and test data loaders"""

    data_config = config['data']

    train_loader, val_loader, test_loader = create_dataloaders(
        json_path=data_config['json_path'],
        batch_size=data_config.get('batch_size', 32),
        num_workers=data_config.get('num_workers', 0),
        test_size=data_config.get('test_size', 0.2),
        validation_split=data_config.get('validation_split', 0.0),
        augment_train=data_config.get('augment_train', True),
        augment_test=data_config.get('augment_test', False),
        random_state=data_config.get('random_state', 42)
    )

    logger.info(f"Train: {len(train_loader.dataset)} samples, {len(train_loader)} batches")
    if val_loader is not None:
        logger.info(f"Validation: {len(val_loader.dataset)} samples, {len(val_loader)} batches")
    logger.info(f"Test: {len(test_loader.dataset)} samples, {len(test_loader)} batches")

    return train_loader, val_loader, test_loader


def _write_json(path: Path, payload: Dict):
    with open(path, 'w') as f:
        json.dump(payload, f, indent=2, default=float)


def train_model(config: Dict, args) -> Dict:
    """Main training function"""

    torch.manual_seed(config['data'].get('random_state', 42))

    device = setup_device(config)
    model = create_model(config, device)
    train_loader, val_loader, test_loader = create_data_loaders(config)

    output_dir = Path(config.get('paths', {}).get('output_dir', './outputs'))
    output_dir.mkdir(parents=True, exist_ok=True)

    logging_config = config.get('logging', {})
    checkpoint_config = config.get('checkpointing', {})

    training_config = dict(config['training'])
    training_config.setdefault('num_classes', config['model'].get('num_classes', 2))
    training_config.setdefault('max_checkpoints', checkpoint_config.get('max_checkpoints', 5))
    training_config.setdefault('experiment_name', config.get('experiment_name', 'ship_classification'))

    trainer = ModelTrainer(
        model=model,
        train_loader=train_loader,
        # without a validation split the trainer monitors training loss;
        # the test partition stays unseen until the final evaluation
        val_loader=val_loader,
        config=training_config,
        device=device,
        checkpoint_dir=Path(checkpoint_config.get('checkpoint_dir', './checkpoints')),
        log_dir=Path(logging_config.get('log_dir', './logs')),
        use_wandb=logging_config.get('use_wandb', False)
    )

    if args.resume:
        resume_info = trainer.resume()
        logger.info(f"Resuming at epoch {resume_info['epoch']}")

    logger.info(f"Starting training with configuration: {config.get('experiment_name', 'unnamed')}")

    try:
        training_history = trainer.fit(training_config.get('epochs', 20))
    except KeyboardInterrupt:
        logger.warning("Training interrupted by user")
        interrupted_path = trainer.save_interrupted_checkpoint()
        logger.info(f"Saved interrupted training state to {interrupted_path}, continue with --resume")
        trainer.close()
        return {}

    history_path = output_dir / 'training_history.json'
    _write_json(history_path, training_history)
    logger.info(f"Training history saved to: {history_path}")
    logger.info(f"Best validation accuracy: {trainer.best_val_accuracy:.4f}")

    if not args.skip_test:
        test_metrics = trainer.evaluate(test_loader)
        test_results_path = output_dir / 'test_results.json'
        _write_json(test_results_path, test_metrics)
        logger.info(
            f"Test Accuracy: {test_metrics['accuracy']:.4f} | Test Loss: {test_metrics['loss']:.4f}"
        )
        logger.info(f"Test results saved to: {test_results_path}")

    trainer.save_training_plots(output_dir)
    trainer.close()

    return training_history


def evaluate_only(config: Dict) -> Dict:
    """Load the best checkpoint and evaluate it on the test partition"""

    device = setup_device(config)
    model = create_model(config, device)

    checkpoint_manager = CheckpointManager(
        checkpoint_dir=Path(config.get('checkpointing', {}).get('checkpoint_dir', './checkpoints'))
    )
    checkpoint_data = checkpoint_manager.load_checkpoint(load_best=True, device=device)
    model.load_state_dict(checkpoint_data['model_state_dict'])
    logger.info("Loaded best model checkpoint")

    _, _, test_loader = create_data_loaders(config)

    trainer = ModelTrainer(
        model=model,
        train_loader=test_loader,
        val_loader=None,
        config=dict(config['training'], progress_bar=False),
        device=device,
        checkpoint_dir=checkpoint_manager.checkpoint_dir,
        log_dir=Path(config.get('logging', {}).get('log_dir', './logs'))
    )
    test_metrics = trainer.evaluate(test_loader)
    trainer.close()

    for key, value in test_metrics.items():
        if key != 'confusion_matrix':
            logger.info(f"{key}: {value:.4f}")

    output_dir = Path(config.get('paths', {}).get('output_dir', './outputs'))
    output_dir.mkdir(parents=True, exist_ok=True)
    results_path = output_dir / 'evaluation_results.json'
    _write_json(results_path, test_metrics)
    logger.info(f"Results saved to: {results_path}")

    return test_metrics


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='ShipsNet CNN Training')

    parser.add_argument(
        '--config', '-c',
        type=str,
        required=True,
        help='Path to configuration JSON file'
    )

    parser.add_argument(
        '--resume', '-r',
        action='store_true',
        help='Resume training from latest checkpoint'
    )

    parser.add_argument(
        '--evaluate-only', '-e',
        action='store_true',
        help='Only evaluate the best checkpoint on the test set'
    )

    parser.add_argument(
        '--skip-test',
        action='store_true',
        help='Skip test evaluation after training'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Log file path'
    )

    return parser


def main(argv=None):
    """Main entry point"""

    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        config = load_config(args.config)
        logger.info(f"Loaded configuration from {args.config}")
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    logger.info(f"Experiment: {config.get('experiment_name', 'unnamed')}")
    logger.info(f"Model: {config['model'].get('model_type', 'shipsnet')}")
    logger.info(f"Batch size: {config['data'].get('batch_size', 32)}")
    logger.info(f"Epochs: {config['training'].get('epochs', 20)}")

    try:
        if args.evaluate_only:
            evaluate_only(config)
        else:
            train_model(config, args)
    except (ShipClassifierError, FileNotFoundError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        sys.exit(1)

    logger.info("Script completed successfully")


if __name__ == "__main__":
    main()
