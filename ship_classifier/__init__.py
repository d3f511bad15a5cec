"""
ShipsNet - CNN Ship Classification

Convolutional ship / no-ship classification of 80x80 RGB satellite
chips from the ShipsNet dataset.

This package provides:
- Decoding of flat ShipsNet pixel vectors into (80, 80, 3) images
- Rotation augmentation (0/90/180/270 degrees)
- Immutable model blueprints compiled into PyTorch networks
- Training, evaluation and prediction harness
- Metrics, checkpointing and plotting helpers
"""

__version__ = "1.0.0"

from .data.augmentation import augment_dataset, augment_rotations
from .data.decoding import decode_sample, decode_samples, load_shipsnet_json
from .exceptions import FormatError, ShapeError
from .models.blueprint import ModelBlueprint
from .models.ship_classifier import create_ship_classifier
from .training.trainer import ModelTrainer
from .utils.metrics import ClassificationMetrics

__all__ = [
    'decode_sample',
    'decode_samples',
    'load_shipsnet_json',
    'augment_rotations',
    'augment_dataset',
    'ModelBlueprint',
    'create_ship_classifier',
    'ModelTrainer',
    'ClassificationMetrics',
    'ShapeError',
    'FormatError'
]
