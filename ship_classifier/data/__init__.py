"""
Data Processing Module for ShipsNet

Handles decoding of raw ShipsNet pixel vectors, rotation augmentation,
and dataset management for ship / no-ship classification.
"""

from .augmentation import augment_dataset, augment_rotations, rotate_image
from .dataset import DatasetSplit, ShipsDataset, build_datasets, create_dataloaders, split_dataset
from .decoding import (
    IMAGE_SHAPE,
    SAMPLE_LENGTH,
    ShipsnetRecords,
    decode_sample,
    decode_samples,
    encode_image,
    load_shipsnet_json,
    to_categorical,
)
