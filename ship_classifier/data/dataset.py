"""
ShipsNet Dataset Assembly

Builds train/validation/test partitions from the ShipsNet JSON release
and exposes them as PyTorch datasets and dataloaders.

Pipeline: load JSON -> decode -> deterministic split -> rotation
augmentation -> one-hot labels. At the framework boundary the arrays
have shape (N, 80, 80, 3) for images and (N, 2) for labels; the channel
axis is moved first only when a sample is handed to torch.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np
import torch
from sklearn.model_selection import train_test_split
from torch.utils.data import DataLoader, Dataset

from .augmentation import augment_dataset
from .decoding import IMAGE_SHAPE, NUM_CLASSES, decode_samples, load_shipsnet_json, to_categorical
from ..exceptions import ShapeError

logger = logging.getLogger(__name__)


@dataclass
class DatasetSplit:
    """Images (N, 80, 80, 3) and one-hot labels (N, 2) for one partition"""
    images: np.ndarray
    labels: np.ndarray

    def __len__(self) -> int:
        return len(self.images)

    @property
    def class_indices(self) -> np.ndarray:
        return np.argmax(self.labels, axis=1)


class ShipsDataset(Dataset):
    """
    PyTorch Dataset over decoded ShipsNet images

    Each item is a dict with:
    - image: float tensor (3, 80, 80)
    - label: float one-hot tensor (2,)
    - ship_label: long class index (1 = ship)
    """

    def __init__(self, images: np.ndarray, labels: np.ndarray):
        images = np.asarray(images, dtype=np.float32)
        labels = np.asarray(labels, dtype=np.float32)

        if images.ndim != 4 or images.shape[1:] != IMAGE_SHAPE:
            raise ShapeError(f"Expected images of shape (N, *{IMAGE_SHAPE}), got {images.shape}")
        if labels.ndim == 1:
            labels = to_categorical(labels, NUM_CLASSES)
        if labels.shape != (len(images), NUM_CLASSES):
            raise ShapeError(
                f"Expected labels of shape ({len(images)}, {NUM_CLASSES}), got {labels.shape}"
            )

        self.images = images
        self.labels = labels

    @classmethod
    def from_split(cls, split: DatasetSplit) -> 'ShipsDataset':
        return cls(split.images, split.labels)

    def __len__(self) -> int:
        return len(self.images)

    def __getitem__(self, idx: int) -> Dict[str, torch.Tensor]:
        # (H, W, C) -> (C, H, W)
        image = torch.from_numpy(np.ascontiguousarray(self.images[idx].transpose(2, 0, 1)))
        label = torch.from_numpy(self.labels[idx])

        return {
            'image': image,
            'label': label,
            'ship_label': torch.argmax(label).long()
        }


def split_dataset(
    images: np.ndarray,
    labels: np.ndarray,
    test_size: float = 0.2,
    random_state: int = 42,
    stratify: bool = True
) -> Tuple[DatasetSplit, DatasetSplit]:
    """
    Deterministic train/test partition.

    The same random_state always yields the same partition. Labels may
    be integer classes or one-hot rows; stratification uses the class index.
    """
    images = np.asarray(images)
    labels = np.asarray(labels)
    class_indices = labels if labels.ndim == 1 else np.argmax(labels, axis=1)

    x_train, x_test, y_train, y_test = train_test_split(
        images,
        labels,
        test_size=test_size,
        random_state=random_state,
        shuffle=True,
        stratify=class_indices if stratify else None
    )

    return DatasetSplit(x_train, y_train), DatasetSplit(x_test, y_test)


def build_datasets(
    json_path: Union[str, Path],
    test_size: float = 0.2,
    validation_split: float = 0.0,
    augment_train: bool = True,
    augment_test: bool = False,
    random_state: int = 42,
    stratify: bool = True
) -> Dict[str, DatasetSplit]:
    """
    Build the train/test (and optional validation) partitions.

    Splitting happens before augmentation, so rotations of one chip never
    end up on both sides of a partition boundary.

    Returns:
        dict with 'train', 'test' and, if validation_split > 0, 'val'
    """
    records = load_shipsnet_json(json_path)
    images = decode_samples(records.data)
    labels = records.labels

    train, test = split_dataset(images, labels, test_size, random_state, stratify)
    splits = {'train': train, 'test': test}

    if validation_split > 0:
        train, val = split_dataset(
            train.images, train.labels, validation_split, random_state, stratify
        )
        splits['train'] = train
        splits['val'] = val

    for name, split in list(splits.items()):
        x, y = split.images, split.labels
        if (name == 'train' and augment_train) or (name != 'train' and augment_test):
            x, y = augment_dataset(x, y)
        splits[name] = DatasetSplit(x, to_categorical(y, NUM_CLASSES))

    for name, split in splits.items():
        logger.info(
            f"{name}: {len(split)} images, {int(split.class_indices.sum())} ship"
        )

    return splits


def create_dataloaders(
    json_path: Union[str, Path],
    batch_size: int = 32,
    num_workers: int = 0,
    test_size: float = 0.2,
    validation_split: float = 0.0,
    augment_train: bool = True,
    augment_test: bool = False,
    random_state: int = 42
) -> Tuple[DataLoader, Optional[DataLoader], DataLoader]:
    """
    Create training, validation and test dataloaders

    The validation loader is None when validation_split is 0; callers
    then validate on the test partition.
    """
    splits = build_datasets(
        json_path,
        test_size=test_size,
        validation_split=validation_split,
        augment_train=augment_train,
        augment_test=augment_test,
        random_state=random_state
    )

    pin_memory = torch.cuda.is_available()

    train_loader = DataLoader(
        ShipsDataset.from_split(splits['train']),
        batch_size=batch_size,
        shuffle=True,
        num_workers=num_workers,
        pin_memory=pin_memory,
        generator=torch.Generator().manual_seed(random_state)
    )

    val_loader = None
    if 'val' in splits:
        val_loader = DataLoader(
            ShipsDataset.from_split(splits['val']),
            batch_size=batch_size,
            shuffle=False,
            num_workers=num_workers,
            pin_memory=pin_memory
        )

    test_loader = DataLoader(
        ShipsDataset.from_split(splits['test']),
        batch_size=batch_size,
        shuffle=False,
        num_workers=num_workers,
        pin_memory=pin_memory
    )

    return train_loader, val_loader, test_loader
