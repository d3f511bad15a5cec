"""
ShipsNet Sample Decoding

Converts the flat pixel vectors of the ShipsNet JSON release into
(row, column, channel) image arrays and one-hot label matrices.

Layout of a raw sample (19,200 values in [0, 255]):
    [ red 80x80 row-major | green 80x80 row-major | blue 80x80 row-major ]

so that image[i, j, c] == sample[c * 6400 + i * 80 + j] / 255.
The block order and the row-major reshape must not change: a transposed
or reordered reshape still yields a valid-looking array with silently
misaligned colour channels.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import numpy as np

from ..exceptions import FormatError, ShapeError

logger = logging.getLogger(__name__)

IMAGE_HEIGHT = 80
IMAGE_WIDTH = 80
NUM_CHANNELS = 3
CHANNEL_NAMES = ('red', 'green', 'blue')
PLANE_SIZE = IMAGE_HEIGHT * IMAGE_WIDTH          # 6400
SAMPLE_LENGTH = PLANE_SIZE * NUM_CHANNELS        # 19200
IMAGE_SHAPE = (IMAGE_HEIGHT, IMAGE_WIDTH, NUM_CHANNELS)
MAX_PIXEL_VALUE = 255.0

NUM_CLASSES = 2
CLASS_NAMES = ['no-ship', 'ship']


@dataclass
class ShipsnetRecords:
    """Raw contents of a ShipsNet JSON document"""
    data: np.ndarray
    labels: np.ndarray
    locations: Optional[List[Any]] = None
    scene_ids: Optional[List[str]] = None
    source: Optional[str] = field(default=None, repr=False)

    def __len__(self) -> int:
        return len(self.labels)


def decode_sample(sample: Union[Sequence[float], np.ndarray]) -> np.ndarray:
    """
    Decode one flat RawSample into a normalized (80, 80, 3) image.

    Raises:
        ShapeError: if the sample is not a flat vector of exactly 19200 values
    """
    flat = np.asarray(sample, dtype=np.float32)
    if flat.ndim != 1:
        raise ShapeError(
            f"Expected a flat raw sample of length {SAMPLE_LENGTH}, got shape {flat.shape}"
        )
    if flat.size != SAMPLE_LENGTH:
        raise ShapeError(
            f"Expected a raw sample of length {SAMPLE_LENGTH}, got {flat.size}"
        )

    planes = [
        flat[c * PLANE_SIZE:(c + 1) * PLANE_SIZE].reshape(IMAGE_HEIGHT, IMAGE_WIDTH)
        for c in range(NUM_CHANNELS)
    ]
    return np.stack(planes, axis=-1) / MAX_PIXEL_VALUE


def decode_samples(samples: Union[Sequence[Sequence[float]], np.ndarray]) -> np.ndarray:
    """
    Decode a batch of raw samples into an (N, 80, 80, 3) array.

    Equivalent to stacking decode_sample over the rows, done as a single
    reshape: (N, 19200) -> (N, 3, 80, 80) -> (N, 80, 80, 3).
    """
    batch = np.asarray(samples, dtype=np.float32)
    if batch.ndim != 2 or batch.shape[1] != SAMPLE_LENGTH:
        raise ShapeError(
            f"Expected raw samples of shape (N, {SAMPLE_LENGTH}), got {batch.shape}"
        )

    images = batch.reshape(-1, NUM_CHANNELS, IMAGE_HEIGHT, IMAGE_WIDTH)
    return images.transpose(0, 2, 3, 1) / MAX_PIXEL_VALUE


def encode_image(image: np.ndarray) -> np.ndarray:
    """Inverse of decode_sample: (80, 80, 3) image in [0, 1] -> flat 0..255 vector"""
    image = np.asarray(image, dtype=np.float32)
    if image.shape != IMAGE_SHAPE:
        raise ShapeError(f"Expected an image of shape {IMAGE_SHAPE}, got {image.shape}")

    return (image * MAX_PIXEL_VALUE).transpose(2, 0, 1).reshape(SAMPLE_LENGTH)


def to_categorical(labels: Union[Sequence[int], np.ndarray], num_classes: int = NUM_CLASSES) -> np.ndarray:
    """One-hot encode integer class labels into an (N, num_classes) matrix"""
    labels = np.asarray(labels, dtype=np.int64).ravel()
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(
            f"Labels must lie in [0, {num_classes - 1}], got range "
            f"[{labels.min()}, {labels.max()}]"
        )
    return np.eye(num_classes, dtype=np.float32)[labels]


def load_shipsnet_json(path: Union[str, Path]) -> ShipsnetRecords:
    """
    Load the ShipsNet JSON document.

    Expected structure:
        {"data": [[...19200 values...], ...], "labels": [0, 1, ...],
         "locations": [[lon, lat], ...],   # optional
         "scene_ids": ["...", ...]}         # optional

    Raises:
        FormatError: if the file is not valid UTF-8 JSON, lacks data/labels
            or holds a label other than 0 or 1
        ShapeError: if any sample has the wrong length
    """
    path = Path(path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FormatError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise FormatError(f"{path}: expected a JSON object, got {type(document).__name__}")

    for required in ('data', 'labels'):
        if required not in document:
            raise FormatError(f"{path}: missing required field '{required}'")

    raw_data = document['data']
    raw_labels = document['labels']
    if not isinstance(raw_data, list) or not isinstance(raw_labels, list):
        raise FormatError(f"{path}: 'data' and 'labels' must be arrays")
    if len(raw_data) != len(raw_labels):
        raise FormatError(
            f"{path}: {len(raw_data)} samples but {len(raw_labels)} labels"
        )

    for idx, sample in enumerate(raw_data):
        if not isinstance(sample, list) or len(sample) != SAMPLE_LENGTH:
            length = len(sample) if isinstance(sample, list) else 'n/a'
            raise ShapeError(
                f"{path}: sample {idx} has length {length}, expected {SAMPLE_LENGTH}"
            )

    for idx, label in enumerate(raw_labels):
        # bool is an int subclass; JSON true/false are not class labels
        if isinstance(label, bool) or not isinstance(label, (int, float)) or label not in (0, 1):
            raise FormatError(f"{path}: label {idx} is {label!r}, expected 0 or 1")

    try:
        data = np.asarray(raw_data, dtype=np.float32).reshape(len(raw_data), SAMPLE_LENGTH)
        labels = np.asarray(raw_labels, dtype=np.int64)
    except (TypeError, ValueError) as e:
        raise FormatError(f"{path}: non-numeric values in data or labels: {e}") from e

    records = ShipsnetRecords(
        data=data,
        labels=labels,
        locations=document.get('locations'),
        scene_ids=document.get('scene_ids'),
        source=str(path)
    )

    logger.info(
        f"Loaded {len(records)} samples from {path} "
        f"({int(np.sum(labels == 1))} ship, {int(np.sum(labels == 0))} no-ship)"
    )
    return records
