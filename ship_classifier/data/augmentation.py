"""
Rotation Augmentation for ShipsNet Images

Ships have no preferred heading in overhead imagery, so every labelled
chip is expanded into its 0/90/180/270 degree rotations.

Rotations are counter-clockwise (numpy's rot90 convention) and are
applied over the spatial axes only, so the red, green and blue planes
always receive the same geometric transform.
"""

from typing import List, Tuple

import numpy as np

from .decoding import IMAGE_SHAPE
from ..exceptions import ShapeError

ROTATION_ANGLES = (0, 90, 180, 270)
NUM_ROTATIONS = len(ROTATION_ANGLES)


def _check_image(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    if image.shape != IMAGE_SHAPE:
        raise ShapeError(f"Expected an image of shape {IMAGE_SHAPE}, got {image.shape}")
    return image


def rotate_image(image: np.ndarray, quarter_turns: int = 1) -> np.ndarray:
    """Rotate an (H, W, C) image by quarter_turns * 90 degrees counter-clockwise"""
    image = _check_image(image)
    # axes=(0, 1) rotates rows/columns and leaves the channel axis in place
    return np.ascontiguousarray(np.rot90(image, k=quarter_turns % NUM_ROTATIONS, axes=(0, 1)))


def augment_rotations(image: np.ndarray) -> List[np.ndarray]:
    """Return the 0, 90, 180 and 270 degree rotations of an image, in that order"""
    image = _check_image(image)
    return [rotate_image(image, k) for k in range(NUM_ROTATIONS)]


def augment_dataset(images: np.ndarray, labels: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Expand a dataset with rotated copies.

    Output is grouped per input sample: the four rotations of sample 0
    come first, then those of sample 1, and so on. Labels are repeated
    unchanged, e.g. [1, 0, 1] -> [1, 1, 1, 1, 0, 0, 0, 0, 1, 1, 1, 1].
    Works for both integer label vectors and one-hot label matrices.

    Args:
        images: array of shape (N, 80, 80, 3)
        labels: array of shape (N,) or (N, num_classes)

    Returns:
        (images of shape (4N, 80, 80, 3), labels of shape (4N,) or (4N, num_classes))
    """
    images = np.asarray(images)
    labels = np.asarray(labels)

    if images.ndim != 4 or images.shape[1:] != IMAGE_SHAPE:
        raise ShapeError(f"Expected images of shape (N, *{IMAGE_SHAPE}), got {images.shape}")
    if len(labels) != len(images):
        raise ShapeError(f"Got {len(images)} images but {len(labels)} labels")

    rotated = np.stack(
        [np.rot90(images, k=k, axes=(1, 2)) for k in range(NUM_ROTATIONS)],
        axis=1
    )
    expanded_images = rotated.reshape(-1, *IMAGE_SHAPE)
    expanded_labels = np.repeat(labels, NUM_ROTATIONS, axis=0)

    return expanded_images, expanded_labels
