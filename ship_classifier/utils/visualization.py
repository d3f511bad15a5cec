"""
Plotting helpers for ShipsNet images and training runs
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import matplotlib.pyplot as plt
import numpy as np

from ..data.augmentation import ROTATION_ANGLES, augment_rotations
from ..data.decoding import CLASS_NAMES


def _finish(fig: plt.Figure, save_path: Optional[Union[str, Path]]) -> plt.Figure:
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    return fig


def _label_name(label) -> str:
    label = np.asarray(label)
    index = int(np.argmax(label)) if label.ndim else int(label)
    return CLASS_NAMES[index]


def plot_samples(
    images: np.ndarray,
    labels: Optional[Sequence] = None,
    ncols: int = 5,
    max_images: int = 20,
    save_path: Optional[Union[str, Path]] = None
) -> plt.Figure:
    """Grid of decoded (80, 80, 3) images, titled with their class"""
    count = min(len(images), max_images)
    nrows = max(1, int(np.ceil(count / ncols)))

    fig, axes = plt.subplots(nrows, ncols, figsize=(2.2 * ncols, 2.2 * nrows), squeeze=False)

    for idx, ax in enumerate(axes.flat):
        ax.axis('off')
        if idx >= count:
            continue
        ax.imshow(np.clip(images[idx], 0, 1))
        if labels is not None:
            ax.set_title(_label_name(labels[idx]), fontsize=9)

    return _finish(fig, save_path)


def plot_rotations(image: np.ndarray, save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """The four rotations produced for one image by the augmenter"""
    rotations = augment_rotations(image)

    fig, axes = plt.subplots(1, len(rotations), figsize=(2.5 * len(rotations), 2.8))
    for ax, rotated, angle in zip(axes, rotations, ROTATION_ANGLES):
        ax.imshow(np.clip(rotated, 0, 1))
        ax.set_title(f'{angle}°')
        ax.axis('off')

    return _finish(fig, save_path)


def plot_channels(image: np.ndarray, save_path: Optional[Union[str, Path]] = None) -> plt.Figure:
    """Red, green and blue planes of one image side by side"""
    fig, axes = plt.subplots(1, 4, figsize=(10, 2.8))

    axes[0].imshow(np.clip(image, 0, 1))
    axes[0].set_title('RGB')
    for c, (ax, cmap) in enumerate(zip(axes[1:], ('Reds', 'Greens', 'Blues'))):
        ax.imshow(image[:, :, c], cmap=cmap, vmin=0, vmax=1)
        ax.set_title(cmap[:-1])
    for ax in axes:
        ax.axis('off')

    return _finish(fig, save_path)


def plot_predictions(
    images: np.ndarray,
    probabilities: np.ndarray,
    labels: Optional[Sequence] = None,
    ncols: int = 5,
    max_images: int = 20,
    save_path: Optional[Union[str, Path]] = None
) -> plt.Figure:
    """Images annotated with predicted class and ship probability; misclassified in red"""
    count = min(len(images), max_images)
    nrows = max(1, int(np.ceil(count / ncols)))

    fig, axes = plt.subplots(nrows, ncols, figsize=(2.4 * ncols, 2.6 * nrows), squeeze=False)

    for idx, ax in enumerate(axes.flat):
        ax.axis('off')
        if idx >= count:
            continue
        predicted = int(np.argmax(probabilities[idx]))
        ax.imshow(np.clip(images[idx], 0, 1))

        color = 'black'
        if labels is not None and _label_name(labels[idx]) != CLASS_NAMES[predicted]:
            color = 'red'
        ax.set_title(f'{CLASS_NAMES[predicted]} ({probabilities[idx][1]:.2f})', fontsize=9, color=color)

    return _finish(fig, save_path)


def plot_training_history(
    history: Dict[str, List[float]],
    save_path: Optional[Union[str, Path]] = None
) -> plt.Figure:
    """Loss and accuracy curves from a ModelTrainer history"""
    fig, axes = plt.subplots(1, 2, figsize=(12, 4))

    axes[0].plot(history.get('train_loss', []), label='Train')
    axes[0].plot(history.get('val_loss', []), label='Validation')
    axes[0].set_title('Loss Curves')
    axes[0].set_xlabel('Epoch')
    axes[0].set_ylabel('Loss')

    axes[1].plot(history.get('train_accuracy', []), label='Train')
    axes[1].plot(history.get('val_accuracy', []), label='Validation')
    axes[1].set_title('Accuracy Curves')
    axes[1].set_xlabel('Epoch')
    axes[1].set_ylabel('Accuracy')

    for ax in axes:
        ax.legend()
        ax.grid(True)

    return _finish(fig, save_path)
