"""
CNN Architectures for ShipsNet Classification

Small convolutional networks for 80x80 RGB ship / no-ship chips,
described as immutable blueprints and compiled on request.
"""

from typing import Callable, Dict, Optional

import torch
import torch.nn as nn

from .blueprint import ModelBlueprint, blueprint_from_config


def shipsnet_blueprint(
    input_shape=(3, 80, 80),
    num_classes: int = 2,
    dropout_rate: float = 0.25,
    dense_dropout_rate: float = 0.5
) -> ModelBlueprint:
    """
    Classic Conv-Pool-Dropout stack

    80x80x3 -> 40x40x32 -> 20x20x64 -> 10x10x128 -> 512 -> num_classes logits
    """
    return (
        ModelBlueprint(input_shape=tuple(input_shape), name='shipsnet')
        .conv2d(32, kernel_size=3)
        .max_pool(2)
        .dropout(dropout_rate)
        .conv2d(64, kernel_size=3)
        .max_pool(2)
        .dropout(dropout_rate)
        .conv2d(128, kernel_size=3)
        .max_pool(2)
        .dropout(dropout_rate)
        .flatten()
        .dense(512, activation='relu')
        .dropout(dense_dropout_rate)
        .dense(num_classes)
    )


def shipsnet_small_blueprint(
    input_shape=(3, 80, 80),
    num_classes: int = 2,
    dropout_rate: float = 0.2,
    dense_dropout_rate: float = 0.3
) -> ModelBlueprint:
    """Lighter variant for CPU experiments"""
    return (
        ModelBlueprint(input_shape=tuple(input_shape), name='shipsnet_small')
        .conv2d(16, kernel_size=3)
        .max_pool(4)
        .dropout(dropout_rate)
        .conv2d(32, kernel_size=3)
        .max_pool(4)
        .dropout(dropout_rate)
        .flatten()
        .dense(64, activation='relu')
        .dropout(dense_dropout_rate)
        .dense(num_classes)
    )


MODEL_REGISTRY: Dict[str, Callable[..., ModelBlueprint]] = {
    'shipsnet': shipsnet_blueprint,
    'shipsnet_small': shipsnet_small_blueprint,
}


# Model factory function
def create_ship_classifier(
    model_type: str = 'shipsnet',
    input_shape=(3, 80, 80),
    num_classes: int = 2,
    layers: Optional[list] = None,
    **kwargs
) -> nn.Module:
    """
    Factory function to create ship classification models

    Args:
        model_type: Registered architecture name, or 'custom' with `layers`
        input_shape: (channels, height, width)
        num_classes: Number of output logits
        layers: Layer dicts for a 'custom' model (see blueprint_from_config)

    Returns:
        Compiled torch module producing raw logits
    """
    if model_type == 'custom':
        if not layers:
            raise ValueError("model_type 'custom' requires a non-empty 'layers' list")
        blueprint = blueprint_from_config(layers, input_shape=input_shape)
        if blueprint.output_shape != num_classes:
            raise ValueError(
                f"Custom model outputs {blueprint.output_shape} features, expected {num_classes}"
            )
    elif model_type in MODEL_REGISTRY:
        blueprint = MODEL_REGISTRY[model_type](
            input_shape=input_shape,
            num_classes=num_classes,
            **kwargs
        )
    else:
        raise ValueError(f"Unknown model type: {model_type}")

    return blueprint.compile()


def count_parameters(model: nn.Module) -> Dict[str, int]:
    return {
        'total': sum(p.numel() for p in model.parameters()),
        'trainable': sum(p.numel() for p in model.parameters() if p.requires_grad)
    }


@torch.no_grad()
def predict_proba(model: nn.Module, images: torch.Tensor) -> torch.Tensor:
    """Softmax class probabilities for a batch of (N, 3, 80, 80) images"""
    model.eval()
    return torch.softmax(model(images), dim=1)
