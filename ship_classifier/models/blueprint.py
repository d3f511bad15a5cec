"""
Immutable Model Blueprints

A ModelBlueprint is a value describing a sequential network. Adding a
layer returns a new blueprint and never changes the one it was called
on, so partial descriptions can be shared and extended freely. The
description is turned into an executable torch module exactly once, by
an explicit call to compile().
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple, Union

import torch.nn as nn
from torch.nn import init

Shape = Union[Tuple[int, int, int], int]

ACTIVATIONS = {
    'relu': lambda: nn.ReLU(inplace=True),
    'sigmoid': nn.Sigmoid,
    'tanh': nn.Tanh,
    'softmax': lambda: nn.Softmax(dim=1),
}


@dataclass(frozen=True)
class LayerSpec:
    """One layer of a blueprint: a kind plus its (hashable) parameters"""
    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()

    def get(self, key: str, default: Any = None) -> Any:
        return dict(self.params).get(key, default)

    def describe(self) -> str:
        args = ', '.join(f'{k}={v!r}' for k, v in self.params)
        return f'{self.kind}({args})'


@dataclass(frozen=True)
class ModelBlueprint:
    """
    Immutable description of a sequential CNN

    input_shape is (channels, height, width).

    Example:
        blueprint = (ModelBlueprint(input_shape=(3, 80, 80))
                     .conv2d(32).max_pool().dropout(0.25)
                     .flatten().dense(512, activation='relu').dense(2))
        model = blueprint.compile()
    """
    input_shape: Tuple[int, int, int] = (3, 80, 80)
    layers: Tuple[LayerSpec, ...] = ()
    name: str = 'sequential'

    def _add(self, kind: str, **params) -> 'ModelBlueprint':
        spec = LayerSpec(kind=kind, params=tuple(params.items()))
        return replace(self, layers=self.layers + (spec,))

    def conv2d(
        self,
        filters: int,
        kernel_size: int = 3,
        padding: str = 'same',
        activation: Optional[str] = 'relu'
    ) -> 'ModelBlueprint':
        return self._add('conv2d', filters=filters, kernel_size=kernel_size,
                         padding=padding, activation=activation)

    def max_pool(self, pool_size: int = 2) -> 'ModelBlueprint':
        return self._add('max_pool', pool_size=pool_size)

    def batch_norm(self) -> 'ModelBlueprint':
        return self._add('batch_norm')

    def dropout(self, rate: float) -> 'ModelBlueprint':
        return self._add('dropout', rate=rate)

    def flatten(self) -> 'ModelBlueprint':
        return self._add('flatten')

    def dense(self, units: int, activation: Optional[str] = None) -> 'ModelBlueprint':
        return self._add('dense', units=units, activation=activation)

    def renamed(self, name: str) -> 'ModelBlueprint':
        return replace(self, name=name)

    @property
    def output_shape(self) -> Shape:
        shape: Shape = self.input_shape
        for spec in self.layers:
            shape = _infer_output_shape(spec, shape)
        return shape

    def summary(self) -> List[str]:
        """Human readable layer listing with output shapes"""
        lines = [f'{self.name}: input {self.input_shape}']
        shape: Shape = self.input_shape
        for spec in self.layers:
            shape = _infer_output_shape(spec, shape)
            lines.append(f'  {spec.describe():<60} -> {shape}')
        return lines

    def compile(self) -> nn.Sequential:
        """Build the executable torch module described by this blueprint"""
        if not self.layers:
            raise ValueError('Cannot compile an empty blueprint')

        modules: List[nn.Module] = []
        shape: Shape = self.input_shape

        for spec in self.layers:
            modules.extend(_build_layer(spec, shape))
            shape = _infer_output_shape(spec, shape)

        model = nn.Sequential(*modules)
        _initialize_weights(model)
        return model


def _require_spatial(spec: LayerSpec, shape: Shape) -> Tuple[int, int, int]:
    if isinstance(shape, int):
        raise ValueError(f'{spec.describe()} needs a (C, H, W) input, got flat features {shape}')
    return shape


def _require_positive(spec: LayerSpec, *keys: str):
    for key in keys:
        value = spec.get(key)
        if not isinstance(value, int) or value <= 0:
            raise ValueError(f'{spec.describe()}: {key} must be a positive integer')


def _infer_output_shape(spec: LayerSpec, shape: Shape) -> Shape:
    if spec.kind == 'conv2d':
        _require_positive(spec, 'filters', 'kernel_size')
        c, h, w = _require_spatial(spec, shape)
        if spec.get('padding') == 'same':
            return (spec.get('filters'), h, w)
        k = spec.get('kernel_size')
        if h < k or w < k:
            raise ValueError(f'{spec.describe()}: kernel larger than input {h}x{w}')
        return (spec.get('filters'), h - k + 1, w - k + 1)

    if spec.kind == 'max_pool':
        _require_positive(spec, 'pool_size')
        c, h, w = _require_spatial(spec, shape)
        p = spec.get('pool_size')
        if h < p or w < p:
            raise ValueError(f'{spec.describe()}: pool larger than input {h}x{w}')
        return (c, h // p, w // p)

    if spec.kind == 'batch_norm':
        _require_spatial(spec, shape)
        return shape

    if spec.kind == 'dropout':
        rate = spec.get('rate')
        if not 0.0 <= rate < 1.0:
            raise ValueError(f'{spec.describe()}: rate must be in [0, 1)')
        return shape

    if spec.kind == 'flatten':
        c, h, w = _require_spatial(spec, shape)
        return c * h * w

    if spec.kind == 'dense':
        _require_positive(spec, 'units')
        if not isinstance(shape, int):
            raise ValueError(f'{spec.describe()} needs flat features; add flatten() first')
        return spec.get('units')

    raise ValueError(f'Unknown layer kind: {spec.kind}')


def _activation(name: Optional[str]) -> List[nn.Module]:
    if name is None or name == 'linear':
        return []
    if name not in ACTIVATIONS:
        raise ValueError(f'Unknown activation: {name}')
    return [ACTIVATIONS[name]()]


def _build_layer(spec: LayerSpec, shape: Shape) -> List[nn.Module]:
    # validates the spec against its input before any module is created
    _infer_output_shape(spec, shape)

    if spec.kind == 'conv2d':
        padding = spec.get('padding')
        return [nn.Conv2d(
            shape[0],
            spec.get('filters'),
            kernel_size=spec.get('kernel_size'),
            padding='same' if padding == 'same' else 0
        )] + _activation(spec.get('activation'))

    if spec.kind == 'max_pool':
        return [nn.MaxPool2d(kernel_size=spec.get('pool_size'))]

    if spec.kind == 'batch_norm':
        return [nn.BatchNorm2d(shape[0])]

    if spec.kind == 'dropout':
        return [nn.Dropout(spec.get('rate'))]

    if spec.kind == 'flatten':
        return [nn.Flatten()]

    if spec.kind == 'dense':
        return [nn.Linear(shape, spec.get('units'))] + _activation(spec.get('activation'))

    raise ValueError(f'Unknown layer kind: {spec.kind}')


def _initialize_weights(model: nn.Module):
    for m in model.modules():
        if isinstance(m, nn.Conv2d):
            init.kaiming_normal_(m.weight, mode='fan_out', nonlinearity='relu')
            init.constant_(m.bias, 0)
        elif isinstance(m, nn.BatchNorm2d):
            init.constant_(m.weight, 1)
            init.constant_(m.bias, 0)
        elif isinstance(m, nn.Linear):
            init.xavier_uniform_(m.weight)
            init.constant_(m.bias, 0)


def blueprint_from_config(layers: List[Dict[str, Any]], input_shape=(3, 80, 80), name: str = 'custom') -> ModelBlueprint:
    """
    Build a blueprint from a list of layer dicts, e.g. from a JSON config:
        [{"type": "conv2d", "filters": 32}, {"type": "max_pool"}, ...]
    """
    blueprint = ModelBlueprint(input_shape=tuple(input_shape), name=name)
    layer_types = {'conv2d', 'max_pool', 'batch_norm', 'dropout', 'flatten', 'dense'}

    for layer in layers:
        params = dict(layer)
        kind = params.pop('type', None)
        if kind not in layer_types:
            raise ValueError(f'Unknown layer type in config: {kind}')
        blueprint = getattr(blueprint, kind)(**params)

    return blueprint
