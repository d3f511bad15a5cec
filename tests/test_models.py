"""Tests for model blueprints and the ship classifier factory"""

import pytest
import torch
import torch.nn as nn

from ship_classifier.models.blueprint import LayerSpec, ModelBlueprint, blueprint_from_config
from ship_classifier.models.ship_classifier import (
    count_parameters,
    create_ship_classifier,
    predict_proba,
    shipsnet_blueprint,
)


@pytest.mark.unit
def test_adding_layers_returns_new_blueprint():
    base = ModelBlueprint(input_shape=(3, 80, 80))
    with_conv = base.conv2d(8)
    with_pool = with_conv.max_pool(2)

    assert base.layers == ()
    assert len(with_conv.layers) == 1
    assert len(with_pool.layers) == 2
    assert with_pool.layers[0] == with_conv.layers[0]


@pytest.mark.unit
def test_blueprint_is_frozen():
    blueprint = ModelBlueprint().conv2d(8)

    with pytest.raises(AttributeError):
        blueprint.layers = ()


@pytest.mark.unit
def test_shared_prefix_can_branch():
    trunk = ModelBlueprint().conv2d(8).max_pool(4).flatten()

    two_class = trunk.dense(2)
    three_class = trunk.dense(3)

    assert two_class.output_shape == 2
    assert three_class.output_shape == 3
    assert trunk.output_shape == 8 * 20 * 20


@pytest.mark.unit
def test_layer_spec_describe():
    spec = LayerSpec('dense', (('units', 4), ('activation', None)))

    assert spec.get('units') == 4
    assert spec.describe() == "dense(units=4, activation=None)"


@pytest.mark.unit
def test_compile_produces_working_module():
    blueprint = (ModelBlueprint(input_shape=(3, 80, 80))
                 .conv2d(4).max_pool(4).dropout(0.1)
                 .flatten().dense(16, activation='relu').dense(2))

    model = blueprint.compile()
    out = model(torch.randn(5, 3, 80, 80))

    assert isinstance(model, nn.Sequential)
    assert out.shape == (5, 2)


@pytest.mark.unit
def test_each_compile_builds_fresh_weights():
    blueprint = ModelBlueprint().flatten().dense(2)

    first = blueprint.compile()
    second = blueprint.compile()

    assert first is not second
    assert first[1].weight.data_ptr() != second[1].weight.data_ptr()


@pytest.mark.unit
def test_valid_padding_shrinks_input():
    blueprint = ModelBlueprint(input_shape=(3, 80, 80)).conv2d(4, kernel_size=5, padding='valid')

    assert blueprint.output_shape == (4, 76, 76)


@pytest.mark.unit
@pytest.mark.parametrize('build', [
    lambda b: b.dense(2),
    lambda b: b.flatten().conv2d(4),
    lambda b: b.conv2d(0),
    lambda b: b.dropout(1.5),
    lambda b: b.conv2d(4, activation='swishy'),
    lambda b: b.max_pool(200),
])
def test_invalid_blueprints_fail_to_compile(build):
    with pytest.raises(ValueError):
        build(ModelBlueprint()).compile()


@pytest.mark.unit
def test_empty_blueprint_fails_to_compile():
    with pytest.raises(ValueError):
        ModelBlueprint().compile()


@pytest.mark.unit
def test_summary_lists_every_layer():
    blueprint = shipsnet_blueprint()

    lines = blueprint.summary()

    assert len(lines) == len(blueprint.layers) + 1
    assert lines[-1].endswith('-> 2')


@pytest.mark.unit
def test_shipsnet_architecture_output():
    blueprint = shipsnet_blueprint()

    assert blueprint.output_shape == 2
    assert blueprint.layers[0] == LayerSpec(
        'conv2d', (('filters', 32), ('kernel_size', 3), ('padding', 'same'), ('activation', 'relu'))
    )


@pytest.mark.unit
@pytest.mark.parametrize('model_type', ['shipsnet', 'shipsnet_small'])
def test_factory_models_forward(model_type):
    model = create_ship_classifier(model_type)

    assert model(torch.randn(2, 3, 80, 80)).shape == (2, 2)
    assert count_parameters(model)['total'] == count_parameters(model)['trainable']


@pytest.mark.unit
def test_factory_custom_layers():
    layers = [
        {'type': 'conv2d', 'filters': 4},
        {'type': 'max_pool', 'pool_size': 8},
        {'type': 'flatten'},
        {'type': 'dense', 'units': 2},
    ]

    model = create_ship_classifier('custom', layers=layers)

    assert model(torch.randn(1, 3, 80, 80)).shape == (1, 2)


@pytest.mark.unit
def test_factory_custom_requires_matching_output():
    with pytest.raises(ValueError):
        create_ship_classifier('custom', layers=[{'type': 'flatten'}, {'type': 'dense', 'units': 5}])


@pytest.mark.unit
def test_blueprint_from_config_rejects_unknown_type():
    with pytest.raises(ValueError):
        blueprint_from_config([{'type': 'lstm'}])


@pytest.mark.unit
def test_unknown_model_type():
    with pytest.raises(ValueError):
        create_ship_classifier('resnet')


@pytest.mark.unit
def test_predict_proba_rows_sum_to_one():
    model = create_ship_classifier('shipsnet_small')

    probs = predict_proba(model, torch.randn(3, 3, 80, 80))

    assert probs.shape == (3, 2)
    assert torch.allclose(probs.sum(dim=1), torch.ones(3), atol=1e-5)
