import json

import matplotlib
import numpy as np
import pytest

matplotlib.use('Agg')

from ship_classifier.data.decoding import PLANE_SIZE, SAMPLE_LENGTH


@pytest.fixture
def zero_sample():
    return np.zeros(SAMPLE_LENGTH, dtype=np.float32)


@pytest.fixture
def red_ramp_sample():
    """Red block holds 1..6400, green and blue are zero"""
    sample = np.zeros(SAMPLE_LENGTH, dtype=np.float32)
    sample[:PLANE_SIZE] = np.arange(1, PLANE_SIZE + 1)
    return sample


@pytest.fixture
def random_samples():
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(6, SAMPLE_LENGTH)).astype(np.float32)


@pytest.fixture
def random_image():
    rng = np.random.default_rng(1)
    return rng.random((80, 80, 3)).astype(np.float32)


def write_shipsnet_json(path, num_samples=20, extra=None):
    """Small ShipsNet-style document: alternating ship / no-ship labels"""
    rng = np.random.default_rng(7)
    labels = [i % 2 for i in range(num_samples)]
    data = []
    for label in labels:
        # ships are brighter so a tiny model has something to learn
        low = 100 if label else 0
        data.append(rng.integers(low, low + 156, size=SAMPLE_LENGTH).tolist())

    document = {'data': data, 'labels': labels}
    if extra:
        document.update(extra)

    with open(path, 'w') as f:
        json.dump(document, f)
    return path


@pytest.fixture
def shipsnet_json_factory(tmp_path):
    def factory(name="shipsnet.json", num_samples=20, extra=None):
        return write_shipsnet_json(tmp_path / name, num_samples=num_samples, extra=extra)
    return factory


@pytest.fixture
def shipsnet_json(shipsnet_json_factory):
    return shipsnet_json_factory()
