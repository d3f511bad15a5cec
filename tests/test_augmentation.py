"""Tests for ship_classifier.data.augmentation"""

import numpy as np
import pytest

from ship_classifier.data.augmentation import augment_dataset, augment_rotations, rotate_image
from ship_classifier.data.decoding import decode_sample
from ship_classifier.exceptions import ShapeError


@pytest.mark.unit
def test_four_rotations_preserve_shape(random_image):
    rotations = augment_rotations(random_image)

    assert len(rotations) == 4
    for rotated in rotations:
        assert rotated.shape == (80, 80, 3)


@pytest.mark.unit
def test_first_rotation_is_identity(random_image):
    np.testing.assert_array_equal(augment_rotations(random_image)[0], random_image)


@pytest.mark.unit
def test_full_cycle_returns_original(random_image):
    image = random_image
    for _ in range(4):
        image = rotate_image(image, 1)

    np.testing.assert_array_equal(image, random_image)


@pytest.mark.unit
def test_rotation_sequence_is_cumulative(random_image):
    rotations = augment_rotations(random_image)

    for k in range(1, 4):
        np.testing.assert_array_equal(rotate_image(rotations[k - 1], 1), rotations[k])


@pytest.mark.unit
def test_channels_rotate_together(random_image):
    rotated = rotate_image(random_image, 1)

    for c in range(3):
        np.testing.assert_array_equal(rotated[:, :, c], np.rot90(random_image[:, :, c]))


@pytest.mark.unit
def test_rotation_is_counter_clockwise():
    image = np.zeros((80, 80, 3), dtype=np.float32)
    image[0, 79, :] = 1.0  # top-right corner

    rotated = rotate_image(image, 1)

    # a quarter turn counter-clockwise moves top-right to top-left
    assert rotated[0, 0, 0] == 1.0
    assert rotated.sum() == 3.0


@pytest.mark.unit
def test_zero_image_rotations_are_zero(zero_sample):
    for rotated in augment_rotations(decode_sample(zero_sample)):
        assert not rotated.any()


@pytest.mark.unit
def test_label_duplication():
    images = np.random.default_rng(3).random((3, 80, 80, 3)).astype(np.float32)

    expanded_images, expanded_labels = augment_dataset(images, np.array([1, 0, 1]))

    assert expanded_images.shape == (12, 80, 80, 3)
    assert expanded_labels.tolist() == [1, 1, 1, 1, 0, 0, 0, 0, 1, 1, 1, 1]


@pytest.mark.unit
def test_dataset_expansion_is_grouped_per_sample():
    images = np.random.default_rng(4).random((2, 80, 80, 3)).astype(np.float32)

    expanded_images, _ = augment_dataset(images, np.array([0, 1]))

    for sample_idx in range(2):
        for k, rotated in enumerate(augment_rotations(images[sample_idx])):
            np.testing.assert_array_equal(expanded_images[sample_idx * 4 + k], rotated)


@pytest.mark.unit
def test_one_hot_labels_are_repeated():
    images = np.zeros((2, 80, 80, 3), dtype=np.float32)
    one_hot = np.array([[0, 1], [1, 0]], dtype=np.float32)

    _, expanded_labels = augment_dataset(images, one_hot)

    assert expanded_labels.shape == (8, 2)
    np.testing.assert_array_equal(expanded_labels[:4], [[0, 1]] * 4)
    np.testing.assert_array_equal(expanded_labels[4:], [[1, 0]] * 4)


@pytest.mark.unit
def test_mismatched_lengths_raise():
    with pytest.raises(ShapeError):
        augment_dataset(np.zeros((2, 80, 80, 3)), np.array([1]))


@pytest.mark.unit
def test_wrong_image_shape_raises():
    with pytest.raises(ShapeError):
        augment_rotations(np.zeros((80, 80)))
