import numpy as np

from neunet.initializers import GlorotInitializer, HeInitializer


def test_same_seed_gives_same_weights():
    for initializer in (HeInitializer(), GlorotInitializer()):
        a = initializer.weights(5, 3, np.random.default_rng(11))
        b = initializer.weights(5, 3, np.random.default_rng(11))
        assert a.shape == (5, 3)
        np.testing.assert_array_equal(a, b)


def test_he_scale_follows_fan_in():
    weights = HeInitializer().weights(500, 200, np.random.default_rng(0))
    assert abs(weights.mean()) < 0.01
    assert abs(weights.std() - np.sqrt(2.0 / 200)) < 0.005


def test_glorot_uses_fan_in_plus_fan_out():
    rows, cols = 300, 100
    limit = np.sqrt(6.0 / (rows + cols))
    weights = GlorotInitializer().weights(rows, cols, np.random.default_rng(0))
    assert np.all(np.abs(weights) <= limit)
    # The samples should fill most of the range
    assert np.abs(weights).max() > 0.95 * limit
