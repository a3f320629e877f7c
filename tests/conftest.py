import numpy as np
import pytest

from neunet import LabeledData


def make_clusters(num_examples: int, seed: int = 0, noise: float = 0.05) -> LabeledData:
    """Two well separated classes in 4 features, alternating class per example."""
    rng = np.random.default_rng(seed)
    centers = np.array([[1.0, 1.0, 0.0, 0.0],
                        [0.0, 0.0, 1.0, 1.0]])
    classes = np.arange(num_examples) % 2
    features = centers[classes].T + rng.normal(0.0, noise, (4, num_examples))
    labels = np.zeros((2, num_examples))
    labels[classes, np.arange(num_examples)] = 1.0
    return LabeledData(features, labels)


@pytest.fixture
def cluster_data():
    return make_clusters(40, seed=1), make_clusters(20, seed=2)
