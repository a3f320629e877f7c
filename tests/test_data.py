import gzip
import struct

import numpy as np
import pytest

from neunet.data import CsvDataLoader, IdxDataLoader, LabeledData, min_max_normalize, one_hot
from neunet.errors import DataLoadError, ShapeMismatch


def write_idx(path, array, type_code=0x08):
    header = bytes([0, 0, type_code, array.ndim]) + struct.pack(f">{array.ndim}I", *array.shape)
    payload = header + array.astype(">u1").tobytes()
    opener = gzip.open if str(path).endswith(".gz") else open
    with opener(path, "wb") as f:
        f.write(payload)


def test_labeled_data_requires_matching_example_counts():
    with pytest.raises(ShapeMismatch):
        LabeledData(np.zeros((3, 5)), np.zeros((2, 4)))


def test_labeled_data_does_not_copy_and_batches_are_views():
    features = np.arange(20, dtype=float).reshape(2, 10)
    labels = np.zeros((1, 10))
    data = LabeledData(features, labels)
    assert data.features is features

    batch = data.batch(8, 4)
    assert batch.num_examples == 2
    assert np.shares_memory(batch.features, features)
    np.testing.assert_array_equal(batch.features, features[:, 8:])


def test_targets_one_hot_encodes_scalar_labels():
    data = LabeledData(np.zeros((2, 3)), np.array([2, 0, 1]))
    np.testing.assert_array_equal(data.targets(3), [[0, 1, 0], [0, 0, 1], [1, 0, 0]])
    with pytest.raises(ShapeMismatch):
        LabeledData(np.zeros((2, 3)), np.zeros((2, 3))).targets(4)


def test_one_hot_rejects_out_of_range_labels():
    np.testing.assert_array_equal(one_hot([1, 0], 2), [[0, 1], [1, 0]])
    with pytest.raises(ShapeMismatch):
        one_hot([0, 3], 3)


def test_from_rows_transposes_loader_output():
    features = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
    data = LabeledData.from_rows(features, np.array([1, 0]), num_classes=2)
    assert data.features.shape == (3, 2)
    assert data.labels.shape == (2, 2)
    scalar = LabeledData.from_rows(features, np.array([1, 0]))
    assert scalar.labels.shape == (1, 2)


def test_min_max_normalize_columns():
    rng = np.random.default_rng(0)
    features = rng.normal(3.0, 2.0, (50, 4))
    features[:, 2] = -np.abs(features[:, 2]) - 1.0
    features[:, 3] = 7.0
    untouched = features[:, 2:].copy()

    result = min_max_normalize(features)

    assert result is features
    np.testing.assert_allclose(features[:, :2].min(axis=0), 0.0)
    np.testing.assert_allclose(features[:, :2].max(axis=0), 1.0)
    np.testing.assert_array_equal(features[:, 2:], untouched)


def test_min_max_normalize_with_reference_ranges():
    train = np.array([[0.0, 10.0], [4.0, 20.0]])
    test = np.array([[2.0, 15.0], [8.0, 30.0]])

    min_max_normalize(test, reference=train)
    min_max_normalize(train)

    np.testing.assert_allclose(test, [[0.5, 0.5], [2.0, 2.0]])
    np.testing.assert_allclose(train, [[0.0, 0.0], [1.0, 1.0]])
    with pytest.raises(ShapeMismatch):
        min_max_normalize(test, reference=np.zeros((2, 3)))


def test_min_max_normalize_needs_float_matrix():
    with pytest.raises(TypeError):
        min_max_normalize(np.ones((2, 2), dtype=int))


@pytest.mark.parametrize("suffix", ["", ".gz"])
def test_idx_loader_reads_images_and_labels(tmp_path, suffix):
    images = np.arange(3 * 2 * 2).reshape(3, 2, 2)
    labels = np.array([7, 0, 3])
    write_idx(tmp_path / f"images{suffix}", images)
    write_idx(tmp_path / f"labels{suffix}", labels)

    features, loaded_labels = IdxDataLoader().load_data(str(tmp_path / f"images{suffix}"),
                                                        str(tmp_path / f"labels{suffix}"))
    assert features.shape == (3, 4)
    np.testing.assert_array_equal(features[1], [4, 5, 6, 7])
    np.testing.assert_array_equal(loaded_labels, labels)


def test_idx_loader_rejects_bad_files(tmp_path):
    bad = tmp_path / "bad"
    bad.write_bytes(b"\x01\x02\x03\x04")
    write_idx(tmp_path / "labels", np.array([1, 2]))
    write_idx(tmp_path / "images", np.zeros((3, 2, 2)))
    loader = IdxDataLoader()
    with pytest.raises(DataLoadError):
        loader.load_data(str(bad), str(tmp_path / "labels"))
    with pytest.raises(DataLoadError, match="examples"):
        loader.load_data(str(tmp_path / "images"), str(tmp_path / "labels"))
    with pytest.raises(DataLoadError, match="not found"):
        loader.load_data(str(tmp_path / "missing"), str(tmp_path / "labels"))


def test_csv_loader(tmp_path):
    (tmp_path / "x.csv").write_text("a,b\n1,2\n3,4\n5,6\n")
    (tmp_path / "y.csv").write_text("label\n0\n1\n1\n")
    features, labels = CsvDataLoader(skip_header=1).load_data(str(tmp_path / "x.csv"), str(tmp_path / "y.csv"))
    np.testing.assert_array_equal(features, [[1, 2], [3, 4], [5, 6]])
    np.testing.assert_array_equal(labels, [0, 1, 1])

    (tmp_path / "bad.csv").write_text("1,x\n")
    with pytest.raises(DataLoadError):
        CsvDataLoader().load_data(str(tmp_path / "bad.csv"), str(tmp_path / "y.csv"))
