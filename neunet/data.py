"""
Data plumbing around the training engine: labeled views, file loaders,
one-hot encoding and min-max normalization.

Loaders and normalization work on matrices as read from disk, one example per
row. `LabeledData` is the engine's view, one example per column.
"""

import gzip
import os
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import DataLoadError, ShapeMismatch


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    """
    Encodes class indices as columns of a (num_classes, m) matrix.

    Args:
        labels: Integer class indices, shape (m,) or (1, m).
        num_classes: Number of rows of the result.
    """
    labels = np.asarray(labels).ravel().astype(int)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ShapeMismatch(f"Labels must be in [0, {num_classes}), got range "
                            f"[{labels.min()}, {labels.max()}]")
    encoded = np.zeros((num_classes, labels.size), dtype=float)
    encoded[labels, np.arange(labels.size)] = 1.0
    return encoded


@dataclass(frozen=True)
class LabeledData:
    """
    Features and labels for the same examples, one example per column.

    features: shape (num_features, m)
    labels:   shape (num_classes, m) one-hot, or (1, m) class indices

    Arrays are used as given (no copy is made for float ndarrays), and
    `batch` returns views into them.
    """
    features: np.ndarray
    labels: np.ndarray

    def __post_init__(self):
        features = np.asarray(self.features, dtype=float)
        labels = np.asarray(self.labels, dtype=float)
        if features.ndim != 2:
            raise ShapeMismatch(f"Features must be a 2D matrix, got shape {features.shape}")
        if labels.ndim == 1:
            labels = labels.reshape(1, -1)
        if labels.ndim != 2:
            raise ShapeMismatch(f"Labels must be a 2D matrix, got shape {labels.shape}")
        if features.shape[1] != labels.shape[1]:
            raise ShapeMismatch(f"Features have {features.shape[1]} examples but labels have {labels.shape[1]}")
        object.__setattr__(self, 'features', features)
        object.__setattr__(self, 'labels', labels)

    @classmethod
    def from_rows(cls, features: np.ndarray, labels: np.ndarray,
                  num_classes: Optional[int] = None) -> 'LabeledData':
        """
        Builds a view from loader output (one example per row).

        Args:
            features: Shape (m, num_features).
            labels: Class indices, shape (m,).
            num_classes: If given, labels are one-hot encoded to this many rows.
        """
        features = np.asarray(features, dtype=float)
        if num_classes is not None:
            labels = one_hot(labels, num_classes)
        return cls(features.T, np.asarray(labels, dtype=float).reshape(-1, features.shape[0]))

    @property
    def num_examples(self) -> int:
        return self.features.shape[1]

    @property
    def num_features(self) -> int:
        return self.features.shape[0]

    def batch(self, start: int, size: int) -> 'LabeledData':
        """Returns the examples [start, start + size) as a view."""
        return LabeledData(self.features[:, start:start + size], self.labels[:, start:start + size])

    def targets(self, num_outputs: int) -> np.ndarray:
        """Labels shaped like a network output with num_outputs rows."""
        if self.labels.shape[0] == num_outputs:
            return self.labels
        if self.labels.shape[0] == 1:
            return one_hot(self.labels, num_outputs)
        raise ShapeMismatch(f"Labels have {self.labels.shape[0]} rows, network outputs {num_outputs}")


def min_max_normalize(features: np.ndarray, reference: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Rescales every column of features to [0, 1], in place.

    Columns whose maximum is <= 0, or whose values are all equal, are left
    unchanged.

    Args:
        features: Float matrix, one example per row.
        reference: Matrix whose column ranges are used instead of the ones of
                   `features`, e.g. the raw training set when scaling a test
                   set. Values outside the reference range land outside [0, 1].

    Returns:
        The same array, for chaining.
    """
    if features.ndim != 2:
        raise ShapeMismatch(f"Expected a 2D matrix, got shape {features.shape}")
    if not np.issubdtype(features.dtype, np.floating):
        raise TypeError(f"In-place normalization needs a float matrix, got {features.dtype}")
    if reference is None:
        reference = features
    elif reference.ndim != 2 or reference.shape[1] != features.shape[1]:
        raise ShapeMismatch(f"Reference shape {reference.shape} does not match {features.shape[1]} columns")

    col_min = reference.min(axis=0)
    col_max = reference.max(axis=0)
    columns = (col_max > 0) & (col_max > col_min)
    features[:, columns] = (features[:, columns] - col_min[columns]) / (col_max[columns] - col_min[columns])
    logging.debug(f"Normalized {int(columns.sum())} of {features.shape[1]} columns")
    return features


# --- Loaders ---

class DataLoader:
    """Reads a features file and a labels file into memory."""

    def load_data(self, data_path: str, labels_path: str) -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns:
            features: Shape (m, num_features), float.
            labels: Shape (m,), integer class indices.

        Raises:
            DataLoadError: If either file is missing or malformed, or the
                           example counts differ.
        """
        features = self._read_features(data_path)
        labels = self._read_labels(labels_path)
        if features.shape[0] != labels.shape[0]:
            raise DataLoadError(f"{data_path} holds {features.shape[0]} examples but "
                                f"{labels_path} holds {labels.shape[0]} labels")
        logging.info(f"Loaded {features.shape[0]} examples with {features.shape[1]} features")
        return features, labels

    def _read_features(self, path: str) -> np.ndarray:
        raise NotImplementedError

    def _read_labels(self, path: str) -> np.ndarray:
        raise NotImplementedError


class IdxDataLoader(DataLoader):
    """
    Reads MNIST-style IDX files, optionally gzip-compressed (".gz" suffix).

    Header: two zero bytes, a type code, the number of dimensions, then one
    big-endian uint32 per dimension. Images are flattened to one row each.
    """

    _DTYPES = {
        0x08: np.dtype('>u1'),
        0x09: np.dtype('>i1'),
        0x0B: np.dtype('>i2'),
        0x0C: np.dtype('>i4'),
        0x0D: np.dtype('>f4'),
        0x0E: np.dtype('>f8'),
    }

    def _read(self, path: str) -> np.ndarray:
        if not os.path.exists(path):
            raise DataLoadError(f"File not found: {path}")
        opener = gzip.open if path.endswith('.gz') else open
        try:
            with opener(path, 'rb') as f:
                raw = f.read()
        except OSError as e:
            raise DataLoadError(f"Could not read {path}: {e}") from e

        if len(raw) < 4 or raw[0] != 0 or raw[1] != 0 or raw[2] not in self._DTYPES:
            raise DataLoadError(f"{path} is not an IDX file")
        dtype = self._DTYPES[raw[2]]
        ndim = raw[3]
        header_size = 4 + 4 * ndim
        if len(raw) < header_size:
            raise DataLoadError(f"{path}: truncated header")
        shape = tuple(int(d) for d in np.frombuffer(raw, dtype='>u4', count=ndim, offset=4))
        expected = int(np.prod(shape)) * dtype.itemsize
        if len(raw) - header_size != expected:
            raise DataLoadError(f"{path}: expected {expected} data bytes for shape {shape}, "
                                f"got {len(raw) - header_size}")
        return np.frombuffer(raw, dtype=dtype, offset=header_size).reshape(shape)

    def _read_features(self, path: str) -> np.ndarray:
        data = self._read(path)
        if data.ndim < 2:
            raise DataLoadError(f"{path}: expected at least 2 dimensions, got {data.ndim}")
        return data.reshape(data.shape[0], -1).astype(float)

    def _read_labels(self, path: str) -> np.ndarray:
        data = self._read(path)
        if data.ndim != 1:
            raise DataLoadError(f"{path}: labels must be 1-dimensional, got {data.ndim}")
        return data.astype(int)


class CsvDataLoader(DataLoader):
    """Reads delimited numeric text, one example per line."""

    def __init__(self, delimiter: str = ',', skip_header: int = 0):
        self.delimiter = delimiter
        self.skip_header = skip_header

    def _load(self, path: str) -> np.ndarray:
        if not os.path.exists(path):
            raise DataLoadError(f"File not found: {path}")
        try:
            return np.loadtxt(path, delimiter=self.delimiter, skiprows=self.skip_header, ndmin=2)
        except ValueError as e:
            raise DataLoadError(f"Could not parse {path}: {e}") from e

    def _read_features(self, path: str) -> np.ndarray:
        return self._load(path).astype(float)

    def _read_labels(self, path: str) -> np.ndarray:
        data = self._load(path)
        if data.shape[1] != 1:
            raise DataLoadError(f"{path}: expected one label per line, got {data.shape[1]} columns")
        return data.ravel().astype(int)
