import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from .activations import ActivationType
from .errors import ShapeMismatch

# Predictions are kept this far from 0 and 1 before taking a logarithm
EPSILON = 1e-15

# --- Loss Functions ---

LossFunctionType = Callable[[np.ndarray, np.ndarray], float]


def _check_shapes(outputs: np.ndarray, targets: np.ndarray, name: str):
    if outputs.shape != targets.shape:
        raise ShapeMismatch(f"{name}: Output shape {outputs.shape} must match target shape {targets.shape}")


def categorical_cross_entropy(outputs: np.ndarray, targets: np.ndarray) -> float:
    """
    Mean per-example cross-entropy for softmax outputs.

    Loss = - (1/m) * Σ_examples Σ_classes [ target * log(output) ]

    Args:
        outputs: Predicted probabilities, shape (num_classes, m).
        targets: One-hot labels, shape (num_classes, m).
    """
    _check_shapes(outputs, targets, "CE Loss")
    num_examples = outputs.shape[1]
    if num_examples == 0:
        return 0.0
    outputs_clipped = np.clip(outputs, EPSILON, 1.0 - EPSILON)
    return float(-np.sum(targets * np.log(outputs_clipped)) / num_examples)


def binary_cross_entropy(outputs: np.ndarray, targets: np.ndarray) -> float:
    """
    Mean per-example binary cross-entropy for sigmoid outputs.

    Loss = - (1/m) * Σ [ target * log(output) + (1 - target) * log(1 - output) ]
    """
    _check_shapes(outputs, targets, "BCE Loss")
    num_examples = outputs.shape[1]
    if num_examples == 0:
        return 0.0
    outputs_clipped = np.clip(outputs, EPSILON, 1.0 - EPSILON)
    term1 = targets * np.log(outputs_clipped)
    term2 = (1 - targets) * np.log(1 - outputs_clipped)
    return float(-np.sum(term1 + term2) / num_examples)


def mean_squared_error(outputs: np.ndarray, targets: np.ndarray) -> float:
    """
    Half squared error averaged over examples: (1/2m) * Σ(output - target)^2.

    The 1/2 makes dL/dA exactly (output - target).
    """
    _check_shapes(outputs, targets, "MSE Loss")
    num_examples = outputs.shape[1]
    if num_examples == 0:
        return 0.0
    return float(0.5 * np.sum((outputs - targets) ** 2) / num_examples)


LOSS_FUNCTIONS: Dict[ActivationType, LossFunctionType] = {
    ActivationType.SOFTMAX: categorical_cross_entropy,
    ActivationType.SIGMOID: binary_cross_entropy,
    ActivationType.RELU: mean_squared_error,
    ActivationType.TANH: mean_squared_error,
    ActivationType.LINEAR: mean_squared_error,
}


def loss_for(activation_type: ActivationType) -> LossFunctionType:
    """Returns the loss function paired with an output activation."""
    return LOSS_FUNCTIONS[activation_type]


# --- Evaluation ---

@dataclass(frozen=True)
class TrainingEval:
    """Classification quality on one data set.

    The confusion matrix has true labels on rows and predictions on columns.
    """
    confusion_matrix: np.ndarray
    label_accuracies: List[float]
    accuracy: float

    @property
    def dimension(self) -> int:
        return self.confusion_matrix.shape[0]

    def to_dict(self) -> dict:
        return {
            "confusion_matrix": {
                # Column-major so a reader walks one prediction column at a time
                "data": [int(v) for v in self.confusion_matrix.ravel(order='F')],
                "dimension": self.dimension,
                "predictions_on_cols": True,
                "data_orientation_per_col": True,
            },
            "label_accuracies": [float(v) for v in self.label_accuracies],
            "accuracy": float(self.accuracy),
        }


@dataclass(frozen=True)
class Metrics:
    """Loss and train/test evaluations at one reporting point."""
    loss: float
    train_eval: TrainingEval
    test_eval: TrainingEval

    def to_dict(self) -> dict:
        return {
            "loss": float(self.loss),
            "train_eval": self.train_eval.to_dict(),
            "test_eval": self.test_eval.to_dict(),
        }


def class_indices(matrix: np.ndarray) -> np.ndarray:
    """
    Converts a prediction or label matrix to one class index per example.

    A matrix with several rows is read as scores/one-hot and reduced with
    arg-max over each column. A single row holding only whole numbers is read
    as class labels; any other single row is a binary output thresholded at 0.5.
    """
    matrix = np.asarray(matrix)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    if matrix.shape[0] > 1:
        return np.argmax(matrix, axis=0)
    row = matrix[0]
    if np.all(np.equal(np.mod(row, 1), 0)):
        return row.astype(int)
    return (row >= 0.5).astype(int)


def confusion_matrix(true_classes: np.ndarray, predicted_classes: np.ndarray, num_classes: int) -> np.ndarray:
    """Builds a (num_classes, num_classes) count table, true class on rows."""
    if true_classes.shape != predicted_classes.shape:
        raise ShapeMismatch(f"Got {true_classes.shape[0]} labels for {predicted_classes.shape[0]} predictions")
    matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    np.add.at(matrix, (true_classes, predicted_classes), 1)
    return matrix


def evaluate(predictions: np.ndarray, true_labels: np.ndarray, num_classes: Optional[int] = None) -> TrainingEval:
    """
    Compares network outputs with true labels.

    Args:
        predictions: Network output, shape (outputs, m).
        true_labels: One-hot labels (num_classes, m) or class indices (1, m).
        num_classes: Confusion matrix dimension. Inferred from the prediction
                     height when omitted (a single output unit means 2 classes).

    Returns:
        TrainingEval holding the confusion matrix, per-class accuracy (0 for a
        class absent from the true labels) and overall accuracy.
    """
    predictions = np.asarray(predictions)
    if predictions.ndim == 1:
        predictions = predictions.reshape(1, -1)
    if num_classes is None:
        num_classes = max(predictions.shape[0], 2)

    predicted = class_indices(predictions)
    expected = class_indices(true_labels)
    for name, classes in (("Labels", expected), ("Predictions", predicted)):
        if np.any(classes < 0) or np.any(classes >= num_classes):
            raise ShapeMismatch(f"{name} fall outside the {num_classes} known classes")

    matrix = confusion_matrix(expected, predicted, num_classes)

    row_sums = matrix.sum(axis=1)
    diagonal = np.diag(matrix)
    label_accuracies = np.divide(diagonal, row_sums,
                                 out=np.zeros(num_classes, dtype=float),
                                 where=row_sums > 0)

    total = matrix.sum()
    accuracy = float(np.trace(matrix) / total) if total > 0 else 0.0
    logging.debug(f"Evaluated {total} examples: accuracy={accuracy:.4f}")

    return TrainingEval(confusion_matrix=matrix,
                        label_accuracies=label_accuracies.tolist(),
                        accuracy=accuracy)
