import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from .config import HyperParams
from .errors import ShapeMismatch
from .layer import Layer
from .network import forward_pass


@dataclass(frozen=True)
class TrainingInfo:
    """What a training run actually used."""
    hyper_params: HyperParams
    num_epochs_used: int
    num_iterations_used: int
    loss: float

    def to_dict(self) -> dict:
        return {
            "hyper_params": self.hyper_params.to_dict(),
            "num_epochs_used": self.num_epochs_used,
            "num_iterations_used": self.num_iterations_used,
            "loss": float(self.loss),
        }


@dataclass(frozen=True)
class NNModel:
    """A trained network, produced by a training run and read-only afterwards."""
    num_features: int
    num_classes: int
    layers: Tuple[Layer, ...]
    training_info: Optional[TrainingInfo] = None

    def predict(self, features: np.ndarray) -> np.ndarray:
        return predict(self, features)

    def layer_shapes(self):
        return [layer.weights.shape for layer in self.layers]

    def summary(self) -> str:
        lines = [f"NNModel: {self.num_features} features -> {self.num_classes} classes"]
        for layer in self.layers:
            lines.append(f"  {layer!r} weights={layer.weights.shape}")
        if self.training_info is not None:
            info = self.training_info
            lines.append(f"  trained for {info.num_epochs_used} epochs / {info.num_iterations_used} "
                         f"iterations, final loss {info.loss:.5f}")
        return "\n".join(lines)


def predict(model: NNModel, features: np.ndarray) -> np.ndarray:
    """
    Runs a forward pass over features (num_features, m) without touching the model.

    Returns:
        Output matrix of shape (num_classes, m).
    """
    features = np.asarray(features, dtype=float)
    if features.ndim == 1:
        features = features.reshape(-1, 1)
    if features.shape[0] != model.num_features:
        raise ShapeMismatch(f"Expected {model.num_features} feature rows, got {features.shape[0]}")
    return forward_pass(model.layers, features, cache=False)
