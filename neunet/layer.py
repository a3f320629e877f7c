import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple, Union
import logging

from .activations import Activation, ActivationType, get_activation
from .errors import ShapeMismatch
from .initializers import HeInitializer, RandomInitializer


@dataclass(frozen=True)
class LayerDefinition:
    """Declares one layer of an architecture: its activation and output width."""
    activation_type: ActivationType
    num_activations: int


class Layer:
    """
    A fully connected layer: one affine transform followed by an activation.

    Matrices hold one example per column, so a batch of m examples entering a
    layer with n inputs has shape (n, m).

    Key Attributes:
        weights (np.ndarray): Weight matrix of shape (num_activations, input_size).
        intercepts (np.ndarray): Bias vector of shape (num_activations,).
        activation_fn (Activation): Activation applied element-wise to z.
        z (np.ndarray): Pre-activation W @ a_prev + b from the last forward pass.
                        Shape: (num_activations, batch_size).
        a (np.ndarray): Activation output from the last forward pass.
        a_prev (np.ndarray): Input received during the last forward pass.
        dz, dw, db (np.ndarray): Gradients from the last backward pass.
        momentum_dw, momentum_db (np.ndarray): Exponentially decayed gradient averages.
        rmsp_dw, rmsp_db (np.ndarray): Exponentially decayed squared-gradient averages.

    Gradients are only computed here. Weights and intercepts change only when an
    optimizer applies its update rule.
    """

    def __init__(
        self,
        input_size: int,
        num_activations: int,
        activation: Union[str, ActivationType, Activation, None] = ActivationType.RELU,
        initializer: Optional[RandomInitializer] = None,
        rng: Optional[np.random.Generator] = None,
        initial_weights: Optional[np.ndarray] = None,  # Expected shape (num_activations, input_size)
        initial_intercepts: Optional[np.ndarray] = None,  # Expected shape (num_activations,)
        id: int = 0,
    ):
        """
        Initializes the layer.

        Args:
            input_size: Width of the previous layer, or the feature count for the first layer.
            num_activations: Output width of this layer.
            activation: Activation type, its name, or an Activation instance.
            initializer: Random initialization policy. Defaults to He.
            rng: Generator passed to the initializer. A fresh unseeded one is used if omitted.
            initial_weights: Optional pre-defined weight matrix, overrides the initializer.
            initial_intercepts: Optional pre-defined bias vector. Defaults to zeros.
            id: Layer index, used in log and error messages.

        Raises:
            ShapeMismatch: If the provided weights or intercepts have the wrong shape.
            ValueError: If a width is not positive.
        """
        if input_size <= 0 or num_activations <= 0:
            raise ValueError(f"Layer {id}: sizes must be positive, got input_size={input_size}, "
                             f"num_activations={num_activations}")

        self.id = id
        self.input_size = input_size
        self.num_activations = num_activations
        self.activation_fn = get_activation(activation)

        if initial_weights is not None:
            initial_weights = np.asarray(initial_weights, dtype=float)
            if initial_weights.shape != (num_activations, input_size):
                raise ShapeMismatch(
                    f"Layer {id}: Initial weights shape {initial_weights.shape} "
                    f"does not match expected shape ({num_activations}, {input_size})"
                )
            self.weights = initial_weights.copy()
            logging.debug(f"Layer #{self.id}: Using provided initial weights.")
        else:
            initializer = initializer if initializer is not None else HeInitializer()
            rng = rng if rng is not None else np.random.default_rng()
            self.weights = np.asarray(initializer.weights(num_activations, input_size, rng), dtype=float)
            logging.debug(f"Layer #{self.id}: Initialized weights with {initializer!r}.")

        if initial_intercepts is not None:
            initial_intercepts = np.asarray(initial_intercepts, dtype=float)
            if initial_intercepts.shape != (num_activations,):
                raise ShapeMismatch(
                    f"Layer {id}: Initial intercepts shape {initial_intercepts.shape} "
                    f"does not match expected shape ({num_activations},)"
                )
            self.intercepts = initial_intercepts.copy()
        else:
            self.intercepts = np.zeros(num_activations, dtype=float)

        # Forward pass caches
        self.z = None
        self.a = None
        self.a_prev = None

        # Backward pass results
        self.dz = None
        self.dw = np.zeros_like(self.weights)
        self.db = np.zeros_like(self.intercepts)

        # Optimizer accumulators, persistent across mini-batches
        self.momentum_dw = np.zeros_like(self.weights)
        self.momentum_db = np.zeros_like(self.intercepts)
        self.rmsp_dw = np.zeros_like(self.weights)
        self.rmsp_db = np.zeros_like(self.intercepts)

        logging.debug(
            f"Layer #{self.id} created: input_size={input_size}, "
            f"num_activations={num_activations}, activation={self.activation_fn.__class__.__name__}, "
            f"weight_shape={self.weights.shape}"
        )

    @property
    def activation_type(self) -> ActivationType:
        return self.activation_fn.activation_type

    def forward(self, a_prev: np.ndarray, cache: bool = True) -> np.ndarray:
        """
        Computes Z = W @ A_prev + b, followed by A = activation_fn(Z).

        Args:
            a_prev: Input matrix of shape (input_size, batch_size). A 1D vector
                    is treated as a single example.
            cache: Whether to keep a_prev, z and a for the backward pass.
                   Prediction passes False so that no state is written.

        Returns:
            Activation matrix of shape (num_activations, batch_size).

        Raises:
            ShapeMismatch: If the input height does not match input_size.
        """
        a_prev = np.asarray(a_prev, dtype=float)
        if a_prev.ndim == 1:
            a_prev = a_prev.reshape(-1, 1)
        if a_prev.ndim != 2 or a_prev.shape[0] != self.input_size:
            raise ShapeMismatch(f"Layer {self.id}: Expected input with {self.input_size} rows, got shape {a_prev.shape}")

        # Bias broadcasts over every column (example) in the batch
        z = self.weights @ a_prev + self.intercepts[:, np.newaxis]
        a = self.activation_fn.forward(z)

        if cache:
            self.a_prev = a_prev
            self.z = z
            self.a = a
        return a

    def backward(self, dz: np.ndarray, l2_regularization: float = 0.0) -> np.ndarray:
        """
        Computes the parameter gradients given dL/dZ for this layer.

        dW = dZ @ A_prev.T / m (+ lambda * W / m with L2 regularization)
        db = mean of dZ over the batch
        dA_prev = W.T @ dZ

        Args:
            dz: Gradient of the loss w.r.t. this layer's pre-activation, shape
                (num_activations, batch_size).
            l2_regularization: L2 penalty coefficient, 0 to disable.

        Returns:
            Gradient of the loss w.r.t. this layer's input, dL/dA_prev.

        Raises:
            RuntimeError: If forward() has not been called with caching enabled.
            ShapeMismatch: If dz does not match the cached batch.
        """
        if self.a_prev is None or self.z is None:
            raise RuntimeError(f"Layer {self.id}: Must call forward() before backward().")
        if dz.shape != self.z.shape:
            raise ShapeMismatch(f"Layer {self.id}: Expected gradient of shape {self.z.shape}, got {dz.shape}")

        batch_size = dz.shape[1]

        if np.any(np.isnan(dz)) or np.any(np.isinf(dz)):
            logging.warning(f"NaN or Inf detected in dz in layer {self.id}")

        self.dz = dz
        self.dw = (dz @ self.a_prev.T) / batch_size
        if l2_regularization > 0.0:
            # Biases are not regularized
            self.dw += l2_regularization * self.weights / batch_size
        self.db = np.mean(dz, axis=1)

        return self.weights.T @ dz

    def get_weights(self) -> Tuple[np.ndarray, np.ndarray]:
        """Returns copies of the current weights and intercepts."""
        return self.weights.copy(), self.intercepts.copy()

    def num_parameters(self) -> int:
        return self.weights.size + self.intercepts.size

    def __repr__(self):
        return (f"Layer(id={self.id}, input_size={self.input_size}, "
                f"num_activations={self.num_activations}, "
                f"activation={self.activation_fn.__class__.__name__})")
