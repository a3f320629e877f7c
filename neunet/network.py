import numpy as np
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import logging

from .activations import ActivationType
from .errors import ShapeMismatch
from .initializers import HeInitializer, RandomInitializer
from .layer import Layer, LayerDefinition
from .metrics import loss_for


@dataclass
class NetworkArchitecture:
    """
    Describes a network before it is built.

    Args:
        num_features: Input width.
        num_classes: Output width, must equal the last layer's num_activations.
        layers: Layer definitions in order, the last one being the output layer.
        rand_initializer: Policy producing initial weights.
    """
    num_features: int
    num_classes: int
    layers: Sequence[LayerDefinition]
    rand_initializer: RandomInitializer = field(default_factory=HeInitializer)

    def validate(self):
        """Raises ShapeMismatch if the declared widths are inconsistent."""
        if self.num_features <= 0:
            raise ShapeMismatch(f"num_features must be positive, got {self.num_features}")
        if not self.layers:
            raise ShapeMismatch("Architecture must declare at least one layer.")
        for i, definition in enumerate(self.layers):
            if definition.num_activations <= 0:
                raise ShapeMismatch(f"Layer {i} must have a positive width, got {definition.num_activations}")
        if self.layers[-1].num_activations != self.num_classes:
            raise ShapeMismatch(f"Output layer width ({self.layers[-1].num_activations}) must match "
                                f"num_classes ({self.num_classes}).")

    def layer_shapes(self) -> List[tuple]:
        """Weight matrix shape of every layer, (out, in)."""
        widths = [self.num_features] + [d.num_activations for d in self.layers]
        return [(widths[i + 1], widths[i]) for i in range(len(self.layers))]


def forward_pass(layers: Sequence[Layer], inputs: np.ndarray, cache: bool = True) -> np.ndarray:
    """Feeds inputs (features, m) through the layers in order and returns the last activation."""
    current_output = inputs
    for layer in layers:
        current_output = layer.forward(current_output, cache=cache)
    return current_output


class Network:
    """
    A feedforward neural network (multilayer perceptron).

    Owns an ordered list of Layers, forward propagation and backward
    propagation. Parameter updates are left to an Optimizer.
    """

    def __init__(self, layers: List[Layer]):
        if not layers:
            raise ShapeMismatch("Network must have at least one layer.")
        for previous, layer in zip(layers, layers[1:]):
            if layer.input_size != previous.num_activations:
                raise ShapeMismatch(f"Layer {layer.id} expects {layer.input_size} inputs but layer "
                                    f"{previous.id} produces {previous.num_activations}.")
        self.layers = layers
        logging.info(f"Created neural network with architecture: "
                     f"{[layers[0].input_size] + [l.num_activations for l in layers]}")
        logging.info(f"Layer activations: {[l.activation_fn.__class__.__name__ for l in layers]}")

    @classmethod
    def from_architecture(cls, architecture: NetworkArchitecture,
                          rng: Optional[np.random.Generator] = None) -> 'Network':
        """
        Builds the layers described by an architecture.

        Args:
            architecture: Widths, activations and initializer.
            rng: Generator used for every layer's initial weights, in layer order.
        """
        architecture.validate()
        rng = rng if rng is not None else np.random.default_rng()

        layers = []
        input_size = architecture.num_features
        for i, definition in enumerate(architecture.layers):
            layers.append(Layer(
                input_size=input_size,
                num_activations=definition.num_activations,
                activation=definition.activation_type,
                initializer=architecture.rand_initializer,
                rng=rng,
                id=i,
            ))
            input_size = definition.num_activations
        return cls(layers)

    @property
    def num_features(self) -> int:
        return self.layers[0].input_size

    @property
    def num_outputs(self) -> int:
        return self.layers[-1].num_activations

    @property
    def output_activation(self) -> ActivationType:
        return self.layers[-1].activation_type

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """
        Performs a forward pass through all layers, caching z and a in each.

        Args:
            inputs: Input matrix of shape (num_features, batch_size).

        Returns:
            Network output of shape (num_outputs, batch_size).
        """
        return forward_pass(self.layers, inputs, cache=True)

    def predict(self, inputs: np.ndarray) -> np.ndarray:
        """Forward pass that leaves every layer cache untouched."""
        return forward_pass(self.layers, inputs, cache=False)

    def compute_loss(self, outputs: np.ndarray, targets: np.ndarray) -> float:
        """Loss paired with the output activation (see metrics.LOSS_FUNCTIONS)."""
        return loss_for(self.output_activation)(outputs, targets)

    def backward(self, targets: np.ndarray, l2_regularization: float = 0.0):
        """
        Performs backpropagation from the cached forward pass.

        Populates dz, dw and db in every layer; weights are left unchanged.

        Args:
            targets: True outputs for the batch, shape (num_outputs, batch_size).
            l2_regularization: L2 penalty coefficient, 0 to disable.
        """
        last_layer = self.layers[-1]
        if last_layer.a is None:
            raise RuntimeError("Must call forward() before backward().")
        targets = np.asarray(targets, dtype=float)
        if targets.shape != last_layer.a.shape:
            raise ShapeMismatch(f"Targets shape {targets.shape} does not match output shape {last_layer.a.shape}")

        activation_type = last_layer.activation_type
        if activation_type in (ActivationType.SOFTMAX, ActivationType.SIGMOID):
            # Softmax + cross-entropy and sigmoid + binary cross-entropy both reduce to a - y
            dz = last_layer.a - targets
        elif activation_type in (ActivationType.RELU, ActivationType.TANH, ActivationType.LINEAR):
            # Squared error: dL/dA = a - y
            dz = (last_layer.a - targets) * last_layer.activation_fn.backward(last_layer.z)
        else:
            raise ValueError(f"Unsupported output activation {activation_type}")

        for index in range(len(self.layers) - 1, -1, -1):
            layer = self.layers[index]
            da_prev = layer.backward(dz, l2_regularization=l2_regularization)
            if index > 0:
                previous = self.layers[index - 1]
                dz = da_prev * previous.activation_fn.backward(previous.z)
                logging.debug(f"Backward pass - Layer {index} passing gradient shape: {dz.shape}")

    def is_finite(self) -> bool:
        """True when no weight or intercept is NaN or infinite."""
        return all(np.all(np.isfinite(l.weights)) and np.all(np.isfinite(l.intercepts))
                   for l in self.layers)

    def summary(self) -> str:
        """
        Generates a text summary of the network architecture and parameters.
        """
        summary_str = "\n" + "=" * 50 + "\n"
        summary_str += "Neural Network Summary\n"
        summary_str += "=" * 50 + "\n"
        total_params = 0
        for i, layer in enumerate(self.layers):
            total_params += layer.num_parameters()
            summary_str += f"Layer {i}:\n"
            summary_str += f"  Input Shape: ({layer.input_size},)\n"
            summary_str += f"  Output Shape: ({layer.num_activations},)\n"
            summary_str += f"  Activation: {layer.activation_fn.__class__.__name__}\n"
            summary_str += f"  Weight Shape: {layer.weights.shape}\n"
            summary_str += f"  Parameters: {layer.num_parameters()}\n"
            summary_str += "-" * 50 + "\n"
        summary_str += f"Total Parameters: {total_params}\n"
        summary_str += "=" * 50 + "\n"
        return summary_str
