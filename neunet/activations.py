import numpy as np
from enum import Enum
from typing import Union
import logging


class ActivationType(Enum):
    """Closed set of activation functions a layer can use."""
    SIGMOID = 'sigmoid'
    RELU = 'relu'
    TANH = 'tanh'
    SOFTMAX = 'softmax'
    LINEAR = 'linear'


class Activation:
    """Base class for all activation functions.

    Inputs are matrices with one example per column, shape (units, batch_size).
    """

    activation_type: ActivationType

    def forward(self, z: np.ndarray) -> np.ndarray:
        """Compute the activation function value.

        Args:
            z: Pre-activation values (scalar or numpy array).

        Returns:
            Activated output, same shape as z.
        """
        raise NotImplementedError

    def backward(self, z: np.ndarray) -> np.ndarray:
        """Compute the derivative of the activation function with respect to its input 'z'.

        Args:
            z: Pre-activation values where the derivative is evaluated.

        Returns:
            Derivative of the activation function evaluated at z.
        """
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class Sigmoid(Activation):
    """Sigmoid activation function.

    Mathematical form:
        forward: f(z) = 1 / (1 + e^-z)
        backward: f'(z) = f(z) * (1 - f(z))
    """

    activation_type = ActivationType.SIGMOID

    def forward(self, z: np.ndarray) -> np.ndarray:
        # exp(-z) overflows float64 past ~709
        clipped_z = np.clip(z, -500, 500)
        return 1.0 / (1.0 + np.exp(-clipped_z))

    def backward(self, z: np.ndarray) -> np.ndarray:
        sig = self.forward(z)
        return sig * (1.0 - sig)


class ReLU(Activation):
    """Rectified Linear Unit activation function.

    Mathematical form:
        forward: f(z) = max(0, z)
        backward: f'(z) = 1 if z >= 0 else 0
    """

    activation_type = ActivationType.RELU

    def forward(self, z: np.ndarray) -> np.ndarray:
        return np.maximum(0.0, z)

    def backward(self, z: np.ndarray) -> np.ndarray:
        return np.where(z >= 0, 1.0, 0.0)


class Tanh(Activation):
    """Hyperbolic tangent activation function.

    Mathematical form:
        forward: f(z) = tanh(z)
        backward: f'(z) = 1 - tanh^2(z)
    """

    activation_type = ActivationType.TANH

    def forward(self, z: np.ndarray) -> np.ndarray:
        return np.tanh(z)

    def backward(self, z: np.ndarray) -> np.ndarray:
        return 1.0 - np.tanh(z) ** 2


class Softmax(Activation):
    """Softmax activation function.

    Normalizes each column (one example) to a probability distribution:
        forward: f(z_i) = e^z_i / Σ(e^z_j)

    The per-column maximum is subtracted before exponentiating, which leaves
    the result unchanged but keeps exp() from overflowing.

    Backward pass:
        The full derivative is a Jacobian. `backward` returns only its diagonal,
        e_i * (Σ - e_i) / Σ^2 = s_i * (1 - s_i). When Softmax is the output layer
        paired with cross-entropy, the network seeds backpropagation with
        (output - target) directly and never calls this method.
    """

    activation_type = ActivationType.SOFTMAX

    def forward(self, z: np.ndarray) -> np.ndarray:
        z = np.asarray(z, dtype=float)
        one_dim = z.ndim == 1
        if one_dim:
            z = z.reshape(-1, 1)

        if np.any(np.isnan(z)) or np.any(np.isinf(z)):
            logging.warning(f"Softmax received NaN or inf inputs: min={np.nanmin(z)}, max={np.nanmax(z)}")
            z = np.nan_to_num(z, nan=0.0, posinf=1e3, neginf=-1e3)

        z_max = np.max(z, axis=0, keepdims=True)
        exp_z = np.exp(z - z_max)
        result = exp_z / np.sum(exp_z, axis=0, keepdims=True)

        if one_dim:
            return result.ravel()
        return result

    def backward(self, z: np.ndarray) -> np.ndarray:
        s = self.forward(z)
        return s * (1.0 - s)


class Linear(Activation):
    """Linear activation function (identity).

    Mathematical form:
        forward: f(z) = z
        backward: f'(z) = 1
    """

    activation_type = ActivationType.LINEAR

    def forward(self, z: np.ndarray) -> np.ndarray:
        return z

    def backward(self, z: np.ndarray) -> np.ndarray:
        return np.ones_like(z, dtype=float)


# Mapping from activation type to its implementation
ACTIVATION_FUNCTIONS = {
    ActivationType.SIGMOID: Sigmoid,
    ActivationType.RELU: ReLU,
    ActivationType.TANH: Tanh,
    ActivationType.SOFTMAX: Softmax,
    ActivationType.LINEAR: Linear,
}


def get_activation(activation: Union[str, ActivationType, Activation, None]) -> Activation:
    """Factory function to get an activation function instance.

    Args:
        activation: An ActivationType, its name (case-insensitive), an existing
                    Activation instance (returned as is), or None for linear.

    Returns:
        An instance of the requested Activation class.

    Raises:
        ValueError: If the activation function name is not recognized.
    """
    if activation is None:
        return Linear()
    if isinstance(activation, Activation):
        return activation
    if isinstance(activation, str):
        try:
            activation = ActivationType(activation.lower())
        except ValueError:
            raise ValueError(
                f"Unknown activation function '{activation}'. "
                f"Available functions: {[t.value for t in ActivationType]}"
            ) from None
    if not isinstance(activation, ActivationType):
        raise ValueError(f"Invalid activation '{activation!r}' of type {type(activation).__name__}")
    return ACTIVATION_FUNCTIONS[activation]()
