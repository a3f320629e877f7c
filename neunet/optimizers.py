import numpy as np
from typing import Sequence
import logging

from .config import HyperParams, OptimizationType
from .layer import Layer


class Optimizer:
    """
    Applies one update rule to every layer after each mini-batch.

    Consumes the dw/db left by backpropagation and mutates weights, intercepts
    and the layer's accumulators in place. Never recomputes gradients.

    Supported rules:
        MBGD:     w -= lr * dw
        Momentum: v = b1 * v + (1 - b1) * dw;   w -= lr * v
        RMSProp:  s = b2 * s + (1 - b2) * dw^2; w -= lr * dw / (sqrt(s) + eps)
        Adam:     both of the above with bias correction at step t,
                  w -= lr * v_hat / (sqrt(s_hat) + eps)
    """

    def __init__(self, hyper_params: HyperParams):
        self.optimization_type = hyper_params.optimization_type
        self.learning_rate = hyper_params.learning_rate
        self.momentum_beta = hyper_params.momentum_beta
        self.rms_prop_beta = hyper_params.rms_prop_beta
        self.epsilon = hyper_params.epsilon
        # Adam step count, shared by every layer
        self.iteration = 0

        self._update_rules = {
            OptimizationType.MBGD: self._update_mbgd,
            OptimizationType.MOMENTUM: self._update_momentum,
            OptimizationType.RMSPROP: self._update_rmsprop,
            OptimizationType.ADAM: self._update_adam,
        }
        if self.optimization_type not in self._update_rules:
            raise NotImplementedError(f"Optimizer '{self.optimization_type}' not implemented.")

    def step(self, layers: Sequence[Layer]):
        """Updates every layer once. Call exactly once per mini-batch."""
        self.iteration += 1
        update = self._update_rules[self.optimization_type]
        for layer in layers:
            grad_norm = np.linalg.norm(layer.dw)
            if grad_norm > 1e6:
                logging.warning(f"Layer {layer.id}: Large gradient norm detected ({grad_norm:.2e}) before update.")
            update(layer)

    def _update_mbgd(self, layer: Layer):
        layer.weights -= self.learning_rate * layer.dw
        layer.intercepts -= self.learning_rate * layer.db

    def _update_momentum(self, layer: Layer):
        beta = self.momentum_beta
        layer.momentum_dw = beta * layer.momentum_dw + (1 - beta) * layer.dw
        layer.momentum_db = beta * layer.momentum_db + (1 - beta) * layer.db
        layer.weights -= self.learning_rate * layer.momentum_dw
        layer.intercepts -= self.learning_rate * layer.momentum_db

    def _update_rmsprop(self, layer: Layer):
        beta = self.rms_prop_beta
        layer.rmsp_dw = beta * layer.rmsp_dw + (1 - beta) * layer.dw ** 2
        layer.rmsp_db = beta * layer.rmsp_db + (1 - beta) * layer.db ** 2
        layer.weights -= self.learning_rate * layer.dw / (np.sqrt(layer.rmsp_dw) + self.epsilon)
        layer.intercepts -= self.learning_rate * layer.db / (np.sqrt(layer.rmsp_db) + self.epsilon)

    def _update_adam(self, layer: Layer):
        b1, b2, t = self.momentum_beta, self.rms_prop_beta, self.iteration

        layer.momentum_dw = b1 * layer.momentum_dw + (1 - b1) * layer.dw
        layer.momentum_db = b1 * layer.momentum_db + (1 - b1) * layer.db
        layer.rmsp_dw = b2 * layer.rmsp_dw + (1 - b2) * layer.dw ** 2
        layer.rmsp_db = b2 * layer.rmsp_db + (1 - b2) * layer.db ** 2

        # Bias correction, accumulators start at zero
        m_hat_dw = layer.momentum_dw / (1 - b1 ** t)
        m_hat_db = layer.momentum_db / (1 - b1 ** t)
        v_hat_dw = layer.rmsp_dw / (1 - b2 ** t)
        v_hat_db = layer.rmsp_db / (1 - b2 ** t)

        layer.weights -= self.learning_rate * m_hat_dw / (np.sqrt(v_hat_dw) + self.epsilon)
        layer.intercepts -= self.learning_rate * m_hat_db / (np.sqrt(v_hat_db) + self.epsilon)
