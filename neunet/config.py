"""Hyperparameters for one training run."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidHyperParameters


class OptimizationType(Enum):
    MBGD = 'mbgd'
    MOMENTUM = 'momentum'
    RMSPROP = 'rmsprop'
    ADAM = 'adam'


@dataclass(frozen=True)
class HyperParams:
    """Settings that stay fixed for the duration of a training run.

    Parameters
    ----------
    max_accuracy_threshold:
        Training stops as soon as the test accuracy reaches this value.
    max_epochs:
        Hard cap on the number of passes over the training set.
    momentum_beta:
        Decay factor of the gradient average used by Momentum and Adam.
    rms_prop_beta:
        Decay factor of the squared gradient average used by RMSProp and Adam.
    mini_batch_size:
        Number of examples per forward/backward/update cycle. The last batch
        of an epoch may be smaller.
    learning_rate:
        Step size of every update.
    optimization_type:
        Update rule applied after each mini-batch.
    l2_regularization:
        Optional L2 penalty coefficient added to the weight gradients.
    epsilon:
        Added to the denominator of RMSProp and Adam updates.
    """

    max_accuracy_threshold: float = 0.95
    max_epochs: int = 3
    momentum_beta: float = 0.9
    rms_prop_beta: float = 0.999
    mini_batch_size: int = 200
    learning_rate: float = 0.01
    optimization_type: OptimizationType = OptimizationType.ADAM
    l2_regularization: Optional[float] = None
    epsilon: float = 1e-8

    def validate(self, num_examples: Optional[int] = None):
        """Raises InvalidHyperParameters describing the first bad value found.

        Args:
            num_examples: Training set size; when given, the mini-batch size
                          may not exceed it.
        """
        if not isinstance(self.optimization_type, OptimizationType):
            raise InvalidHyperParameters(f"Unknown optimization_type {self.optimization_type!r}")
        if self.mini_batch_size <= 0:
            raise InvalidHyperParameters(f"mini_batch_size must be positive, got {self.mini_batch_size}")
        if num_examples is not None and self.mini_batch_size > num_examples:
            raise InvalidHyperParameters(f"mini_batch_size ({self.mini_batch_size}) exceeds the number "
                                         f"of training examples ({num_examples})")
        if not (self.learning_rate > 0 and math.isfinite(self.learning_rate)):
            raise InvalidHyperParameters(f"learning_rate must be positive, got {self.learning_rate}")
        if self.max_epochs <= 0:
            raise InvalidHyperParameters(f"max_epochs must be positive, got {self.max_epochs}")
        for name in ('momentum_beta', 'rms_prop_beta'):
            beta = getattr(self, name)
            if not 0.0 < beta < 1.0:
                raise InvalidHyperParameters(f"{name} must be in (0, 1), got {beta}")
        if math.isnan(self.max_accuracy_threshold) or self.max_accuracy_threshold < 0:
            raise InvalidHyperParameters(f"max_accuracy_threshold must be non-negative, "
                                         f"got {self.max_accuracy_threshold}")
        if self.l2_regularization is not None and not self.l2_regularization >= 0:
            raise InvalidHyperParameters(f"l2_regularization must be non-negative, got {self.l2_regularization}")
        if not self.epsilon > 0:
            raise InvalidHyperParameters(f"epsilon must be positive, got {self.epsilon}")

    def to_dict(self) -> dict:
        return {
            "max_accuracy_threshold": self.max_accuracy_threshold,
            "max_epochs": self.max_epochs,
            "momentum_beta": self.momentum_beta,
            "rms_prop_beta": self.rms_prop_beta,
            "mini_batch_size": self.mini_batch_size,
            "learning_rate": self.learning_rate,
            "optimization_type": self.optimization_type.value,
            "l2_regularization": self.l2_regularization,
            "epsilon": self.epsilon,
        }
