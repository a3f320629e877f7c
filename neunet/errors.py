"""Exception types raised by the training engine."""

from typing import Optional


class NeunetError(Exception):
    """Base class for every error raised by neunet."""


class InvalidHyperParameters(NeunetError, ValueError):
    """A hyperparameter is out of its allowed range. Raised before training starts."""


class ShapeMismatch(NeunetError, ValueError):
    """Matrix shapes disagree with each other or with the network architecture."""


class DivergedTraining(NeunetError, RuntimeError):
    """Loss or parameters became NaN/Inf and training cannot continue."""

    def __init__(self, message: str, epoch: int = 0, iteration: int = 0):
        super().__init__(message)
        self.epoch = epoch
        self.iteration = iteration


class ObserverError(NeunetError, RuntimeError):
    """The training observer raised while handling a message.

    Training state is not rolled back; `model` holds the network as it was
    when the failing message was emitted.
    """

    def __init__(self, message: str, model: Optional[object] = None):
        super().__init__(message)
        self.model = model


class DataLoadError(NeunetError, IOError):
    """Features or labels could not be read from disk."""
