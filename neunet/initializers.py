import numpy as np
import logging


class RandomInitializer:
    """Policy producing the initial weight matrix of a layer.

    Implementations must draw every random number from the generator they are
    given, so that two networks built from identically seeded generators are
    identical.
    """

    def weights(self, rows: int, cols: int, rng: np.random.Generator) -> np.ndarray:
        """Returns a (rows, cols) weight matrix.

        Args:
            rows: Output width of the layer.
            cols: Input width of the layer (fan-in).
            rng: Source of randomness.
        """
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}()"


class HeInitializer(RandomInitializer):
    """He initialization: standard normal samples scaled by sqrt(2 / fan_in).

    Suited to ReLU layers.
    """

    def weights(self, rows: int, cols: int, rng: np.random.Generator) -> np.ndarray:
        factor = np.sqrt(2.0 / cols)
        logging.debug(f"He init ({rows}, {cols}) with scale {factor:.4f}")
        return rng.standard_normal((rows, cols)) * factor


class GlorotInitializer(RandomInitializer):
    """Glorot/Xavier uniform initialization.

    Samples from U(-limit, limit) with limit = sqrt(6 / (fan_in + fan_out)).
    Suited to sigmoid and tanh layers.
    """

    def weights(self, rows: int, cols: int, rng: np.random.Generator) -> np.ndarray:
        limit = np.sqrt(6.0 / (rows + cols))
        logging.debug(f"Glorot init ({rows}, {cols}) with limit {limit:.4f}")
        return rng.uniform(-limit, limit, (rows, cols))
