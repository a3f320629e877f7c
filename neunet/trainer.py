import copy
import logging
import math
import time
from enum import Enum
from typing import Optional

import numpy as np

from .config import HyperParams
from .data import LabeledData
from .errors import DivergedTraining, ObserverError, ShapeMismatch
from .messages import TrainingMessage, TrainingObserver
from .metrics import Metrics, class_indices, evaluate
from .model import NNModel, TrainingInfo
from .network import Network, NetworkArchitecture
from .optimizers import Optimizer


class TrainingState(Enum):
    INITIALIZING = 'initializing'
    EPOCH_LOOP = 'epoch_loop'
    BATCH_LOOP = 'batch_loop'
    EVALUATE = 'evaluate'
    CONVERGED = 'converged'
    MAX_EPOCHS_REACHED = 'max_epochs_reached'
    STOPPED = 'stopped'
    ERROR = 'error'


TERMINAL_STATES = (TrainingState.CONVERGED, TrainingState.MAX_EPOCHS_REACHED,
                   TrainingState.STOPPED, TrainingState.ERROR)


class Trainer:
    """
    Trains a network described by an architecture with mini-batch updates.

    Each mini-batch runs forward propagation, loss accumulation, backward
    propagation and one optimizer step. At every evaluation point the whole
    train and test sets are predicted, metrics are computed and a
    TrainingMessage is emitted to the observer. Training stops when the test
    accuracy reaches `max_accuracy_threshold`, after `max_epochs`, or when
    `stop()` is called between mini-batches.
    """

    def __init__(self, architecture: NetworkArchitecture, seed: Optional[int] = None, eval_every: int = 0):
        """
        Args:
            architecture: Network to build for each training run.
            seed: Seed of the generator handed to the random initializer.
            eval_every: Also evaluate every `eval_every` mini-batches. With 0,
                        evaluation happens only at the end of each epoch.
        """
        if eval_every < 0:
            raise ValueError(f"eval_every must be non-negative, got {eval_every}")
        self.architecture = architecture
        self.seed = seed
        self.eval_every = eval_every
        self.state = TrainingState.INITIALIZING
        self._stop_requested = False

    def stop(self):
        """Asks the running loop to finish before its next mini-batch."""
        self._stop_requested = True

    def train(self,
              hyper_params: HyperParams,
              observer: TrainingObserver,
              train_data: LabeledData,
              test_data: LabeledData) -> NNModel:
        """
        Runs one training session.

        Returns:
            The trained NNModel with its TrainingInfo.

        Raises:
            InvalidHyperParameters: Before training, if a hyperparameter is out of range.
            ShapeMismatch: Before training, if data and architecture disagree or a
                label falls outside the known classes.
            DivergedTraining: If the loss or the parameters stop being finite.
            ObserverError: If observer.emit raises.
        """
        self.state = TrainingState.INITIALIZING
        self._stop_requested = False

        num_classes = self.architecture.num_classes
        try:
            hyper_params.validate(train_data.num_examples)
            self._check_shapes(train_data, test_data)
            train_targets = train_data.targets(num_classes)
        except Exception:
            self.state = TrainingState.ERROR
            raise

        try:
            return self._run(hyper_params, observer, train_data, test_data, train_targets)
        except Exception:
            self.state = TrainingState.ERROR
            raise

    def _run(self, hyper_params, observer, train_data, test_data, train_targets) -> NNModel:
        network = Network.from_architecture(self.architecture, np.random.default_rng(self.seed))
        optimizer = Optimizer(hyper_params)
        l2 = hyper_params.l2_regularization or 0.0
        num_examples = train_data.num_examples
        batch_size = hyper_params.mini_batch_size

        epoch = 0
        iteration = 0
        batch_start = 0
        loss = math.nan
        last_eval_iteration = -1

        logging.info(f"Training on {num_examples} examples, testing on {test_data.num_examples}, "
                     f"{hyper_params.optimization_type.value} with mini-batches of {batch_size}")
        self._emit(observer, TrainingMessage(message="Training started"),
                   network, hyper_params, epoch, iteration, loss)

        self.state = TrainingState.EPOCH_LOOP
        while self.state not in TERMINAL_STATES:
            if self._stop_requested:
                self.state = TrainingState.STOPPED
                break
            if epoch >= hyper_params.max_epochs:
                self.state = TrainingState.MAX_EPOCHS_REACHED
                break

            epoch += 1
            epoch_start_time = time.time()
            loss_sum = 0.0
            seen = 0

            self.state = TrainingState.BATCH_LOOP
            for batch_start in range(0, num_examples, batch_size):
                if self._stop_requested:
                    self.state = TrainingState.STOPPED
                    break

                batch = train_data.batch(batch_start, batch_size)
                batch_targets = train_targets[:, batch_start:batch_start + batch_size]

                outputs = network.forward(batch.features)
                batch_loss = network.compute_loss(outputs, batch_targets)
                network.backward(batch_targets, l2_regularization=l2)
                optimizer.step(network.layers)
                iteration += 1

                if not math.isfinite(batch_loss) or not network.is_finite():
                    self.state = TrainingState.ERROR
                    logging.error(f"Training diverged at epoch {epoch}, iteration {iteration} (loss={batch_loss})")
                    raise DivergedTraining(f"Non-finite loss or parameters at epoch {epoch}, iteration {iteration}",
                                           epoch=epoch, iteration=iteration)

                loss_sum += batch_loss * batch.num_examples
                seen += batch.num_examples
                loss = loss_sum / seen

                if self.eval_every and iteration % self.eval_every == 0:
                    last_eval_iteration = iteration
                    if self._evaluate(observer, network, hyper_params, train_data, test_data,
                                      epoch, iteration, batch_start, loss, "Mini-batch evaluation"):
                        self.state = TrainingState.CONVERGED
                        break

            if self.state in TERMINAL_STATES:
                break

            logging.debug(f"Epoch {epoch} finished in {time.time() - epoch_start_time:.2f}s, loss {loss:.5f}")
            if last_eval_iteration != iteration:
                last_eval_iteration = iteration
                if self._evaluate(observer, network, hyper_params, train_data, test_data,
                                  epoch, iteration, batch_start, loss, f"Epoch {epoch} complete"):
                    self.state = TrainingState.CONVERGED
                    break
            self.state = TrainingState.EPOCH_LOOP

        logging.info(f"Training finished ({self.state.value}) after {epoch} epochs, {iteration} iterations.")
        model = self._build_model(network, hyper_params, epoch, iteration, loss)
        self._emit(observer,
                   TrainingMessage(message=f"Training finished: {self.state.value}", epoch=epoch,
                                   iteration=iteration, batch_start=batch_start),
                   network, hyper_params, epoch, iteration, loss)
        return model

    def _check_shapes(self, train_data: LabeledData, test_data: LabeledData):
        self.architecture.validate()
        # A single output unit still separates two classes
        dimension = max(self.architecture.num_classes, 2)
        for name, data in (("train", train_data), ("test", test_data)):
            if data.num_features != self.architecture.num_features:
                raise ShapeMismatch(f"{name} data has {data.num_features} features, "
                                    f"architecture expects {self.architecture.num_features}")
            if data.labels.shape[0] not in (1, self.architecture.num_classes):
                raise ShapeMismatch(f"{name} labels have {data.labels.shape[0]} rows, expected 1 or "
                                    f"{self.architecture.num_classes}")
            classes = class_indices(data.labels)
            if classes.size and (classes.min() < 0 or classes.max() >= dimension):
                raise ShapeMismatch(f"{name} labels must be in [0, {dimension}), got range "
                                    f"[{classes.min()}, {classes.max()}]")
        if test_data.num_examples == 0:
            raise ShapeMismatch("test data holds no examples")

    def _evaluate(self, observer, network, hyper_params, train_data, test_data,
                  epoch, iteration, batch_start, loss, text) -> bool:
        """Emits metrics for the current weights. Returns True once the accuracy threshold is met."""
        previous_state = self.state
        self.state = TrainingState.EVALUATE
        dimension = max(self.architecture.num_classes, 2)
        metrics = Metrics(
            loss=loss,
            train_eval=evaluate(network.predict(train_data.features), train_data.labels, dimension),
            test_eval=evaluate(network.predict(test_data.features), test_data.labels, dimension),
        )
        self._emit(observer,
                   TrainingMessage(message=text, epoch=epoch, iteration=iteration,
                                   batch_start=batch_start, metrics=metrics),
                   network, hyper_params, epoch, iteration, loss)
        self.state = previous_state
        return metrics.test_eval.accuracy >= hyper_params.max_accuracy_threshold

    def _emit(self, observer, message, network, hyper_params, epoch, iteration, loss):
        try:
            observer.emit(message)
        except Exception as e:
            self.state = TrainingState.ERROR
            logging.error(f"Observer failed on '{message.message}': {e}")
            raise ObserverError(f"Observer failed on '{message.message}': {e}",
                                model=self._build_model(network, hyper_params, epoch, iteration, loss)) from e

    def _build_model(self, network, hyper_params, epoch, iteration, loss) -> NNModel:
        layers = tuple(copy.deepcopy(layer) for layer in network.layers)
        for layer in layers:
            layer.z = layer.a = layer.a_prev = layer.dz = None
        return NNModel(
            num_features=self.architecture.num_features,
            num_classes=self.architecture.num_classes,
            layers=layers,
            training_info=TrainingInfo(hyper_params=hyper_params, num_epochs_used=epoch,
                                       num_iterations_used=iteration, loss=loss),
        )


def train(architecture: NetworkArchitecture,
          hyper_params: HyperParams,
          observer: TrainingObserver,
          train_data: LabeledData,
          test_data: LabeledData,
          seed: Optional[int] = None,
          eval_every: int = 0) -> NNModel:
    """Builds a Trainer for the architecture and runs it once."""
    return Trainer(architecture, seed=seed, eval_every=eval_every).train(
        hyper_params, observer, train_data, test_data)
