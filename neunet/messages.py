import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from .metrics import Metrics


@dataclass(frozen=True)
class TrainingMessage:
    """Progress report handed to a TrainingObserver."""
    message: str = ""
    epoch: int = 0
    iteration: int = 0
    batch_start: int = 0
    metrics: Optional[Metrics] = None

    def to_dict(self) -> dict:
        payload = {
            "message": self.message,
            "epoch": self.epoch,
            "iteration": self.iteration,
            "batch_start": self.batch_start,
        }
        if self.metrics is not None:
            payload["metrics"] = self.metrics.to_dict()
        return payload

    def to_json(self, pretty: bool = False) -> str:
        if pretty:
            return json.dumps(self.to_dict(), indent=2)
        return json.dumps(self.to_dict())


class TrainingObserver:
    """Receives training messages, synchronously and in order.

    `emit` should return promptly; training waits for it.
    """

    def emit(self, message: TrainingMessage):
        raise NotImplementedError


class ConsoleObserver(TrainingObserver):
    """Prints each message as compact JSON followed by a short summary."""

    def emit(self, message: TrainingMessage):
        print(message.to_json())
        if message.metrics is not None:
            print(f"\t loss {message.metrics.loss:.5f}")
            print(f"\t train accuracy {message.metrics.train_eval.accuracy:.4f}")
            print(f"\t test accuracy {message.metrics.test_eval.accuracy:.4f}")


class LoggingObserver(TrainingObserver):
    """Logs each message at INFO level."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def emit(self, message: TrainingMessage):
        msg = f"Epoch {message.epoch} iteration {message.iteration} - {message.message}"
        if message.metrics is not None:
            msg += (f" - loss: {message.metrics.loss:.5f}"
                    f" - train_acc: {message.metrics.train_eval.accuracy:.4f}"
                    f" - test_acc: {message.metrics.test_eval.accuracy:.4f}")
        self.logger.info(msg)


class HistoryObserver(TrainingObserver):
    """Keeps every message, e.g. for plotting once training is over."""

    def __init__(self):
        self.messages: List[TrainingMessage] = []

    def emit(self, message: TrainingMessage):
        self.messages.append(message)

    @property
    def evaluations(self) -> List[TrainingMessage]:
        """Messages that carry metrics."""
        return [m for m in self.messages if m.metrics is not None]

    def history(self) -> dict:
        """Per-evaluation series keyed like the fit history of a Network."""
        evaluations = self.evaluations
        return {
            'epoch': [m.epoch for m in evaluations],
            'iteration': [m.iteration for m in evaluations],
            'loss': [m.metrics.loss for m in evaluations],
            'train_accuracy': [m.metrics.train_eval.accuracy for m in evaluations],
            'test_accuracy': [m.metrics.test_eval.accuracy for m in evaluations],
        }
