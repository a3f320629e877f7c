"""
neunet: a feed-forward neural network trainer written with NumPy.

Layers, activations, forward and backward propagation, mini-batch gradient
descent with Momentum, RMSProp and Adam, and confusion-matrix evaluation.
"""

from .activations import ActivationType, get_activation
from .config import HyperParams, OptimizationType
from .data import CsvDataLoader, DataLoader, IdxDataLoader, LabeledData, min_max_normalize, one_hot
from .errors import (DataLoadError, DivergedTraining, InvalidHyperParameters, NeunetError, ObserverError,
                     ShapeMismatch)
from .initializers import GlorotInitializer, HeInitializer, RandomInitializer
from .layer import Layer, LayerDefinition
from .messages import ConsoleObserver, HistoryObserver, LoggingObserver, TrainingMessage, TrainingObserver
from .metrics import Metrics, TrainingEval, evaluate
from .model import NNModel, TrainingInfo, predict
from .network import Network, NetworkArchitecture
from .optimizers import Optimizer
from .trainer import Trainer, TrainingState, train

__version__ = "0.1.0"
