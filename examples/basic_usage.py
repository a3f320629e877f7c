import logging
import time

import numpy as np
import matplotlib.pyplot as plt
from sklearn.datasets import load_digits
from sklearn.model_selection import train_test_split

from neunet import (ActivationType, ConsoleObserver, GlorotInitializer, HistoryObserver, HyperParams,
                    LabeledData, LayerDefinition, NetworkArchitecture, OptimizationType, TrainingObserver,
                    min_max_normalize, train)


class TeeObserver(TrainingObserver):
    """Forwards every message to several observers."""

    def __init__(self, *observers):
        self.observers = observers

    def emit(self, message):
        for observer in self.observers:
            observer.emit(message)


# --- Plotting Function ---

def plot_history(history: dict, title: str):
    """Plots loss and train/test accuracy per evaluation point."""
    plt.figure(title, figsize=(12, 5))

    plt.subplot(1, 2, 1)
    plt.plot(history['iteration'], history['loss'], label='Training Loss')
    plt.xlabel('Iteration')
    plt.ylabel('Loss')
    plt.title('Training Loss')
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.ylim(bottom=0)

    plt.subplot(1, 2, 2)
    plt.plot(history['iteration'], history['train_accuracy'], label='Train Accuracy')
    plt.plot(history['iteration'], history['test_accuracy'], label='Test Accuracy', linestyle='--')
    plt.xlabel('Iteration')
    plt.ylabel('Accuracy')
    plt.title('Accuracy')
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.ylim(0, 1.05)

    plt.tight_layout()


# --- Digits Example ---

def digits_example():
    """Trains a softmax classifier on the scikit-learn 8x8 digits."""
    logger = logging.getLogger("DigitsExample")

    logger.info("Loading digits dataset...")
    digits = load_digits()
    X_train, X_test, y_train, y_test = train_test_split(
        digits.data.astype(float), digits.target, test_size=0.2, random_state=42, stratify=digits.target)

    # Pixel values are 0-16. The test set is scaled with the raw training
    # ranges, so it goes first
    min_max_normalize(X_test, reference=X_train)
    min_max_normalize(X_train)

    train_data = LabeledData.from_rows(X_train, y_train, num_classes=10)
    test_data = LabeledData.from_rows(X_test, y_test, num_classes=10)
    logger.info(f"Data shapes - train: {train_data.features.shape}, test: {test_data.features.shape}")

    architecture = NetworkArchitecture(
        num_features=64,
        num_classes=10,
        layers=[
            LayerDefinition(ActivationType.RELU, 32),
            LayerDefinition(ActivationType.SOFTMAX, 10),
        ],
    )
    hyper_params = HyperParams(
        max_accuracy_threshold=0.97,
        max_epochs=30,
        mini_batch_size=32,
        learning_rate=0.005,
        optimization_type=OptimizationType.ADAM,
        l2_regularization=0.01,
    )

    history = HistoryObserver()
    start_time = time.time()
    model = train(architecture, hyper_params, TeeObserver(ConsoleObserver(), history),
                  train_data, test_data, seed=42)
    logger.info(f"Training finished. Total training time: {time.time() - start_time:.2f} seconds")
    print(model.summary())

    final = history.evaluations[-1].metrics
    print("\nTest confusion matrix (rows: true digit, columns: predicted digit):")
    print(final.test_eval.confusion_matrix)
    print(f"Per-digit accuracy: {np.round(final.test_eval.label_accuracies, 3)}")

    plot_history(history.history(), "Digits Training History")


# --- XOR Example ---

def xor_example():
    """Trains a single sigmoid output on XOR."""
    logger = logging.getLogger("XORExample")
    logger.info("--- Running XOR Example ---")

    X = np.array([[0, 0, 1, 1],
                  [0, 1, 0, 1]], dtype=float)
    y = np.array([[0, 1, 1, 0]], dtype=float)
    data = LabeledData(X, y)

    architecture = NetworkArchitecture(
        num_features=2,
        num_classes=1,
        layers=[
            LayerDefinition(ActivationType.TANH, 4),
            LayerDefinition(ActivationType.SIGMOID, 1),
        ],
        rand_initializer=GlorotInitializer(),
    )
    hyper_params = HyperParams(
        max_accuracy_threshold=1.0,
        max_epochs=2000,
        mini_batch_size=4,  # Full batch for XOR
        learning_rate=0.05,
        optimization_type=OptimizationType.ADAM,
    )

    history = HistoryObserver()
    model = train(architecture, hyper_params, history, data, data, seed=7)
    logger.info(f"XOR training stopped after {model.training_info.num_epochs_used} epochs")

    predictions = model.predict(X)
    for inputs, target, pred in zip(X.T, y[0], predictions[0]):
        logger.info(f"Input: {inputs}, Target: {int(target)}, Prediction: {pred:.4f} -> Class: {int(pred >= 0.5)}")

    plot_history(history.history(), "XOR Training History")


# --- Script Execution ---

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    print("\n" + "=" * 40)
    print("--- Running XOR Classification Example ---")
    print("=" * 40)
    xor_example()

    print("\n" + "=" * 40)
    print("--- Running Digits Classification Example ---")
    print("=" * 40)
    digits_example()

    print("\nDisplaying plots. Close plot windows to exit.")
    plt.show()
