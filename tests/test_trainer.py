import numpy as np
import pytest

from neunet import (ActivationType, DivergedTraining, HistoryObserver, HyperParams, InvalidHyperParameters,
                    LabeledData, LayerDefinition, NetworkArchitecture, ObserverError, OptimizationType,
                    RandomInitializer, ShapeMismatch, Trainer, TrainingObserver, TrainingState, predict, train)

from .conftest import make_clusters


def small_architecture(**kwargs):
    return NetworkArchitecture(
        num_features=4,
        num_classes=2,
        layers=[LayerDefinition(ActivationType.RELU, 3), LayerDefinition(ActivationType.SOFTMAX, 2)],
        **kwargs,
    )


def unreachable(**kwargs):
    """Hyperparameters whose accuracy threshold can never be met."""
    params = dict(max_accuracy_threshold=1.5, max_epochs=2, mini_batch_size=4, learning_rate=0.1)
    params.update(kwargs)
    return HyperParams(**params)


def test_small_network_trains_with_adam(cluster_data):
    train_data, test_data = cluster_data
    history = HistoryObserver()
    hyper_params = HyperParams(max_accuracy_threshold=1.0, max_epochs=5, mini_batch_size=4,
                               learning_rate=0.1, optimization_type=OptimizationType.ADAM)

    model = train(small_architecture(), hyper_params, history, train_data, test_data, seed=0)

    assert model.training_info.num_epochs_used <= 5
    assert model.layer_shapes() == [(3, 4), (2, 3)]
    evaluations = history.evaluations
    epoch_one = [m for m in evaluations if m.epoch == 1][-1]
    assert evaluations[-1].metrics.train_eval.accuracy >= epoch_one.metrics.train_eval.accuracy


def test_runs_until_max_epochs(cluster_data):
    train_data, test_data = cluster_data
    history = HistoryObserver()
    trainer = Trainer(small_architecture(), seed=1)
    hyper_params = unreachable(max_epochs=3, mini_batch_size=16)

    model = trainer.train(hyper_params, history, train_data, test_data)

    assert trainer.state is TrainingState.MAX_EPOCHS_REACHED
    info = model.training_info
    assert info.hyper_params is hyper_params
    assert info.num_epochs_used == 3
    # 40 examples in batches of 16, 16 and 8
    assert info.num_iterations_used == 9
    assert np.isfinite(info.loss)
    recorded = info.to_dict()["hyper_params"]
    assert recorded["epsilon"] == hyper_params.epsilon
    assert recorded["optimization_type"] == "adam"
    assert history.messages[0].message == "Training started"
    assert history.messages[0].metrics is None
    assert history.messages[-1].message == "Training finished: max_epochs_reached"
    assert [m.epoch for m in history.evaluations] == [1, 2, 3]
    assert [m.batch_start for m in history.evaluations] == [32, 32, 32]


def test_stops_once_accuracy_threshold_is_reached(cluster_data):
    train_data, test_data = cluster_data
    trainer = Trainer(small_architecture(), seed=1)
    model = trainer.train(HyperParams(max_accuracy_threshold=0.0, max_epochs=10, mini_batch_size=4),
                          HistoryObserver(), train_data, test_data)
    assert trainer.state is TrainingState.CONVERGED
    assert model.training_info.num_epochs_used == 1


def test_evaluates_every_n_batches(cluster_data):
    train_data, test_data = cluster_data
    history = HistoryObserver()
    train(small_architecture(), unreachable(), history, train_data, test_data, seed=2, eval_every=5)
    # 10 batches per epoch; the epoch end coincides with a batch evaluation
    assert [m.iteration for m in history.evaluations] == [5, 10, 15, 20]


def test_same_seed_trains_same_model(cluster_data):
    train_data, test_data = cluster_data
    models = [train(small_architecture(), unreachable(), HistoryObserver(), train_data, test_data, seed=5)
              for _ in range(2)]
    for a, b in zip(models[0].layers, models[1].layers):
        np.testing.assert_array_equal(a.weights, b.weights)
        np.testing.assert_array_equal(a.intercepts, b.intercepts)


@pytest.mark.parametrize("optimization_type", list(OptimizationType))
def test_every_optimizer_trains_with_l2(cluster_data, optimization_type):
    train_data, test_data = cluster_data
    hyper_params = unreachable(optimization_type=optimization_type, l2_regularization=0.01, learning_rate=0.05)
    model = train(small_architecture(), hyper_params, HistoryObserver(), train_data, test_data, seed=3)
    assert all(np.all(np.isfinite(layer.weights)) for layer in model.layers)


def test_scalar_labels_are_accepted(cluster_data):
    train_data, test_data = cluster_data
    scalar_train = LabeledData(train_data.features, np.argmax(train_data.labels, axis=0))
    scalar_test = LabeledData(test_data.features, np.argmax(test_data.labels, axis=0))
    history = HistoryObserver()
    train(small_architecture(), unreachable(), history, scalar_train, scalar_test, seed=0)
    assert history.evaluations[-1].metrics.train_eval.confusion_matrix.sum() == 40


def test_single_sigmoid_output(cluster_data):
    train_data, test_data = cluster_data
    architecture = NetworkArchitecture(4, 1, [LayerDefinition(ActivationType.TANH, 3),
                                              LayerDefinition(ActivationType.SIGMOID, 1)])
    binary_train = LabeledData(train_data.features, train_data.labels[1:])
    binary_test = LabeledData(test_data.features, test_data.labels[1:])
    history = HistoryObserver()
    model = train(architecture, unreachable(), history, binary_train, binary_test, seed=0)
    assert model.predict(test_data.features).shape == (1, 20)
    assert history.evaluations[-1].metrics.test_eval.dimension == 2


@pytest.mark.parametrize("overrides", [
    dict(mini_batch_size=0),
    dict(mini_batch_size=41),
    dict(learning_rate=0.0),
    dict(momentum_beta=1.0),
    dict(rms_prop_beta=0.0),
    dict(max_epochs=0),
    dict(l2_regularization=-0.1),
])
def test_invalid_hyperparameters_fail_before_training(cluster_data, overrides):
    train_data, test_data = cluster_data
    history = HistoryObserver()
    trainer = Trainer(small_architecture())
    with pytest.raises(InvalidHyperParameters):
        trainer.train(unreachable(**overrides), history, train_data, test_data)
    assert history.messages == []
    assert trainer.state is TrainingState.ERROR


def test_feature_count_must_match_architecture(cluster_data):
    _, test_data = cluster_data
    narrow = LabeledData(np.zeros((3, 8)), np.zeros((2, 8)))
    with pytest.raises(ShapeMismatch):
        train(small_architecture(), unreachable(), HistoryObserver(), narrow, test_data)


def test_label_rows_must_match_classes(cluster_data):
    train_data, test_data = cluster_data
    wide = LabeledData(train_data.features, np.zeros((3, 40)))
    with pytest.raises(ShapeMismatch):
        train(small_architecture(), unreachable(), HistoryObserver(), wide, test_data)


@pytest.mark.parametrize("label", [7.0, -1.0])
def test_test_labels_outside_classes_fail_before_training(cluster_data, label):
    train_data, test_data = cluster_data
    bad_test = LabeledData(test_data.features, np.full((1, 20), label))
    history = HistoryObserver()
    trainer = Trainer(small_architecture(), seed=0)
    with pytest.raises(ShapeMismatch):
        trainer.train(unreachable(), history, train_data, bad_test)
    assert history.messages == []
    assert trainer.state is TrainingState.ERROR


def test_failure_inside_batch_loop_ends_in_error_state(cluster_data, monkeypatch):
    train_data, test_data = cluster_data

    def broken_step(self, layers):
        raise RuntimeError("update failed")

    monkeypatch.setattr("neunet.trainer.Optimizer.step", broken_step)
    history = HistoryObserver()
    trainer = Trainer(small_architecture(), seed=0)
    with pytest.raises(RuntimeError, match="update failed"):
        trainer.train(unreachable(), history, train_data, test_data)
    assert [m.message for m in history.messages] == ["Training started"]
    assert trainer.state is TrainingState.ERROR


class NanInitializer(RandomInitializer):
    def weights(self, rows, cols, rng):
        return np.full((rows, cols), np.nan)


def test_non_finite_parameters_abort_training(cluster_data):
    train_data, test_data = cluster_data
    trainer = Trainer(small_architecture(rand_initializer=NanInitializer()))
    with pytest.raises(DivergedTraining) as excinfo:
        trainer.train(unreachable(), HistoryObserver(), train_data, test_data)
    assert excinfo.value.iteration == 1
    assert trainer.state is TrainingState.ERROR


class FailingObserver(TrainingObserver):
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.count = 0

    def emit(self, message):
        self.count += 1
        if self.count == self.fail_on:
            raise KeyError("sink closed")


def test_observer_failure_is_reported_with_model(cluster_data):
    train_data, test_data = cluster_data
    with pytest.raises(ObserverError) as excinfo:
        train(small_architecture(), unreachable(), FailingObserver(fail_on=2), train_data, test_data, seed=0)
    assert isinstance(excinfo.value.__cause__, KeyError)
    model = excinfo.value.model
    assert model.training_info.num_epochs_used == 1
    assert model.training_info.num_iterations_used == 10


class StoppingObserver(TrainingObserver):
    def __init__(self):
        self.trainer = None

    def emit(self, message):
        if message.metrics is not None:
            self.trainer.stop()


def test_stop_ends_training_between_batches(cluster_data):
    train_data, test_data = cluster_data
    observer = StoppingObserver()
    trainer = Trainer(small_architecture(), seed=0, eval_every=1)
    observer.trainer = trainer
    model = trainer.train(unreachable(), observer, train_data, test_data)
    assert trainer.state is TrainingState.STOPPED
    assert model.training_info.num_iterations_used == 1


def test_predict_does_not_change_model(cluster_data):
    train_data, test_data = cluster_data
    model = train(small_architecture(), unreachable(), HistoryObserver(), train_data, test_data, seed=0)
    first = predict(model, test_data.features)
    second = model.predict(test_data.features)
    np.testing.assert_array_equal(first, second)
    assert first.shape == (2, 20)
    np.testing.assert_allclose(first.sum(axis=0), 1.0)
    assert all(layer.z is None for layer in model.layers)
    with pytest.raises(ShapeMismatch):
        predict(model, np.zeros((3, 2)))
