import numpy as np
import pytest

from scratchnet.core.errors import InvalidInputError, ShapeMismatchError
from scratchnet.core.types import BatchStart, EpochEnd, EpochStart, FitCompleted, FitFailed, FitParams
from scratchnet.layers import Dense, Input
from scratchnet.optimizers import Adam, RmsProp, Sgd, SgdMomentum
from scratchnet.training import Network


def _clusters(n_per_class=30, seed=0):
    rng = np.random.default_rng(seed)
    centers = np.array([[2.0, 2.0], [-2.0, -2.0], [2.0, -2.0]])
    inputs, targets = [], []
    for label, center in enumerate(centers):
        for point in center + 0.3 * rng.standard_normal((n_per_class, 2)):
            inputs.append(point)
            targets.append(np.eye(3)[label])
    return inputs, targets


def _network(optimizer, seed=0):
    network = Network([Input(2), Dense(8, "relu"), Dense(3, "softmax")], optimizer, seed=seed)
    network.initialize()
    return network


def test_fit_stream_emits_events_in_order():
    inputs, targets = _clusters(n_per_class=7)
    inputs, targets = inputs[:20], targets[:20]
    network = _network(Sgd(learning_rate=0.1))
    events = network.fit(inputs, targets, epochs=2, batch_size=4, validation_split=0.2).collect()

    per_epoch = [EpochStart(0, 2)] + [BatchStart(i, 4) for i in range(4)]
    assert events[:5] == per_epoch
    assert isinstance(events[5], EpochEnd) and events[5].epoch == 0
    assert events[6:11] == [EpochStart(1, 2)] + [BatchStart(i, 4) for i in range(4)]
    assert isinstance(events[11], EpochEnd) and events[11].epoch == 1
    assert events[12] == FitCompleted(epochs_run=2)
    assert len(events) == 13
    assert all(0.0 <= e.val_accuracy <= 1.0 for e in events if isinstance(e, EpochEnd))


def test_last_batch_may_be_short():
    inputs, targets = _clusters(n_per_class=4)
    network = _network(Sgd(learning_rate=0.1))
    events = network.fit(inputs, targets, FitParams(epochs=1, batch_size=5, validation_split=0.1)).collect()
    batches = [e for e in events if isinstance(e, BatchStart)]
    # 12 samples, 1 held out, 11 trained in batches of 5
    assert [b.batch for b in batches] == [0, 1, 2]
    assert all(b.total_batches == 3 for b in batches)


@pytest.mark.parametrize(
    "optimizer",
    [Sgd(learning_rate=0.1), SgdMomentum(learning_rate=0.05), RmsProp(learning_rate=0.01), Adam(learning_rate=0.01)],
)
def test_training_separates_clusters(optimizer):
    inputs, targets = _clusters()
    network = _network(optimizer, seed=1)
    stream = network.fit(inputs, targets, epochs=15, batch_size=8, validation_split=0.2)
    events = stream.collect()
    assert events[-1] == FitCompleted(epochs_run=15)
    final = [e for e in events if isinstance(e, EpochEnd)][-1]
    assert final.val_accuracy >= 0.9
    assert stream.error is None


def test_same_seed_gives_identical_training():
    inputs, targets = _clusters()

    def run(seed):
        network = _network(Adam(learning_rate=0.01), seed=seed)
        network.train(inputs, targets, FitParams(epochs=3, batch_size=8, validation_split=0.2))
        return network.state_dict()

    first, second = run(4), run(4)
    assert all(np.array_equal(first[k], second[k]) for k in first)


def test_train_stops_at_epoch_boundary():
    inputs, targets = _clusters(n_per_class=5)
    network = _network(Sgd(learning_rate=0.1))
    seen = []
    polls = iter([False, False, True])
    result = network.train(
        inputs,
        targets,
        FitParams(epochs=5, batch_size=4, validation_split=0.2),
        emit=seen.append,
        should_stop=lambda: next(polls),
    )
    assert result == FitCompleted(epochs_run=2, cancelled=True)
    assert [e.epoch for e in seen if isinstance(e, EpochEnd)] == [0, 1]


def test_fit_stream_cancel():
    inputs, targets = _clusters()
    network = _network(Sgd(learning_rate=0.1))
    stream = network.fit(inputs, targets, epochs=1000, batch_size=8, validation_split=0.2)
    events = []
    for event in stream:
        events.append(event)
        if isinstance(event, EpochEnd):
            stream.cancel()
    stream.join(timeout=10)
    terminal = events[-1]
    assert isinstance(terminal, FitCompleted)
    assert terminal.cancelled
    assert terminal.epochs_run < 1000
    assert not stream.running


def test_fit_stream_reports_failure_as_terminal_event():
    inputs, _ = _clusters(n_per_class=5)
    targets = [np.zeros(2) for _ in inputs]
    network = _network(Sgd(learning_rate=0.1))
    stream = network.fit(inputs, targets, epochs=2, batch_size=4, validation_split=0.2)
    events = stream.collect()
    assert isinstance(events[0], EpochStart)
    assert isinstance(events[-1], FitFailed)
    assert isinstance(events[-1].error, ShapeMismatchError)
    assert stream.error is events[-1].error
    assert events[-1].to_dict()["type"] == "failed"


def test_fit_rejects_unsplittable_data():
    network = _network(Sgd(learning_rate=0.1))
    stream = network.fit([np.zeros(2)], [np.eye(3)[0]], epochs=1)
    terminal = stream.collect()[-1]
    assert isinstance(terminal, FitFailed)
    assert isinstance(terminal.error, InvalidInputError)


def test_fit_params_and_options_are_exclusive():
    network = _network(Sgd(learning_rate=0.1))
    with pytest.raises(TypeError):
        network.fit([np.zeros(2)] * 4, [np.eye(3)[0]] * 4, FitParams(), epochs=2)
    with pytest.raises(InvalidInputError):
        network.fit([np.zeros(2)] * 4, [np.eye(3)[0]] * 4, validation_split=1.5)
