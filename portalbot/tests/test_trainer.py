from __future__ import annotations

import pytest

from portalbot.ai.blob_store import HttpBlobStore
from portalbot.ai.codec import ModelCodec
from portalbot.ai.trainer import (
    EpochResult,
    PlateauTracker,
    TrainingConfig,
    TrainingLoop,
    TrainingProgress,
    TrainingState,
)
from portalbot.ai.training_data import load_training_data, parse_training_data

from .conftest import EXAMPLES, RESPONSES


class ScriptedLoop(TrainingLoop):
    """Replays a fixed loss per epoch instead of running the optimiser."""

    def __init__(self, losses, codec, config):
        super().__init__(EXAMPLES, RESPONSES, codec, config)
        self._losses = iter(losses)

    def _run_epoch(self, x, y):
        return EpochResult(loss=next(self._losses))


def _epochs(events):
    return [e for e in events if e.epoch is not None]


# -------------------------
# PLATEAU TRACKER
# -------------------------
def test_plateau_tracker_resets_on_improvement():
    tracker = PlateauTracker(max_patience=5)
    assert tracker.update(1.0) == (False, False)
    assert tracker.update(1.2) == (False, False)
    assert tracker.patience == 1
    assert tracker.update(0.5) == (False, False)
    assert tracker.patience == 0
    assert tracker.best_loss == 0.5


def test_plateau_tracker_decay_then_stop():
    tracker = PlateauTracker(max_patience=5, decay_after=2)
    tracker.update(1.0)
    results = [tracker.update(1.0) for _ in range(5)]
    # patience 1, 2 -> nothing; 3, 4 -> decay; 5 -> stop
    assert results == [(False, False), (False, False), (False, True), (False, True), (True, False)]
    assert tracker.best_loss == 1.0


# -------------------------
# EPOCH DRIVER
# -------------------------
def test_stops_after_five_epochs_without_improvement(codec):
    losses = [1.0, 0.9] + [0.95] * 10
    events = list(ScriptedLoop(losses, codec, TrainingConfig(seed=0)).run())
    epochs = _epochs(events)

    assert len(epochs) == 7
    assert epochs[-1].status == "Early stopping triggered - model converged"
    assert events[-1].state is TrainingState.COMPLETED
    assert events[-1].summary["stopped_early"] is True
    assert events[-1].summary["best_loss"] == pytest.approx(0.9)


def test_learning_rate_halves_once_patience_exceeds_two(codec):
    losses = [1.0] + [1.0] * 5
    loop = ScriptedLoop(losses, codec, TrainingConfig(seed=0, learning_rate=0.001))
    epochs = _epochs(list(loop.run()))

    assert [e.learning_rate for e in epochs] == pytest.approx([0.001, 0.001, 0.001, 0.0005, 0.00025, 0.00025])
    assert "Reduced learning rate to 0.0005" in epochs[3].status
    assert loop.optimizer.param_groups[0]["lr"] == pytest.approx(0.00025)


def test_never_exceeds_max_epochs(codec):
    losses = [1.0 / (i + 1) for i in range(200)]
    events = list(ScriptedLoop(losses, codec, TrainingConfig(seed=0)).run())
    epochs = _epochs(events)

    assert len(epochs) == 100
    assert epochs[0].status == "Epoch 1/100 - Loss: 1.0000"
    assert epochs[-1].progress_percent == pytest.approx(100.0)
    assert events[-1].summary["stopped_early"] is False


def test_one_event_per_epoch_and_progress_increases(codec):
    losses = [1.0, 0.8, 0.7, 0.6]
    events = list(ScriptedLoop(losses, codec, TrainingConfig(seed=0, max_epochs=4)).run())

    assert [e.status for e in events[:3]][0] == "Preprocessing Data..."
    assert events[2].status == "Creating Model..."
    epochs = _epochs(events)
    assert [e.epoch for e in epochs] == [1, 2, 3, 4]
    assert [e.progress_percent for e in epochs] == [25.0, 50.0, 75.0, 100.0]
    assert sum(1 for e in events if e.terminal) == 1


def test_empty_corpus_fails_without_writing(codec, store):
    events = list(TrainingLoop([], {}, codec).run())

    final = events[-1]
    assert final.state is TrainingState.FAILED
    assert final.status.startswith("Training failed:")
    assert final.error
    assert not any(store.exists(key) for key in codec.keys())


def test_store_failure_reported_as_failed_event():
    read_only = ModelCodec(HttpBlobStore("http://127.0.0.1:9"), prefix="model")
    events = list(ScriptedLoop([1.0, 0.5], read_only, TrainingConfig(seed=0, max_epochs=2)).run())

    assert events[-1].state is TrainingState.FAILED
    assert "read-only" in events[-1].error
    assert len(_epochs(events)) == 2


def test_progress_to_dict_uses_camel_case():
    event = TrainingProgress("Epoch 1/2 - Loss: 0.5000", 50.0, epoch=1, loss=0.5, val_loss=0.6, learning_rate=0.001)
    out = event.to_dict()
    assert out == {
        "status": "Epoch 1/2 - Loss: 0.5000",
        "progressPercent": 50.0,
        "state": "RUNNING",
        "epoch": 1,
        "loss": 0.5,
        "valLoss": 0.6,
        "learningRate": 0.001,
    }


# -------------------------
# REAL TRAINING
# -------------------------
def test_short_training_run_writes_loadable_bundle(codec):
    config = TrainingConfig(max_epochs=3, batch_size=8, seed=1)
    events = list(TrainingLoop(EXAMPLES, RESPONSES, codec, config).run())

    final = events[-1]
    assert final.state is TrainingState.COMPLETED, final.error
    assert final.status == "Model trained and saved successfully!"
    assert final.summary["epochs_run"] == 3

    epochs = _epochs(events)
    assert all(e.loss > 0 for e in epochs)
    assert all(e.val_loss is not None for e in epochs)

    loaded = codec.read()
    assert loaded.intents == ["greeting", "account_balance", "pay_bill"]
    assert loaded.responses["greeting"] == RESPONSES["greeting"]


def test_packaged_training_data():
    data = load_training_data()
    intents = {intent for _, intent in data.examples}
    assert {"greeting", "account_balance", "pay_bill", "meter_reading"} <= intents
    assert set(data.responses) == intents


def test_parse_training_data_keeps_intents_without_responses():
    data = parse_training_data({"intents": [{"intent": "x", "patterns": ["a b"]}]})
    assert data.examples == [("a b", "x")]
    assert data.responses == {"x": []}
