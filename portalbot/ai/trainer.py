# portalbot/ai/trainer.py
"""
Epoch-by-epoch training of the intent network.

TrainingLoop.run() is a generator: it yields one TrainingProgress per
epoch (plus a few setup events and one terminal event), so callers can
report progress between epochs. There is no cancellation; a caller can
only stop iterating.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import torch
import torch.nn as nn
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split

from ..logging_config import log_event, log_failure
from .architecture import IntentNetwork, build_topology
from .codec import ModelBundle, ModelCodec
from .errors import CorpusError
from .vectorizer import Corpus, build_corpus

logger = logging.getLogger("portalbot")


class TrainingState(str, Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


@dataclass
class TrainingProgress:
    status: str
    progress_percent: float
    state: TrainingState = TrainingState.RUNNING
    epoch: Optional[int] = None
    loss: Optional[float] = None
    val_loss: Optional[float] = None
    learning_rate: Optional[float] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.state is not TrainingState.RUNNING

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "status": self.status,
            "progressPercent": round(self.progress_percent, 2),
            "state": self.state.value,
        }
        for key, value in (
            ("epoch", self.epoch),
            ("loss", self.loss),
            ("valLoss", self.val_loss),
            ("learningRate", self.learning_rate),
            ("error", self.error),
        ):
            if value is not None:
                out[key] = value
        if self.summary:
            out["summary"] = self.summary
        return out


@dataclass
class TrainingConfig:
    max_epochs: int = 100
    batch_size: int = 32
    max_patience: int = 5
    learning_rate: float = 0.001
    validation_split: float = 0.2
    decay_after: int = 2
    decay_factor: float = 0.5
    seed: Optional[int] = None

    @classmethod
    def from_settings(cls, settings) -> "TrainingConfig":
        return cls(
            max_epochs=settings.TRAIN_MAX_EPOCHS,
            batch_size=settings.TRAIN_BATCH_SIZE,
            max_patience=settings.TRAIN_PATIENCE,
            learning_rate=settings.TRAIN_LEARNING_RATE,
            validation_split=settings.TRAIN_VALIDATION_SPLIT,
            seed=settings.TRAIN_SEED,
        )


@dataclass
class EpochResult:
    loss: float
    val_loss: Optional[float] = None
    val_accuracy: Optional[float] = None


@dataclass
class PlateauTracker:
    """Early stopping + learning-rate decay bookkeeping.

    update() returns (stop, decay). Decay never resets patience or best_loss.
    """

    max_patience: int = 5
    decay_after: int = 2
    best_loss: float = math.inf
    patience: int = 0

    def update(self, loss: float) -> Tuple[bool, bool]:
        if loss < self.best_loss:
            self.best_loss = loss
            self.patience = 0
        else:
            self.patience += 1
            if self.patience >= self.max_patience:
                return True, False
        return False, self.patience > self.decay_after


class TrainingLoop:
    def __init__(
        self,
        examples: Iterable[Tuple[str, str]],
        responses: Dict[str, List[str]] | None,
        codec: ModelCodec,
        config: TrainingConfig | None = None,
    ):
        self.examples = list(examples)
        self.responses = responses or {}
        self.codec = codec
        self.config = config or TrainingConfig()
        self._rng = random.Random(self.config.seed)
        self._torch_gen = torch.Generator()
        if self.config.seed is not None:
            self._torch_gen.manual_seed(self.config.seed)

        self.corpus: Corpus | None = None
        self.network: IntentNetwork | None = None
        self.optimizer: torch.optim.Optimizer | None = None
        self.criterion = nn.CrossEntropyLoss()
        self.learning_rate = self.config.learning_rate
        self.epochs_run = 0

    # -------------------------
    # SETUP
    # -------------------------
    def _prepare_corpus(self) -> Corpus:
        corpus = build_corpus(self.examples, self._rng)
        if not len(corpus) or not corpus.vocabulary:
            raise CorpusError("Training corpus is empty; no patterns to learn from")
        n_train = len(corpus) - int(len(corpus) * self.config.validation_split)
        if n_train < 2:
            raise CorpusError(f"Training corpus too small: {len(corpus)} samples")
        return corpus

    def _build_network(self, corpus: Corpus) -> IntentNetwork:
        if self.config.seed is not None:
            torch.manual_seed(self.config.seed)
        return IntentNetwork(build_topology(len(corpus.vocabulary), len(corpus.intents)))

    def _make_optimizer(self, learning_rate: float) -> torch.optim.Optimizer:
        return torch.optim.Adam(self.network.parameters(), lr=learning_rate)

    # -------------------------
    # ONE EPOCH
    # -------------------------
    def _split(self, n: int) -> Tuple[List[int], List[int]]:
        indices = list(range(n))
        n_val = int(n * self.config.validation_split)
        if n_val == 0:
            return indices, []
        train_idx, val_idx = train_test_split(
            indices, test_size=n_val, shuffle=True, random_state=self._rng.randrange(2**31)
        )
        return list(train_idx), list(val_idx)

    def _batches(self, rows: List[int]) -> List[torch.Tensor]:
        order = torch.tensor(rows, dtype=torch.long)[torch.randperm(len(rows), generator=self._torch_gen)]
        bs = self.config.batch_size
        batches = [order[i:i + bs] for i in range(0, len(order), bs)]
        # batch norm needs more than one sample per batch in train mode
        if len(batches) > 1 and len(batches[-1]) == 1:
            tail = batches.pop()
            batches[-1] = torch.cat([batches[-1], tail])
        return batches

    def _run_epoch(self, x: torch.Tensor, y: torch.Tensor) -> EpochResult:
        train_idx, val_idx = self._split(len(x))

        self.network.train()
        total, seen = 0.0, 0
        for batch in self._batches(train_idx):
            self.optimizer.zero_grad()
            logits = self.network(x[batch])
            loss = self.criterion(logits, y[batch])
            loss.backward()
            self.optimizer.step()
            total += loss.item() * len(batch)
            seen += len(batch)

        result = EpochResult(loss=total / seen)
        if val_idx:
            self.network.eval()
            with torch.no_grad():
                logits = self.network(x[val_idx])
                result.val_loss = self.criterion(logits, y[val_idx]).item()
                result.val_accuracy = float(accuracy_score(y[val_idx].numpy(), logits.argmax(dim=-1).numpy()))
        return result

    # -------------------------
    # DRIVER
    # -------------------------
    def run(self) -> Iterator[TrainingProgress]:
        cfg = self.config
        try:
            yield TrainingProgress("Preprocessing Data...", 0.0)
            self.corpus = corpus = self._prepare_corpus()
            augmented = len(corpus) - len(self.examples)
            yield TrainingProgress(f"Preprocessed {len(corpus)} samples ({augmented} augmented)", 0.0)

            yield TrainingProgress("Creating Model...", 0.0)
            self.network = self._build_network(corpus)
            self.optimizer = self._make_optimizer(self.learning_rate)
            x = torch.tensor(corpus.sequences, dtype=torch.long)
            y = torch.tensor(corpus.labels, dtype=torch.long)
            log_event("TRAIN_STARTED", "Training intent model", {
                "samples": len(corpus),
                "vocabulary_size": len(corpus.vocabulary),
                "intents": len(corpus.intents),
                "max_epochs": cfg.max_epochs,
            })

            tracker = PlateauTracker(max_patience=cfg.max_patience, decay_after=cfg.decay_after)
            stopped_early = False
            for epoch in range(cfg.max_epochs):
                result = self._run_epoch(x, y)
                self.epochs_run = epoch + 1
                status = f"Epoch {epoch + 1}/{cfg.max_epochs} - Loss: {result.loss:.4f}"
                logger.info(
                    "epoch=%d loss=%.4f val_loss=%s val_acc=%s lr=%g",
                    epoch + 1, result.loss, result.val_loss, result.val_accuracy, self.learning_rate,
                )

                stop, decay = tracker.update(result.loss)
                if stop:
                    stopped_early = True
                    status = "Early stopping triggered - model converged"
                    log_event("EARLY_STOP", status, {"epoch": epoch + 1, "best_loss": tracker.best_loss})
                elif decay:
                    self.learning_rate *= cfg.decay_factor
                    self.optimizer = self._make_optimizer(self.learning_rate)
                    status = f"{status} - Reduced learning rate to {self.learning_rate:g}"
                    log_event("LR_DECAY", "Reduced learning rate", {"epoch": epoch + 1, "learning_rate": self.learning_rate})

                yield TrainingProgress(
                    status,
                    (epoch + 1) / cfg.max_epochs * 100,
                    epoch=epoch + 1,
                    loss=result.loss,
                    val_loss=result.val_loss,
                    learning_rate=self.learning_rate,
                )
                if stop:
                    break

            self.network.eval()
            bundle = ModelBundle.from_network(self.network, corpus.vocabulary, corpus.intents, self.responses)
            self.codec.write(bundle)
        except Exception as e:
            logger.exception("Training error")
            log_failure("TRAINING_FAILED", {"error": str(e), "epochs_run": self.epochs_run})
            yield TrainingProgress(
                f"Training failed: {e}",
                0.0,
                state=TrainingState.FAILED,
                error=str(e),
                summary={"epochs_run": self.epochs_run},
            )
            return

        summary = {
            "epochs_run": self.epochs_run,
            "best_loss": tracker.best_loss,
            "stopped_early": stopped_early,
            "learning_rate": self.learning_rate,
            "samples": len(corpus),
            "intents": list(corpus.intents),
        }
        log_event("TRAIN_COMPLETED", "Model trained and saved", summary)
        yield TrainingProgress(
            "Model trained and saved successfully!",
            100.0,
            state=TrainingState.COMPLETED,
            summary=summary,
        )
