# portalbot/ai/ai_utils.py
"""
Public entry points for the chatbot engine.

The rest of the application calls:
- train()
- predict_intent(...)
- load_model()
- chat_reply(...)

but actual logic lives in:
- portalbot.ai.trainer
- portalbot.ai.model_loader
- portalbot.ai.predictors
"""

from typing import Any, Dict, Iterator

from ..settings import get_settings
from .errors import (
    BundleCorruptError,
    BundleMissingError,
    ChatbotError,
    CorpusError,
    InsufficientWeightDataError,
    ModelNotLoadedError,
    ModelUnavailableError,
    TransportError,
)
from .model_loader import get_registry, make_codec
from .predictors import ChatReply, IntentEngine, PredictionResult
from .trainer import TrainingConfig, TrainingLoop, TrainingProgress
from .training_data import load_training_data


def train() -> Iterator[TrainingProgress]:
    """
    Train a full replacement model from the packaged intents file and
    write a new bundle. The running process keeps serving its cached
    model until load_model(reload=True).
    """
    settings = get_settings()
    data = load_training_data(settings.TRAINING_DATA_PATH)
    loop = TrainingLoop(
        data.examples,
        data.responses,
        make_codec(settings),
        TrainingConfig.from_settings(settings),
    )
    return loop.run()


def load_model(reload: bool = False) -> None:
    registry = get_registry()
    outcome = registry.reload() if reload else registry.load()
    outcome.unwrap()


def predict_intent(text: str) -> Dict[str, Any]:
    return IntentEngine(get_registry()).predict_intent(text).to_dict()


def chat_reply(text: str) -> ChatReply:
    return IntentEngine(get_registry()).reply(text)


__all__ = [
    "train",
    "load_model",
    "predict_intent",
    "chat_reply",
    "ChatReply",
    "PredictionResult",
    "TrainingProgress",
    "ChatbotError",
    "CorpusError",
    "BundleMissingError",
    "BundleCorruptError",
    "InsufficientWeightDataError",
    "ModelNotLoadedError",
    "ModelUnavailableError",
    "TransportError",
]
