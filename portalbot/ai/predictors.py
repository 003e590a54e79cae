# portalbot/ai/predictors.py
from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import torch

from ..logging_config import log_failure
from .codec import LoadedModel
from .errors import ModelNotLoadedError, ModelUnavailableError
from .model_loader import ModelRegistry
from .vectorizer import PAD_INDEX, pad_sequence


UNKNOWN_TOKEN = "<UNK>"

FALLBACK_RESPONSES = [
    "I understand your request, but I'm not sure how to respond. Could you please rephrase?",
    "I'm still learning about this topic. Could you try asking in a different way?",
    "I want to help, but I need more information. Could you provide more details?",
]

APOLOGY_RESPONSE = (
    "I apologize, but I encountered an error while processing your request. Please try again later."
)

_PUNCTUATION = re.compile(r"[.,!?]")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class IntentProbability:
    intent: str
    probability: float


@dataclass
class PredictionResult:
    intent: str
    confidence: float
    response: str
    all_probabilities: List[IntentProbability] = field(default_factory=list)

    @property
    def responses(self) -> List[str]:
        return [self.response]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "responses": self.responses,
            "allProbabilities": [
                {"intent": p.intent, "probability": p.probability} for p in self.all_probabilities
            ],
        }


@dataclass
class ChatReply:
    """What the chat window shows. Never carries a raw exception."""

    status: str  # ok / model_unavailable / model_not_loaded
    response: str
    prediction: Optional[PredictionResult] = None
    error_code: Optional[str] = None


def normalize_text(text: str) -> str:
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def extract_features(text: str) -> List[str]:
    """Unigrams followed by adjacent-pair bigrams."""
    tokens = normalize_text(text).split()
    bigrams = [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
    return tokens + bigrams


def featurize(text: str, vocabulary: Dict[str, int]) -> List[int]:
    unknown = vocabulary.get(UNKNOWN_TOKEN) or PAD_INDEX
    return pad_sequence([vocabulary.get(f) or unknown for f in extract_features(text)])


class IntentEngine:
    def __init__(self, registry: ModelRegistry, rng: random.Random | None = None):
        self.registry = registry
        self._rng = rng or random.Random()

    def _model(self) -> LoadedModel:
        outcome = self.registry.load()
        if not outcome.ok:
            raise ModelUnavailableError(f"Failed to load model: {outcome.error}") from outcome.error
        return outcome.model

    def _choose_response(self, model: LoadedModel, intent: str) -> str:
        candidates = model.responses.get(intent) or FALLBACK_RESPONSES
        return self._rng.choice(candidates)

    def predict_intent(self, text: str) -> PredictionResult:
        model = self._model()
        sequence = featurize(text, model.vocabulary)

        with torch.no_grad():
            probs = model.network.predict_proba(torch.tensor([sequence], dtype=torch.long))[0]
        probabilities = [float(p) for p in probs.tolist()]

        best = max(range(len(probabilities)), key=probabilities.__getitem__)
        intent = model.intents[best]
        return PredictionResult(
            intent=intent,
            confidence=min(1.0, max(0.0, probabilities[best])),
            response=self._choose_response(model, intent),
            all_probabilities=[
                IntentProbability(name, p) for name, p in zip(model.intents, probabilities)
            ],
        )

    def reply(self, text: str) -> ChatReply:
        """Chat boundary: load / transport failures become an apology."""
        try:
            prediction = self.predict_intent(text)
        except ModelUnavailableError as e:
            log_failure(e.error_code, {"stage": "predict", "error": str(e)})
            return ChatReply("model_unavailable", APOLOGY_RESPONSE, error_code=e.error_code)
        except ModelNotLoadedError as e:
            log_failure(e.error_code, {"stage": "predict", "error": str(e)})
            return ChatReply("model_not_loaded", APOLOGY_RESPONSE, error_code=e.error_code)
        return ChatReply("ok", prediction.response, prediction=prediction)
