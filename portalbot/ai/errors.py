# portalbot/ai/errors.py
"""
Error taxonomy for the intent engine.

Vectorizer / architecture problems are programmer or data errors and
propagate immediately. Load and transport failures are converted into
tagged results at the inference boundary (see model_loader.LoadOutcome
and predictors.ChatReply).
"""


class ChatbotError(RuntimeError):
    error_code = "CHATBOT_ERROR"


class CorpusError(ChatbotError):
    """Empty or degenerate training corpus."""

    error_code = "CORPUS_ERROR"


class BundleMissingError(ChatbotError):
    """One of the persisted bundle artifacts does not exist."""

    error_code = "BUNDLE_MISSING"

    def __init__(self, key: str, detail: str | None = None):
        self.key = key
        super().__init__(detail or f"Model artifact not found: {key}")


class BundleCorruptError(ChatbotError):
    """An artifact exists but its contents cannot describe a model."""

    error_code = "BUNDLE_CORRUPT"


class InsufficientWeightDataError(ChatbotError):
    error_code = "INSUFFICIENT_WEIGHT_DATA"

    def __init__(self, received_floats: int, expected_floats: int):
        self.received_floats = received_floats
        self.expected_floats = expected_floats
        super().__init__(
            f"Not enough weight data: got {received_floats} floats but need {expected_floats}"
        )


class ModelNotLoadedError(ChatbotError):
    """Inference attempted while no model has ever been loaded."""

    error_code = "MODEL_NOT_LOADED"


class TransportError(ChatbotError):
    """Network / storage failure while moving an artifact. The cause is chained."""

    error_code = "TRANSPORT_ERROR"


class ModelUnavailableError(ChatbotError):
    """Raised out of predict_intent when the model could not be loaded."""

    error_code = "MODEL_UNAVAILABLE"
