# portalbot/ai/model_loader.py
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from ..logging_config import log_event, log_failure
from ..settings import get_settings
from .blob_store import make_blob_store
from .codec import LoadedModel, ModelCodec
from .errors import ChatbotError, ModelNotLoadedError


@dataclass(frozen=True)
class LoadOutcome:
    model: Optional[LoadedModel] = None
    error: Optional[ChatbotError] = None

    @property
    def ok(self) -> bool:
        return self.model is not None

    def unwrap(self) -> LoadedModel:
        if self.error is not None:
            raise self.error
        if self.model is None:
            raise ModelNotLoadedError("No model has been loaded")
        return self.model


class ModelRegistry:
    """Owns the process-wide "current model" slot.

    The first load() runs the codec under a lock; concurrent first callers
    wait for that load instead of starting their own. Failures are not
    cached, so the next call retries. A new bundle is only picked up
    through reload().
    """

    def __init__(self, codec: ModelCodec):
        self.codec = codec
        self._lock = threading.Lock()
        self._model: Optional[LoadedModel] = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def current(self) -> LoadedModel:
        model = self._model
        if model is None:
            raise ModelNotLoadedError("Inference attempted before a model was loaded")
        return model

    def _read(self) -> LoadOutcome:
        try:
            model = self.codec.read()
        except ChatbotError as e:
            log_failure(e.error_code, {"stage": "model_load", "error": str(e)})
            return LoadOutcome(error=e)
        log_event("MODEL_LOADED", "Model cached", {
            "intents": len(model.intents),
            "vocabulary_size": len(model.vocabulary),
            "version": model.version,
        })
        return LoadOutcome(model=model)

    def load(self) -> LoadOutcome:
        model = self._model
        if model is not None:
            return LoadOutcome(model=model)
        with self._lock:
            if self._model is not None:
                return LoadOutcome(model=self._model)
            outcome = self._read()
            if outcome.ok:
                self._model = outcome.model
            return outcome

    def reload(self) -> LoadOutcome:
        """Read the bundle again; the cached model is kept if the read fails."""
        with self._lock:
            outcome = self._read()
            if outcome.ok:
                self._model = outcome.model
            return outcome

    def clear(self) -> None:
        with self._lock:
            self._model = None


def make_codec(settings=None) -> ModelCodec:
    settings = settings or get_settings()
    return ModelCodec(make_blob_store(settings), prefix=settings.MODEL_KEY_PREFIX)


_registry: Optional[ModelRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> ModelRegistry:
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = ModelRegistry(make_codec())
        return _registry


def set_registry(registry: Optional[ModelRegistry]) -> None:
    """Swap the process-wide registry (None resets to the settings-driven default)."""
    global _registry
    with _registry_lock:
        _registry = registry
