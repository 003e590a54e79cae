"""Shared test fixtures and helpers."""

from __future__ import annotations

import os
import tempfile

# keep the test database out of the working tree; db.py reads this at import
os.environ.setdefault(
    "DATABASE_URL", f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='portalbot-tests-'), 'test.db')}"
)

import pytest

from portalbot.ai.architecture import build_model
from portalbot.ai.blob_store import LocalBlobStore
from portalbot.ai.codec import ModelBundle, ModelCodec
from portalbot.ai.model_loader import ModelRegistry, set_registry
from portalbot.settings import get_settings


EXAMPLES = [
    ("hello", "greeting"),
    ("hi there", "greeting"),
    ("good morning", "greeting"),
    ("what is my balance", "account_balance"),
    ("show my account balance please", "account_balance"),
    ("how much do i owe", "account_balance"),
    ("i want to pay my bill", "pay_bill"),
    ("how do i make a payment", "pay_bill"),
    ("pay my water bill online", "pay_bill"),
]

RESPONSES = {
    "greeting": ["Hello!", "Hi there!"],
    "account_balance": ["Your balance is on the dashboard."],
    "pay_bill": [],
}

VOCABULARY = {"hello": 1, "there": 2, "balance": 3, "pay": 4, "bill": 5}
INTENTS = ["greeting", "account_balance", "pay_bill"]


def write_untrained_bundle(codec: ModelCodec, vocabulary=None, intents=None, responses=None) -> ModelBundle:
    """Persist a freshly initialised network; good enough for shape / plumbing tests."""
    vocabulary = vocabulary or VOCABULARY
    intents = intents or INTENTS
    network = build_model(len(vocabulary), len(intents))
    network.eval()
    bundle = ModelBundle.from_network(network, vocabulary, intents, RESPONSES if responses is None else responses)
    codec.write(bundle)
    return bundle


@pytest.fixture
def store(tmp_path):
    return LocalBlobStore(tmp_path / "store")


@pytest.fixture
def codec(store):
    return ModelCodec(store, prefix="model")


@pytest.fixture
def registry(codec):
    reg = ModelRegistry(codec)
    set_registry(reg)
    yield reg
    set_registry(None)


@pytest.fixture
def app_settings(tmp_path, monkeypatch):
    """Point the process settings at a throwaway model store."""
    settings = get_settings()
    monkeypatch.setattr(settings, "MODEL_STORE_DIR", str(tmp_path / "store"))
    monkeypatch.setattr(settings, "MODEL_STORE_URL", None)
    monkeypatch.setattr(settings, "MODEL_KEY_PREFIX", "model")
    return settings
