# portalbot/routes/ops.py
from contextlib import contextmanager

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import text
from ..db import get_db
from ..settings import get_settings
from ..ai.blob_store import make_blob_store
from ..ai.errors import BundleMissingError, ChatbotError
from ..ai.model_loader import get_registry
import hashlib

router = APIRouter(prefix="/ops", tags=["operations"])
settings = get_settings()


def _bundle_keys():
    prefix = settings.MODEL_KEY_PREFIX
    return {name: f"{prefix}/{name}" for name in ("topology", "weights", "metadata")}


@contextmanager
def _bundle_store():
    # same backend the registry loads from (local dir or MODEL_STORE_URL)
    store = make_blob_store(settings)
    try:
        yield store
    finally:
        store.close()


# --- 1. DEPLOYMENT MONITORING (Health) ---
@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Deep Health Check: Verifies DB connection, bundle presence and whether
    the intent model is already cached in this process.
    """
    status = {"api": "online", "version": settings.APP_VERSION, "checks": {}}

    try:
        db.execute(text("SELECT 1"))
        status["checks"]["database"] = "ok"
    except Exception as e:
        status["checks"]["database"] = f"failed: {str(e)}"
        raise HTTPException(503, detail=status)

    with _bundle_store() as store:
        try:
            missing = [name for name, key in _bundle_keys().items() if not store.exists(key)]
            status["checks"]["model_bundle"] = "ok" if not missing else f"missing: {', '.join(missing)}"
        except ChatbotError as e:
            status["checks"]["model_bundle"] = f"unreachable: {e}"
    status["checks"]["model_store"] = "remote" if settings.MODEL_STORE_URL else "local"
    status["checks"]["model_cached"] = get_registry().loaded

    return status


# --- 2. MODEL PROVENANCE (Audit) ---
@router.get("/meta/models")
def model_metadata():
    """
    Returns hash of each stored bundle artifact to prove which model
    answered a given conversation.
    """
    def get_hash(store, key):
        try:
            return hashlib.md5(store.get(key)).hexdigest()
        except BundleMissingError:
            return None

    with _bundle_store() as store:
        hashes = {f"{name}_hash": get_hash(store, key) for name, key in _bundle_keys().items()}
    return {**hashes, "model_tag": settings.MODEL_VERSION}
