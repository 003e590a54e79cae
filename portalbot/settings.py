import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    APP_VERSION: str = "2.1.0-portal-assist"
    MODEL_VERSION: str = "v2-bilstm-intent"
    SCHEMA_VERSION: str = "v2-events"

    # --- CONFIG ---
    ENV = os.getenv("PORTALBOT_ENV", "production")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./portalbot.db")
    SQL_ECHO = _env_bool("PORTALBOT_SQL_ECHO", False)
    ADMIN_KEY = os.getenv("PORTALBOT_ADMIN_KEY", "123456")

    # --- MODEL STORE ---
    MODEL_STORE_DIR = os.getenv("PORTALBOT_MODEL_STORE_DIR", "./model_store")
    MODEL_STORE_URL = os.getenv("PORTALBOT_MODEL_STORE_URL") or None
    MODEL_KEY_PREFIX = os.getenv("PORTALBOT_MODEL_KEY_PREFIX", "model")
    MODEL_FETCH_TIMEOUT_SECONDS = float(os.getenv("PORTALBOT_MODEL_FETCH_TIMEOUT", "30"))
    PRELOAD_MODEL = _env_bool("PORTALBOT_PRELOAD_MODEL", False)

    # --- TRAINING ---
    TRAINING_DATA_PATH = os.getenv("PORTALBOT_TRAINING_DATA") or None
    TRAIN_MAX_EPOCHS = int(os.getenv("PORTALBOT_TRAIN_MAX_EPOCHS", "100"))
    TRAIN_BATCH_SIZE = int(os.getenv("PORTALBOT_TRAIN_BATCH_SIZE", "32"))
    TRAIN_PATIENCE = int(os.getenv("PORTALBOT_TRAIN_PATIENCE", "5"))
    TRAIN_LEARNING_RATE = float(os.getenv("PORTALBOT_TRAIN_LEARNING_RATE", "0.001"))
    TRAIN_VALIDATION_SPLIT = float(os.getenv("PORTALBOT_TRAIN_VALIDATION_SPLIT", "0.2"))
    TRAIN_SEED = int(os.getenv("PORTALBOT_TRAIN_SEED")) if os.getenv("PORTALBOT_TRAIN_SEED") else None


@lru_cache
def get_settings():
    return Settings()
