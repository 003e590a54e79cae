# portalbot/logging_config.py
import logging
import json
from datetime import datetime, timezone

logger = logging.getLogger("portalbot")
logger.setLevel(logging.INFO)

# uvicorn --reload re-imports modules; attach the stream handler once
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s"))
    logger.addHandler(handler)


def _action_payload(action: str, message: str, extra: dict | None) -> str:
    payload = {"action": action, "message": message, **(extra or {})}
    return json.dumps(payload, default=str)


def log_event(action: str, message: str, extra: dict | None = None) -> None:
    logger.info(_action_payload(action, message, extra))


def log_warning(action: str, message: str, extra: dict | None = None) -> None:
    """Recoverable oddities (padded weight blobs, surplus floats)."""
    logger.warning(_action_payload(action, message, extra))


def log_failure(error_code: str, context: dict | None = None) -> dict:
    """
    Single entry point for failure logging.
    Returns a minimal payload you can also persist into Event.payload.
    """
    payload = {
        "error_code": error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if context:
        payload["context"] = context

    logger.error(json.dumps(payload, default=str))
    return payload
