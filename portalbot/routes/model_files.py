# portalbot/routes/model_files.py
# Serves the stored bundle so other processes can load it with HttpBlobStore.
from fastapi import APIRouter, HTTPException, Response

from ..ai.blob_store import JSON_CONTENT, OCTET_STREAM, LocalBlobStore
from ..ai.errors import BundleMissingError
from ..logging_config import log_event
from ..settings import get_settings

router = APIRouter(prefix="/model", tags=["model"])
settings = get_settings()

ARTIFACT_TYPES = {
    "topology": JSON_CONTENT,
    "weights": OCTET_STREAM,
    "metadata": JSON_CONTENT,
}


@router.get("/{artifact}")
def get_artifact(artifact: str):
    media_type = ARTIFACT_TYPES.get(artifact)
    if media_type is None:
        raise HTTPException(404, f"Unknown model artifact: {artifact}")

    store = LocalBlobStore(settings.MODEL_STORE_DIR)
    key = f"{settings.MODEL_KEY_PREFIX}/{artifact}"
    try:
        data = store.get(key)
    except BundleMissingError:
        raise HTTPException(404, "Model file not found")

    log_event("ARTIFACT_SERVED", f"Served {key}", {"bytes": len(data)})
    return Response(content=data, media_type=media_type, headers={"Cache-Control": "no-cache"})
