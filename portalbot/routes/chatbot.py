# portalbot/routes/chatbot.py
import json

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..ai.ai_utils import chat_reply, predict_intent, train
from ..ai.errors import ChatbotError
from ..ai.model_loader import get_registry
from ..ai.trainer import TrainingState
from ..db import SessionLocal, get_db
from ..models import ActionEnum, record_event
from ..schemas import ChatReplyOut, LoadOut, MessageIn, PredictionOut
from ..settings import get_settings

router = APIRouter(prefix="/chatbot", tags=["chatbot"])
settings = get_settings()


@router.post("/predict", response_model=PredictionOut)
def predict(inp: MessageIn, db: Session = Depends(get_db)):
    try:
        return PredictionOut(**predict_intent(inp.text))
    except ChatbotError as e:
        record_event(db, ActionEnum.PREDICT_FAILURE, {"error_code": e.error_code, "error": str(e)})
        raise


@router.post("/message", response_model=ChatReplyOut)
def message(inp: MessageIn):
    """Chat window endpoint: always answers, apologising when the model is unavailable."""
    reply = chat_reply(inp.text)
    prediction = reply.prediction
    return ChatReplyOut(
        status=reply.status,
        response=reply.response,
        intent=prediction.intent if prediction else None,
        confidence=prediction.confidence if prediction else None,
        error_code=reply.error_code,
    )


@router.post("/load", response_model=LoadOut)
def load(reload: bool = Query(False, description="Re-read the bundle even if one is cached"),
         db: Session = Depends(get_db)):
    registry = get_registry()
    outcome = registry.reload() if reload else registry.load()
    if not outcome.ok:
        record_event(db, ActionEnum.MODEL_LOAD_FAILED, {"error_code": outcome.error.error_code, "error": str(outcome.error)})
        raise outcome.error

    model = outcome.model
    record_event(db, ActionEnum.MODEL_LOADED, {"intents": len(model.intents), "version": model.version})
    return LoadOut(
        status="loaded",
        intents=model.intents,
        vocabulary_size=len(model.vocabulary),
        version=model.version,
    )


@router.post("/train")
def train_model(x_admin_key: str = Header(None)):
    """
    Streams training progress as NDJSON, one line per event.
    A new bundle is written on success; the serving cache is not refreshed.
    """
    if x_admin_key != settings.ADMIN_KEY:
        raise HTTPException(403, "Unauthorized")

    def stream():
        db = SessionLocal()
        try:
            record_event(db, ActionEnum.TRAIN_STARTED, {"model_tag": settings.MODEL_VERSION})
            final = None
            for progress in train():
                final = progress
                yield json.dumps(progress.to_dict(), default=str) + "\n"
            ok = final is not None and final.state is TrainingState.COMPLETED
            record_event(
                db,
                ActionEnum.TRAIN_COMPLETED if ok else ActionEnum.TRAIN_FAILED,
                final.to_dict() if final else {},
            )
        finally:
            db.close()

    return StreamingResponse(stream(), media_type="application/x-ndjson")
