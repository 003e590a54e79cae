# portalbot/models.py
from __future__ import annotations

import enum
import json
from datetime import datetime, timezone

from sqlalchemy import Column, Enum as SAEnum, DateTime, Integer, String, Text
from sqlalchemy.orm import Session

from .db import Base
from .settings import get_settings


class ActionEnum(str, enum.Enum):
    TRAIN_STARTED = "TRAIN_STARTED"
    TRAIN_COMPLETED = "TRAIN_COMPLETED"
    TRAIN_FAILED = "TRAIN_FAILED"
    MODEL_LOADED = "MODEL_LOADED"
    MODEL_LOAD_FAILED = "MODEL_LOAD_FAILED"
    PREDICT_FAILURE = "PREDICT_FAILURE"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    action = Column(SAEnum(ActionEnum), nullable=False)
    actor_type = Column(String, default="SYSTEM")
    payload = Column(Text, default="{}")

    app_version = Column(String, default="dev")
    schema_version = Column(String, default="dev")

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


def record_event(db: Session, action: ActionEnum, payload: dict, actor_type: str = "SYSTEM") -> Event:
    settings = get_settings()
    evt = Event(
        action=action,
        actor_type=actor_type,
        payload=json.dumps(payload, ensure_ascii=False, default=str),
        app_version=settings.APP_VERSION,
        schema_version=settings.SCHEMA_VERSION,
    )
    db.add(evt)
    db.commit()
    db.refresh(evt)
    return evt
