# portalbot/routes/events.py
import json
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import ActionEnum, Event

router = APIRouter(prefix="/events", tags=["events"])


def _decode(payload):
    try:
        return json.loads(payload) if payload else {}
    except json.JSONDecodeError:
        return {"raw": payload}


@router.get("/recent")
def recent_events(limit: int = 50, action: Optional[ActionEnum] = None, db: Session = Depends(get_db)):
    """Newest audit rows first (training runs, model loads, failed predictions)."""
    limit = max(1, min(limit, 200))
    query = db.query(Event)
    if action is not None:
        query = query.filter(Event.action == action)
    rows = query.order_by(Event.id.desc()).limit(limit).all()
    return [
        {
            "id": r.id,
            "action": r.action.value,
            "actor_type": r.actor_type,
            "payload": _decode(r.payload),
            "app_version": r.app_version,
            "created_at": r.created_at,
        }
        for r in rows
    ]
