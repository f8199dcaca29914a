# scholarcast/routes/events.py
import json

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..db import get_db
from ..models import Event

router = APIRouter(prefix="/events", tags=["events"])


def _payload(raw: str | None) -> dict:
    try:
        parsed = json.loads(raw or "{}")
    except ValueError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


@router.get("/recent")
def recent_events(limit: int = 50, scope: str | None = None, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 200))
    q = db.query(Event)
    if scope:
        q = q.filter(Event.scope == scope)
    rows = (
        q.order_by(Event.created_at.desc(), Event.id.desc())
          .limit(limit)
          .all()
    )
    return [
        {
            "id": str(r.id),
            "scope": r.scope,
            "action": (r.action.value if hasattr(r.action, "value") else str(r.action)),
            "actor_type": r.actor_type,
            "payload": _payload(r.payload),
            "created_at": r.created_at,
        }
        for r in rows
    ]
