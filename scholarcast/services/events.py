# scholarcast/services/events.py
import json

from sqlalchemy.orm import Session

from .. import models
from ..settings import get_settings

settings = get_settings()


def record_event(
    db: Session,
    action: models.ActionEnum,
    scope: str | None,
    payload: dict,
    actor_type: str = "SYSTEM",
    commit: bool = True,
) -> models.Event:
    evt = models.Event(
        scope=scope,
        action=action,
        actor_type=actor_type,
        payload=json.dumps(payload, ensure_ascii=False, default=str),
        app_version=settings.APP_VERSION,
        schema_version=settings.SCHEMA_VERSION,
    )
    db.add(evt)
    if commit:
        db.commit()
    return evt


def record_failure(
    db: Session,
    stage: str,
    error: Exception | str,
    scope: str | None = None,
    context: dict | None = None,
    error_code: str = "INTERNAL_FALLBACK",
) -> str:
    evt = models.Event(
        scope=scope,
        action=models.ActionEnum.FAILURE_LOG,
        actor_type="SYSTEM",
        payload=json.dumps({
            "stage": stage,
            "error": str(error),
            "error_code": error_code,
            "context": context or {},
        }, ensure_ascii=False, default=str),
        app_version=settings.APP_VERSION,
        schema_version=settings.SCHEMA_VERSION,
    )
    db.add(evt)
    db.commit()
    db.refresh(evt)
    return str(evt.id)
