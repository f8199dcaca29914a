# scholarcast/routes/ops.py
import hashlib
import json

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.orm import Session

from .. import models
from ..ai.model_store import GLOBAL_SCOPE
from ..db import get_db
from ..engine.feature_schema import FEATURE_NAMES
from ..settings import get_settings

router = APIRouter(prefix="/ops", tags=["operations"])
settings = get_settings()


# --- 1. DEPLOYMENT MONITORING (Health) ---
@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Deep health check: verifies the DB connection and whether a global model is active.
    A missing global model is reported, not fatal; predictions degrade until one exists.
    """
    status = {"api": "online", "version": settings.APP_VERSION, "checks": {}}

    try:
        db.execute(text("SELECT 1"))
        status["checks"]["database"] = "ok"
    except Exception as e:
        status["checks"]["database"] = f"failed: {str(e)}"
        raise HTTPException(503, detail=status)

    active_global = (
        db.query(models.TrainedModel)
        .filter(models.TrainedModel.scope == GLOBAL_SCOPE, models.TrainedModel.is_active.is_(True))
        .first()
    )
    status["checks"]["global_model"] = "ok" if active_global else "missing"
    return status


# --- 2. MODEL PROVENANCE (Audit) ---
def _weights_hash(model: models.TrainedModel) -> str:
    blob = json.dumps({"weights": model.weights or {}, "bias": model.bias}, sort_keys=True)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]


@router.get("/meta/models")
def model_metadata(db: Session = Depends(get_db)):
    """
    Every active model with a hash of its weights, so a prediction can be traced back
    to the exact weight set that served it.
    """
    active = (
        db.query(models.TrainedModel)
        .filter(models.TrainedModel.is_active.is_(True))
        .order_by(models.TrainedModel.scope.asc())
        .all()
    )
    return {
        "model_tag": settings.MODEL_VERSION,
        "schema_version": settings.SCHEMA_VERSION,
        "features": list(FEATURE_NAMES),
        "active_models": [
            {
                "scope": m.scope,
                "model_id": m.id,
                "version": m.version,
                "trained_at": m.trained_at,
                "weights_hash": _weights_hash(m),
            }
            for m in active
        ],
    }
