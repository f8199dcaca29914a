# scholarcast/routes/training.py
from typing import List

from fastapi import APIRouter, Depends, Query

from .. import schemas
from ..ai.model_store import GLOBAL_SCOPE, scholarship_scope
from ..deps import get_training_service
from ..services.training import TrainingService

router = APIRouter(prefix="/training", tags=["training"])


def _out(model) -> schemas.TrainedModelOut:
    return schemas.TrainedModelOut.model_validate(model)


@router.post("/train", response_model=schemas.TrainingOutcomeOut)
def train_global(
    body: schemas.TrainRequest | None = None,
    svc: TrainingService = Depends(get_training_service),
):
    return svc.train_scope(GLOBAL_SCOPE, trained_by=body.trained_by if body else None).to_dict()


@router.post("/train/{scholarship_id}", response_model=schemas.TrainingOutcomeOut)
def train_scholarship(
    scholarship_id: str,
    body: schemas.TrainRequest | None = None,
    svc: TrainingService = Depends(get_training_service),
):
    outcome = svc.train_scope(scholarship_scope(scholarship_id), trained_by=body.trained_by if body else None)
    return outcome.to_dict()


@router.post("/train-all", response_model=List[schemas.TrainingOutcomeOut])
def train_all(
    body: schemas.TrainRequest | None = None,
    svc: TrainingService = Depends(get_training_service),
):
    return [o.to_dict() for o in svc.train_all(trained_by=body.trained_by if body else None)]


@router.get("/models/state", response_model=schemas.ModelStateResponse)
def model_state(
    scope: str = Query(GLOBAL_SCOPE),
    svc: TrainingService = Depends(get_training_service),
):
    state = svc.model_state(scope)
    return schemas.ModelStateResponse(
        scope=state["scope"],
        active=_out(state["active"]) if state["active"] is not None else None,
        history=[_out(m) for m in state["history"]],
        required_samples=state["required_samples"],
        decided_count=state.get("decided_count"),
    )


@router.get("/models", response_model=List[schemas.TrainedModelOut])
def model_history(
    scope: str = Query(GLOBAL_SCOPE),
    svc: TrainingService = Depends(get_training_service),
):
    return [_out(m) for m in svc.model_state(scope)["history"]]


@router.post("/models/{model_id}/activate", response_model=schemas.TrainedModelOut)
def activate_model(
    model_id: str,
    actor: str | None = Query(None),
    svc: TrainingService = Depends(get_training_service),
):
    return _out(svc.activate(model_id, actor=actor))


@router.post("/reset", response_model=schemas.TrainedModelOut)
def reset_scope(
    scope: str = Query(GLOBAL_SCOPE),
    actor: str | None = Query(None),
    svc: TrainingService = Depends(get_training_service),
):
    return _out(svc.reset(scope, actor=actor))


@router.post("/decisions/{application_id}")
def application_decided(
    application_id: str,
    svc: TrainingService = Depends(get_training_service),
):
    return {"application_id": application_id, "entries": svc.on_application_decision(application_id)}


@router.get("/auto/status")
def auto_training_status(svc: TrainingService = Depends(get_training_service)):
    return svc.auto_training_status()


@router.get("/auto/log")
def auto_training_log(
    limit: int = Query(50, ge=1, le=500),
    svc: TrainingService = Depends(get_training_service),
):
    return svc.auto_training_log(limit)
