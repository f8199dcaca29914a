# scholarcast/deps.py
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .ai.model_cache import ModelWeightsCache
from .services.auto_training import AutoTrainingState
from .db import get_db
from .services.prediction import PredictionService
from .services.training import TrainingService
from .settings import get_settings


def get_model_cache(request: Request) -> ModelWeightsCache:
    cache = getattr(request.app.state, "model_cache", None)
    if cache is None:
        cache = ModelWeightsCache(ttl_seconds=get_settings().MODEL_CACHE_TTL_SECONDS)
        request.app.state.model_cache = cache
    return cache


def get_auto_training(request: Request) -> AutoTrainingState:
    auto = getattr(request.app.state, "auto_training", None)
    if auto is None:
        auto = AutoTrainingState.from_settings(get_settings())
        request.app.state.auto_training = auto
    return auto


def get_prediction_service(
    db: Session = Depends(get_db),
    cache: ModelWeightsCache = Depends(get_model_cache),
) -> PredictionService:
    return PredictionService(db, cache)


def get_training_service(
    db: Session = Depends(get_db),
    cache: ModelWeightsCache = Depends(get_model_cache),
    auto: AutoTrainingState = Depends(get_auto_training),
) -> TrainingService:
    return TrainingService(db, cache, auto=auto)
