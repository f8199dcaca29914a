# scholarcast/ai/model_selector.py
from __future__ import annotations

from dataclasses import dataclass

from .. import models
from ..errors import ModelUnavailable
from ..settings import get_settings
from .model_cache import WeightsSnapshot
from .model_store import GLOBAL_SCOPE, ModelStore, scholarship_scope


@dataclass(frozen=True)
class ModelSelection:
    model: WeightsSnapshot
    model_type: str  # "global" | "scholarship_specific"
    decided_count: int


def count_decided(db, scholarship_id: str | None) -> int:
    """Decided applications for one scholarship, or across all of them when id is None."""
    q = db.query(models.Application).filter(models.Application.status.in_(models.DECIDED_STATUSES))
    if scholarship_id is not None:
        q = q.filter(models.Application.scholarship_id == scholarship_id)
    return q.count()


class ModelSelector:
    """
    A scholarship gets its own model only once it has enough decided applications
    and a specific model is active; everything else is served by the global model.
    """

    def __init__(self, store: ModelStore, min_samples: int | None = None):
        self.store = store
        self.min_samples = (
            min_samples if min_samples is not None else get_settings().MIN_SAMPLES_PER_SCHOLARSHIP
        )

    def select_model(self, scholarship: models.Scholarship) -> ModelSelection:
        decided = count_decided(self.store.db, scholarship.id)

        if decided >= self.min_samples:
            specific = self.store.get_active_weights(scholarship_scope(scholarship.id))
            if specific is not None:
                return ModelSelection(specific, models.ModelTypeEnum.SCHOLARSHIP_SPECIFIC.value, decided)

        fallback = self.store.get_active_weights(GLOBAL_SCOPE)
        if fallback is None:
            raise ModelUnavailable(
                "No active global model. Train or reset the global scope first",
                scholarship_id=scholarship.id,
            )
        return ModelSelection(fallback, models.ModelTypeEnum.GLOBAL.value, decided)
