# scholarcast/ai/model_store.py
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..engine.feature_schema import unknown_features
from ..errors import NotFound, ValidationError
from .model_cache import ModelWeightsCache, WeightsSnapshot

logger = logging.getLogger("scholarcast.model_store")

GLOBAL_SCOPE = "global"
_SCHOLARSHIP_PREFIX = "scholarship:"


# -------------------------
# scopes
# -------------------------
def scholarship_scope(scholarship_id: str) -> str:
    return f"{_SCHOLARSHIP_PREFIX}{scholarship_id}"


def parse_scope(scope: str | None) -> Optional[str]:
    """Scholarship id for a scholarship scope, None for the global scope."""
    s = (scope or "").strip()
    if s == GLOBAL_SCOPE:
        return None
    if s.startswith(_SCHOLARSHIP_PREFIX) and len(s) > len(_SCHOLARSHIP_PREFIX):
        return s[len(_SCHOLARSHIP_PREFIX):]
    raise ValidationError(f"Invalid scope '{scope}'. Use 'global' or 'scholarship:<id>'", scope=scope)


def validate_weights(weights: Dict[str, Any], bias: Any) -> None:
    unknown = unknown_features(weights.keys())
    if unknown:
        raise ValidationError(f"Unknown feature(s) in weight set: {', '.join(unknown)}", unknown=unknown)
    for name, value in weights.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"Weight for '{name}' must be a finite number", feature=name)
    if isinstance(bias, bool) or not isinstance(bias, (int, float)) or not math.isfinite(bias):
        raise ValidationError("Bias must be a finite number")


class ModelStore:
    """Versioned weight sets per scope, with exactly one active record per scope."""

    def __init__(self, db: Session, cache: ModelWeightsCache | None = None):
        self.db = db
        self.cache = cache

    # ---- reads ----
    def get(self, model_id: str) -> models.TrainedModel:
        model = self.db.get(models.TrainedModel, model_id)
        if model is None:
            raise NotFound(f"Model '{model_id}' not found", model_id=model_id)
        return model

    def get_active(self, scope: str) -> Optional[models.TrainedModel]:
        return (
            self.db.query(models.TrainedModel)
            .filter(models.TrainedModel.scope == scope, models.TrainedModel.is_active.is_(True))
            .first()
        )

    def get_active_weights(self, scope: str) -> Optional[WeightsSnapshot]:
        if self.cache is not None:
            hit, snapshot = self.cache.get(scope)
            if hit:
                return snapshot
            # taken before the read so an activation in between voids the put
            generation = self.cache.generation(scope)

        model = self.get_active(scope)
        snapshot = None
        if model is not None:
            snapshot = WeightsSnapshot(
                model_id=model.id,
                scope=model.scope,
                version=model.version or "",
                weights={k: float(v) for k, v in (model.weights or {}).items()},
                bias=float(model.bias or 0.0),
            )
        if self.cache is not None:
            self.cache.put(scope, snapshot, generation)
        return snapshot

    def history(self, scope: str) -> List[models.TrainedModel]:
        return (
            self.db.query(models.TrainedModel)
            .filter(models.TrainedModel.scope == scope)
            .order_by(models.TrainedModel.trained_at.desc())
            .all()
        )

    def next_version(self, scope: str) -> str:
        count = self.db.query(models.TrainedModel).filter(models.TrainedModel.scope == scope).count()
        return f"v{count + 1}"

    # ---- writes ----
    def create(
        self,
        scope: str,
        weights: Dict[str, float],
        bias: float,
        *,
        scholarship_type: str | None = None,
        training_config: dict | None = None,
        training_stats: dict | None = None,
        metrics: dict | None = None,
        feature_importance: list | None = None,
        trained_by: str | None = None,
        notes: str | None = None,
        name: str | None = None,
    ) -> models.TrainedModel:
        """Append a new, inactive record. Activation is a separate step."""
        scholarship_id = parse_scope(scope)
        validate_weights(weights, bias)

        version = self.next_version(scope)
        model = models.TrainedModel(
            name=name or f"{scope} {version}",
            version=version,
            scope=scope,
            scholarship_id=scholarship_id,
            model_type=(
                models.ModelTypeEnum.GLOBAL if scholarship_id is None
                else models.ModelTypeEnum.SCHOLARSHIP_SPECIFIC
            ),
            scholarship_type=scholarship_type,
            is_active=False,
            weights={k: float(v) for k, v in weights.items()},
            bias=float(bias),
            training_config=training_config or {},
            training_stats=training_stats or {},
            metrics=metrics or {},
            feature_importance=feature_importance or [],
            trained_by=trained_by,
            notes=notes,
        )
        self.db.add(model)
        self.db.commit()
        self.db.refresh(model)
        return model

    def _swap_active(self, model: models.TrainedModel) -> None:
        (
            self.db.query(models.TrainedModel)
            .filter(
                models.TrainedModel.scope == model.scope,
                models.TrainedModel.id != model.id,
                models.TrainedModel.is_active.is_(True),
            )
            .update({models.TrainedModel.is_active: False}, synchronize_session=False)
        )
        # siblings must be off before the target turns on, or the unique index trips
        self.db.flush()
        model.is_active = True
        self.db.commit()

    def activate(self, model_id: str) -> models.TrainedModel:
        """
        Deactivate every other model in the target's scope and activate the target,
        in one transaction. A concurrent activation that wins the unique index race
        makes this one retry once; the later writer ends up active.
        """
        model = self.get(model_id)
        try:
            self._swap_active(model)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Activation conflict on scope {model.scope}; retrying model {model_id}")
            model = self.get(model_id)
            try:
                self._swap_active(model)
            except IntegrityError:
                self.db.rollback()
                raise

        if self.cache is not None:
            self.cache.invalidate(model.scope)
        self.db.refresh(model)
        return model
