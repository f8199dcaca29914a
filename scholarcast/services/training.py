# scholarcast/services/training.py
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..ai import logistic
from ..ai.model_cache import ModelWeightsCache
from ..ai.model_selector import count_decided
from ..ai.model_store import GLOBAL_SCOPE, ModelStore, parse_scope, scholarship_scope
from ..errors import InsufficientData, NotFound, NumericInstability, ValidationError
from ..logging_config import log_event, log_training
from ..settings import get_settings
from .auto_training import (
    AUTO_ACTOR,
    TRIGGER_GLOBAL_REFRESH,
    TRIGGER_STATUS_CHANGE,
    AutoTrainingState,
)
from .events import record_event, record_failure
from .prediction import ApplicantData, featurize

logger = logging.getLogger("scholarcast.training")

STATUS_SUCCESS = "success"
STATUS_INSUFFICIENT = "insufficient_data"
STATUS_FAILED = "failed"


@dataclass
class TrainingOutcome:
    scope: str
    status: str
    message: str = ""
    model_id: Optional[str] = None
    version: Optional[str] = None
    samples_found: int = 0
    samples_required: int = 0
    metrics: Dict = field(default_factory=dict)
    training_stats: Dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def criteria_fingerprint(scholarship: models.Scholarship | None) -> Optional[str]:
    if scholarship is None:
        return None
    blob = json.dumps(
        {"criteria": scholarship.criteria or {}, "required_documents": scholarship.required_documents or []},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]


class TrainingService:
    def __init__(
        self,
        db: Session,
        cache: ModelWeightsCache | None = None,
        settings=None,
        auto: AutoTrainingState | None = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = ModelStore(db, cache)
        self.auto = auto or AutoTrainingState.from_settings(self.settings)

    def required_samples(self, scope: str) -> int:
        if parse_scope(scope) is None:
            return self.settings.MIN_SAMPLES_GLOBAL
        return self.settings.MIN_SAMPLES_PER_SCHOLARSHIP

    def _live_scholarship(self, scholarship_id: str) -> Optional[models.Scholarship]:
        s = self.db.get(models.Scholarship, scholarship_id)
        return None if s is None or s.is_deleted else s

    # ---- samples ----
    def gather_samples(self, scholarship_id: str | None = None) -> List[logistic.Sample]:
        """
        One labeled sample per decided application. Features are rebuilt from the
        applicant snapshot taken at submission, never from the live profile.
        """
        q = self.db.query(models.Application).filter(models.Application.status.in_(models.DECIDED_STATUSES))
        if scholarship_id is not None:
            q = q.filter(models.Application.scholarship_id == scholarship_id)

        scholarships: Dict[str, Optional[models.Scholarship]] = {}
        samples: List[logistic.Sample] = []
        for app in q.order_by(models.Application.submitted_at.asc()).all():
            if app.scholarship_id not in scholarships:
                scholarships[app.scholarship_id] = self.db.get(models.Scholarship, app.scholarship_id)
            scholarship = scholarships[app.scholarship_id]
            if scholarship is None:
                logger.warning(f"Skipping application {app.id}: scholarship {app.scholarship_id} is gone")
                continue
            _, vector = featurize(ApplicantData.from_snapshot(app.applicant_snapshot), scholarship,
                                  applied_at=app.submitted_at)
            label = 1 if app.status == models.ApplicationStatusEnum.APPROVED else 0
            samples.append(logistic.Sample(features=vector, label=label))
        return samples

    # ---- training ----
    def _failed(self, scope: str, message: str, error_code: str, **context) -> TrainingOutcome:
        record_failure(self.db, stage="train", error=message, scope=scope,
                       context=context, error_code=error_code)
        log_training(scope, STATUS_FAILED, {"error_code": error_code, "message": message})
        return TrainingOutcome(scope=scope, status=STATUS_FAILED, message=message)

    def train_scope(self, scope: str, trained_by: str | None = None, trigger: dict | None = None) -> TrainingOutcome:
        try:
            scholarship_id = parse_scope(scope)
        except ValidationError as e:
            return self._failed(scope, e.message, e.code)

        scholarship = None
        if scholarship_id is not None:
            scholarship = self._live_scholarship(scholarship_id)
            if scholarship is None:
                return self._failed(scope, f"Scholarship '{scholarship_id}' not found", NotFound.code)

        required = self.required_samples(scope)
        config = logistic.TrainingConfig.from_settings(self.settings, min_samples=required)
        samples = self.gather_samples(scholarship_id)

        try:
            run = logistic.train(samples, config)
        except InsufficientData as e:
            record_event(self.db, models.ActionEnum.TRAIN_MODEL, scope, {
                "status": STATUS_INSUFFICIENT, "found": e.found, "required": e.required,
            })
            log_training(scope, STATUS_INSUFFICIENT, {"found": e.found, "required": e.required})
            return TrainingOutcome(scope=scope, status=STATUS_INSUFFICIENT, message=e.message,
                                   samples_found=e.found, samples_required=e.required)
        except (NumericInstability, ValidationError) as e:
            return self._failed(scope, e.message, e.code, samples=len(samples))

        stats = dict(run.training_stats)
        stats["criteria_fingerprint"] = criteria_fingerprint(scholarship)
        stats["epochs_run"] = len(run.loss_history)
        if trigger:
            stats["trigger"] = trigger

        try:
            model = self.store.create(
                scope,
                run.weights,
                run.bias,
                scholarship_type=scholarship.scholarship_type if scholarship else None,
                training_config=config.to_dict(),
                training_stats=stats,
                metrics=run.metrics.to_dict(),
                feature_importance=logistic.feature_importance(run.weights),
                trained_by=trained_by,
            )
            self.store.activate(model.id)
        except ValidationError as e:
            return self._failed(scope, e.message, e.code)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Could not store or activate model for {scope}: {e}")
            return self._failed(scope, f"Could not activate the trained model for {scope}",
                                "ACTIVATION_CONFLICT", samples=len(samples), error=type(e).__name__)

        metrics = run.metrics.to_dict()
        record_event(self.db, models.ActionEnum.TRAIN_MODEL, scope, {
            "status": STATUS_SUCCESS,
            "model_id": model.id,
            "version": model.version,
            "trained_by": trained_by,
            "accuracy": metrics["accuracy"],
            "trigger": trigger,
        }, actor_type="ADMIN" if trained_by and not trigger else "SYSTEM")
        log_training(scope, STATUS_SUCCESS, {"model_id": model.id, "version": model.version,
                                             "samples": len(samples), "accuracy": metrics["accuracy"]})
        return TrainingOutcome(
            scope=scope,
            status=STATUS_SUCCESS,
            message=f"Trained {model.version} on {len(samples)} samples",
            model_id=model.id,
            version=model.version,
            samples_found=len(samples),
            samples_required=required,
            metrics=metrics,
            training_stats=stats,
        )

    def train_all(self, trained_by: str | None = None) -> List[TrainingOutcome]:
        outcomes = [self.train_scope(GLOBAL_SCOPE, trained_by)]

        min_specific = self.settings.MIN_SAMPLES_PER_SCHOLARSHIP
        scholarships = (
            self.db.query(models.Scholarship)
            .filter(models.Scholarship.is_deleted.is_(False))
            .order_by(models.Scholarship.created_at.asc())
            .all()
        )
        for s in scholarships:
            if count_decided(self.db, s.id) >= min_specific:
                outcomes.append(self.train_scope(scholarship_scope(s.id), trained_by))

        log_event("TRAIN_ALL", "training sweep finished", {
            "scopes": len(outcomes),
            "succeeded": sum(1 for o in outcomes if o.status == STATUS_SUCCESS),
        })
        return outcomes

    # ---- decision-triggered retraining ----
    def on_application_decision(self, application_id: str) -> List[dict]:
        """
        Retrain after an application is approved or rejected.

        The application's scholarship is retrained once it has enough decided
        applications; the global model is refreshed every `global_retrain_interval`
        decisions. Returns the auto-training log entries this call produced. Never
        raises: a trigger must not fail the decision that caused it.
        """
        if not self.auto.enabled:
            return [self.auto.record({"type": "skipped", "reason": "disabled", "application_id": application_id})]

        try:
            app = self.db.get(models.Application, application_id)
            if app is None:
                return [self.auto.record({"type": "skipped", "reason": "application_not_found",
                                          "application_id": application_id})]
            if app.status not in models.DECIDED_STATUSES:
                return [self.auto.record({"type": "skipped", "reason": "not_decided",
                                          "application_id": application_id, "status": app.status.value})]

            refresh_global = self.auto.count_decision()
            entries = [self._auto_train(
                scholarship_scope(app.scholarship_id),
                count_decided(self.db, app.scholarship_id),
                self.settings.MIN_SAMPLES_PER_SCHOLARSHIP,
                {"type": TRIGGER_STATUS_CHANGE, "application_id": application_id},
            )]
            if refresh_global:
                entries.append(self._auto_train(
                    GLOBAL_SCOPE,
                    count_decided(self.db, None),
                    self.settings.MIN_SAMPLES_GLOBAL,
                    {"type": TRIGGER_GLOBAL_REFRESH, "application_id": application_id},
                ))
            return entries
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Auto-training for application {application_id} failed")
            return [self.auto.record({"type": "error", "application_id": application_id, "error": str(e)})]

    def _auto_train(self, scope: str, labeled: int, required: int, trigger: dict) -> dict:
        base = {"scope": scope, "application_id": trigger["application_id"]}
        if not self.auto.acquire(scope):
            return self.auto.record({"type": "skipped", "reason": "concurrent_lock", **base})
        try:
            if labeled < required:
                return self.auto.record({"type": "skipped", "reason": "insufficient_data",
                                         "labeled_count": labeled, "required": required, **base})

            outcome = self.train_scope(scope, trained_by=AUTO_ACTOR, trigger=trigger)
            if outcome.status != STATUS_SUCCESS:
                return self.auto.record({"type": "error", "error": outcome.message, "status": outcome.status, **base})
            return self.auto.record({
                "type": "success",
                "trigger": trigger["type"],
                "model_id": outcome.model_id,
                "version": outcome.version,
                "accuracy": outcome.metrics.get("accuracy"),
                **base,
            })
        finally:
            self.auto.release(scope)

    def auto_training_status(self) -> dict:
        return self.auto.status(self.settings.MIN_SAMPLES_GLOBAL, self.settings.MIN_SAMPLES_PER_SCHOLARSHIP)

    def auto_training_log(self, limit: int = 50) -> List[dict]:
        return self.auto.recent(limit)

    # ---- model administration ----
    def model_state(self, scope: str) -> dict:
        scholarship_id = parse_scope(scope)
        state = {
            "scope": scope,
            "active": self.store.get_active(scope),
            "history": self.store.history(scope),
            "required_samples": self.required_samples(scope),
        }
        if scholarship_id is not None:
            state["decided_count"] = count_decided(self.db, scholarship_id)
        return state

    def activate(self, model_id: str, actor: str | None = None) -> models.TrainedModel:
        model = self.store.activate(model_id)
        record_event(self.db, models.ActionEnum.ACTIVATE_MODEL, model.scope, {
            "model_id": model.id, "version": model.version, "actor": actor,
        }, actor_type="ADMIN" if actor else "SYSTEM")
        log_event("ACTIVATE_MODEL", f"activated {model.version}", {"scope": model.scope, "model_id": model.id})
        return model

    def reset(self, scope: str, actor: str | None = None) -> models.TrainedModel:
        """Install the hand-set default weights as a new active record."""
        scholarship_id = parse_scope(scope)
        scholarship = None
        if scholarship_id is not None:
            scholarship = self._live_scholarship(scholarship_id)
            if scholarship is None:
                raise NotFound(f"Scholarship '{scholarship_id}' not found", scholarship_id=scholarship_id)

        model = self.store.create(
            scope,
            logistic.DEFAULT_WEIGHTS,
            logistic.DEFAULT_BIAS,
            scholarship_type=scholarship.scholarship_type if scholarship else None,
            feature_importance=logistic.feature_importance(logistic.DEFAULT_WEIGHTS),
            trained_by=actor,
            notes="Reset to default weights",
            name=f"{scope} default",
        )
        self.store.activate(model.id)
        record_event(self.db, models.ActionEnum.RESET_MODEL, scope, {
            "model_id": model.id, "version": model.version, "actor": actor,
        }, actor_type="ADMIN" if actor else "SYSTEM")
        log_event("RESET_MODEL", f"reset {scope} to default weights", {"model_id": model.id})
        return model
