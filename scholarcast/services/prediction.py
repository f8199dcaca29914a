# scholarcast/services/prediction.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..ai import logistic
from ..ai.model_cache import ModelWeightsCache
from ..ai.model_selector import ModelSelector
from ..ai.model_store import ModelStore
from ..engine import eligibility as eligibility_engine
from ..engine.feature_schema import FEATURE_GROUPS, FEATURE_LABELS
from ..engine.features import extract_features
from ..errors import ModelUnavailable, NotFound, ValidationError
from ..logging_config import log_event, log_failure
from .events import record_event

HIGH_CONFIDENCE_MARGIN = 0.3
MEDIUM_CONFIDENCE_MARGIN = 0.1


@dataclass
class ApplicantData:
    """Whatever the engines need from an applicant, from the live record or a snapshot."""
    profile: dict
    documents: list = field(default_factory=list)
    applicant_id: Optional[str] = None

    @classmethod
    def from_record(cls, applicant: models.Applicant) -> "ApplicantData":
        return cls(profile=dict(applicant.profile or {}), documents=list(applicant.documents or []),
                   applicant_id=applicant.id)

    @classmethod
    def from_snapshot(cls, snapshot: dict | None) -> "ApplicantData":
        snapshot = snapshot or {}
        profile = snapshot.get("profile")
        if not isinstance(profile, dict):
            # flat snapshots carry the profile fields at the top level
            profile = {k: v for k, v in snapshot.items() if k != "documents"}
        return cls(profile=profile, documents=list(snapshot.get("documents") or []))


@dataclass
class PredictionResult:
    probability: float
    predicted_outcome: str
    confidence: str
    model_type: Optional[str] = None
    model_id: Optional[str] = None
    model_version: Optional[str] = None
    decided_count: Optional[int] = None
    features: Dict[str, float] = field(default_factory=dict)
    feature_contributions: List[dict] = field(default_factory=list)
    factors: List[dict] = field(default_factory=list)
    eligibility: Optional[dict] = None
    degraded: bool = False
    reason: Optional[str] = None
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return asdict(self)


def confidence_bucket(probability: float) -> str:
    margin = abs(probability - 0.5)
    if margin >= HIGH_CONFIDENCE_MARGIN:
        return "high"
    if margin >= MEDIUM_CONFIDENCE_MARGIN:
        return "medium"
    return "low"


def predicted_outcome(probability: float) -> str:
    return "likely_approved" if probability >= logistic.DECISION_THRESHOLD else "needs_improvement"


def featurize(
    applicant: ApplicantData,
    scholarship: models.Scholarship,
    applied_at: datetime | None = None,
) -> tuple[eligibility_engine.EligibilityResult, Dict[str, float]]:
    criteria = scholarship.criteria or {}
    result = eligibility_engine.evaluate(applicant.profile, criteria)
    vector = extract_features(
        applicant.profile,
        criteria,
        result,
        documents=applicant.documents,
        required_documents=scholarship.required_documents or [],
        applied_at=applied_at,
        open_date=scholarship.application_start_date,
        deadline=scholarship.application_deadline,
    )
    return result, vector


def factor_groups(contributions: List[dict]) -> List[dict]:
    by_feature = {c["feature"]: c for c in contributions}
    groups = []
    for name, members in FEATURE_GROUPS:
        present = [by_feature[m] for m in members if m in by_feature]
        if not present:
            continue
        total = sum(c["contribution"] for c in present)
        groups.append({
            "factor": name,
            "contribution": total,
            "impact": "positive" if total >= 0 else "negative",
            "features": [FEATURE_LABELS.get(c["feature"], c["feature"]) for c in present],
        })
    groups.sort(key=lambda g: -abs(g["contribution"]))
    return groups


class PredictionService:
    def __init__(self, db: Session, cache: ModelWeightsCache | None = None, min_samples: int | None = None):
        self.db = db
        self.store = ModelStore(db, cache)
        self.selector = ModelSelector(self.store, min_samples=min_samples)

    # ---- lookups ----
    def _scholarship(self, scholarship_id: str) -> Optional[models.Scholarship]:
        s = self.db.get(models.Scholarship, scholarship_id)
        return None if s is None or s.is_deleted else s

    def _applicant(self, applicant_id: str) -> Optional[ApplicantData]:
        a = self.db.get(models.Applicant, applicant_id)
        return None if a is None or a.is_deleted else ApplicantData.from_record(a)

    def resolve_applicant(self, applicant_id: str | None, inline: ApplicantData | None) -> Optional[ApplicantData]:
        if applicant_id:
            return self._applicant(applicant_id)
        if inline is None:
            raise ValidationError("Provide either applicant_id or an inline applicant profile")
        return inline

    # ---- operations ----
    def eligibility(
        self,
        scholarship_id: str,
        applicant_id: str | None = None,
        applicant: ApplicantData | None = None,
    ) -> eligibility_engine.EligibilityResult:
        data = self.resolve_applicant(applicant_id, applicant)
        if data is None:
            raise NotFound(f"Applicant '{applicant_id}' not found", applicant_id=applicant_id)
        scholarship = self._scholarship(scholarship_id)
        if scholarship is None:
            raise NotFound(f"Scholarship '{scholarship_id}' not found", scholarship_id=scholarship_id)
        return eligibility_engine.evaluate(data.profile, scholarship.criteria or {})

    def predict(
        self,
        scholarship_id: str,
        applicant_id: str | None = None,
        applicant: ApplicantData | None = None,
    ) -> PredictionResult:
        data = self.resolve_applicant(applicant_id, applicant)
        if data is None:
            return self._degraded("APPLICANT_NOT_FOUND", f"Applicant '{applicant_id}' not found",
                                  scholarship_id, applicant_id)

        scholarship = self._scholarship(scholarship_id)
        if scholarship is None:
            return self._degraded("SCHOLARSHIP_NOT_FOUND", f"Scholarship '{scholarship_id}' not found",
                                  scholarship_id, applicant_id)

        result, vector = featurize(data, scholarship)
        try:
            selection = self.selector.select_model(scholarship)
        except ModelUnavailable as e:
            degraded = self._degraded("MODEL_UNAVAILABLE", e.message, scholarship_id, applicant_id)
            degraded.features = vector
            degraded.eligibility = result.to_dict()
            return degraded

        snapshot = selection.model
        probability = logistic.predict(snapshot.weights, snapshot.bias, vector)
        contributions = logistic.explain(snapshot.weights, vector)

        log_event("PREDICT", "prediction served", {
            "scholarship_id": scholarship_id,
            "model_id": snapshot.model_id,
            "model_type": selection.model_type,
            "probability": round(probability, 4),
        })
        return PredictionResult(
            probability=probability,
            predicted_outcome=predicted_outcome(probability),
            confidence=confidence_bucket(probability),
            model_type=selection.model_type,
            model_id=snapshot.model_id,
            model_version=snapshot.version,
            decided_count=selection.decided_count,
            features=vector,
            feature_contributions=contributions,
            factors=factor_groups(contributions),
            eligibility=result.to_dict(),
        )

    def _degraded(self, code: str, reason: str, scholarship_id: str, applicant_id: str | None) -> PredictionResult:
        context = {"scholarship_id": scholarship_id, "applicant_id": applicant_id, "reason": reason}
        log_failure(code, context)
        record_event(
            self.db,
            models.ActionEnum.PREDICTION_DEGRADED,
            scope=None,
            payload={"error_code": code, **context},
        )
        return PredictionResult(
            probability=0.0,
            predicted_outcome=predicted_outcome(0.0),
            confidence="low",
            degraded=True,
            reason=reason,
        )
