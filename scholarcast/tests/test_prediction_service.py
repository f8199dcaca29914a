import math

import pytest

from scholarcast import models
from scholarcast.ai.model_store import GLOBAL_SCOPE, ModelStore, scholarship_scope
from scholarcast.errors import NotFound, ValidationError
from scholarcast.services.prediction import (
    ApplicantData,
    PredictionService,
    confidence_bucket,
    predicted_outcome,
)

CRITERIA = {
    "max_gwa": 1.75,
    "max_annual_family_income": 300000,
    "eligible_colleges": ["College of Engineering"],
}
APPLICANT = ApplicantData(profile={
    "gwa": 1.25,
    "annual_family_income": 150000,
    "college": "College of Engineering",
})


def _activate(db, scope, weights, bias):
    store = ModelStore(db)
    m = store.create(scope, weights, bias)
    store.activate(m.id)
    return m


def _events(db, action):
    return db.query(models.Event).filter(models.Event.action == action).all()


# -------------------------
# BUCKETS
# -------------------------
def test_confidence_buckets():
    assert confidence_bucket(0.85) == "high"
    assert confidence_bucket(0.1) == "high"
    assert confidence_bucket(0.65) == "medium"
    assert confidence_bucket(0.55) == "low"
    assert predicted_outcome(0.5) == "likely_approved"
    assert predicted_outcome(0.49) == "needs_improvement"


# -------------------------
# END TO END
# -------------------------
def test_prediction_with_global_model_below_threshold(db, make_scholarship, add_decided):
    s = make_scholarship(criteria=CRITERIA)
    add_decided(s, approved=15, rejected=14)
    g = _activate(db, GLOBAL_SCOPE, {"gwaScore": 2.0, "incomeMatch": 1.5}, -1.0)
    # a specific model exists but the scholarship has only 29 decided applications
    _activate(db, scholarship_scope(s.id), {"gwaScore": -5.0}, 0.0)

    result = PredictionService(db, min_samples=30).predict(s.id, applicant=APPLICANT)

    gwa_score = (5 - 1.25) / 4 + 0.2 * (1.75 - 1.25) / 1.75
    income_match = (300000 - 150000) / 300000
    expected = 1 / (1 + math.exp(-(2.0 * gwa_score + 1.5 * income_match - 1.0)))

    assert result.degraded is False
    assert result.model_type == "global"
    assert result.model_id == g.id
    assert result.decided_count == 29
    assert abs(result.probability - expected) < 1e-9
    assert result.predicted_outcome == "likely_approved"
    assert result.eligibility["passed"] is True
    assert result.eligibility["percentage"] == 100
    # features outside the weight set are skipped
    assert [c["feature"] for c in result.feature_contributions] == ["gwaScore", "incomeMatch"]


def test_prediction_switches_to_specific_model_at_threshold(db, make_scholarship, add_decided):
    s = make_scholarship(criteria=CRITERIA)
    add_decided(s, approved=15, rejected=15)
    _activate(db, GLOBAL_SCOPE, {"gwaScore": 2.0}, -1.0)
    sp = _activate(db, scholarship_scope(s.id), {"gwaScore": -2.0}, 0.0)

    result = PredictionService(db, min_samples=30).predict(s.id, applicant=APPLICANT)
    assert result.model_type == "scholarship_specific"
    assert result.model_id == sp.id
    assert result.predicted_outcome == "needs_improvement"


def test_factor_groups_cover_weighted_features(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    _activate(db, GLOBAL_SCOPE, {"gwaScore": 2.0, "incomeMatch": 1.5, "documentCompleteness": -0.5}, 0.0)

    result = PredictionService(db).predict(s.id, applicant=APPLICANT)
    factors = {f["factor"]: f for f in result.factors}
    assert set(factors) == {"Academic Standing", "Financial Need", "Application Quality"}
    assert factors["Application Quality"]["impact"] == "negative"


def test_prediction_from_stored_applicant(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA, required_documents=["Transcript"])
    a = models.Applicant(profile=APPLICANT.profile, documents=[{"type": "Transcript", "status": "verified"}])
    db.add(a)
    db.commit()
    _activate(db, GLOBAL_SCOPE, {"documentCompleteness": 1.0}, 0.0)

    result = PredictionService(db).predict(s.id, applicant_id=a.id)
    assert result.features["documentCompleteness"] == 1.0
    assert result.probability == pytest.approx(1 / (1 + math.exp(-1.0)))


# -------------------------
# DEGRADED
# -------------------------
def test_missing_scholarship_degrades(db):
    result = PredictionService(db).predict("nope", applicant=APPLICANT)
    assert result.degraded is True
    assert result.probability == 0.0
    assert result.confidence == "low"
    assert "nope" in result.reason
    assert len(_events(db, models.ActionEnum.PREDICTION_DEGRADED)) == 1


def test_deleted_applicant_degrades(db, make_scholarship):
    s = make_scholarship()
    a = models.Applicant(profile={}, is_deleted=True)
    db.add(a)
    db.commit()
    result = PredictionService(db).predict(s.id, applicant_id=a.id)
    assert result.degraded is True


def test_no_model_degrades_but_keeps_eligibility(db, make_scholarship):
    s = make_scholarship(criteria=CRITERIA)
    result = PredictionService(db).predict(s.id, applicant=APPLICANT)
    assert result.degraded is True
    assert result.model_type is None
    assert result.eligibility["passed"] is True
    assert result.features["gwaScore"] > 0
    assert len(_events(db, models.ActionEnum.PREDICTION_DEGRADED)) == 1


# -------------------------
# ELIGIBILITY
# -------------------------
def test_eligibility_check(db, make_scholarship):
    s = make_scholarship(criteria={**CRITERIA, "filipino_only": True})
    out = PredictionService(db).eligibility(s.id, applicant=APPLICANT)
    assert out.total_count == 4
    assert out.percentage == 75
    assert out.passed is False


def test_eligibility_unknown_scholarship(db):
    with pytest.raises(NotFound):
        PredictionService(db).eligibility("nope", applicant=APPLICANT)


def test_eligibility_needs_an_applicant(db, make_scholarship):
    s = make_scholarship()
    with pytest.raises(ValidationError):
        PredictionService(db).eligibility(s.id)
