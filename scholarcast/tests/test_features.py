from datetime import datetime, timedelta, timezone

import pytest

from scholarcast.engine.eligibility import evaluate
from scholarcast.engine.feature_schema import FEATURE_NAMES, to_row, unknown_features
from scholarcast.engine.features import (
    application_timing,
    document_completeness,
    extract_features,
    gwa_score,
    income_headroom,
    set_match,
)


def _features(profile, criteria, **kw):
    return extract_features(profile, criteria, evaluate(profile, criteria), **kw)


# -------------------------
# INDIVIDUAL FEATURES
# -------------------------
def test_gwa_score_scale_and_bonus():
    assert gwa_score(5.0) == 0.0
    assert gwa_score(3.0) == pytest.approx(0.5)
    assert gwa_score(1.25, 1.75) == pytest.approx(0.9375 + 0.2 * 0.5 / 1.75)
    # no bonus when the grade is worse than the reference
    assert gwa_score(2.0, 1.75) == pytest.approx(0.75)
    assert gwa_score(1.0, 3.0) == 1.0


def test_gwa_score_missing_or_off_scale_is_zero():
    assert gwa_score(None) == 0.0
    assert gwa_score("n/a") == 0.0
    assert gwa_score(0.5) == 0.0
    assert gwa_score(6.0) == 0.0


def test_income_headroom():
    assert income_headroom(150000, 300000) == pytest.approx(0.5)
    assert income_headroom(0, 300000) == pytest.approx(1.0)
    assert income_headroom(300001, 300000) == 0.0
    assert income_headroom(150000, None) == 0.0
    assert income_headroom(None, 300000) == 0.0


def test_set_match_empty_set_is_universal():
    assert set_match("anything", []) == 1.0
    assert set_match(None, []) == 1.0
    assert set_match(None, ["College of Science"]) == 0.0
    assert set_match("college of science", ["College of Science"]) == 1.0


def test_document_completeness_credits():
    required = ["Transcript", "Certificate of Registration", "Income Tax Return", "Indigency"]
    docs = [
        {"type": "transcript", "status": "verified"},
        {"type": "Certificate of Registration", "status": "pending"},
        {"type": "Income Tax Return", "status": "rejected"},
    ]
    assert document_completeness(docs, required) == pytest.approx((1 + 0.5 + 0 + 0) / 4)
    assert document_completeness([], []) == 1.0


def test_document_completeness_keeps_best_status_per_type():
    docs = [{"type": "Transcript", "status": "rejected"}, {"type": "Transcript", "status": "verified"}]
    assert document_completeness(docs, ["Transcript"]) == 1.0


def test_application_timing_window():
    deadline = datetime(2026, 3, 31, tzinfo=timezone.utc)
    opened = deadline - timedelta(days=30)

    assert application_timing(opened, opened, deadline) == pytest.approx(1.0)
    assert application_timing(opened + timedelta(days=15), opened, deadline) == pytest.approx(0.6)
    assert application_timing(deadline, opened, deadline) == pytest.approx(0.2)
    assert application_timing(opened - timedelta(days=1), opened, deadline) == pytest.approx(0.9)
    assert application_timing(deadline + timedelta(days=1), opened, deadline) == pytest.approx(0.1)
    assert application_timing(opened, opened, None) == pytest.approx(0.5)


def test_application_timing_accepts_naive_datetimes():
    deadline = datetime(2026, 3, 31)
    applied = datetime(2026, 3, 1, tzinfo=timezone.utc)
    # open date falls back to thirty days before the deadline
    assert application_timing(applied, None, deadline) == pytest.approx(1.0)


# -------------------------
# FULL VECTOR
# -------------------------
def test_vector_follows_schema_order_and_bounds():
    profile = {"gwa": 1.5, "annual_family_income": 100000, "college": "College of Science",
               "course": "BS Biology", "classification": "Junior", "citizenship": "Filipino",
               "st_bracket": "PD80"}
    criteria = {"max_gwa": 2.0, "max_annual_family_income": 250000,
                "eligible_colleges": ["College of Science"], "eligible_st_brackets": ["PD80"]}
    vec = _features(profile, criteria)

    assert tuple(vec) == FEATURE_NAMES
    assert all(0.0 <= v <= 1.0 for v in vec.values())
    assert vec["eligibilityScore"] == 1.0
    assert vec["financialNeed"] == pytest.approx(vec["incomeMatch"] * vec["stBracketMatch"])
    assert vec["overallFit"] == pytest.approx(vec["eligibilityScore"] * vec["academicStrength"])


def test_missing_attributes_fall_to_least_favorable():
    criteria = {"max_gwa": 2.0, "max_annual_family_income": 250000, "eligible_colleges": ["College of Science"]}
    vec = _features({}, criteria)
    assert vec["gwaScore"] == 0.0
    assert vec["incomeMatch"] == 0.0
    assert vec["collegeMatch"] == 0.0
    assert vec["eligibilityScore"] == 0.0


def test_extraction_is_deterministic():
    profile = {"gwa": 1.75, "course": "BS Mathematics"}
    criteria = {"eligible_courses": ["Mathematics"]}
    applied = datetime(2026, 1, 10, tzinfo=timezone.utc)
    deadline = datetime(2026, 1, 31, tzinfo=timezone.utc)
    assert _features(profile, criteria, applied_at=applied, deadline=deadline) == \
        _features(profile, criteria, applied_at=applied, deadline=deadline)


def test_schema_helpers():
    assert unknown_features(["gwaScore", "shoeSize", "aura"]) == ["aura", "shoeSize"]
    row = to_row({"gwaScore": 0.5})
    assert len(row) == len(FEATURE_NAMES)
    assert row[0] == 0.5 and sum(row) == 0.5
