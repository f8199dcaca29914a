# scholarcast/engine/features.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from .eligibility import EligibilityResult, citizenship_options
from .feature_schema import FEATURE_NAMES
from .normalizers import (
    GWA_BEST,
    GWA_WORST,
    as_list,
    as_number,
    clamp,
    clean_text,
    list_contains,
    normalize_st_bracket,
    normalize_year_level,
)

GWA_HEADROOM_BONUS = 0.2
# Bonus reference when a scholarship sets no GWA bound at all
DEFAULT_GWA_REFERENCE = 3.0
DEFAULT_APPLICATION_WINDOW = timedelta(days=30)

TIMING_BEFORE_OPEN = 0.9
TIMING_AFTER_DEADLINE = 0.1
TIMING_NO_DEADLINE = 0.5

DOCUMENT_CREDIT = {
    "verified": 1.0,
    "pending": 0.5,
    "uploaded": 0.5,
    "rejected": 0.0,
}


def gwa_score(gwa: Any, ceiling: Any = None) -> float:
    """
    Inverse-scaled GWA (1.0 -> 1.0, 5.0 -> 0.0) plus a bonus for headroom under the
    reference grade, clamped to [0, 1]. Missing or off-scale GWA scores 0.
    """
    g = as_number(gwa)
    if g is None or g < GWA_BEST or g > GWA_WORST:
        return 0.0

    score = (GWA_WORST - g) / (GWA_WORST - GWA_BEST)
    limit = as_number(ceiling)
    if limit is not None and limit > 0 and g <= limit:
        score += (limit - g) / limit * GWA_HEADROOM_BONUS
    return clamp(score)


def income_headroom(income: Any, ceiling: Any) -> float:
    limit = as_number(ceiling)
    value = as_number(income)
    if limit is None or limit <= 0 or value is None or value < 0 or value > limit:
        return 0.0
    return clamp((limit - value) / limit)


def set_match(value: Any, options: Iterable[Any], *, fuzzy: bool = False, mapper=clean_text) -> float:
    """1.0 for an empty (universal) set or a member, else 0.0."""
    options = as_list(options)
    if not options:
        return 1.0
    return 1.0 if list_contains(value, options, fuzzy=fuzzy, mapper=mapper) else 0.0


def document_completeness(documents: Iterable[dict] | None, required: Iterable[str] | None) -> float:
    required_types = [t for t in (clean_text(r) for r in (required or [])) if t]
    if not required_types:
        return 1.0

    best: Dict[str, float] = {}
    for doc in documents or []:
        if not isinstance(doc, dict):
            continue
        doc_type = clean_text(doc.get("type"))
        if not doc_type:
            continue
        status = (clean_text(doc.get("status")) or "pending").lower()
        credit = DOCUMENT_CREDIT.get(status, 0.5)
        key = doc_type.lower()
        best[key] = max(best.get(key, 0.0), credit)

    return sum(best.get(t.lower(), 0.0) for t in required_types) / len(required_types)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def application_timing(
    applied_at: Optional[datetime],
    open_date: Optional[datetime],
    deadline: Optional[datetime],
) -> float:
    """Earlier in the application window scores higher: 1.0 at open, 0.2 at the deadline."""
    deadline = as_utc(deadline)
    if deadline is None:
        return TIMING_NO_DEADLINE
    applied_at = as_utc(applied_at) or datetime.now(timezone.utc)
    opened = as_utc(open_date) or (deadline - DEFAULT_APPLICATION_WINDOW)

    window = (deadline - opened).total_seconds()
    elapsed = (applied_at - opened).total_seconds()
    if elapsed < 0:
        return TIMING_BEFORE_OPEN
    if window <= 0 or elapsed > window:
        return TIMING_AFTER_DEADLINE
    return 1.0 - (elapsed / window) * 0.8


def extract_features(
    profile: dict | None,
    criteria: dict | None,
    eligibility: EligibilityResult,
    *,
    documents: Iterable[dict] | None = None,
    required_documents: Iterable[str] | None = None,
    applied_at: Optional[datetime] = None,
    open_date: Optional[datetime] = None,
    deadline: Optional[datetime] = None,
) -> Dict[str, float]:
    """
    Map an (applicant, scholarship) pair onto the fixed feature schema.

    Pure: the same inputs always give the same vector. Missing applicant attributes
    fall to the least favorable value instead of raising.
    """
    profile = profile or {}
    criteria = criteria or {}

    reference = as_number(criteria.get("max_gwa")) or as_number(criteria.get("min_gwa")) or DEFAULT_GWA_REFERENCE
    gwa = gwa_score(profile.get("gwa"), reference)
    year_level = set_match(profile.get("classification"), criteria.get("eligible_classifications"),
                           mapper=normalize_year_level)
    income = income_headroom(profile.get("annual_family_income"), criteria.get("max_annual_family_income"))
    st_bracket = set_match(profile.get("st_bracket"), criteria.get("eligible_st_brackets"),
                           mapper=normalize_st_bracket)
    college = set_match(profile.get("college"), criteria.get("eligible_colleges"))
    course = set_match(profile.get("course"), criteria.get("eligible_courses"), fuzzy=True)
    citizenship = set_match(profile.get("citizenship"), citizenship_options(criteria))
    docs = document_completeness(
        documents if documents is not None else profile.get("documents"),
        required_documents,
    )
    timing = application_timing(applied_at, open_date, deadline)
    eligibility_score = clamp(eligibility.percentage / 100.0)

    academic_strength = gwa * year_level
    vector = {
        "gwaScore": gwa,
        "yearLevelMatch": year_level,
        "incomeMatch": income,
        "stBracketMatch": st_bracket,
        "collegeMatch": college,
        "courseMatch": course,
        "citizenshipMatch": citizenship,
        "documentCompleteness": docs,
        "applicationTiming": timing,
        "eligibilityScore": eligibility_score,
        "academicStrength": academic_strength,
        "financialNeed": income * st_bracket,
        "programFit": college * course,
        "applicationQuality": docs * timing,
        "overallFit": eligibility_score * academic_strength,
    }
    return {name: float(vector[name]) for name in FEATURE_NAMES}
