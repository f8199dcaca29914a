# scholarcast/engine/feature_schema.py
"""
The one feature table shared by extraction, the regression core and the model store.

Order matters: it is the column order of the design matrix during training and the
order feature vectors are emitted in.
"""
from __future__ import annotations

from typing import Iterable, Mapping

BASE_FEATURES = (
    "gwaScore",
    "yearLevelMatch",
    "incomeMatch",
    "stBracketMatch",
    "collegeMatch",
    "courseMatch",
    "citizenshipMatch",
    "documentCompleteness",
    "applicationTiming",
    "eligibilityScore",
)

INTERACTION_FEATURES = (
    "academicStrength",
    "financialNeed",
    "programFit",
    "applicationQuality",
    "overallFit",
)

FEATURE_NAMES = BASE_FEATURES + INTERACTION_FEATURES

FEATURE_LABELS = {
    "gwaScore": "Academic Performance (GWA)",
    "yearLevelMatch": "Year Level",
    "incomeMatch": "Financial Need (Income)",
    "stBracketMatch": "ST Bracket",
    "collegeMatch": "College",
    "courseMatch": "Course/Major",
    "citizenshipMatch": "Citizenship",
    "documentCompleteness": "Document Completeness",
    "applicationTiming": "Application Timing",
    "eligibilityScore": "Overall Eligibility",
    "academicStrength": "Academic Strength",
    "financialNeed": "Financial Need",
    "programFit": "Program Fit",
    "applicationQuality": "Application Quality",
    "overallFit": "Overall Fit",
}

# Base features grouped with the interaction features derived from them
FEATURE_GROUPS = (
    ("Academic Standing", ("gwaScore", "yearLevelMatch", "academicStrength")),
    ("Financial Need", ("incomeMatch", "stBracketMatch", "financialNeed")),
    ("Program Match", ("collegeMatch", "courseMatch", "programFit")),
    ("Application Quality", ("documentCompleteness", "applicationTiming", "applicationQuality")),
    ("Overall Eligibility", ("citizenshipMatch", "eligibilityScore", "overallFit")),
)


def unknown_features(names: Iterable[str]) -> list[str]:
    known = set(FEATURE_NAMES)
    return sorted(n for n in names if n not in known)


def to_row(vector: Mapping[str, float]) -> list[float]:
    """Schema-ordered values; a feature missing from the mapping reads as 0."""
    return [float(vector.get(name, 0.0)) for name in FEATURE_NAMES]
