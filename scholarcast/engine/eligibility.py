# scholarcast/engine/eligibility.py
from __future__ import annotations

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, List, Optional

from .normalizers import (
    GWA_BEST,
    GWA_WORST,
    as_list,
    as_number,
    clean_text,
    list_contains,
    normalize_st_bracket,
    normalize_year_level,
)

# Aggregate reported when a scholarship defines no criteria at all
NO_CRITERIA_PERCENTAGE = 100


@dataclass
class EligibilityCheck:
    id: str
    criterion: str
    criterion_type: str  # range / list / boolean
    category: str        # academic / financial / status / personal
    passed: bool
    applicant_value: Any = None
    required_value: Any = None
    weight: float = 1.0


@dataclass
class EligibilityResult:
    checks: List[EligibilityCheck] = field(default_factory=list)
    passed: bool = True
    percentage: int = NO_CRITERIA_PERCENTAGE
    passed_count: int = 0
    total_count: int = 0

    @property
    def failed_checks(self) -> List[EligibilityCheck]:
        return [c for c in self.checks if not c.passed]

    def to_dict(self) -> dict:
        return asdict(self)


# -------------------------
# formatting
# -------------------------
def _fmt_peso(v: Optional[float]) -> str:
    return f"₱{v:,.0f}" if v is not None else "Not specified"


def _fmt_gwa(v: Optional[float]) -> str:
    return f"{v:.2f}" if v is not None else "Not specified"


def _fmt_units(v: Optional[float]) -> str:
    return f"{v:g} units" if v is not None else "Not specified"


def _fmt_bounds(lo: Optional[float], hi: Optional[float], fmt: Callable[[Optional[float]], str]) -> str:
    if lo is not None and hi is not None:
        return f"{fmt(lo)} – {fmt(hi)}"
    if hi is not None:
        return f"≤ {fmt(hi)}"
    return f"≥ {fmt(lo)}"


# -------------------------
# range checks
# -------------------------
def _check_gwa(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
    lo = as_number(criteria.get("min_gwa"))
    hi = as_number(criteria.get("max_gwa"))
    if hi is not None and hi >= GWA_WORST:
        hi = None  # 5.0 ceiling means any GWA is accepted
    if lo is not None and lo <= GWA_BEST:
        lo = None  # so does a 1.0 floor
    if lo is None and hi is None:
        return None

    gwa = as_number(profile.get("gwa"))
    passed = gwa is not None and (lo is None or gwa >= lo) and (hi is None or gwa <= hi)
    return EligibilityCheck(
        id="gwa",
        criterion="GWA Requirement",
        criterion_type="range",
        category="academic",
        passed=passed,
        applicant_value=_fmt_gwa(gwa),
        required_value=_fmt_bounds(lo, hi, _fmt_gwa),
    )


def _check_income(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
    lo = as_number(criteria.get("min_annual_family_income"))
    hi = as_number(criteria.get("max_annual_family_income"))
    if lo is None and hi is None:
        return None

    income = as_number(profile.get("annual_family_income"))
    passed = income is not None and (lo is None or income >= lo) and (hi is None or income <= hi)
    return EligibilityCheck(
        id="annualFamilyIncome",
        criterion="Annual Family Income",
        criterion_type="range",
        category="financial",
        passed=passed,
        applicant_value=_fmt_peso(income),
        required_value=_fmt_bounds(lo, hi, _fmt_peso),
    )


def _minimum_check(check_id: str, name: str, profile_key: str, criteria_key: str):
    def _check(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
        lo = as_number(criteria.get(criteria_key))
        if lo is None:
            return None
        value = as_number(profile.get(profile_key))
        return EligibilityCheck(
            id=check_id,
            criterion=name,
            criterion_type="range",
            category="academic",
            passed=value is not None and value >= lo,
            applicant_value=_fmt_units(value),
            required_value=f"≥ {_fmt_units(lo)}",
        )
    return _check


# -------------------------
# list checks
# -------------------------
def _list_check(
    check_id: str,
    name: str,
    category: str,
    profile_key: str,
    criteria_key: str,
    *,
    fuzzy: bool = False,
    mapper=clean_text,
):
    def _check(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
        options = as_list(criteria.get(criteria_key))
        if not options:
            return None
        value = profile.get(profile_key)
        return EligibilityCheck(
            id=check_id,
            criterion=name,
            criterion_type="list",
            category=category,
            passed=list_contains(value, options, fuzzy=fuzzy, mapper=mapper),
            applicant_value=mapper(value) or "Not specified",
            required_value=", ".join(str(o) for o in options),
        )
    return _check


def citizenship_options(criteria: dict) -> list:
    options = as_list(criteria.get("eligible_citizenship"))
    if not options and criteria.get("filipino_only"):
        options = ["Filipino"]
    return options


def _check_citizenship(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
    options = citizenship_options(criteria)
    if not options:
        return None
    value = profile.get("citizenship")
    return EligibilityCheck(
        id="citizenship",
        criterion="Citizenship",
        criterion_type="list",
        category="personal",
        passed=list_contains(value, options),
        applicant_value=clean_text(value) or "Not specified",
        required_value=", ".join(str(o) for o in options),
    )


# -------------------------
# boolean checks
# -------------------------
def _boolean_check(
    check_id: str,
    name: str,
    category: str,
    profile_key: str,
    criteria_key: str,
    *,
    negate: bool,
    yes: str,
    no: str,
):
    """
    negate=True: the criterion forbids the flag (e.g. disciplinary action).
    negate=False: the criterion requires the flag (e.g. approved thesis outline).
    An undeclared flag reads as False.
    """
    def _check(profile: dict, criteria: dict) -> Optional[EligibilityCheck]:
        if not bool(criteria.get(criteria_key)):
            return None
        flag = bool(profile.get(profile_key))
        return EligibilityCheck(
            id=check_id,
            criterion=name,
            criterion_type="boolean",
            category=category,
            passed=(not flag) if negate else flag,
            applicant_value=yes if flag else no,
            required_value=no if negate else yes,
        )
    return _check


# Evaluation order is the checklist order shown to applicants
CONDITIONS = (
    _check_gwa,
    _check_income,
    _minimum_check("unitsEnrolled", "Units Enrolled", "units_enrolled", "min_units_enrolled"),
    _minimum_check("unitsPassed", "Units Passed", "units_passed", "min_units_passed"),
    _list_check("yearLevel", "Year Level", "academic", "classification", "eligible_classifications",
                mapper=normalize_year_level),
    _list_check("college", "College", "academic", "college", "eligible_colleges"),
    _list_check("course", "Course", "academic", "course", "eligible_courses", fuzzy=True),
    _list_check("major", "Major", "academic", "major", "eligible_majors", fuzzy=True),
    _check_citizenship,
    _list_check("stBracket", "ST Bracket", "financial", "st_bracket", "eligible_st_brackets",
                mapper=normalize_st_bracket),
    _list_check("province", "Province of Origin", "personal", "province_of_origin", "eligible_provinces"),
    _boolean_check("noFailingGrade", "No Failing Grade", "academic", "has_failing_grade",
                   "must_not_have_failing_grade", negate=True,
                   yes="Has failing grade(s)", no="No failing grades"),
    _boolean_check("noGradeOf4", "No Grade of 4", "academic", "has_grade_of_4",
                   "must_not_have_grade_of_4", negate=True,
                   yes="Has grade of 4", no="No conditional grades"),
    _boolean_check("noIncompleteGrade", "No Incomplete Grade", "academic", "has_incomplete_grade",
                   "must_not_have_incomplete_grade", negate=True,
                   yes="Has INC", no="All grades complete"),
    _boolean_check("noDisciplinaryAction", "No Disciplinary Action", "status", "has_disciplinary_action",
                   "must_not_have_disciplinary_action", negate=True,
                   yes="Has disciplinary record", no="Clean record"),
    _boolean_check("noOtherScholarship", "No Other Scholarship", "status", "has_other_scholarship",
                   "must_not_have_other_scholarship", negate=True,
                   yes="Has other scholarship", no="No other scholarship"),
    _boolean_check("noThesisGrant", "No Thesis Grant", "status", "has_thesis_grant",
                   "must_not_have_thesis_grant", negate=True,
                   yes="Has thesis grant", no="No thesis grant"),
    _boolean_check("approvedThesis", "Approved Thesis Outline", "academic", "has_approved_thesis_outline",
                   "requires_approved_thesis_outline", negate=False,
                   yes="Approved thesis outline", no="No approved outline"),
    _boolean_check("graduating", "Graduating Student", "academic", "is_graduating",
                   "must_be_graduating", negate=False,
                   yes="Graduating", no="Not graduating"),
)


def aggregate_percentage(passed_count: int, total_count: int) -> int:
    if total_count == 0:
        return NO_CRITERIA_PERCENTAGE
    # half-up, so 12.5 reports as 13
    return int(math.floor(passed_count / total_count * 100 + 0.5))


def evaluate(profile: dict | None, criteria: dict | None) -> EligibilityResult:
    """
    Run every criterion the scholarship defines against the applicant profile.

    A criterion the scholarship leaves unset yields no check at all; it is not a
    lenient pass. The aggregate passes only when every produced check passes.
    """
    profile = profile or {}
    criteria = criteria or {}

    checks: List[EligibilityCheck] = []
    for condition in CONDITIONS:
        check = condition(profile, criteria)
        if check is not None:
            checks.append(check)

    passed_count = sum(1 for c in checks if c.passed)
    return EligibilityResult(
        checks=checks,
        passed=all(c.passed for c in checks),
        percentage=aggregate_percentage(passed_count, len(checks)),
        passed_count=passed_count,
        total_count=len(checks),
    )
