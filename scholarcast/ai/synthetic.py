# scholarcast/ai/synthetic.py
"""Seeded synthetic applicants and decided applications, for demos and tests."""
from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import List

from sqlalchemy.orm import Session

from .. import models
from ..engine.eligibility import evaluate
from ..engine.features import as_utc

COLLEGES = ["College of Engineering", "College of Science", "College of Arts and Letters",
            "School of Economics", "College of Education"]
COURSES = ["BS Computer Science", "BS Civil Engineering", "BS Biology", "BA Economics",
           "BS Mathematics", "BA Philosophy", "BSE Mathematics"]
CLASSIFICATIONS = ["Freshman", "Sophomore", "Junior", "Senior"]
ST_BRACKETS = ["Full Discount with Stipend", "Full Discount", "PD80", "PD60", "PD40", "PD20", "No Discount"]
PROVINCES = ["Laguna", "Batangas", "Cavite", "Quezon", "Rizal", "Metro Manila"]
DOCUMENT_STATUSES = ["verified", "verified", "verified", "pending", "rejected"]


def synth_profile(rng: random.Random) -> dict:
    return {
        "gwa": round(rng.uniform(1.0, 3.0), 2),
        "annual_family_income": rng.choice([80000, 120000, 150000, 200000, 250000, 300000, 400000, 600000]),
        "units_enrolled": rng.choice([12, 15, 18, 21]),
        "units_passed": rng.randint(15, 140),
        "classification": rng.choice(CLASSIFICATIONS),
        "college": rng.choice(COLLEGES),
        "course": rng.choice(COURSES),
        "citizenship": "Filipino" if rng.random() < 0.95 else "Other",
        "st_bracket": rng.choice(ST_BRACKETS),
        "province_of_origin": rng.choice(PROVINCES),
        "has_failing_grade": rng.random() < 0.1,
        "has_disciplinary_action": rng.random() < 0.03,
        "has_other_scholarship": rng.random() < 0.15,
    }


def synth_documents(rng: random.Random, required: List[str]) -> List[dict]:
    # occasionally a required document is simply never uploaded
    return [{"type": doc, "status": rng.choice(DOCUMENT_STATUSES)} for doc in required if rng.random() > 0.1]


def synth_label(rng: random.Random, profile: dict, criteria: dict, noise: float = 0.1) -> int:
    """Approved when eligible and academically strong; flipped with probability `noise`."""
    result = evaluate(profile, criteria)
    approved = result.passed and float(profile.get("gwa") or 5.0) <= 2.25
    if rng.random() < noise:
        approved = not approved
    return 1 if approved else 0


def generate_history(
    db: Session,
    scholarship: models.Scholarship,
    n: int,
    seed: int = 42,
    noise: float = 0.1,
) -> List[models.Application]:
    """Create `n` applicants with decided applications against `scholarship`."""
    rng = random.Random(seed)
    criteria = scholarship.criteria or {}
    required = list(scholarship.required_documents or [])
    deadline = as_utc(scholarship.application_deadline) or datetime.now(timezone.utc)
    opened = as_utc(scholarship.application_start_date) or (deadline - timedelta(days=30))
    window = max((deadline - opened).total_seconds(), 1.0)

    apps: List[models.Application] = []
    for _ in range(n):
        profile = synth_profile(rng)
        documents = synth_documents(rng, required)
        applicant = models.Applicant(profile=profile, documents=documents)
        db.add(applicant)
        db.flush()

        label = synth_label(rng, profile, criteria, noise=noise)
        submitted = opened + timedelta(seconds=rng.uniform(0, window))
        app = models.Application(
            scholarship_id=scholarship.id,
            applicant_id=applicant.id,
            status=models.ApplicationStatusEnum.APPROVED if label else models.ApplicationStatusEnum.REJECTED,
            applicant_snapshot={"profile": profile, "documents": documents},
            eligibility_percentage=evaluate(profile, criteria).percentage,
            submitted_at=submitted,
            decided_at=submitted + timedelta(days=rng.randint(7, 45)),
        )
        db.add(app)
        apps.append(app)

    db.commit()
    return apps
