# scripts/seed_history.py
import os, sys
# If running script directly, ensure repo root is on path
sys.path.append(os.path.dirname(os.path.dirname(__file__)))

from dotenv import load_dotenv
load_dotenv()

from datetime import datetime, timedelta, timezone
from sqlalchemy.orm import Session

from scholarcast.db import Base, engine, SessionLocal
from scholarcast import models
from scholarcast.ai.synthetic import generate_history

_now = datetime.now(timezone.utc)

SCHOLARSHIPS = [
    {
        "name": "Academic Excellence Grant",
        "scholarship_type": "merit",
        "criteria": {
            "max_gwa": 1.75,
            "min_units_enrolled": 15,
            "filipino_only": True,
            "must_not_have_failing_grade": True,
        },
        "required_documents": ["Transcript of Records", "Certificate of Registration"],
        "history": 80,
    },
    {
        "name": "Financial Assistance Program",
        "scholarship_type": "need_based",
        "criteria": {
            "max_gwa": 2.5,
            "max_annual_family_income": 300000,
            "eligible_st_brackets": ["Full Discount with Stipend", "Full Discount", "PD80"],
            "must_not_have_other_scholarship": True,
        },
        "required_documents": ["Income Tax Return", "Certificate of Indigency", "Certificate of Registration"],
        "history": 60,
    },
    {
        "name": "Engineering Thesis Support",
        "scholarship_type": "thesis",
        "criteria": {
            "max_gwa": 2.0,
            "eligible_colleges": ["College of Engineering"],
            "eligible_classifications": ["Senior"],
        },
        "required_documents": ["Thesis Outline"],
        "history": 12,  # stays on the global model
    },
]


def ensure_tables():
    Base.metadata.create_all(bind=engine)


def seed_scholarships(db: Session) -> list:
    seeded = []
    for i, entry in enumerate(SCHOLARSHIPS):
        s = db.query(models.Scholarship).filter(models.Scholarship.name == entry["name"]).first()
        if s is None:
            s = models.Scholarship(
                name=entry["name"],
                scholarship_type=entry["scholarship_type"],
                criteria=entry["criteria"],
                required_documents=entry["required_documents"],
                application_start_date=_now - timedelta(days=60),
                application_deadline=_now - timedelta(days=30),
            )
            db.add(s)
            db.commit()
            db.refresh(s)
        seeded.append((s, entry["history"], i))
    return seeded


def seed_history(db: Session, seeded: list):
    for s, n, i in seeded:
        existing = db.query(models.Application).filter(models.Application.scholarship_id == s.id).count()
        if existing:
            continue
        generate_history(db, s, n, seed=42 + i)


if __name__ == "__main__":
    ensure_tables()
    db = SessionLocal()
    try:
        seeded = seed_scholarships(db)
        seed_history(db, seeded)
        print("Seeded scholarships and decided applications successfully.")
    except Exception as e:
        print(f"Error seeding data: {e}")
        raise
    finally:
        db.close()
