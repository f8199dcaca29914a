# scholarcast/tests/conftest.py
import os
import tempfile

# Point the app at a throwaway database before anything imports scholarcast.db
_DB_DIR = tempfile.mkdtemp(prefix="scholarcast-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SQL_ECHO"] = "0"

from datetime import datetime, timedelta, timezone

import pytest

from scholarcast import models
from scholarcast.db import Base, SessionLocal, engine
from scholarcast.main import app


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.model_cache.invalidate()
    app.state.auto_training.reset()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_scholarship(db):
    def _make(**overrides):
        now = datetime.now(timezone.utc)
        fields = {
            "name": "Test Scholarship",
            "scholarship_type": "merit",
            "criteria": {},
            "required_documents": [],
            "application_start_date": now - timedelta(days=10),
            "application_deadline": now + timedelta(days=20),
        }
        fields.update(overrides)
        s = models.Scholarship(**fields)
        db.add(s)
        db.commit()
        db.refresh(s)
        return s
    return _make


@pytest.fixture
def add_decided(db):
    """Add `approved` + `rejected` decided applications with the given snapshot."""
    def _add(scholarship, approved: int, rejected: int = 0, snapshot: dict | None = None):
        for i in range(approved + rejected):
            status = models.ApplicationStatusEnum.APPROVED if i < approved else models.ApplicationStatusEnum.REJECTED
            db.add(models.Application(
                scholarship_id=scholarship.id,
                status=status,
                applicant_snapshot=snapshot or {"profile": {"gwa": 2.0}},
            ))
        db.commit()
    return _add
