# scholarcast/models.py
from __future__ import annotations

import enum
import uuid
import json
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    Enum as SAEnum,
    ForeignKey,
    DateTime,
    Float,
    Boolean,
    Integer,
    Text,
    Index,
    text,
)
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator, TEXT

from .db import Base


# -------------------------
# SQLite-safe JSON columns
# -------------------------
class JsonList(TypeDecorator):
    impl = TEXT
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return "[]"
        if isinstance(value, (list, tuple)):
            return json.dumps(list(value), ensure_ascii=False)
        if isinstance(value, str):
            s = value.strip()
            return s if s else "[]"
        return "[]"

    def process_result_value(self, value, dialect):
        if not value:
            return []
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, list) else []
        except ValueError:
            return []


class JsonDict(TypeDecorator):
    impl = TEXT
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return "{}"
        if isinstance(value, dict):
            return json.dumps(value, ensure_ascii=False, default=str)
        if isinstance(value, str):
            s = value.strip()
            return s if s else "{}"
        return "{}"

    def process_result_value(self, value, dialect):
        if not value:
            return {}
        try:
            parsed = json.loads(value)
            return parsed if isinstance(parsed, dict) else {}
        except ValueError:
            return {}


class ApplicationStatusEnum(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


DECIDED_STATUSES = (ApplicationStatusEnum.APPROVED, ApplicationStatusEnum.REJECTED)


class ModelTypeEnum(str, enum.Enum):
    GLOBAL = "global"
    SCHOLARSHIP_SPECIFIC = "scholarship_specific"


class ActionEnum(str, enum.Enum):
    TRAIN_MODEL = "TRAIN_MODEL"
    ACTIVATE_MODEL = "ACTIVATE_MODEL"
    RESET_MODEL = "RESET_MODEL"
    PREDICTION_DEGRADED = "PREDICTION_DEGRADED"
    FAILURE_LOG = "FAILURE_LOG"


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Scholarship(Base):
    __tablename__ = "scholarships"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    scholarship_type = Column(String, nullable=True)

    # Eligibility criteria keyed the way the eligibility engine reads them
    criteria = Column(JsonDict, default=dict, nullable=False)
    required_documents = Column(JsonList, default=list, nullable=False)

    application_start_date = Column(DateTime(timezone=True), nullable=True)
    application_deadline = Column(DateTime(timezone=True), nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Applicant(Base):
    __tablename__ = "applicants"

    id = Column(String, primary_key=True, default=_uuid)
    email = Column(String, nullable=True)

    profile = Column(JsonDict, default=dict, nullable=False)
    # [{"type": "...", "status": "verified" | "pending" | "rejected"}]
    documents = Column(JsonList, default=list, nullable=False)

    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Application(Base):
    __tablename__ = "applications"

    id = Column(String, primary_key=True, default=_uuid)

    scholarship_id = Column(String, ForeignKey("scholarships.id"), nullable=False, index=True)
    applicant_id = Column(String, ForeignKey("applicants.id"), nullable=True, index=True)

    status = Column(SAEnum(ApplicationStatusEnum), nullable=False, default=ApplicationStatusEnum.SUBMITTED, index=True)

    # Frozen copy of the applicant profile (and documents) at submission.
    # Retraining reads this, never the live profile.
    applicant_snapshot = Column(JsonDict, default=dict, nullable=False)
    eligibility_percentage = Column(Integer, nullable=True)

    submitted_at = Column(DateTime(timezone=True), default=_utcnow)
    decided_at = Column(DateTime(timezone=True), nullable=True)


class TrainedModel(Base):
    __tablename__ = "trained_models"

    id = Column(String, primary_key=True, default=_uuid)
    name = Column(String, nullable=False)
    version = Column(String, nullable=True)

    # "global" or "scholarship:<id>"
    scope = Column(String, nullable=False, index=True)
    scholarship_id = Column(String, ForeignKey("scholarships.id"), nullable=True)
    model_type = Column(SAEnum(ModelTypeEnum), nullable=False, default=ModelTypeEnum.GLOBAL)
    scholarship_type = Column(String, nullable=True)

    is_active = Column(Boolean, nullable=False, default=False)

    weights = Column(JsonDict, default=dict, nullable=False)
    bias = Column(Float, nullable=False, default=0.0)

    training_config = Column(JsonDict, default=dict, nullable=False)
    training_stats = Column(JsonDict, default=dict, nullable=False)
    metrics = Column(JsonDict, default=dict, nullable=False)
    feature_importance = Column(JsonList, default=list, nullable=False)

    trained_at = Column(DateTime(timezone=True), default=_utcnow)
    trained_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        # At most one active model per scope
        Index(
            "uq_trained_models_active_scope",
            "scope",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)

    scope = Column(String, nullable=True, index=True)
    action = Column(SAEnum(ActionEnum), nullable=False)
    actor_type = Column(String, default="SYSTEM")
    payload = Column(Text, default="{}")

    app_version = Column(String, default="dev")
    schema_version = Column(String, default="dev")

    created_at = Column(DateTime(timezone=True), default=_utcnow)
