# scholarcast/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Optional, List, Any, Literal, Dict

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


DocumentStatus = Literal["verified", "pending", "uploaded", "rejected"]


class DocumentIn(BaseModel):
    type: str = Field(..., min_length=1)
    status: DocumentStatus = "pending"


class ApplicantProfile(BaseModel):
    """Applicant attributes read by the eligibility engine and feature extractor. All optional."""

    gwa: Optional[float] = Field(None, ge=1.0, le=5.0)
    annual_family_income: Optional[float] = Field(None, ge=0)
    units_enrolled: Optional[float] = Field(None, ge=0)
    units_passed: Optional[float] = Field(None, ge=0)

    classification: Optional[str] = None
    college: Optional[str] = None
    course: Optional[str] = None
    major: Optional[str] = None
    citizenship: Optional[str] = None
    st_bracket: Optional[str] = None
    province_of_origin: Optional[str] = None

    has_failing_grade: bool = False
    has_grade_of_4: bool = False
    has_incomplete_grade: bool = False
    has_disciplinary_action: bool = False
    has_other_scholarship: bool = False
    has_thesis_grant: bool = False
    has_approved_thesis_outline: bool = False
    is_graduating: bool = False

    documents: List[DocumentIn] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def profile_dict(self) -> dict:
        return self.model_dump(exclude={"documents"}, exclude_none=True)

    def documents_list(self) -> list:
        return [d.model_dump() for d in self.documents]


class PredictionRequest(BaseModel):
    scholarship_id: str = Field(..., min_length=1)
    applicant_id: Optional[str] = None
    applicant: Optional[ApplicantProfile] = None

    @model_validator(mode="after")
    def _one_applicant(self):
        if not self.applicant_id and self.applicant is None:
            raise ValueError("Provide either applicant_id or applicant")
        return self


# -------------------------
# responses
# -------------------------
class EligibilityCheckOut(BaseModel):
    id: str
    criterion: str
    criterion_type: str
    category: str
    passed: bool
    applicant_value: Any = None
    required_value: Any = None
    weight: float = 1.0


class EligibilityResponse(BaseModel):
    scholarship_id: str
    passed: bool
    percentage: int
    passed_count: int
    total_count: int
    checks: List[EligibilityCheckOut] = Field(default_factory=list)


class ContributionOut(BaseModel):
    feature: str
    label: str
    value: float
    weight: float
    contribution: float
    direction: Literal["positive", "negative"]


class FactorOut(BaseModel):
    factor: str
    contribution: float
    impact: Literal["positive", "negative"]
    features: List[str] = Field(default_factory=list)


class PredictionResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    scholarship_id: str
    probability: float
    predicted_outcome: str
    confidence: Literal["high", "medium", "low"]
    model_type: Optional[str] = None
    model_id: Optional[str] = None
    model_version: Optional[str] = None
    decided_count: Optional[int] = None
    features: Dict[str, float] = Field(default_factory=dict)
    feature_contributions: List[ContributionOut] = Field(default_factory=list)
    factors: List[FactorOut] = Field(default_factory=list)
    eligibility: Optional[EligibilityResponse] = None
    degraded: bool = False
    reason: Optional[str] = None
    generated_at: datetime


class TrainedModelOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, protected_namespaces=())

    id: str
    name: str
    version: Optional[str] = None
    scope: str
    scholarship_id: Optional[str] = None
    model_type: str
    scholarship_type: Optional[str] = None
    is_active: bool
    weights: Dict[str, float] = Field(default_factory=dict)
    bias: float
    training_config: Dict[str, Any] = Field(default_factory=dict)
    training_stats: Dict[str, Any] = Field(default_factory=dict)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    feature_importance: List[Dict[str, Any]] = Field(default_factory=list)
    trained_at: Optional[datetime] = None
    trained_by: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("model_type", mode="before")
    @classmethod
    def _enum_value(cls, v: Any):
        return v.value if hasattr(v, "value") else v


class ModelStateResponse(BaseModel):
    scope: str
    active: Optional[TrainedModelOut] = None
    history: List[TrainedModelOut] = Field(default_factory=list)
    required_samples: int
    decided_count: Optional[int] = None


class TrainingOutcomeOut(BaseModel):
    scope: str
    status: Literal["success", "insufficient_data", "failed"]
    message: str = ""
    model_id: Optional[str] = None
    version: Optional[str] = None
    samples_found: int = 0
    samples_required: int = 0
    metrics: Dict[str, Any] = Field(default_factory=dict)
    training_stats: Dict[str, Any] = Field(default_factory=dict)


class TrainRequest(BaseModel):
    trained_by: Optional[str] = None
