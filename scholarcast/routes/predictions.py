# scholarcast/routes/predictions.py
from fastapi import APIRouter, Depends

from .. import schemas
from ..deps import get_prediction_service
from ..services.prediction import ApplicantData, PredictionService

router = APIRouter(prefix="/predictions", tags=["predictions"])


def _inline(req: schemas.PredictionRequest) -> ApplicantData | None:
    if req.applicant is None:
        return None
    return ApplicantData(profile=req.applicant.profile_dict(), documents=req.applicant.documents_list())


@router.post("/eligibility", response_model=schemas.EligibilityResponse)
def eligibility_check(
    req: schemas.PredictionRequest,
    svc: PredictionService = Depends(get_prediction_service),
):
    result = svc.eligibility(req.scholarship_id, applicant_id=req.applicant_id, applicant=_inline(req))
    return {"scholarship_id": req.scholarship_id, **result.to_dict()}


@router.post("/probability", response_model=schemas.PredictionResponse)
def approval_probability(
    req: schemas.PredictionRequest,
    svc: PredictionService = Depends(get_prediction_service),
):
    """
    Approval probability with its explanation. Never fails on a missing model or
    reference; those come back as a degraded result instead.
    """
    result = svc.predict(req.scholarship_id, applicant_id=req.applicant_id, applicant=_inline(req))
    out = result.to_dict()
    if out["eligibility"] is not None:
        out["eligibility"] = {"scholarship_id": req.scholarship_id, **out["eligibility"]}
    return {"scholarship_id": req.scholarship_id, **out}
