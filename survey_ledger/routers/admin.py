"""Ledger administration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from survey_ledger.dependencies import get_caller, get_survey_service
from survey_ledger.schemas.survey import InitializeRequest
from survey_ledger.services.survey_service import SurveyService

router = APIRouter()


@router.post("/initialize")
def initialize(
    payload: InitializeRequest,
    caller: str = Depends(get_caller),
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Initialize the ledger once with the caller as admin."""
    admin = payload.admin or caller
    service.initialize(caller=caller, admin=admin)
    return {"admin": admin, "vote_fee": service.get_vote_fee()}


@router.get("/fee")
def get_vote_fee(service: SurveyService = Depends(get_survey_service)) -> dict:
    """Return the informational vote fee in stroops."""
    return {"vote_fee": service.get_vote_fee()}
