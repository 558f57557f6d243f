"""Survey endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from survey_ledger.dependencies import get_caller, get_survey_service
from survey_ledger.schemas.survey import (
    ResultsResponse,
    SurveyCreate,
    SurveyResponse,
    VoteCreate,
    VoteStatusResponse,
)
from survey_ledger.services.survey_service import SurveyService, survey_phase
from survey_ledger.utils.errors import SurveyNotFoundError

router = APIRouter()


@router.get("")
def list_surveys(
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return surveys by ascending id."""
    surveys, total = service.list_surveys(offset=offset, limit=limit)
    now = service.clock.now()
    return {
        "surveys": [
            {"survey": survey, "phase": survey_phase(survey, now)} for survey in surveys
        ],
        "total": total,
    }


@router.post("", status_code=201)
def create_survey(
    payload: SurveyCreate,
    caller: str = Depends(get_caller),
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Create a survey; the creator must be the caller."""
    survey_id = service.create_survey(
        caller=caller,
        creator=payload.creator or caller,
        name=payload.name,
        description=payload.description,
        start_time=payload.start_time,
        end_time=payload.end_time,
        candidates=payload.candidates,
    )
    return {"survey_id": survey_id}


@router.get("/count")
def get_survey_count(service: SurveyService = Depends(get_survey_service)) -> dict:
    """Return how many surveys have been created."""
    return {"count": service.get_survey_count()}


@router.get("/{survey_id}", response_model=SurveyResponse)
def get_survey(
    survey_id: int,
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return one survey with its current phase."""
    survey = service.get_survey(survey_id)
    if survey is None:
        raise SurveyNotFoundError(survey_id)
    return {"survey": survey, "phase": survey_phase(survey, service.clock.now())}


@router.get("/{survey_id}/results", response_model=ResultsResponse)
def get_results(
    survey_id: int,
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return per-candidate tallies."""
    return {
        "survey_id": survey_id,
        "results": service.get_results(survey_id),
        "total_votes": service.get_total_votes(survey_id),
    }


@router.get("/{survey_id}/total-votes")
def get_total_votes(
    survey_id: int,
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return the roster length (0 for unknown surveys)."""
    return {"survey_id": survey_id, "total_votes": service.get_total_votes(survey_id)}


@router.get("/{survey_id}/voters")
def get_voters(
    survey_id: int,
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return voters in the order they voted."""
    return {"survey_id": survey_id, "voters": service.get_voters(survey_id)}


@router.post("/{survey_id}/vote")
def vote(
    survey_id: int,
    payload: VoteCreate,
    caller: str = Depends(get_caller),
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Cast the caller's vote."""
    voter = payload.voter or caller
    success = service.vote(
        caller=caller,
        survey_id=survey_id,
        voter=voter,
        candidate=payload.candidate,
    )
    return {"success": success, "survey_id": survey_id, "voter": voter}


@router.get("/{survey_id}/votes/{voter}", response_model=VoteStatusResponse)
def get_vote(
    survey_id: int,
    voter: str,
    service: SurveyService = Depends(get_survey_service),
) -> dict:
    """Return whether ``voter`` voted and for which candidate."""
    candidate = service.get_vote(survey_id, voter)
    return {
        "survey_id": survey_id,
        "voter": voter,
        "has_voted": service.has_voted(survey_id, voter),
        "candidate": candidate,
    }
