"""Candidate registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from survey_ledger.dependencies import get_caller, get_candidate_registry
from survey_ledger.schemas.registry import CandidateProfile, CandidateRegister, RegisterResponse
from survey_ledger.services.registry_service import CandidateRegistry
from survey_ledger.utils.errors import NotFoundError

router = APIRouter()


@router.post("", response_model=RegisterResponse)
def register_candidate(
    payload: CandidateRegister,
    caller: str = Depends(get_caller),
    registry: CandidateRegistry = Depends(get_candidate_registry),
) -> dict:
    """Register the caller's wallet as a candidate."""
    wallet = payload.wallet or caller
    registered = registry.register(caller=caller, wallet=wallet, name=payload.name, rfc=payload.rfc)
    return {"wallet": wallet, "registered": registered}


@router.get("")
def list_candidates(registry: CandidateRegistry = Depends(get_candidate_registry)) -> dict:
    """Return candidate wallets in registration order."""
    return {"candidates": registry.list_all(), "total": registry.count()}


@router.get("/count")
def get_candidate_count(registry: CandidateRegistry = Depends(get_candidate_registry)) -> dict:
    return {"count": registry.count()}


@router.get("/{wallet}", response_model=CandidateProfile)
def get_candidate(
    wallet: str,
    registry: CandidateRegistry = Depends(get_candidate_registry),
) -> CandidateProfile:
    candidate = registry.get(wallet)
    if candidate is None:
        raise NotFoundError("Candidate")
    return candidate
