"""User registry endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from survey_ledger.dependencies import get_caller, get_user_registry
from survey_ledger.schemas.registry import RegisterResponse, UserProfile, UserRegister
from survey_ledger.services.registry_service import UserRegistry
from survey_ledger.utils.errors import NotFoundError

router = APIRouter()


@router.post("", response_model=RegisterResponse)
def register_user(
    payload: UserRegister,
    caller: str = Depends(get_caller),
    registry: UserRegistry = Depends(get_user_registry),
) -> dict:
    """Register the caller's wallet; ``registered`` is False if it already was."""
    wallet = payload.wallet or caller
    registered = registry.register(
        caller=caller,
        wallet=wallet,
        first_name=payload.first_name,
        paternal_last_name=payload.paternal_last_name,
        maternal_last_name=payload.maternal_last_name,
        phone=payload.phone,
        email=payload.email,
    )
    return {"wallet": wallet, "registered": registered}


@router.get("")
def list_users(registry: UserRegistry = Depends(get_user_registry)) -> dict:
    """Return user wallets in registration order."""
    return {"users": registry.list_all(), "total": registry.count()}


@router.get("/count")
def get_user_count(registry: UserRegistry = Depends(get_user_registry)) -> dict:
    return {"count": registry.count()}


@router.get("/{wallet}", response_model=UserProfile)
def get_user(wallet: str, registry: UserRegistry = Depends(get_user_registry)) -> UserProfile:
    user = registry.get(wallet)
    if user is None:
        raise NotFoundError("User")
    return user
