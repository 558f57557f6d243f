"""FastAPI dependency injection helpers."""

from __future__ import annotations

import threading
import time
from functools import lru_cache
from typing import Any

from fastapi import Depends, Header

from survey_ledger.config import settings
from survey_ledger.services.registry_service import CandidateRegistry, UserRegistry
from survey_ledger.services.store import InMemoryStore, KeyedStore
from survey_ledger.services.supabase_store import SupabaseStore
from survey_ledger.services.survey_service import SurveyService
from survey_ledger.utils.errors import UnauthorizedError
from survey_ledger.utils.supabase_client import get_auth_client, get_ledger_client

_token_cache: dict[str, tuple[float, Any]] = {}
_cache_lock = threading.Lock()


def _cache_get(cache: dict[Any, tuple[float, Any]], key: Any) -> Any | None:
    """Return a cache value when present and not expired."""
    now = time.monotonic()
    with _cache_lock:
        entry = cache.get(key)
        if not entry:
            return None
        expires_at, value = entry
        if expires_at <= now:
            cache.pop(key, None)
            return None
        return value


def _cache_set(
    cache: dict[Any, tuple[float, Any]],
    key: Any,
    value: Any,
    ttl_seconds: int,
    max_entries: int,
) -> None:
    """Store a bounded cache value with TTL."""
    if ttl_seconds <= 0:
        return

    with _cache_lock:
        bounded_max_entries = max(1, max_entries)
        if len(cache) >= bounded_max_entries:
            oldest_key = next(iter(cache))
            cache.pop(oldest_key, None)
        cache[key] = (time.monotonic() + ttl_seconds, value)


def get_authenticated_user(authorization: str = Header(None)) -> Any:
    """Extract and validate a Supabase JWT from the Authorization header.

    Raises:
        UnauthorizedError: 401 if the header is missing, malformed, or
            the token cannot be validated.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Missing authorization header")

    token = authorization.split(" ", 1)[1]
    cached_user = _cache_get(_token_cache, token)
    if cached_user is not None:
        return cached_user

    supabase = get_auth_client()

    try:
        response = supabase.auth.get_user(token)
        if not response or not response.user:
            raise UnauthorizedError("Invalid token")
        _cache_set(
            _token_cache,
            token,
            response.user,
            settings.auth_token_cache_ttl_seconds,
            settings.auth_token_cache_max_entries,
        )
        return response.user
    except UnauthorizedError:
        raise
    except Exception as exc:
        raise UnauthorizedError("Invalid or expired token") from exc


def identity_of(user: Any) -> str:
    """Return the ledger identity for a Supabase user.

    The wallet address in the user metadata wins; the user id is the fallback.
    """
    metadata = getattr(user, "user_metadata", None) or {}
    wallet = metadata.get("wallet_address") if isinstance(metadata, dict) else None
    if isinstance(wallet, str) and wallet.strip():
        return wallet.strip()
    return str(user.id)


def get_caller(user: Any = Depends(get_authenticated_user)) -> str:
    """Return the identity the caller has proven."""
    return identity_of(user)


@lru_cache(maxsize=1)
def get_store() -> KeyedStore:
    """Return the process-wide ledger store for the configured backend."""
    if settings.storage_backend == "memory":
        return InMemoryStore()
    return SupabaseStore(get_ledger_client())


def get_survey_service(store: KeyedStore = Depends(get_store)) -> SurveyService:
    return SurveyService(store)


def get_user_registry(store: KeyedStore = Depends(get_store)) -> UserRegistry:
    return UserRegistry(store)


def get_candidate_registry(store: KeyedStore = Depends(get_store)) -> CandidateRegistry:
    return CandidateRegistry(store)
