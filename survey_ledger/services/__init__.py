"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "CandidateRegistry": "survey_ledger.services.registry_service",
    "DataKey": "survey_ledger.services.keys",
    "InMemoryStore": "survey_ledger.services.store",
    "KeyedStore": "survey_ledger.services.store",
    "SupabaseStore": "survey_ledger.services.supabase_store",
    "SurveyService": "survey_ledger.services.survey_service",
    "UserRegistry": "survey_ledger.services.registry_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
