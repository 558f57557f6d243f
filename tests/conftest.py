"""Pytest fixtures for backend tests."""

from __future__ import annotations

import os
from collections.abc import Callable
from contextlib import nullcontext
from typing import Any


def _set_default_env() -> None:
    os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
    os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
    os.environ.setdefault("ENABLE_SCHEDULER", "false")
    os.environ.setdefault("STORAGE_BACKEND", "memory")


# Settings are read at import time, so the env must be in place first.
_set_default_env()

import pytest  # noqa: E402
from fastapi import Header  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from survey_ledger.services.keys import DataKey  # noqa: E402
from survey_ledger.services.store import InMemoryStore  # noqa: E402
from survey_ledger.services.survey_service import SurveyService  # noqa: E402
from survey_ledger.utils.errors import UnauthorizedError  # noqa: E402
from survey_ledger.utils.time import ManualLedgerClock  # noqa: E402

CREATOR = "GCREATOR"
ADMIN = "GADMIN"
CANDIDATE_X = "GCANDIDATEX"
CANDIDATE_Y = "GCANDIDATEY"


class GuardOnlyStore(InMemoryStore):
    """In-memory store that, like the Supabase backend, holds no lock across a
    transaction; only the commit guards stop competing writers.

    ``interleave(key, action, after_reads)`` runs ``action`` once, right after
    the ``after_reads``-th read of ``key``, to land a competing commit between
    a read and its write.
    """

    def __init__(self, clock: ManualLedgerClock) -> None:
        super().__init__(clock=clock)
        self._pending: dict[str, list[Any]] = {}

    def _transaction_guard(self):
        return nullcontext()

    def interleave(self, key: DataKey, action: Callable[[], Any], after_reads: int = 1) -> None:
        self._pending[key.encode()] = [after_reads, action]

    def _after_read(self, key: DataKey) -> None:
        pending = self._pending.get(key.encode())
        if pending is None:
            return
        pending[0] -= 1
        if pending[0] == 0:
            del self._pending[key.encode()]
            pending[1]()

    def has(self, key: DataKey) -> bool:
        found = super().has(key)
        self._after_read(key)
        return found

    def get(self, key: DataKey, default: Any = None) -> Any:
        value = super().get(key, default)
        self._after_read(key)
        return value


@pytest.fixture(scope="session")
def client() -> TestClient:
    """Create a FastAPI test client."""
    from survey_ledger.main import app

    return TestClient(app)


@pytest.fixture
def clock() -> ManualLedgerClock:
    """Ledger clock parked at 1500, inside the default [1000, 2000] window."""
    return ManualLedgerClock(1500)


@pytest.fixture
def store(clock: ManualLedgerClock) -> InMemoryStore:
    return InMemoryStore(clock=clock)


@pytest.fixture
def guard_only_store(clock: ManualLedgerClock) -> GuardOnlyStore:
    return GuardOnlyStore(clock)


@pytest.fixture
def service(store: InMemoryStore) -> SurveyService:
    return SurveyService(store, default_vote_fee=1_000_000)


@pytest.fixture
def survey_id(service: SurveyService) -> int:
    """A survey over [X, Y] open during [1000, 2000]."""
    return service.create_survey(
        caller=CREATOR,
        creator=CREATOR,
        name="Test Survey",
        description="Description",
        start_time=1000,
        end_time=2000,
        candidates=[CANDIDATE_X, CANDIDATE_Y],
    )


def _caller_from_header(x_test_caller: str | None = Header(None)) -> str:
    if not x_test_caller:
        raise UnauthorizedError("Missing authorization header")
    return x_test_caller


@pytest.fixture
def api(client: TestClient, store: InMemoryStore):
    """Test client bound to a fresh in-memory store; callers via X-Test-Caller."""
    from survey_ledger.dependencies import get_caller, get_store
    from survey_ledger.main import app

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_caller] = _caller_from_header
    yield client
    app.dependency_overrides.clear()
