"""User and candidate identity registries."""

from __future__ import annotations

import logging

from survey_ledger.schemas.registry import CandidateProfile, UserProfile
from survey_ledger.services.keys import DataKey
from survey_ledger.services.store import KeyedStore
from survey_ledger.services.survey_service import require_auth
from survey_ledger.utils.errors import WriteConflictError

logger = logging.getLogger(__name__)


class UserRegistry:
    """Register-if-absent store of user profiles keyed by wallet."""

    def __init__(self, store: KeyedStore) -> None:
        self.store = store

    def register(
        self,
        caller: str | None,
        wallet: str,
        first_name: str,
        paternal_last_name: str,
        maternal_last_name: str,
        phone: str,
        email: str,
    ) -> bool:
        """Register ``wallet``; return False if it was already registered."""
        require_auth(caller, wallet)
        key = DataKey.user(wallet)
        profile = UserProfile(
            wallet=wallet,
            first_name=first_name,
            paternal_last_name=paternal_last_name,
            maternal_last_name=maternal_last_name,
            phone=phone,
            email=email,
            timestamp=self.store.clock.now(),
        )
        try:
            with self.store.transaction() as tx:
                if tx.has(key):
                    return False
                tx.expect_absent(key)
                tx.set(key, profile.model_dump())
                tx.append(DataKey.user_list(), wallet)
                tx.increment(DataKey.user_count())
        except WriteConflictError:
            return False
        logger.info("User %s registered", wallet)
        return True

    def get(self, wallet: str) -> UserProfile | None:
        payload = self.store.get(DataKey.user(wallet))
        return None if payload is None else UserProfile.model_validate(payload)

    def exists(self, wallet: str) -> bool:
        return self.store.has(DataKey.user(wallet))

    def list_all(self) -> list[str]:
        """Return registered user wallets in registration order."""
        return list(self.store.get(DataKey.user_list(), []))

    def count(self) -> int:
        return int(self.store.get(DataKey.user_count(), 0))


class CandidateRegistry:
    """Register-if-absent store of candidate profiles, in registration order."""

    def __init__(self, store: KeyedStore) -> None:
        self.store = store

    def register(self, caller: str | None, wallet: str, name: str, rfc: str) -> bool:
        """Register ``wallet``; return False if it was already registered."""
        require_auth(caller, wallet)
        key = DataKey.candidate(wallet)
        profile = CandidateProfile(
            wallet=wallet,
            name=name,
            rfc=rfc.strip().upper(),
            timestamp=self.store.clock.now(),
        )
        try:
            with self.store.transaction() as tx:
                if tx.has(key):
                    return False
                tx.expect_absent(key)
                tx.set(key, profile.model_dump())
                tx.append(DataKey.candidate_list(), wallet)
                tx.increment(DataKey.candidate_count())
        except WriteConflictError:
            return False
        logger.info("Candidate %s registered", wallet)
        return True

    def get(self, wallet: str) -> CandidateProfile | None:
        payload = self.store.get(DataKey.candidate(wallet))
        return None if payload is None else CandidateProfile.model_validate(payload)

    def exists(self, wallet: str) -> bool:
        return self.store.has(DataKey.candidate(wallet))

    def list_all(self) -> list[str]:
        """Return registered candidate wallets in registration order."""
        return list(self.store.get(DataKey.candidate_list(), []))

    def count(self) -> int:
        return int(self.store.get(DataKey.candidate_count(), 0))
