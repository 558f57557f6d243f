"""Survey creation, voting, and result logic."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from survey_ledger.config import settings
from survey_ledger.schemas.survey import Survey, SurveyPhase, VoteResult
from survey_ledger.services.keys import DataKey
from survey_ledger.services.store import KeyedStore
from survey_ledger.utils.errors import (
    AlreadyInitializedError,
    AlreadyVotedError,
    InvalidCandidateError,
    InvalidCandidateSetError,
    InvalidTimeWindowError,
    SurveyNotFoundError,
    SurveyNotOpenError,
    UnauthorizedError,
    WriteConflictError,
)
from survey_ledger.utils.time import LedgerClock

logger = logging.getLogger(__name__)


def require_auth(caller: str | None, address: str) -> None:
    """Raise UnauthorizedError unless ``caller`` is authenticated as ``address``."""
    if not caller or caller != address:
        raise UnauthorizedError(f"Caller is not authenticated as {address}")


def survey_phase(survey: Survey, now: int) -> SurveyPhase:
    """Derive the lifecycle phase; both window bounds are inclusive."""
    if now < survey.start_time:
        return SurveyPhase.PENDING
    if now > survey.end_time:
        return SurveyPhase.CLOSED
    return SurveyPhase.OPEN


class SurveyService:
    """Manage the survey lifecycle, one-vote-per-identity, and tallies.

    Tallies and rosters are maintained incrementally on each accepted vote;
    no read path scans vote records.
    """

    def __init__(
        self,
        store: KeyedStore,
        clock: LedgerClock | None = None,
        default_vote_fee: int | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or store.clock
        self.default_vote_fee = (
            settings.vote_fee_stroops if default_vote_fee is None else default_vote_fee
        )

    def initialize(self, caller: str | None, admin: str) -> None:
        """Record the admin and fix the vote fee; zero the survey counter if unset.

        Raises WriteConflictError when a survey is created concurrently.
        """
        require_auth(caller, admin)
        if self.store.has(DataKey.admin()):
            raise AlreadyInitializedError()

        count_key = DataKey.survey_count()
        try:
            with self.store.transaction() as tx:
                tx.expect_absent(DataKey.admin())
                tx.set(DataKey.admin(), admin)
                tx.set(DataKey.vote_fee(), self.default_vote_fee)
                if not tx.has(count_key):
                    # A survey created after the read must not be zeroed out.
                    tx.expect_absent(count_key)
                    tx.set(count_key, 0)
        except WriteConflictError as exc:
            if exc.key == DataKey.admin().encode():
                raise AlreadyInitializedError() from exc
            raise
        logger.info("Ledger initialized by %s with vote fee %s", admin, self.default_vote_fee)

    def create_survey(
        self,
        caller: str | None,
        creator: str,
        name: str,
        description: str,
        start_time: int,
        end_time: int,
        candidates: Sequence[str],
    ) -> int:
        """Create a survey and return its sequential id."""
        require_auth(caller, creator)
        if len(candidates) == 0:
            raise InvalidCandidateSetError()
        if start_time >= end_time:
            raise InvalidTimeWindowError(start_time, end_time)

        count_key = DataKey.survey_count()
        with self.store.transaction() as tx:
            count_exists = tx.has(count_key)
            count = int(tx.get(count_key, 0))
            survey_id = count + 1
            survey = Survey(
                survey_id=survey_id,
                creator=creator,
                name=name,
                description=description,
                start_time=start_time,
                end_time=end_time,
                candidates=list(candidates),
            )

            if count_exists:
                tx.expect_value(count_key, count)
            else:
                tx.expect_absent(count_key)
            tx.set(DataKey.survey(survey_id), survey.model_dump())
            tx.set(count_key, survey_id)
            tx.set(DataKey.voter_list(survey_id), [])
            # A repeated candidate maps to the same tally key.
            for candidate in survey.candidates:
                tx.set(DataKey.vote_count(survey_id, candidate), 0)

        logger.info(
            "Survey %s created by %s with %s candidates", survey_id, creator, len(candidates)
        )
        return survey_id

    def vote(self, caller: str | None, survey_id: int, voter: str, candidate: str) -> bool:
        """Record one vote; all three writes land together or not at all."""
        require_auth(caller, voter)
        survey = self.get_survey(survey_id)
        if survey is None:
            raise SurveyNotFoundError(survey_id)

        phase = survey_phase(survey, self.clock.now())
        if phase is not SurveyPhase.OPEN:
            raise SurveyNotOpenError(phase.value)

        if candidate not in survey.candidates:
            raise InvalidCandidateError()

        vote_key = DataKey.vote(survey_id, voter)
        try:
            with self.store.transaction() as tx:
                if tx.has(vote_key):
                    raise AlreadyVotedError()
                tx.expect_absent(vote_key)
                tx.set(vote_key, candidate)
                tx.increment(DataKey.vote_count(survey_id, candidate))
                tx.append(DataKey.voter_list(survey_id), voter)
        except WriteConflictError as exc:
            raise AlreadyVotedError() from exc

        logger.info("Vote recorded in survey %s", survey_id)
        return True

    def get_survey(self, survey_id: int) -> Survey | None:
        """Return the survey or None."""
        payload = self.store.get(DataKey.survey(survey_id))
        if payload is None:
            return None
        return Survey.model_validate(payload)

    def get_phase(self, survey_id: int) -> SurveyPhase | None:
        """Return the current phase of a survey, or None when it does not exist."""
        survey = self.get_survey(survey_id)
        if survey is None:
            return None
        return survey_phase(survey, self.clock.now())

    def has_voted(self, survey_id: int, voter: str) -> bool:
        return self.store.has(DataKey.vote(survey_id, voter))

    def get_vote(self, survey_id: int, voter: str) -> str | None:
        return self.store.get(DataKey.vote(survey_id, voter))

    def get_results(self, survey_id: int) -> list[VoteResult]:
        """Return tallies in the survey's stored candidate order."""
        survey = self.get_survey(survey_id)
        if survey is None:
            raise SurveyNotFoundError(survey_id)

        return [
            VoteResult(
                candidate=candidate,
                votes=int(self.store.get(DataKey.vote_count(survey_id, candidate), 0)),
            )
            for candidate in survey.candidates
        ]

    def get_voters(self, survey_id: int) -> list[str]:
        """Return the roster of voters in voting order."""
        return list(self.store.get(DataKey.voter_list(survey_id), []))

    def get_total_votes(self, survey_id: int) -> int:
        return len(self.get_voters(survey_id))

    def get_survey_count(self) -> int:
        return int(self.store.get(DataKey.survey_count(), 0))

    def get_vote_fee(self) -> int:
        """Return the vote fee in stroops (configured default before initialize)."""
        return int(self.store.get(DataKey.vote_fee(), self.default_vote_fee))

    def list_surveys(self, offset: int = 0, limit: int = 50) -> tuple[list[Survey], int]:
        """Return surveys by ascending id with the total count for pagination."""
        total = self.get_survey_count()
        first = offset + 1
        last = min(total, offset + limit)
        surveys: list[Survey] = []
        for survey_id in range(first, last + 1):
            survey = self.get_survey(survey_id)
            if survey is not None:
                surveys.append(survey)
        return surveys, total
