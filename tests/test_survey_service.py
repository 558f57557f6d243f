"""Survey service lifecycle, voting, and tally tests."""

from __future__ import annotations

import threading

import pytest

from survey_ledger.schemas.survey import SurveyPhase, VoteResult
from survey_ledger.services.keys import DataKey
from survey_ledger.services.store import InMemoryStore
from survey_ledger.services.survey_service import SurveyService
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
from survey_ledger.utils.time import ManualLedgerClock
from tests.conftest import ADMIN, CANDIDATE_X, CANDIDATE_Y, CREATOR, GuardOnlyStore


def _create(service: SurveyService, candidates: list[str], start: int = 1000, end: int = 2000):
    return service.create_survey(
        caller=CREATOR,
        creator=CREATOR,
        name="Survey",
        description="",
        start_time=start,
        end_time=end,
        candidates=candidates,
    )


def _assert_consistent(service: SurveyService, survey_id: int) -> None:
    voters = service.get_voters(survey_id)
    results = service.get_results(survey_id)
    assert sum(result.votes for result in results) == service.get_total_votes(survey_id)
    assert len(voters) == len(set(voters)) == service.get_total_votes(survey_id)
    for result in results:
        ballots = [voter for voter in voters if service.get_vote(survey_id, voter) == result.candidate]
        assert result.votes == len(ballots)


def test_create_survey_assigns_sequential_ids(service: SurveyService) -> None:
    """Ids start at 1 and increase by one with no gaps."""
    ids = [_create(service, [CANDIDATE_X]) for _ in range(3)]
    assert ids == [1, 2, 3]
    assert service.get_survey_count() == 3


def test_create_survey_initializes_zero_tallies_and_empty_roster(
    service: SurveyService, survey_id: int
) -> None:
    survey = service.get_survey(survey_id)
    assert survey is not None
    assert survey.creator == CREATOR
    assert survey.candidates == [CANDIDATE_X, CANDIDATE_Y]
    assert service.get_results(survey_id) == [
        VoteResult(candidate=CANDIDATE_X, votes=0),
        VoteResult(candidate=CANDIDATE_Y, votes=0),
    ]
    assert service.get_voters(survey_id) == []
    assert service.store.get(DataKey.vote_count(survey_id, CANDIDATE_Y)) == 0


def test_vote_then_double_vote_is_rejected(service: SurveyService, survey_id: int) -> None:
    """A voter gets exactly one accepted vote; the retry changes nothing."""
    assert service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)
    assert service.has_voted(survey_id, "GV1")
    assert service.get_vote(survey_id, "GV1") == CANDIDATE_X

    with pytest.raises(AlreadyVotedError):
        service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_Y)

    assert [r.votes for r in service.get_results(survey_id)] == [1, 0]
    assert service.get_vote(survey_id, "GV1") == CANDIDATE_X
    assert service.get_total_votes(survey_id) == 1


def test_empty_candidate_set_leaves_counter_unchanged(service: SurveyService) -> None:
    _create(service, [CANDIDATE_X])
    with pytest.raises(InvalidCandidateSetError):
        _create(service, [])
    assert service.get_survey_count() == 1
    assert service.get_survey(2) is None


@pytest.mark.parametrize(("start", "end"), [(2000, 1000), (1500, 1500)])
def test_invalid_time_window(service: SurveyService, start: int, end: int) -> None:
    with pytest.raises(InvalidTimeWindowError):
        _create(service, [CANDIDATE_X], start=start, end=end)
    assert service.get_survey_count() == 0


def test_empty_candidate_set_is_checked_before_window(service: SurveyService) -> None:
    with pytest.raises(InvalidCandidateSetError):
        _create(service, [], start=2000, end=1000)


def test_vote_for_unknown_candidate_changes_nothing(
    service: SurveyService, survey_id: int
) -> None:
    with pytest.raises(InvalidCandidateError):
        service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate="GOUTSIDER")
    assert not service.has_voted(survey_id, "GV1")
    assert service.get_total_votes(survey_id) == 0
    assert [r.votes for r in service.get_results(survey_id)] == [0, 0]


def test_two_voters_for_same_candidate(service: SurveyService, survey_id: int) -> None:
    service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)
    service.vote(caller="GV2", survey_id=survey_id, voter="GV2", candidate=CANDIDATE_X)

    assert service.get_results(survey_id)[0] == VoteResult(candidate=CANDIDATE_X, votes=2)
    assert service.get_voters(survey_id) == ["GV1", "GV2"]
    assert service.get_total_votes(survey_id) == 2
    _assert_consistent(service, survey_id)


def test_vote_window_bounds_are_inclusive(
    service: SurveyService, clock: ManualLedgerClock
) -> None:
    clock.set(1000)
    survey_id = _create(service, [CANDIDATE_X], start=1000, end=2000)
    assert service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)
    clock.set(2000)
    assert service.vote(caller="GV2", survey_id=survey_id, voter="GV2", candidate=CANDIDATE_X)


def test_vote_before_start_reports_pending(service: SurveyService, clock: ManualLedgerClock) -> None:
    survey_id = _create(service, [CANDIDATE_X], start=1600, end=2000)
    with pytest.raises(SurveyNotOpenError) as exc_info:
        service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)
    assert exc_info.value.phase == "pending"
    assert exc_info.value.message == "Survey has not started yet"
    assert service.get_phase(survey_id) is SurveyPhase.PENDING
    assert service.get_total_votes(survey_id) == 0


def test_vote_after_end_reports_closed(
    service: SurveyService, survey_id: int, clock: ManualLedgerClock
) -> None:
    service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)
    clock.set(2001)

    with pytest.raises(SurveyNotOpenError) as exc_info:
        service.vote(caller="GV2", survey_id=survey_id, voter="GV2", candidate=CANDIDATE_Y)

    assert exc_info.value.phase == "closed"
    assert service.get_phase(survey_id) is SurveyPhase.CLOSED
    assert [r.votes for r in service.get_results(survey_id)] == [1, 0]
    assert not service.has_voted(survey_id, "GV2")


def test_vote_on_missing_survey(service: SurveyService) -> None:
    with pytest.raises(SurveyNotFoundError):
        service.vote(caller="GV1", survey_id=99, voter="GV1", candidate=CANDIDATE_X)


def test_authentication_is_checked_first(service: SurveyService) -> None:
    """Unauthorized wins even when the survey does not exist."""
    with pytest.raises(UnauthorizedError):
        service.vote(caller="GOTHER", survey_id=99, voter="GV1", candidate=CANDIDATE_X)
    with pytest.raises(UnauthorizedError):
        service.vote(caller=None, survey_id=99, voter="GV1", candidate=CANDIDATE_X)


def test_create_survey_requires_creator_auth(service: SurveyService) -> None:
    with pytest.raises(UnauthorizedError):
        service.create_survey(
            caller="GOTHER",
            creator=CREATOR,
            name="Survey",
            description="",
            start_time=1000,
            end_time=2000,
            candidates=[CANDIDATE_X],
        )
    assert service.get_survey_count() == 0


def test_read_accessors_are_total(service: SurveyService) -> None:
    assert service.get_survey(1) is None
    assert service.get_phase(1) is None
    assert service.get_total_votes(1) == 0
    assert service.get_voters(1) == []
    assert service.has_voted(1, "GV1") is False
    assert service.get_vote(1, "GV1") is None
    assert service.get_survey_count() == 0
    with pytest.raises(SurveyNotFoundError):
        service.get_results(1)


def test_initialize_sets_fee_once(service: SurveyService) -> None:
    assert service.get_vote_fee() == 1_000_000
    service.initialize(caller=ADMIN, admin=ADMIN)
    assert service.get_vote_fee() == 1_000_000
    assert service.get_survey_count() == 0

    with pytest.raises(AlreadyInitializedError):
        service.initialize(caller=ADMIN, admin=ADMIN)


def test_initialize_requires_admin_auth(service: SurveyService) -> None:
    with pytest.raises(UnauthorizedError):
        service.initialize(caller=CREATOR, admin=ADMIN)
    assert service.store.get(DataKey.admin()) is None


def test_initialize_after_surveys_keeps_counter(service: SurveyService) -> None:
    """Initializing late must not reset the survey counter."""
    _create(service, [CANDIDATE_X])
    service.initialize(caller=ADMIN, admin=ADMIN)
    assert service.get_survey_count() == 1
    assert _create(service, [CANDIDATE_X]) == 2


def test_duplicate_candidates_share_one_tally(service: SurveyService) -> None:
    """Repeated candidates are stored as given and share a single counter."""
    survey_id = _create(service, [CANDIDATE_X, CANDIDATE_X, CANDIDATE_Y])
    service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X)

    results = service.get_results(survey_id)
    assert [r.candidate for r in results] == [CANDIDATE_X, CANDIDATE_X, CANDIDATE_Y]
    assert [r.votes for r in results] == [1, 1, 0]
    assert service.get_total_votes(survey_id) == 1


def test_surveys_do_not_interfere(service: SurveyService) -> None:
    first = _create(service, [CANDIDATE_X, CANDIDATE_Y])
    second = _create(service, [CANDIDATE_X, CANDIDATE_Y])
    service.vote(caller="GV1", survey_id=first, voter="GV1", candidate=CANDIDATE_X)
    service.vote(caller="GV1", survey_id=second, voter="GV1", candidate=CANDIDATE_Y)

    assert [r.votes for r in service.get_results(first)] == [1, 0]
    assert [r.votes for r in service.get_results(second)] == [0, 1]


def test_list_surveys_pages_by_id(service: SurveyService) -> None:
    for _ in range(5):
        _create(service, [CANDIDATE_X])
    surveys, total = service.list_surveys(offset=1, limit=2)
    assert total == 5
    assert [survey.survey_id for survey in surveys] == [2, 3]

    surveys, _ = service.list_surveys(offset=4, limit=10)
    assert [survey.survey_id for survey in surveys] == [5]


def test_concurrent_votes_by_same_voter_accept_exactly_one(
    service: SurveyService, survey_id: int
) -> None:
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def cast(candidate: str) -> None:
        barrier.wait()
        try:
            service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=candidate)
            result = "ok"
        except AlreadyVotedError:
            result = "dup"
        with lock:
            outcomes.append(result)

    threads = [
        threading.Thread(target=cast, args=(CANDIDATE_X if i % 2 else CANDIDATE_Y,))
        for i in range(8)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("dup") == 7
    assert service.get_total_votes(survey_id) == 1
    _assert_consistent(service, survey_id)


def test_many_voters_keep_tallies_consistent(clock: ManualLedgerClock) -> None:
    service = SurveyService(InMemoryStore(clock=clock))
    survey_id = _create(service, [CANDIDATE_X, CANDIDATE_Y, "GCANDIDATEZ"])
    candidates = [CANDIDATE_X, CANDIDATE_Y, "GCANDIDATEZ"]
    for index in range(30):
        voter = f"GVOTER{index}"
        service.vote(caller=voter, survey_id=survey_id, voter=voter, candidate=candidates[index % 3])
        _assert_consistent(service, survey_id)

    assert [r.votes for r in service.get_results(survey_id)] == [10, 10, 10]


def test_initialize_racing_a_survey_never_resets_the_counter(
    guard_only_store: GuardOnlyStore,
) -> None:
    """A survey committed between initialize's read and write keeps its id."""
    service = SurveyService(guard_only_store, default_vote_fee=1_000_000)
    guard_only_store.interleave(DataKey.survey_count(), lambda: _create(service, [CANDIDATE_X]))

    with pytest.raises(WriteConflictError):
        service.initialize(caller=ADMIN, admin=ADMIN)
    assert service.get_survey_count() == 1
    assert guard_only_store.has(DataKey.admin()) is False

    service.vote(caller="GV1", survey_id=1, voter="GV1", candidate=CANDIDATE_X)
    service.initialize(caller=ADMIN, admin=ADMIN)
    assert service.get_survey_count() == 1

    assert _create(service, [CANDIDATE_Y]) == 2
    assert service.get_results(1) == [VoteResult(candidate=CANDIDATE_X, votes=1)]
    assert service.has_voted(1, "GV1")
    _assert_consistent(service, 1)


def test_create_survey_losing_the_counter_race_writes_nothing(
    guard_only_store: GuardOnlyStore,
) -> None:
    service = SurveyService(guard_only_store)
    assert _create(service, [CANDIDATE_X]) == 1
    # Fire after the counter value is read, before the batch commits.
    guard_only_store.interleave(
        DataKey.survey_count(), lambda: _create(service, [CANDIDATE_Y]), after_reads=2
    )

    with pytest.raises(WriteConflictError) as exc_info:
        _create(service, [CANDIDATE_X, CANDIDATE_Y])
    assert exc_info.value.code == "WRITE_CONFLICT"

    assert service.get_survey_count() == 2
    survey = service.get_survey(2)
    assert survey is not None
    assert survey.candidates == [CANDIDATE_Y]
    assert service.get_survey(3) is None
    assert _create(service, [CANDIDATE_X]) == 3


def test_racing_votes_by_same_voter_surface_as_already_voted(
    guard_only_store: GuardOnlyStore,
) -> None:
    service = SurveyService(guard_only_store)
    survey_id = _create(service, [CANDIDATE_X, CANDIDATE_Y])
    guard_only_store.interleave(
        DataKey.vote(survey_id, "GV1"),
        lambda: service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_X),
    )

    with pytest.raises(AlreadyVotedError):
        service.vote(caller="GV1", survey_id=survey_id, voter="GV1", candidate=CANDIDATE_Y)

    assert service.get_vote(survey_id, "GV1") == CANDIDATE_X
    assert service.get_results(survey_id) == [
        VoteResult(candidate=CANDIDATE_X, votes=1),
        VoteResult(candidate=CANDIDATE_Y, votes=0),
    ]
    assert service.get_voters(survey_id) == ["GV1"]
    _assert_consistent(service, survey_id)
