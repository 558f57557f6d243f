"""Structured keys for the ledger key space."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class KeyKind(StrEnum):
    """Namespaces of the flat ledger key space."""

    SURVEY = "survey"
    VOTE = "vote"
    VOTE_COUNT = "vote_count"
    VOTER_LIST = "voter_list"
    SURVEY_COUNT = "survey_count"
    VOTE_FEE = "vote_fee"
    ADMIN = "admin"
    USER = "user"
    USER_LIST = "user_list"
    USER_COUNT = "user_count"
    CANDIDATE = "candidate"
    CANDIDATE_LIST = "candidate_list"
    CANDIDATE_COUNT = "candidate_count"


SURVEY_SCOPED = frozenset(
    {KeyKind.SURVEY, KeyKind.VOTE, KeyKind.VOTE_COUNT, KeyKind.VOTER_LIST}
)


@dataclass(frozen=True)
class DataKey:
    """One key of the ledger: a namespace plus its identifying parts."""

    kind: KeyKind
    parts: tuple[Any, ...] = ()

    def encode(self) -> str:
        """Return the flat string form used as the storage primary key."""
        return ":".join([self.kind.value, *(str(part) for part in self.parts)])

    @classmethod
    def decode(cls, raw: str) -> DataKey:
        """Parse the string form produced by :meth:`encode`."""
        kind_text, _, rest = raw.partition(":")
        kind = KeyKind(kind_text)
        if not rest:
            return cls(kind)
        if kind in SURVEY_SCOPED:
            survey_id, _, identity = rest.partition(":")
            if kind in {KeyKind.SURVEY, KeyKind.VOTER_LIST}:
                return cls(kind, (int(survey_id),))
            return cls(kind, (int(survey_id), identity))
        return cls(kind, (rest,))

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def survey(cls, survey_id: int) -> DataKey:
        return cls(KeyKind.SURVEY, (survey_id,))

    @classmethod
    def vote(cls, survey_id: int, voter: str) -> DataKey:
        return cls(KeyKind.VOTE, (survey_id, voter))

    @classmethod
    def vote_count(cls, survey_id: int, candidate: str) -> DataKey:
        return cls(KeyKind.VOTE_COUNT, (survey_id, candidate))

    @classmethod
    def voter_list(cls, survey_id: int) -> DataKey:
        return cls(KeyKind.VOTER_LIST, (survey_id,))

    @classmethod
    def survey_count(cls) -> DataKey:
        return cls(KeyKind.SURVEY_COUNT)

    @classmethod
    def vote_fee(cls) -> DataKey:
        return cls(KeyKind.VOTE_FEE)

    @classmethod
    def admin(cls) -> DataKey:
        return cls(KeyKind.ADMIN)

    @classmethod
    def user(cls, wallet: str) -> DataKey:
        return cls(KeyKind.USER, (wallet,))

    @classmethod
    def user_list(cls) -> DataKey:
        return cls(KeyKind.USER_LIST)

    @classmethod
    def user_count(cls) -> DataKey:
        return cls(KeyKind.USER_COUNT)

    @classmethod
    def candidate(cls, wallet: str) -> DataKey:
        return cls(KeyKind.CANDIDATE, (wallet,))

    @classmethod
    def candidate_list(cls) -> DataKey:
        return cls(KeyKind.CANDIDATE_LIST)

    @classmethod
    def candidate_count(cls) -> DataKey:
        return cls(KeyKind.CANDIDATE_COUNT)
