"""Survey and vote schemas."""

from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, Field

LEDGER_TIME_MAX = 2**64 - 1


class SurveyPhase(StrEnum):
    """Lifecycle phase derived from the ledger clock."""

    PENDING = "pending"
    OPEN = "open"
    CLOSED = "closed"


class Survey(BaseModel):
    """Stored survey record; immutable once created."""

    survey_id: int
    creator: str
    name: str
    description: str
    start_time: int
    end_time: int
    candidates: list[str]


class VoteResult(BaseModel):
    """Current tally for one candidate."""

    candidate: str
    votes: int = 0


class SurveyCreate(BaseModel):
    """Request body for creating a survey.

    ``creator`` defaults to the authenticated caller.
    """

    creator: str | None = None
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field("", max_length=2000)
    start_time: int = Field(..., ge=0, le=LEDGER_TIME_MAX)
    end_time: int = Field(..., ge=0, le=LEDGER_TIME_MAX)
    candidates: list[Annotated[str, Field(min_length=1)]] = Field(default_factory=list)


class VoteCreate(BaseModel):
    """Request body for casting a vote."""

    candidate: str = Field(..., min_length=1)
    voter: str | None = None


class InitializeRequest(BaseModel):
    """Request body for one-time ledger initialization."""

    admin: str | None = None


class SurveyResponse(BaseModel):
    """Survey with its derived phase."""

    survey: Survey
    phase: SurveyPhase


class VoteStatusResponse(BaseModel):
    """Whether a voter has voted and for whom."""

    survey_id: int
    voter: str
    has_voted: bool
    candidate: str | None = None


class ResultsResponse(BaseModel):
    """Per-candidate tallies plus the roster length."""

    survey_id: int
    results: list[VoteResult]
    total_votes: int
