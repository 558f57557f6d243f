"""Custom exception hierarchy for the Survey Ledger API."""

from __future__ import annotations


class AppError(Exception):
    """Base application error with a stable machine-readable code."""

    def __init__(self, message: str, code: str, status_code: int = 400) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        """Serialize the error in the API standard shape."""
        return {"error": self.message, "code": self.code}


class NotFoundError(AppError):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str, code: str = "NOT_FOUND") -> None:
        super().__init__(message=f"{resource} not found", code=code, status_code=404)


class ConflictError(AppError):
    """Raised on duplicate/conflicting operations."""

    def __init__(self, reason: str, code: str = "CONFLICT") -> None:
        super().__init__(message=reason, code=code, status_code=409)


class UnauthorizedError(AppError):
    """Raised when the caller is not authenticated as the acting identity."""

    def __init__(self, reason: str = "Unauthorized") -> None:
        super().__init__(message=reason, code="UNAUTHORIZED", status_code=401)


class InvalidInputError(AppError):
    """Raised for request payload or parameter validation issues."""

    def __init__(self, reason: str, code: str = "INVALID_INPUT") -> None:
        super().__init__(message=reason, code=code, status_code=422)


class InvalidCandidateSetError(InvalidInputError):
    """Raised when a survey is created without candidates."""

    def __init__(self) -> None:
        super().__init__(
            "Survey must have at least one candidate", code="INVALID_CANDIDATE_SET"
        )


class InvalidTimeWindowError(InvalidInputError):
    """Raised when a survey window does not start before it ends."""

    def __init__(self, start_time: int, end_time: int) -> None:
        super().__init__(
            f"Start time {start_time} must be before end time {end_time}",
            code="INVALID_TIME_WINDOW",
        )


class InvalidCandidateError(InvalidInputError):
    """Raised when a vote names a candidate outside the survey's list."""

    def __init__(self) -> None:
        super().__init__("Candidate is not in this survey", code="INVALID_CANDIDATE")


class SurveyNotFoundError(NotFoundError):
    """Raised when a survey id has no stored record."""

    def __init__(self, survey_id: int) -> None:
        super().__init__(f"Survey {survey_id}", code="SURVEY_NOT_FOUND")
        self.survey_id = survey_id


class SurveyNotOpenError(ConflictError):
    """Raised when a vote arrives outside the survey window.

    ``phase`` is ``"pending"`` before the window and ``"closed"`` after it.
    """

    def __init__(self, phase: str) -> None:
        reason = "Survey has not started yet" if phase == "pending" else "Survey has ended"
        super().__init__(reason, code="SURVEY_NOT_OPEN")
        self.phase = phase

    def to_dict(self) -> dict[str, str]:
        payload = super().to_dict()
        payload["phase"] = self.phase
        return payload


class AlreadyVotedError(ConflictError):
    """Raised when a voter tries to vote twice in one survey."""

    def __init__(self) -> None:
        super().__init__("Voter has already voted in this survey", code="ALREADY_VOTED")


class AlreadyInitializedError(ConflictError):
    """Raised when the ledger is initialized a second time."""

    def __init__(self) -> None:
        super().__init__("Ledger is already initialized", code="ALREADY_INITIALIZED")


class WriteConflictError(ConflictError):
    """Raised when a batch guard fails at commit time."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Concurrent write on {key}", code="WRITE_CONFLICT")
        self.key = key


class EntryArchivedError(AppError):
    """Raised when a stored entry outlived its lifetime and is unavailable."""

    def __init__(self, key: str) -> None:
        super().__init__(
            message=f"Ledger entry {key} is archived",
            code="ENTRY_ARCHIVED",
            status_code=503,
        )
        self.key = key
