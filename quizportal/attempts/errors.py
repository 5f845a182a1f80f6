from __future__ import annotations

from quizportal.attempts.types import SessionErrorKind
from quizportal.core.errors import QuizPortalError


class AttemptBackendError(QuizPortalError):
    pass


class NotAvailableError(AttemptBackendError):
    pass


class ConflictError(AttemptBackendError):
    pass


class AlreadyCompletedError(AttemptBackendError):
    pass


class QuizNotFoundError(AttemptBackendError):
    pass


class AttemptNotFoundError(AttemptBackendError):
    pass


class InvalidPayloadError(AttemptBackendError):
    pass


class BackendUnavailableError(AttemptBackendError):
    pass


# Backend failures the user can only resolve by returning to the quiz list.
VALIDATION_ERRORS: tuple[type[AttemptBackendError], ...] = (
    NotAvailableError,
    ConflictError,
    AlreadyCompletedError,
    QuizNotFoundError,
    AttemptNotFoundError,
    InvalidPayloadError,
)


class AttemptSessionError(QuizPortalError):
    pass


class SessionStateError(AttemptSessionError):
    pass


class SessionClosedError(SessionStateError):
    pass


class InvalidAnswerError(AttemptSessionError):
    pass


class _KindedSessionError(AttemptSessionError):
    def __init__(self, message: str, *, kind: SessionErrorKind) -> None:
        super().__init__(message)
        self.kind = kind


class AttemptLoadError(_KindedSessionError):
    pass


class AttemptSubmissionError(_KindedSessionError):
    pass


def classify_backend_error(exc: Exception, *, default: SessionErrorKind) -> SessionErrorKind:
    if isinstance(exc, VALIDATION_ERRORS):
        return SessionErrorKind.VALIDATION
    return default
