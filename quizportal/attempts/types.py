from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from quizportal.quizzes.types import AnswerValue


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    GRADED = "graded"


class SessionState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in-progress"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    FAILED = "failed"
    DISPOSED = "disposed"


class SaveStatus(str, Enum):
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class SessionErrorKind(str, Enum):
    LOAD = "load"
    AUTOSAVE = "autosave"
    SUBMISSION = "submission"
    VALIDATION = "validation"


@dataclass(frozen=True, slots=True)
class Feedback:
    score: float | None = None
    comment: str = ""


@dataclass(slots=True)
class Answer:
    question_id: str
    value: AnswerValue
    is_correct: bool | None = None
    points_earned: float = 0
    feedback: Feedback | None = None


@dataclass(slots=True)
class Attempt:
    attempt_id: str
    quiz_id: str
    student_id: str
    started_at: datetime
    ended_at: datetime | None = None
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    answers: dict[str, Answer] = field(default_factory=dict)
    score: float = 0
    percentage: float = 0
    passed: bool = False
    overall_feedback: str | None = None
    graded_by: str | None = None
    graded_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status != AttemptStatus.IN_PROGRESS


@dataclass(frozen=True, slots=True)
class SessionFailure:
    kind: SessionErrorKind
    message: str
