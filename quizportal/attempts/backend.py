from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol

from quizportal.attempts.schemas import AnswerPayload
from quizportal.attempts.types import Attempt, Feedback
from quizportal.quizzes.types import Quiz


class AttemptBackend(Protocol):
    """Persistence operations the attempt session relies on.

    ``start_attempt`` returns the existing in-progress attempt instead of
    creating a duplicate and raises ``NotAvailableError`` outside the quiz
    window or for unpublished quizzes. ``save_answer`` is last-write-wins per
    question and raises ``ConflictError`` once the attempt is finished.
    ``complete_attempt`` raises ``AlreadyCompletedError`` on a repeat call and
    runs the objective grading pass.
    """

    async def fetch_quiz(self, quiz_id: str) -> Quiz: ...

    async def start_attempt(self, quiz_id: str) -> Attempt: ...

    async def save_answer(self, attempt_id: str, question_id: str, payload: AnswerPayload) -> None: ...

    async def complete_attempt(self, attempt_id: str) -> Attempt: ...

    async def grade_attempt(
        self,
        attempt_id: str,
        grades: Mapping[str, Feedback],
        overall_feedback: str | None,
        *,
        graded_by: str | None = None,
    ) -> Attempt: ...
