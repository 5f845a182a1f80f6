from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from uuid import uuid4

import structlog

from quizportal.attempts.errors import (
    AlreadyCompletedError,
    AttemptNotFoundError,
    ConflictError,
    InvalidPayloadError,
    NotAvailableError,
    QuizNotFoundError,
)
from quizportal.attempts.schemas import AnswerPayload, answer_value_from_payload
from quizportal.attempts.types import Answer, Attempt, AttemptStatus, Feedback
from quizportal.grading.engine import GradingEngine
from quizportal.quizzes.rules import answer_matches_question, validate_quiz
from quizportal.quizzes.types import Quiz

logger = structlog.get_logger("quizportal.attempts.in_memory_backend")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryAttemptBackend:
    """Process-local implementation of ``AttemptBackend`` for one student.

    Every returned object is a copy, so callers never alias stored state.
    """

    def __init__(
        self,
        quizzes: Iterable[Quiz],
        *,
        student_id: str = "student-1",
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._quizzes = {quiz.quiz_id: validate_quiz(quiz) for quiz in quizzes}
        self._student_id = student_id
        self._now = now
        self._attempts: dict[str, Attempt] = {}

    async def fetch_quiz(self, quiz_id: str) -> Quiz:
        return self._get_quiz(quiz_id)

    async def start_attempt(self, quiz_id: str) -> Attempt:
        quiz = self._get_quiz(quiz_id)
        now_utc = self._now()
        if not quiz.is_published:
            raise NotAvailableError(f"quiz {quiz_id} is not published")
        if quiz.start_at is not None and now_utc < quiz.start_at:
            raise NotAvailableError(f"quiz {quiz_id} has not started yet")
        if quiz.end_at is not None and now_utc > quiz.end_at:
            raise NotAvailableError(f"quiz {quiz_id} has ended")

        finished = False
        for attempt in self._attempts.values():
            if attempt.quiz_id != quiz_id or attempt.student_id != self._student_id:
                continue
            if attempt.status == AttemptStatus.IN_PROGRESS:
                logger.info("attempt_resumed", attempt_id=attempt.attempt_id, quiz_id=quiz_id)
                return copy.deepcopy(attempt)
            finished = True

        if finished and not quiz.allow_multiple_attempts:
            raise AlreadyCompletedError(f"quiz {quiz_id} was already completed")

        attempt = Attempt(
            attempt_id=str(uuid4()),
            quiz_id=quiz_id,
            student_id=self._student_id,
            started_at=now_utc,
        )
        self._attempts[attempt.attempt_id] = attempt
        logger.info("attempt_started", attempt_id=attempt.attempt_id, quiz_id=quiz_id)
        return copy.deepcopy(attempt)

    async def save_answer(self, attempt_id: str, question_id: str, payload: AnswerPayload) -> None:
        attempt = self._get_attempt(attempt_id)
        if attempt.is_finished:
            raise ConflictError(f"attempt {attempt_id} is already {attempt.status.value}")
        if payload.question_id != question_id:
            raise InvalidPayloadError(f"payload is for question {payload.question_id}, not {question_id}")

        quiz = self._get_quiz(attempt.quiz_id)
        question = quiz.get_question(question_id)
        if question is None:
            raise InvalidPayloadError(f"question {question_id} is not part of quiz {quiz.quiz_id}")

        value = answer_value_from_payload(question, payload)
        if value is None:
            attempt.answers.pop(question_id, None)
            return
        if not answer_matches_question(question, value):
            raise InvalidPayloadError(f"answer does not fit question {question_id}")
        attempt.answers[question_id] = Answer(question_id=question_id, value=value)

    async def complete_attempt(self, attempt_id: str) -> Attempt:
        attempt = self._get_attempt(attempt_id)
        if attempt.is_finished:
            raise AlreadyCompletedError(f"attempt {attempt_id} is already {attempt.status.value}")
        quiz = self._get_quiz(attempt.quiz_id)
        GradingEngine.apply_objective_pass(quiz, attempt, now_utc=self._now())
        logger.info(
            "attempt_completed",
            attempt_id=attempt_id,
            status=attempt.status.value,
            score=attempt.score,
            percentage=attempt.percentage,
        )
        return copy.deepcopy(attempt)

    async def grade_attempt(
        self,
        attempt_id: str,
        grades: Mapping[str, Feedback],
        overall_feedback: str | None,
        *,
        graded_by: str | None = None,
    ) -> Attempt:
        attempt = self._get_attempt(attempt_id)
        if not attempt.is_finished:
            raise ConflictError(f"attempt {attempt_id} is still in progress")
        quiz = self._get_quiz(attempt.quiz_id)
        GradingEngine.apply_manual_grades(
            quiz,
            attempt,
            grades,
            overall_feedback=overall_feedback,
            graded_by=graded_by,
            now_utc=self._now(),
        )
        logger.info(
            "attempt_graded",
            attempt_id=attempt_id,
            graded_by=graded_by,
            score=attempt.score,
            passed=attempt.passed,
        )
        return copy.deepcopy(attempt)

    async def get_attempt(self, attempt_id: str) -> Attempt:
        return copy.deepcopy(self._get_attempt(attempt_id))

    def _get_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFoundError(f"quiz {quiz_id} not found")
        return quiz

    def _get_attempt(self, attempt_id: str) -> Attempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise AttemptNotFoundError(f"attempt {attempt_id} not found")
        return attempt
